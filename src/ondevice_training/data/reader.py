"""Split resource reader: manifests, label files and raw sample bytes.

Layout under a data root, for a split ``S``::

    <root>/<S>/                 sample directory, its listing is the manifest
    <root>/<S>/<S>_labels.txt   one integer label per line
    <root>/<S>/<file name>      raw sample bytes
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from loguru import logger

from ondevice_training.errors import (
    LabelsUnavailable,
    ManifestUnavailable,
    SampleUnavailable,
)

_LEADING_INT = re.compile(r"[+-]?\d+")


def labels_file_name(split: str) -> str:
    return f"{split}_labels.txt"


def parse_manifest(text: str) -> list[str]:
    """Split a manifest body into file names, ignoring blank lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_labels(text: str) -> list[int]:
    """Parse one integer per line.

    Each line is trimmed and its leading integer is taken (``"3 cat"`` -> 3).
    Lines with no leading integer are dropped without realigning the rest,
    so a malformed line shifts every later label one position up.
    """
    labels: list[int] = []
    for line in text.split("\n"):
        match = _LEADING_INT.match(line.strip())
        if match is None:
            continue
        labels.append(int(match.group()))
    return labels


class SplitReader:
    """Read split resources from a local data root.

    All blocking reads are pushed to a worker thread so the event loop
    stays responsive while samples are loaded.

    Args:
        root: Data folder containing one directory per split.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    async def list_files(self, split: str) -> list[str]:
        """Return the manifest for ``split``: sorted sample file names.

        The listing body is newline-separated, like a served directory index;
        the split's labels file is not part of it.
        """
        logger.debug(f'Loading files from "{split}".')
        try:
            text = await asyncio.to_thread(self._listing_body, split)
        except OSError as exc:
            raise ManifestUnavailable(split, exc) from exc
        return parse_manifest(text)

    async def read_labels_text(self, split: str) -> str:
        logger.debug(f'Loading labels for "{split}".')
        path = self.root / split / labels_file_name(split)
        try:
            return await asyncio.to_thread(path.read_text)
        except (OSError, UnicodeDecodeError) as exc:
            raise LabelsUnavailable(split, exc) from exc

    async def read_labels(self, split: str) -> list[int]:
        return parse_labels(await self.read_labels_text(split))

    async def read_sample(self, split: str, file_name: str, index: int) -> bytes:
        path = self.root / split / file_name
        logger.debug(f'Loading sample from "{path}".')
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise SampleUnavailable(split, index, exc) from exc

    def _listing_body(self, split: str) -> str:
        skip = labels_file_name(split)
        names = sorted(
            p.name
            for p in (self.root / split).iterdir()
            if p.is_file() and p.name != skip
        )
        return "\n".join(names)
