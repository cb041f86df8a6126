"""Indexed samples and labels for one split."""

from __future__ import annotations

import numpy as np
from loguru import logger

from ondevice_training.data.reader import SplitReader
from ondevice_training.data.transforms import SampleTransform, bytes_to_vector
from ondevice_training.errors import SampleUnavailable


class SampleSource:
    """Ordered, index-aligned samples and labels of one split.

    Build instances with :meth:`load`; the constructor only checks the
    alignment invariant.  Each sample is a read-only float32 array of shape
    ``(1, pixel_count)`` and every sample has the same ``pixel_count``.

    Labels are paired with files purely by position.  ``parse_labels`` drops
    malformed lines, so a labels file that is not aligned with the manifest
    by construction silently pairs samples with the wrong labels.

    Args:
        split: Split name, e.g. ``"train"`` or ``"test"``.
        samples: Sample arrays in manifest order.
        labels: Integer class index per sample.
        max_samples: Cap the source was loaded with.
    """

    def __init__(
        self,
        split: str,
        samples: list[np.ndarray],
        labels: list[int],
        max_samples: int,
    ) -> None:
        if len(samples) != len(labels):
            raise ValueError(
                f"{len(samples)} samples but {len(labels)} labels for '{split}'"
            )
        if len(samples) > max_samples:
            raise ValueError(
                f"{len(samples)} samples exceed max_samples={max_samples}"
            )
        self.split = split
        self.max_samples = max_samples
        self._samples = samples
        self._labels = labels

    @classmethod
    async def load(
        cls,
        reader: SplitReader,
        split: str,
        max_samples: int,
        transform: SampleTransform = bytes_to_vector,
    ) -> SampleSource:
        """Read the manifest, labels and first samples of ``split``.

        Loads ``min(file_count, label_count, max_samples)`` samples in
        manifest order.  Any failure aborts the whole load.

        Raises:
            ManifestUnavailable: The split listing cannot be read.
            LabelsUnavailable: The labels file cannot be read.
            SampleUnavailable: A sample is missing, cannot be converted, or
                has a different length than the first sample.
        """
        files = await reader.list_files(split)
        labels = await reader.read_labels(split)
        count = min(len(files), len(labels), max_samples)
        if len(files) != len(labels):
            logger.warning(
                f"Split '{split}' lists {len(files)} file(s) but has "
                f"{len(labels)} parsable label(s); pairing by position"
            )

        samples: list[np.ndarray] = []
        for index in range(count):
            data = await reader.read_sample(split, files[index], index)
            try:
                vector = transform(data)
            except ValueError as exc:
                raise SampleUnavailable(split, index, exc) from exc
            if vector.size == 0:
                raise SampleUnavailable(split, index, ValueError("empty sample"))
            if samples and vector.shape != samples[0].shape:
                raise SampleUnavailable(
                    split,
                    index,
                    ValueError(
                        f"shape {vector.shape} differs from {samples[0].shape}"
                    ),
                )
            vector.setflags(write=False)
            samples.append(vector)

        logger.info(f"SampleSource: loaded {count} sample(s) for '{split}'")
        return cls(split, samples, labels[:count], max_samples)

    @property
    def count(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return self.count

    @property
    def pixel_count(self) -> int:
        """Elements per sample, 0 for an empty source."""
        return int(self._samples[0].shape[-1]) if self._samples else 0

    def sample_at(self, index: int) -> np.ndarray:
        return self._samples[index]

    def label_at(self, index: int) -> int:
        return self._labels[index]
