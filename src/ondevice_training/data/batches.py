"""Fixed-size, in-order batching over a SampleSource."""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np

from ondevice_training.data.source import SampleSource
from ondevice_training.types import Batch


class BatchStream:
    """Restartable sequence of full batches over ``source``.

    Every call to ``iter()`` starts a fresh pass from offset 0.  Batches keep
    source order and are never shuffled; the trailing ``count % batch_size``
    samples are dropped, so a source smaller than one batch yields nothing.

    Args:
        source: Samples to batch. Never mutated.
        batch_size: Samples per batch, must be positive.
    """

    def __init__(self, source: SampleSource, batch_size: int) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.source = source
        self.batch_size = batch_size

    def __len__(self) -> int:
        return self.source.count // self.batch_size

    def __iter__(self) -> Iterator[Batch]:
        return batches(self.source, self.batch_size)


def batches(source: SampleSource, batch_size: int) -> Iterator[Batch]:
    """Yield ``floor(source.count / batch_size)`` stacked batches lazily."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    num_batches = source.count // batch_size
    for i in range(num_batches):
        start = i * batch_size
        indices = range(start, start + batch_size)
        inputs = np.concatenate([source.sample_at(j) for j in indices], axis=0)
        labels = np.array([source.label_at(j) for j in indices], dtype=np.int64)
        yield {"inputs": inputs, "labels": labels}
