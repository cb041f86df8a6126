"""Per-pass statistics and prediction scoring."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
from pydantic import BaseModel

from ondevice_training.types import Phase


def index_of_max(scores: Sequence[float] | np.ndarray) -> int:
    """Index of the largest score; ties resolve to the first maximum."""
    if len(scores) == 0:
        raise ValueError("index_of_max expects a non-empty sequence of scores")
    max_index = 0
    for i in range(1, len(scores)):
        if scores[i] > scores[max_index]:
            max_index = i
    return max_index


def predictions_from_scores(scores: np.ndarray) -> list[int]:
    """Predicted class per row of a ``(B, num_classes)`` score array."""
    scores = np.asarray(scores)
    if scores.ndim == 1:
        scores = scores.reshape(1, -1)
    batch_size = scores.shape[0]
    return [index_of_max(row) for row in scores.reshape(batch_size, -1)]


def count_correct(scores: np.ndarray, labels: np.ndarray) -> int:
    """Number of rows whose predicted class equals the true label.

    Raises:
        ValueError: The score rows and labels differ in count.
    """
    predictions = predictions_from_scores(scores)
    truth = np.asarray(labels).reshape(-1)
    if len(predictions) != len(truth):
        raise ValueError(
            f"{len(predictions)} score row(s) for {len(truth)} label(s)"
        )
    return sum(1 for p, t in zip(predictions, truth) if p == int(t))


@dataclass
class EpochStats:
    """Accumulator for one training or evaluation pass.

    Only the EpochRunner that created it records into it; once the pass
    finishes it is converted into an :class:`EpochMetrics` point.
    """

    start_time: float
    batch_count: int = 0
    cumulative_loss: float = 0.0
    correct_count: int = 0
    samples_seen: int = 0
    end_time: float | None = field(default=None)

    def record(self, loss: float, batch_size: int, correct: int = 0) -> None:
        self.batch_count += 1
        self.cumulative_loss += loss
        self.samples_seen += batch_size
        self.correct_count += correct

    def finish(self, now: float) -> None:
        self.end_time = now

    @property
    def has_data(self) -> bool:
        return self.samples_seen > 0

    @property
    def average_loss(self) -> float:
        if self.batch_count == 0:
            return math.nan
        return self.cumulative_loss / self.batch_count

    @property
    def accuracy(self) -> float:
        """``correct_count / samples_seen``; NaN when no samples were seen."""
        if self.samples_seen == 0:
            return math.nan
        return self.correct_count / self.samples_seen

    def elapsed(self, now: float | None = None) -> float:
        end = now if now is not None else self.end_time
        if end is None:
            raise ValueError("pass still running; pass the current time")
        return end - self.start_time

    def throughput(self, now: float | None = None) -> float:
        """Batches per second; 0.0 before any measurable time has passed."""
        elapsed = self.elapsed(now)
        if elapsed <= 0:
            return 0.0
        return self.batch_count / elapsed


class EpochMetrics(BaseModel, frozen=True):
    """Published metric point for one finished pass.

    accuracy is None for training passes, which do not score predictions.
    """

    epoch: int
    phase: Phase
    batch_count: int
    samples_seen: int
    correct_count: int
    average_loss: float
    accuracy: float | None
    throughput: float
    elapsed_seconds: float

    @classmethod
    def from_stats(cls, epoch: int, phase: Phase, stats: EpochStats) -> EpochMetrics:
        return cls(
            epoch=epoch,
            phase=phase,
            batch_count=stats.batch_count,
            samples_seen=stats.samples_seen,
            correct_count=stats.correct_count,
            average_loss=stats.average_loss,
            accuracy=stats.accuracy if phase is Phase.EVALUATING else None,
            throughput=stats.throughput(),
            elapsed_seconds=stats.elapsed(),
        )
