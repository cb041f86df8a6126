"""Epoch-level training and evaluation passes."""

from ondevice_training.training.runner import BatchProgress, EpochRunner
from ondevice_training.training.stats import (
    EpochMetrics,
    EpochStats,
    count_correct,
    index_of_max,
    predictions_from_scores,
)

__all__ = [
    "BatchProgress",
    "EpochMetrics",
    "EpochRunner",
    "EpochStats",
    "count_correct",
    "index_of_max",
    "predictions_from_scores",
]
