"""Training engine adapters."""

from ondevice_training.engine.base import (
    FEED_INPUT,
    FEED_LABELS,
    EvalStepResult,
    TrainingEngine,
    TrainStepResult,
)
from ondevice_training.engine.ort_engine import ORTTrainingEngine

__all__ = [
    "FEED_INPUT",
    "FEED_LABELS",
    "EvalStepResult",
    "ORTTrainingEngine",
    "TrainStepResult",
    "TrainingEngine",
]
