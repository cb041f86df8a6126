"""Abstract base class for training engines."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from ondevice_training.types import Batch

# Feed names the exported training graphs expect.
FEED_INPUT = "input"
FEED_LABELS = "labels"


@dataclass(frozen=True)
class TrainStepResult:
    """Outcome of one forward/backward pass."""

    loss: float


@dataclass(frozen=True)
class EvalStepResult:
    """Outcome of one evaluation pass.

    predictions: Per-class scores of shape (B, num_classes).
    """

    loss: float
    predictions: np.ndarray


class TrainingEngine(ABC):
    """Numeric runtime that owns the model parameters and optimizer state.

    Calls are awaited one at a time.  The parameter state left behind by
    :meth:`reset_gradients` is the precondition for the next
    :meth:`run_train_step`, so callers must never interleave batches.
    """

    @abstractmethod
    async def run_train_step(self, batch: Batch) -> TrainStepResult:
        """Forward and backward pass; accumulates gradients."""

    @abstractmethod
    async def run_optimizer_step(self) -> None:
        """Apply the accumulated gradients."""

    @abstractmethod
    async def reset_gradients(self) -> None:
        """Clear gradients before the next train step."""

    @abstractmethod
    async def run_eval_step(self, batch: Batch) -> EvalStepResult:
        """Forward pass with the evaluation graph."""
