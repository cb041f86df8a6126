"""Type aliases and TypedDicts for ondevice_training inter-module contracts."""

from enum import Enum
from typing import TypedDict

import numpy as np


class Batch(TypedDict):
    """A single batch produced by a BatchStream.

    inputs: Float32 array of shape (B, P), one flattened sample per row.
    labels: Int64 array of shape (B,), integer class indices.
    """

    inputs: np.ndarray
    labels: np.ndarray


class Phase(Enum):
    """Which half of an epoch a pass belongs to."""

    TRAINING = "training"
    EVALUATING = "evaluating"

    @property
    def tag(self) -> str:
        """Upper-case prefix used in progress lines."""
        return "TRAINING" if self is Phase.TRAINING else "TESTING"
