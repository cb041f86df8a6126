"""Run lifecycle states published by TrainingSupervisor."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from ondevice_training.types import Phase


class RunPhase(Enum):
    """Lifecycle of a supervisor run.

    ``IDLE -> LOADING_SESSION -> RUNNING -> COMPLETED | FAILED``; a terminal
    phase may start over with a new run.
    """

    IDLE = "idle"
    LOADING_SESSION = "loading_session"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RunState:
    """Immutable lifecycle snapshot.

    epoch and pass_phase are set while RUNNING, final_accuracy once
    COMPLETED, error once FAILED.
    """

    phase: RunPhase = RunPhase.IDLE
    epoch: int | None = None
    pass_phase: Phase | None = None
    final_accuracy: float | None = None
    error: str | None = None

    @property
    def is_active(self) -> bool:
        """True while a run is loading or running; new starts are rejected."""
        return self.phase in (RunPhase.LOADING_SESSION, RunPhase.RUNNING)

    @property
    def is_terminal(self) -> bool:
        """True once a run has completed or failed."""
        return self.phase in (RunPhase.COMPLETED, RunPhase.FAILED)

    def describe(self) -> str:
        """One-line human-readable summary of the state."""
        if self.phase is RunPhase.RUNNING and self.epoch is not None:
            pass_name = self.pass_phase.value if self.pass_phase else "starting"
            return f"running (epoch {self.epoch + 1}, {pass_name})"
        if self.phase is RunPhase.COMPLETED:
            accuracy = self.final_accuracy
            if accuracy is None or math.isnan(accuracy):
                return "completed (accuracy n/a)"
            return f"completed (accuracy {accuracy:.4f})"
        if self.phase is RunPhase.FAILED:
            return f"failed ({self.error})"
        return self.phase.value
