"""Status surface read by display consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from ondevice_training.training.stats import EpochMetrics


class BoardField(Enum):
    STATUS = "status"
    LOG = "log"
    TRAINING_LOSS = "training_loss"
    TEST_ACCURACY = "test_accuracy"
    EPOCH = "epoch"
    ERROR = "error"
    CLEARED = "cleared"


@dataclass(frozen=True)
class BoardUpdate:
    """A single change to the board, delivered to listeners."""

    kind: BoardField
    payload: Any = None


class BoardListener(Protocol):
    def on_update(self, update: BoardUpdate) -> None: ...


@dataclass
class StatusBoard:
    """Everything a display layer needs to render a run.

    status: Latest status line.
    log_lines: Accumulated log lines (live logging only).
    training_losses: Loss of every training batch, in order.
    test_accuracies: Accuracy of every evaluation pass, one per epoch.
    epochs: Published metric point of every finished pass.
    error: Terminal error string, set when a run fails.

    Values recorded before a failure are kept so partial results stay
    inspectable.
    """

    status: str = ""
    log_lines: list[str] = field(default_factory=list)
    training_losses: list[float] = field(default_factory=list)
    test_accuracies: list[float] = field(default_factory=list)
    epochs: list[EpochMetrics] = field(default_factory=list)
    error: str | None = None
    _listeners: list[BoardListener] = field(default_factory=list, repr=False)

    def add_listener(self, listener: BoardListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: BoardListener) -> None:
        self._listeners.remove(listener)

    def set_status(self, line: str) -> None:
        self.status = line
        self._notify(BoardField.STATUS, line)

    def extend_log(self, lines: list[str]) -> None:
        if not lines:
            return
        self.log_lines.extend(lines)
        self._notify(BoardField.LOG, list(lines))

    def append_training_loss(self, loss: float) -> None:
        self.training_losses.append(loss)
        self._notify(BoardField.TRAINING_LOSS, loss)

    def append_test_accuracy(self, accuracy: float) -> None:
        self.test_accuracies.append(accuracy)
        self._notify(BoardField.TEST_ACCURACY, accuracy)

    def append_epoch(self, metrics: EpochMetrics) -> None:
        self.epochs.append(metrics)
        self._notify(BoardField.EPOCH, metrics)

    def set_error(self, message: str) -> None:
        self.error = message
        self._notify(BoardField.ERROR, message)

    def clear(self) -> None:
        """Reset every output before a new run."""
        self.status = ""
        self.log_lines.clear()
        self.training_losses.clear()
        self.test_accuracies.clear()
        self.epochs.clear()
        self.error = None
        self._notify(BoardField.CLEARED)

    def _notify(self, kind: BoardField, payload: Any = None) -> None:
        update = BoardUpdate(kind, payload)
        for listener in list(self._listeners):
            try:
                listener.on_update(update)
            except Exception as e:
                logger.error(f"Board listener {listener!r} failed on {kind.value}: {e}")
