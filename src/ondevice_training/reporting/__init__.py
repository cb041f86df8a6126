"""Progress reporting and display consumers."""

from ondevice_training.reporting.board import (
    BoardField,
    BoardListener,
    BoardUpdate,
    StatusBoard,
)
from ondevice_training.reporting.console import ConsoleDisplay
from ondevice_training.reporting.history import HistoryWriter
from ondevice_training.reporting.progress import ProgressMessage, ProgressReporter

__all__ = [
    "BoardField",
    "BoardListener",
    "BoardUpdate",
    "ConsoleDisplay",
    "HistoryWriter",
    "ProgressMessage",
    "ProgressReporter",
    "StatusBoard",
]
