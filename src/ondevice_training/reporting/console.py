"""Rich console consumer for a StatusBoard."""

from __future__ import annotations

import math

from rich import box
from rich.console import Console
from rich.table import Table

from ondevice_training.reporting.board import BoardField, BoardUpdate
from ondevice_training.training.stats import EpochMetrics
from ondevice_training.types import Phase


def _fmt(value: float | None, spec: str) -> str:
    return "n/a" if value is None or math.isnan(value) else format(value, spec)


def _accuracy_cell(metrics: EpochMetrics) -> str:
    if metrics.accuracy is None or math.isnan(metrics.accuracy):
        return "n/a"
    return (
        f"{100 * metrics.accuracy:.2f}% "
        f"({metrics.correct_count}/{metrics.samples_seen})"
    )


class ConsoleDisplay:
    """Print board updates to a terminal.

    Status lines and live log lines are printed as they arrive, errors in
    red.  Loss and accuracy series are not echoed per point; call
    :meth:`print_history` for a summary table.

    Args:
        console: Target console, a default rich Console when omitted.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def on_update(self, update: BoardUpdate) -> None:
        if update.kind is BoardField.STATUS:
            self.console.print(update.payload, style="cyan", highlight=False)
        elif update.kind is BoardField.LOG:
            for line in update.payload:
                self.console.print(line, style="dim", highlight=False)
        elif update.kind is BoardField.ERROR:
            self.console.print(update.payload, style="bold red", highlight=False)

    def print_history(self, epochs: list[EpochMetrics]) -> None:
        """Render one row per epoch: training loss next to test results."""
        table = Table(
            title="Training History",
            header_style="bold magenta",
            box=box.SQUARE,
            show_lines=True,
        )
        table.add_column("Epoch", justify="right")
        table.add_column("Train Loss", justify="right", style="green")
        table.add_column("Train it/s", justify="right")
        table.add_column("Test Loss", justify="right", style="green")
        table.add_column("Test Accuracy", justify="right", style="yellow")

        rows: dict[int, dict[Phase, EpochMetrics]] = {}
        for metrics in epochs:
            rows.setdefault(metrics.epoch, {})[metrics.phase] = metrics

        for epoch in sorted(rows):
            train = rows[epoch].get(Phase.TRAINING)
            test = rows[epoch].get(Phase.EVALUATING)
            table.add_row(
                str(epoch + 1),
                _fmt(train.average_loss, ".4f") if train else "",
                _fmt(train.throughput, ".2f") if train else "",
                _fmt(test.average_loss, ".4f") if test else "",
                _accuracy_cell(test) if test else "",
            )

        self.console.print(table)
