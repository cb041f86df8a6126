"""Run history artifacts: JSON summary and loss/accuracy plots."""

from __future__ import annotations

import math
from pathlib import Path

import matplotlib
import matplotlib.pyplot as plt
import orjson
from loguru import logger

from ondevice_training.reporting.board import StatusBoard
from ondevice_training.state import RunState


def _finite_or_none(value: float | None) -> float | None:
    if value is None or math.isnan(value):
        return None
    return value


class HistoryWriter:
    """Write the outputs of a finished run to ``output_dir``.

    - ``run_summary.json``: final state, status, error and every series.
    - ``loss_history.png``: per-batch training loss.
    - ``accuracy_history.png``: test accuracy per epoch.

    Args:
        output_dir: Directory for the artifacts, created on demand.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def write_summary(self, board: StatusBoard, state: RunState) -> Path:
        """Write ``run_summary.json``. Returns the output path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.output_dir / "run_summary.json"
        dump = {
            "state": state.phase.value,
            "final_accuracy": _finite_or_none(state.final_accuracy),
            "status": board.status,
            "error": board.error,
            "training_losses": board.training_losses,
            "test_accuracies": [_finite_or_none(a) for a in board.test_accuracies],
            "epochs": [m.model_dump(mode="json") for m in board.epochs],
            "log_lines": board.log_lines,
        }
        out_path.write_bytes(orjson.dumps(dump, option=orjson.OPT_INDENT_2))
        return out_path

    def plot(self, board: StatusBoard) -> list[Path]:
        """Draw and save loss + accuracy plots. Returns the written paths."""
        matplotlib.use("Agg")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []

        # --- Loss plot ---
        if board.training_losses:
            fig, ax = plt.subplots(figsize=(10, 6))
            ax.plot(range(1, len(board.training_losses) + 1), board.training_losses)
            ax.set_title("Training Loss")
            ax.set_xlabel("Batch")
            ax.set_ylabel("Loss")
            ax.grid(True, linestyle="--", alpha=0.7)
            fig.tight_layout()
            path = self.output_dir / "loss_history.png"
            fig.savefig(path, dpi=150)
            plt.close(fig)
            written.append(path)

        # --- Accuracy plot ---
        if board.test_accuracies:
            fig, ax = plt.subplots(figsize=(10, 6))
            epochs = range(1, len(board.test_accuracies) + 1)
            ax.plot(epochs, board.test_accuracies, marker="s", label="Test Accuracy")
            ax.set_title("Test Accuracy")
            ax.set_xlabel("Epoch")
            ax.set_ylabel("Accuracy")
            ax.legend()
            ax.grid(True, linestyle="--", alpha=0.7)
            fig.tight_layout()
            path = self.output_dir / "accuracy_history.png"
            fig.savefig(path, dpi=150)
            plt.close(fig)
            written.append(path)

        logger.info(f"Training history plots updated in {self.output_dir}")
        return written
