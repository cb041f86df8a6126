"""Shared pytest fixtures for ondevice_training tests."""

from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest

from ondevice_training.engine.base import (
    EvalStepResult,
    TrainingEngine,
    TrainStepResult,
)
from ondevice_training.types import Batch

NUM_CLASSES = 4
SAMPLE_BYTES = 4


def write_split(root: Path, split: str, labels: list[int | str]) -> Path:
    """Write one sample file per label plus ``<split>_labels.txt``.

    Sample ``i`` is ``SAMPLE_BYTES`` copies of byte ``i`` so every sample has
    the same length and a distinct value.
    """
    split_dir = root / split
    split_dir.mkdir(parents=True, exist_ok=True)
    for i in range(len(labels)):
        (split_dir / f"sample_{i:03d}.bin").write_bytes(bytes([i]) * SAMPLE_BYTES)
    (split_dir / f"{split}_labels.txt").write_text(
        "\n".join(str(label) for label in labels) + "\n"
    )
    return split_dir


@pytest.fixture()
def tmp_data_root(tmp_path: Path) -> Path:
    """Minimal dataset in the split-directory layout.

    - train/: 4 samples, labels 0..3
    - test/: 4 samples, labels 3..0
    Each split directory also holds its ``<split>_labels.txt``.
    """
    write_split(tmp_path, "train", [0, 1, 2, 3])
    write_split(tmp_path, "test", [3, 2, 1, 0])
    return tmp_path


class FakeClock:
    """Manually driven monotonic clock; ``step`` auto-advances every read."""

    def __init__(self, start: float = 0.0, step: float = 0.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested pauses and advances ``clock`` by each of them."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


class FakeEngine(TrainingEngine):
    """In-memory engine recording every call in order.

    Args:
        loss: Loss returned by every train and eval step.
        perfect: Predict the true label (otherwise the next class).
        fail_train_at: 0-based train step index that raises RuntimeError.
        fail_eval_at: 0-based eval step index that raises RuntimeError.
    """

    def __init__(
        self,
        loss: float = 0.5,
        perfect: bool = True,
        fail_train_at: int | None = None,
        fail_eval_at: int | None = None,
    ) -> None:
        self.loss = loss
        self.perfect = perfect
        self.fail_train_at = fail_train_at
        self.fail_eval_at = fail_eval_at
        self.calls: list[str] = []
        self.train_batches: list[Batch] = []
        self.eval_batches: list[Batch] = []

    async def run_train_step(self, batch: Batch) -> TrainStepResult:
        if len(self.train_batches) == self.fail_train_at:
            raise RuntimeError("train step exploded")
        self.calls.append("train")
        self.train_batches.append(batch)
        return TrainStepResult(loss=self.loss)

    async def run_optimizer_step(self) -> None:
        self.calls.append("optimizer")

    async def reset_gradients(self) -> None:
        self.calls.append("reset")

    async def run_eval_step(self, batch: Batch) -> EvalStepResult:
        if len(self.eval_batches) == self.fail_eval_at:
            raise RuntimeError("eval step exploded")
        self.calls.append("eval")
        self.eval_batches.append(batch)
        labels = batch["labels"]
        predicted = labels if self.perfect else (labels + 1) % NUM_CLASSES
        return EvalStepResult(
            loss=self.loss, predictions=np.eye(NUM_CLASSES, dtype=np.float32)[predicted]
        )


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_sleep(fake_clock: FakeClock) -> FakeSleep:
    return FakeSleep(fake_clock)


@pytest.fixture()
def make_engine() -> Callable[..., FakeEngine]:
    """Factory fixture for FakeEngine instances."""
    return FakeEngine
