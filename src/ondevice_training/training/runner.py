"""One training or evaluation pass over a SampleSource."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from loguru import logger
from pydantic import BaseModel

from ondevice_training.data.batches import BatchStream
from ondevice_training.data.source import SampleSource
from ondevice_training.engine.base import TrainingEngine
from ondevice_training.errors import EngineStepFailed
from ondevice_training.training.stats import EpochStats, count_correct
from ondevice_training.types import Phase


class BatchProgress(BaseModel, frozen=True):
    """Status snapshot taken after one batch.

    batch_index is 0-based; progress lines show it 1-based.
    """

    phase: Phase
    epoch: int
    num_epochs: int
    batch_index: int
    total_batches: int
    loss: float
    average_loss: float
    correct_count: int
    samples_seen: int
    throughput: float

    @property
    def accuracy(self) -> float:
        return self.correct_count / self.samples_seen if self.samples_seen else 0.0

    def format(self) -> str:
        head = (
            f"{self.phase.tag} | Epoch: {self.epoch + 1:>2} | "
            f"Batch {self.batch_index + 1:>3} / {self.total_batches}"
        )
        if self.phase is Phase.TRAINING:
            body = f"Loss: {self.loss:.4f} | Avg loss: {self.average_loss:.4f}"
        else:
            body = (
                f"Average test loss: {self.average_loss:.2f} | "
                f"Accuracy: {self.correct_count}/{self.samples_seen} "
                f"({100 * self.accuracy:.2f}%)"
            )
        return f"{head} | {body} | {self.throughput:.2f} it/s"


ProgressCallback = Callable[[str, BatchProgress | None], Awaitable[None]]


def start_message(phase: Phase, epoch: int, num_epochs: int) -> str:
    action = "training" if phase is Phase.TRAINING else "testing"
    return f"{phase.tag} | Epoch: {epoch + 1:>2} / {num_epochs} | Starting {action}..."


async def _discard(text: str, snapshot: BatchProgress | None) -> None:
    return None


class EpochRunner:
    """Drive one pass of batches through a TrainingEngine.

    Batches are processed strictly one at a time and in source order.  A
    training batch runs train-step, optimizer-step and reset-gradients to
    completion before the next batch is read.  Progress is awaited after
    every batch, so a throttling callback can pause the loop.

    Args:
        engine: Engine session owned by the caller for the whole pass.
        batch_size: Samples per batch.
        num_epochs: Total epochs in the run, shown in start lines.
        on_progress: Awaited with ``(text, snapshot)`` for the start line
            (snapshot ``None``) and after each batch.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        engine: TrainingEngine,
        batch_size: int,
        num_epochs: int,
        on_progress: ProgressCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.batch_size = batch_size
        self.num_epochs = num_epochs
        self.on_progress = on_progress or _discard
        self.clock = clock

    async def run(self, phase: Phase, source: SampleSource, epoch: int) -> EpochStats:
        """Run one pass and return its finished statistics.

        Raises:
            EngineStepFailed: Any engine call failed; the pass stops at that
                batch and nothing is retried.
        """
        stream = BatchStream(source, self.batch_size)
        total_batches = len(stream)
        await self.on_progress(start_message(phase, epoch, self.num_epochs), None)

        stats = EpochStats(start_time=self.clock())
        for batch_index, batch in enumerate(stream):
            try:
                if phase is Phase.TRAINING:
                    result = await self.engine.run_train_step(batch)
                    await self.engine.run_optimizer_step()
                    await self.engine.reset_gradients()
                    loss, correct = result.loss, 0
                else:
                    eval_result = await self.engine.run_eval_step(batch)
                    loss = eval_result.loss
                    correct = count_correct(eval_result.predictions, batch["labels"])
            except Exception as exc:
                raise EngineStepFailed(phase, batch_index, exc) from exc

            stats.record(loss, len(batch["labels"]), correct)
            snapshot = BatchProgress(
                phase=phase,
                epoch=epoch,
                num_epochs=self.num_epochs,
                batch_index=batch_index,
                total_batches=total_batches,
                loss=loss,
                average_loss=stats.average_loss,
                correct_count=stats.correct_count,
                samples_seen=stats.samples_seen,
                throughput=stats.throughput(self.clock()),
            )
            await self.on_progress(snapshot.format(), snapshot)

        stats.finish(self.clock())
        if not stats.has_data:
            logger.warning(
                f"{phase.tag} pass of epoch {epoch + 1} ran zero batches: "
                f"'{source.split}' has {source.count} sample(s) for batch size "
                f"{self.batch_size}; accuracy is undefined"
            )
        else:
            logger.debug(
                f"{phase.tag} epoch {epoch + 1}: {stats.batch_count} batch(es), "
                f"avg loss {stats.average_loss:.4f}, "
                f"{stats.throughput():.2f} it/s"
            )
        return stats
