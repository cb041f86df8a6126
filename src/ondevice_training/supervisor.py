"""Run orchestration: session load, epoch loop, lifecycle and summary."""

from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable

from loguru import logger

from ondevice_training.config import TrainingConfig
from ondevice_training.data.reader import SplitReader
from ondevice_training.data.source import SampleSource
from ondevice_training.data.transforms import build_sample_transform
from ondevice_training.engine.base import TrainingEngine
from ondevice_training.engine.ort_engine import ORTTrainingEngine
from ondevice_training.errors import RunAlreadyActive, SessionLoadFailed, TrainingError
from ondevice_training.reporting.board import StatusBoard
from ondevice_training.reporting.progress import ProgressReporter
from ondevice_training.state import RunPhase, RunState
from ondevice_training.training.runner import BatchProgress, EpochRunner
from ondevice_training.training.stats import EpochMetrics, EpochStats
from ondevice_training.types import Phase

EngineFactory = Callable[[TrainingConfig], Awaitable[TrainingEngine]]
StateListener = Callable[[RunState], None]

TRAIN_SPLIT = "train"
TEST_SPLIT = "test"


async def create_ort_engine(config: TrainingConfig) -> TrainingEngine:
    """Default engine factory: an ONNX Runtime training session."""
    return await ORTTrainingEngine.create(
        config.artifacts, config.loss_node_name, config.output_node_name
    )


def format_summary(
    final_accuracy: float, total_seconds: float, average_throughput: float
) -> str:
    accuracy = (
        "n/a (no test batches)"
        if math.isnan(final_accuracy)
        else f"{100 * final_accuracy:.2f}%"
    )
    return (
        f"Training completed. Final test set accuracy: {accuracy} | "
        f"Total training time: {total_seconds:.3f} seconds | "
        f"Average iterations / second: {average_throughput:.2f}"
    )


class TrainingSupervisor:
    """Own one engine session and drive a fixed number of epochs through it.

    Lifecycle: ``IDLE -> LOADING_SESSION -> RUNNING -> COMPLETED | FAILED``.
    Each epoch runs a full training pass and then a full evaluation pass;
    nothing overlaps.  A failure at any point moves the run to ``FAILED``
    with the error string on the board, keeping every metric recorded so
    far.  There is no retry and no resumption.

    Only one run may be in flight: :meth:`run` raises
    :class:`RunAlreadyActive` while the state is ``LOADING_SESSION`` or
    ``RUNNING``.  A finished supervisor can be run again.

    Args:
        config: Run configuration.
        board: Status surface for display consumers.
        reporter: Progress channel; built from ``config.reporter`` when
            omitted.
        engine_factory: Coroutine building the engine session.
        reader: Split resource reader rooted at ``config.data_root`` by
            default.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        config: TrainingConfig,
        board: StatusBoard | None = None,
        reporter: ProgressReporter | None = None,
        engine_factory: EngineFactory = create_ort_engine,
        reader: SplitReader | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.board = board or StatusBoard()
        self.reporter = reporter or ProgressReporter(
            self.board, config.reporter, clock=clock
        )
        self.engine_factory = engine_factory
        self.reader = reader or SplitReader(config.data_root)
        self.clock = clock
        self._state = RunState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def history(self) -> list[EpochMetrics]:
        return list(self.board.epochs)

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def run(self) -> RunState:
        """Execute a full run and return its terminal state.

        Training errors end in ``FAILED`` and are returned, not raised.
        Anything else, cancellation included, also marks the run ``FAILED``
        and then propagates.

        Raises:
            RunAlreadyActive: Another run is loading or running.
        """
        if self._state.is_active:
            raise RunAlreadyActive(self._state.phase.value)
        self._transition(RunState(RunPhase.LOADING_SESSION))

        try:
            self.board.clear()
            self.reporter.reset()
            engine = await self._load_session()
            self._transition(RunState(RunPhase.RUNNING))
            return await self._run_epochs(engine)
        except TrainingError as exc:
            return self._fail(exc)
        except BaseException as exc:
            self._fail(exc)
            raise

    async def _load_session(self) -> TrainingEngine:
        self.board.set_status("Attempting to load training session...")
        try:
            engine = await self.engine_factory(self.config)
        except SessionLoadFailed:
            raise
        except Exception as exc:
            raise SessionLoadFailed(exc) from exc
        self.board.set_status("Training session loaded")
        return engine

    async def _run_epochs(self, engine: TrainingEngine) -> RunState:
        config = self.config
        transform = build_sample_transform(config)
        train_source = await SampleSource.load(
            self.reader, TRAIN_SPLIT, config.max_train_samples, transform
        )
        test_source = await SampleSource.load(
            self.reader, TEST_SPLIT, config.max_test_samples, transform
        )
        runner = EpochRunner(
            engine,
            config.batch_size,
            config.num_epochs,
            on_progress=self._on_progress,
            clock=self.clock,
        )

        self.reporter.reset()
        start_time = self.clock()
        self.board.set_status("Training started")
        throughput_sum = 0.0
        final_accuracy = math.nan

        for epoch in range(config.num_epochs):
            self._transition(RunState(RunPhase.RUNNING, epoch, Phase.TRAINING))
            train_stats = await runner.run(Phase.TRAINING, train_source, epoch)
            train_metrics = self._publish(epoch, Phase.TRAINING, train_stats)
            throughput_sum += train_metrics.throughput

            self._transition(RunState(RunPhase.RUNNING, epoch, Phase.EVALUATING))
            test_stats = await runner.run(Phase.EVALUATING, test_source, epoch)
            self._publish(epoch, Phase.EVALUATING, test_stats)
            self.board.append_test_accuracy(test_stats.accuracy)
            final_accuracy = test_stats.accuracy

        total_seconds = self.clock() - start_time
        average_throughput = (
            throughput_sum / config.num_epochs if config.num_epochs else 0.0
        )
        if math.isnan(final_accuracy):
            logger.warning("No evaluation batches ran; final accuracy is undefined")

        self.reporter.drain()
        summary = format_summary(final_accuracy, total_seconds, average_throughput)
        self.board.set_status(summary)
        logger.info(summary)
        return self._transition(
            RunState(RunPhase.COMPLETED, final_accuracy=final_accuracy)
        )

    async def _on_progress(self, text: str, snapshot: BatchProgress | None) -> None:
        if snapshot is not None and snapshot.phase is Phase.TRAINING:
            self.board.append_training_loss(snapshot.loss)
        await self.reporter.post(text, snapshot)

    def _publish(self, epoch: int, phase: Phase, stats: EpochStats) -> EpochMetrics:
        metrics = EpochMetrics.from_stats(epoch, phase, stats)
        self.board.append_epoch(metrics)
        accuracy = (
            "" if metrics.accuracy is None else f", accuracy {metrics.accuracy:.4f}"
        )
        logger.info(
            f"Epoch {epoch + 1} {phase.value}: {metrics.batch_count} batch(es), "
            f"avg loss {metrics.average_loss:.4f}{accuracy}, "
            f"{metrics.throughput:.2f} it/s"
        )
        return metrics

    def _fail(self, exc: BaseException) -> RunState:
        message = str(exc) or type(exc).__name__
        logger.error(f"Training run failed: {message}")
        self.reporter.drain()
        self.board.set_error(message)
        return self._transition(RunState(RunPhase.FAILED, error=message))

    def _transition(self, state: RunState) -> RunState:
        if state.phase is not self._state.phase:
            logger.info(f"Run state: {self._state.phase.value} -> {state.phase.value}")
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(
                    f"State listener {listener!r} failed on {state.phase.value}: {e}"
                )
        return state
