"""Throttled, buffering progress channel toward the display layer."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from ondevice_training.config import ReporterConfig
from ondevice_training.reporting.board import StatusBoard
from ondevice_training.training.runner import BatchProgress


@dataclass(frozen=True)
class ProgressMessage:
    """One queued progress line and the snapshot it was rendered from."""

    text: str
    timestamp: float
    snapshot: BatchProgress | None = None


class ProgressReporter:
    """Coalesce high-frequency progress lines into bounded-rate flushes.

    Every :meth:`post` queues its message.  When more than
    ``log_interval_ms`` have passed since the last flush, the newest message
    becomes the board status, the backlog is appended to the board log if
    live logging is enabled (and dropped otherwise), and the caller is
    paused for ``wait_after_logging_ms`` so the display can catch up.

    The reporter is driven sequentially by a single control loop and needs
    no locking.

    Args:
        board: Status surface to publish into.
        config: Throttling parameters.
        clock: Monotonic time source in seconds.
        sleep: Awaitable pause, ``asyncio.sleep`` by default.
    """

    def __init__(
        self,
        board: StatusBoard,
        config: ReporterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.board = board
        self.config = config or ReporterConfig()
        self.clock = clock
        self.sleep = sleep
        self._buffer: list[ProgressMessage] = []
        self._last_flush = 0.0

    @property
    def pending(self) -> tuple[ProgressMessage, ...]:
        return tuple(self._buffer)

    @property
    def last_flush_time(self) -> float:
        return self._last_flush

    def reset(self) -> None:
        """Drop queued messages and restart the interval from now."""
        self._buffer.clear()
        self._last_flush = self.clock()

    async def post(self, text: str, snapshot: BatchProgress | None = None) -> None:
        now = self.clock()
        self._buffer.append(ProgressMessage(text, now, snapshot))
        logger.trace(text)
        if (now - self._last_flush) * 1000 > self.config.log_interval_ms:
            await self._flush()

    def drain(self) -> None:
        """Publish whatever is still queued, without pausing.

        With live logging the backlog is appended to the log; otherwise it
        is dropped.  The status line is left untouched.
        """
        if self.config.enable_live_logging:
            self.board.extend_log([m.text for m in self._buffer])
        self._buffer.clear()

    async def _flush(self) -> None:
        self.board.set_status(self._buffer[-1].text)
        if self.config.enable_live_logging:
            self.board.extend_log([m.text for m in self._buffer])
        self._buffer.clear()
        await self.sleep(self.config.wait_after_logging_ms / 1000)
        self._last_flush = self.clock()
