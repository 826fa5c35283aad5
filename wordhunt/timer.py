# Countdown timer driving one game session.
#
# Ticks are scheduled at absolute offsets from the start time, one per
# interval, carrying the seconds remaining (duration .. 0). Expiry is a
# separate call_at against start + duration, so it never depends on how many
# ticks were actually delivered. When expiry fires it first flushes any tick
# that was still owed (normally the final 0), then stops. No tick is ever
# emitted after expiry.

from __future__ import annotations
import asyncio
import enum
import logging
from typing import Callable, Optional

from .config import GAME_DURATION_SECONDS, TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class TimerState(enum.Enum):
    RUNNING = "running"
    EXPIRED = "expired"


class SessionTimer:
    """Emits on_tick(remaining) every interval and on_expire() exactly once.

    Callbacks are plain functions invoked on the event loop thread, one at a
    time, so they never overlap. They should be quick: GameSession passes
    functions that only enqueue an event.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
        duration: int = GAME_DURATION_SECONDS,
        interval: float = TICK_INTERVAL_SECONDS,
    ):
        if duration < 0:
            raise ValueError("duration must be non-negative")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.duration = duration
        self.interval = interval
        self._on_tick = on_tick
        self._on_expire = on_expire
        self.state = TimerState.RUNNING
        self._next_remaining = duration
        self._started_at: Optional[float] = None
        self._ticker: Optional[asyncio.Task] = None
        self._expiry: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def expired(self) -> bool:
        return self.state is TimerState.EXPIRED

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        if self.started:
            raise RuntimeError("timer already started")
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self._expiry = loop.call_at(self._started_at + self.duration * self.interval, self._expire)
        self._ticker = loop.create_task(self._run_ticks())

    def cancel(self) -> None:
        """Stop without emitting expiry. Safe to call more than once."""
        self._cancelled = True
        if self._expiry is not None:
            self._expiry.cancel()
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()

    def _tick_deadline(self, remaining: int) -> float:
        return self._started_at + (self.duration - remaining) * self.interval

    def _emit_next_tick(self) -> None:
        remaining = self._next_remaining
        self._next_remaining -= 1
        self._on_tick(remaining)

    async def _run_ticks(self) -> None:
        loop = asyncio.get_running_loop()
        while self._next_remaining >= 0 and self.state is TimerState.RUNNING:
            delay = self._tick_deadline(self._next_remaining) - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if self.state is not TimerState.RUNNING or self._cancelled:
                return
            try:
                self._emit_next_tick()
            except Exception:
                logger.exception("Tick callback failed")

    def _expire(self) -> None:
        if self.state is TimerState.EXPIRED or self._cancelled:
            return
        while self._next_remaining >= 0:
            try:
                self._emit_next_tick()
            except Exception:
                logger.exception("Tick callback failed")
        self.state = TimerState.EXPIRED
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._on_expire()
