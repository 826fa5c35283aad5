# Per-connection game session.
#
# Lifecycle: INITIALIZING -> ACTIVE -> EXPIRED -> CLOSED, with any transport
# failure jumping straight to CLOSED. All state mutation happens on the
# session's own run() task: the reader pump and the timer callbacks only push
# events onto a queue, so fields are never touched from two places at once.
#
# When a word fails both checks, "not in dictionary" is the reported reason.

from __future__ import annotations
import asyncio
import enum
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Optional, Set

from .config import GAME_DURATION_SECONDS, GRID_SIZE, TICK_INTERVAL_SECONDS
from .db import ResultStore
from .game import (
    Dictionary, Grid, generate_grid, grid_to_lines, is_dictionary_word,
    is_formable_from_grid, score_word,
)
from .leaderboard import Leaderboard
from .models import GameResult, Handshake, WordSubmission, parse_message
from .timer import SessionTimer
from .transport import ConnectionClosed, LineConnection

logger = logging.getLogger(__name__)


class SessionPhase(enum.Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    EXPIRED = "expired"
    CLOSED = "closed"


class WordStatus(enum.Enum):
    ALREADY_USED = "already_used"
    VALID = "valid"
    NOT_IN_DICTIONARY = "not_in_dictionary"
    NOT_IN_GRID = "not_in_grid"


@dataclass
class WordOutcome:
    word: str
    status: WordStatus
    delta: int
    total: int


# Events consumed by GameSession.run()
@dataclass
class LineReceived:
    text: str


@dataclass
class Disconnected:
    pass


@dataclass
class TimerTick:
    remaining: int


@dataclass
class TimerExpired:
    pass


def format_clock(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


def welcome_message(player_id: str, duration: int) -> str:
    if duration % 60 == 0:
        minutes = duration // 60
        span = f"{minutes} minute" + ("" if minutes == 1 else "s")
    else:
        span = format_clock(duration)
    return f"Welcome, {player_id}! You have {span} to guess as many words as possible."


def format_outcome(outcome: WordOutcome) -> str:
    if outcome.status is WordStatus.ALREADY_USED:
        return "You've already used this word!"
    if outcome.status is WordStatus.VALID:
        return f"{outcome.word} is valid! +{outcome.delta} points. Total: {outcome.total}"
    reason = "not in dictionary" if outcome.status is WordStatus.NOT_IN_DICTIONARY else "letters not in grid"
    return f"Invalid word ({reason}). {outcome.delta} point. Total score: {outcome.total}"


@dataclass
class SessionState:
    player_id: Optional[str] = None
    grid: Optional[Grid] = None
    used_words: Set[str] = field(default_factory=set)
    score: int = 0
    time_remaining: int = GAME_DURATION_SECONDS
    phase: SessionPhase = SessionPhase.INITIALIZING


class GameSession:
    def __init__(
        self,
        connection: LineConnection,
        dictionary: Dictionary,
        leaderboard: Leaderboard,
        store: Optional[ResultStore] = None,
        grid_size: int = GRID_SIZE,
        duration: int = GAME_DURATION_SECONDS,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        self.connection = connection
        self.dictionary = dictionary
        self.leaderboard = leaderboard
        self.store = store
        self.grid_size = grid_size
        self.duration = duration
        self.tick_interval = tick_interval
        self._rng = rng
        self.state = SessionState(time_remaining=duration)
        self.timer: Optional[SessionTimer] = None
        self._events: asyncio.Queue = asyncio.Queue()
        self._reader: Optional[asyncio.Task] = None
        self._lines_seen = 0

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def player_id(self) -> Optional[str]:
        return self.state.player_id

    @property
    def score(self) -> int:
        return self.state.score

    def result(self) -> GameResult:
        return GameResult(
            player_id=self.state.player_id or "",
            score=self.state.score,
            used_words=sorted(self.state.used_words),
        )

    async def run(self) -> None:
        logger.info("Session started for %s", self.connection.peer)
        self._reader = asyncio.create_task(self._pump_lines())
        try:
            while self.state.phase is not SessionPhase.CLOSED:
                event = await self._events.get()
                await self._dispatch(event)
        except ConnectionClosed as exc:
            logger.info("Write to %s failed, closing session: %s", self.connection.peer, exc)
        finally:
            await self._shutdown()

    async def _pump_lines(self) -> None:
        try:
            while True:
                line = await self.connection.readline()
                if line is None:
                    return
                self._events.put_nowait(LineReceived(line))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Read from %s failed", self.connection.peer)
        finally:
            self._events.put_nowait(Disconnected())

    async def _dispatch(self, event) -> None:
        if isinstance(event, LineReceived):
            await self._on_line(event.text)
        elif isinstance(event, TimerTick):
            await self._on_tick(event.remaining)
        elif isinstance(event, TimerExpired):
            await self._on_expired()
        elif isinstance(event, Disconnected):
            logger.info("Client disconnected: %s (%s)", self.connection.peer, self.state.player_id)
            self.state.phase = SessionPhase.CLOSED

    async def _on_line(self, text: str) -> None:
        logger.debug("Received from %s: %s", self.connection.peer, text)
        first = self._lines_seen == 0
        self._lines_seen += 1
        message = parse_message(text)
        phase = self.state.phase

        if phase is SessionPhase.INITIALIZING:
            if first and isinstance(message, Handshake):
                await self._activate(message.player_name)
            else:
                logger.warning("Ignoring %r from %s before handshake", text, self.connection.peer)
            return

        if phase is SessionPhase.ACTIVE:
            if isinstance(message, WordSubmission):
                outcome = self.submit_word(message.word)
                await self.connection.send(format_outcome(outcome))
            elif message is None:
                logger.warning("Ignoring malformed message from %s: %r", self.state.player_id, text)
            else:
                logger.debug("Ignoring repeated handshake from %s", self.state.player_id)
            return

        logger.debug("Ignoring %r in phase %s", text, phase.value)

    async def _activate(self, player_id: str) -> None:
        self.state.player_id = player_id
        self.state.grid = generate_grid(self.grid_size, self._rng)
        self.state.phase = SessionPhase.ACTIVE
        logger.info("Player connected: %s (%s)", player_id, self.connection.peer)
        await self._persist("register_player", player_id)

        await self.connection.send(welcome_message(player_id, self.duration))
        await self.connection.send("Here is your grid:")
        await self.connection.send("\n".join(grid_to_lines(self.state.grid)))

        self.timer = SessionTimer(
            on_tick=lambda remaining: self._events.put_nowait(TimerTick(remaining)),
            on_expire=lambda: self._events.put_nowait(TimerExpired()),
            duration=self.duration,
            interval=self.tick_interval,
        )
        self.timer.start()

    def submit_word(self, word: str) -> WordOutcome:
        """Score one submission and update the live leaderboard."""
        if self.state.phase is not SessionPhase.ACTIVE:
            raise RuntimeError(f"cannot submit words in phase {self.state.phase.value}")
        upper = word.upper()
        if upper in self.state.used_words:
            return WordOutcome(word=word, status=WordStatus.ALREADY_USED, delta=0, total=self.state.score)

        self.state.used_words.add(upper)
        in_dictionary = is_dictionary_word(upper, self.dictionary)
        formable = is_formable_from_grid(upper, self.state.grid)
        delta = score_word(upper, in_dictionary and formable)
        self.state.score += delta
        self.leaderboard.update(self.state.player_id, self.state.score)

        if not in_dictionary:
            status = WordStatus.NOT_IN_DICTIONARY
        elif not formable:
            status = WordStatus.NOT_IN_GRID
        else:
            status = WordStatus.VALID
        return WordOutcome(word=word, status=status, delta=delta, total=self.state.score)

    async def _on_tick(self, remaining: int) -> None:
        if self.state.phase is not SessionPhase.ACTIVE:
            return
        self.state.time_remaining = remaining
        if remaining >= 0:
            await self.connection.send(format_clock(remaining))

    async def _on_expired(self) -> None:
        if self.state.phase is not SessionPhase.ACTIVE:
            return
        self.state.phase = SessionPhase.EXPIRED
        self.state.time_remaining = 0
        try:
            await self.connection.send("Time's up! Game over.")
            await self.connection.send(f"Your final score: {self.state.score}")
        finally:
            leader = self.leaderboard.current_maximum()
            if leader is not None:
                logger.info("Game over. Winner: %s with %d points.", leader.player_id, leader.score)
            else:
                logger.info("Game over. No scores recorded yet.")

            # The result is handed off even when the peer is already gone.
            result = self.result()
            await self._persist("save_result", result.player_id, result.score, result.used_words)
            await self._persist("update_leaderboard", result.player_id, result.score)
            self.state.phase = SessionPhase.CLOSED

    async def _persist(self, operation: str, *args) -> None:
        if self.store is None:
            return
        fn: Callable = getattr(self.store, operation)
        try:
            await asyncio.to_thread(fn, *args)
        except Exception:
            logger.exception("Persistence call %s failed for %s", operation, self.state.player_id)

    async def _shutdown(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        await self.connection.close()
        self.state.phase = SessionPhase.CLOSED
        logger.info("Session closed for %s (%s)", self.connection.peer, self.state.player_id)
