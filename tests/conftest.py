import asyncio
import pytest

from wordhunt.db import ResultStore
from wordhunt.game import Dictionary
from wordhunt.leaderboard import Leaderboard
from wordhunt.transport import ConnectionClosed

# 16 distinct letters, row-major.
FIXED_GRID = (
    ("D", "O", "G", "S"),
    ("C", "A", "T", "E"),
    ("H", "R", "N", "I"),
    ("L", "M", "P", "U"),
)

WORDS = ["dog", "cat", "dogs", "house", "stone", "zebra", "quiz", "hat"]


class FakeConnection:
    """In-memory LineConnection: feed() lines in, inspect sent afterwards."""

    def __init__(self, fail_writes: bool = False):
        self.peer = "test-peer"
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.fail_writes = fail_writes

    def feed(self, *lines):
        for line in lines:
            self.inbound.put_nowait(line)

    def hang_up(self):
        self.inbound.put_nowait(None)

    def break_read(self, exc):
        self.inbound.put_nowait(exc)

    async def readline(self):
        item = await self.inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, text):
        if self.closed or self.fail_writes:
            raise ConnectionClosed("gone")
        self.sent.extend(text.split("\n"))

    async def close(self):
        self.closed = True


class RecordingStore:
    def __init__(self):
        self.calls = []

    def register_player(self, player_id):
        self.calls.append(("register_player", player_id))

    def save_result(self, player_id, score, used_words):
        self.calls.append(("save_result", player_id, score, list(used_words)))

    def update_leaderboard(self, player_id, score):
        self.calls.append(("update_leaderboard", player_id, score))


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture()
def dictionary():
    return Dictionary(WORDS)


@pytest.fixture()
def leaderboard():
    return Leaderboard()


@pytest.fixture()
def store(tmp_path):
    s = ResultStore(f"sqlite:///{tmp_path / 'wordhunt-test.db'}")
    s.init_db()
    yield s
    s.dispose()


@pytest.fixture()
def fixed_grid(monkeypatch):
    import wordhunt.session as session_module

    monkeypatch.setattr(session_module, "generate_grid", lambda size, rng=None: FIXED_GRID)
    return FIXED_GRID
