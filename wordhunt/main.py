# FastAPI server hosting the word-hunt game.
# Provides:
# - TCP line protocol on GAME_HOST:GAME_PORT (PLAYER_NAME:<name>, WORD:<word>)
# - WS   /ws: the same line protocol, one text frame per line
# - GET  /api/leaderboard: live scores, current leader and all-time top players
# - POST /api/leaderboard/clear: clear persisted leaderboard records
# - GET  /api/health: session and dictionary counts
#
# Run: uvicorn wordhunt.main:app --host 0.0.0.0 --port 8000
#  or: python -m wordhunt.main

from __future__ import annotations
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional, Set

from .config import (
    CORS_ORIGINS, DICTIONARY_PATH, GAME_DURATION_SECONDS, GAME_HOST, GAME_PORT,
    GRID_SIZE, HTTP_HOST, HTTP_PORT, LEADERBOARD_LIMIT, LOG_LEVEL, TICK_INTERVAL_SECONDS,
)
from .db import ResultStore
from .game import Dictionary
from .leaderboard import Leaderboard
from .session import GameSession
from .transport import LineConnection, StreamConnection, WebSocketConnection

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'
    )


class GameServer:
    """Owns the shared resources and runs one GameSession per connection."""

    def __init__(
        self,
        dictionary: Dictionary,
        store: Optional[ResultStore] = None,
        leaderboard: Optional[Leaderboard] = None,
        host: str = GAME_HOST,
        port: int = GAME_PORT,
        grid_size: int = GRID_SIZE,
        duration: int = GAME_DURATION_SECONDS,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ):
        self.dictionary = dictionary
        self.store = store
        self.leaderboard = leaderboard if leaderboard is not None else Leaderboard()
        self.host = host
        self.port = port
        self.grid_size = grid_size
        self.duration = duration
        self.tick_interval = tick_interval
        self.sessions: Set[GameSession] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._server: Optional[asyncio.AbstractServer] = None

    def new_session(self, connection: LineConnection) -> GameSession:
        return GameSession(
            connection,
            self.dictionary,
            self.leaderboard,
            store=self.store,
            grid_size=self.grid_size,
            duration=self.duration,
            tick_interval=self.tick_interval,
        )

    async def serve(self, connection: LineConnection) -> None:
        logger.info("New client connected: %s", connection.peer)
        session = self.new_session(connection)
        self.sessions.add(session)
        task = asyncio.current_task()
        if task is not None:
            self._tasks.add(task)
        try:
            await session.run()
        finally:
            self.sessions.discard(session)
            if task is not None:
                self._tasks.discard(task)

    async def handle_stream(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await self.serve(StreamConnection(reader, writer))

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_stream, self.host, self.port)
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("Server started. Listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Server stopped")


def get_server() -> GameServer:
    return app.state.game_server


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if app.state.game_server is None:
        # A dictionary that cannot be loaded aborts start-up.
        dictionary = Dictionary.from_file(DICTIONARY_PATH)
        store = ResultStore()
        store.init_db()
        app.state.game_server = GameServer(dictionary, store=store)
    if app.state.listen_tcp:
        await get_server().start()
    try:
        yield
    finally:
        server = get_server()
        await server.stop()
        if server.store is not None:
            server.store.dispose()


app = FastAPI(title="Word Hunt", version="1.0.0", lifespan=lifespan)

# CORS for dev convenience
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# Set during startup; tests may install their own before the app starts.
app.state.game_server = None
app.state.listen_tcp = True


@app.get("/api/health")
def api_health():
    server = get_server()
    return {"ok": True, "sessions": len(server.sessions), "words": len(server.dictionary)}


@app.get("/api/leaderboard")
def api_leaderboard(limit: int = LEADERBOARD_LIMIT):
    server = get_server()
    leader = server.leaderboard.current_maximum()
    all_time = server.store.top_leaderboard(limit) if server.store is not None else []
    return {
        "live": [e.model_dump() for e in server.leaderboard.snapshot()[:limit]],
        "leader": leader.model_dump() if leader else None,
        "all_time": [e.model_dump() for e in all_time],
    }


@app.post("/api/leaderboard/clear")
def api_leaderboard_clear():
    # Note: in production, protect with auth
    server = get_server()
    if server.store is not None:
        server.store.clear_leaderboard()
    return {"ok": True}


@app.websocket("/ws")
async def ws_play(websocket: WebSocket):
    await websocket.accept()
    await get_server().serve(WebSocketConnection(websocket))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("wordhunt.main:app", host=HTTP_HOST, port=HTTP_PORT)
