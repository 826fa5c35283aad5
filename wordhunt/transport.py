# Line-oriented connection adapters. A session only sees LineConnection:
# readline() yields one inbound line (None once the peer is gone) and send()
# writes one or more newline-terminated lines.

from __future__ import annotations
import asyncio
import contextlib
import logging
from typing import Optional, Protocol

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionClosed(ConnectionError):
    """Raised by send() once the peer can no longer be written to."""


class LineConnection(Protocol):
    peer: str

    async def readline(self) -> Optional[str]: ...

    async def send(self, text: str) -> None: ...

    async def close(self) -> None: ...


class StreamConnection:
    """Raw TCP client served through asyncio streams."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer
        self._closed = False
        peername = writer.get_extra_info("peername")
        self.peer = f"{peername[0]}:{peername[1]}" if peername else "unknown"

    async def readline(self) -> Optional[str]:
        try:
            # ValueError: line longer than the stream limit
            raw = await self._reader.readline()
        except (ConnectionError, OSError, ValueError, asyncio.IncompleteReadError) as exc:
            logger.info("Read failed from %s: %s", self.peer, exc)
            return None
        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def send(self, text: str) -> None:
        if self._closed:
            raise ConnectionClosed(f"connection to {self.peer} is closed")
        try:
            self._writer.write((text + "\n").encode("utf-8"))
            await self._writer.drain()
        except (ConnectionError, OSError) as exc:
            raise ConnectionClosed(str(exc)) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await self._writer.wait_closed()


class WebSocketConnection:
    """Same protocol over a FastAPI WebSocket: one text frame per line."""

    def __init__(self, websocket: WebSocket):
        self._ws = websocket
        self._closed = False
        client = websocket.client
        self.peer = f"ws://{client.host}:{client.port}" if client else "ws://unknown"

    async def readline(self) -> Optional[str]:
        try:
            message = await self._ws.receive()
        except (WebSocketDisconnect, RuntimeError, ConnectionError) as exc:
            logger.info("WebSocket %s closed: %s", self.peer, exc)
            return None
        if message["type"] == "websocket.disconnect":
            return None
        text = message.get("text")
        if text is None:
            # Binary frames are not part of the line protocol.
            logger.info("WebSocket %s sent a non-text frame, closing", self.peer)
            return None
        return text.rstrip("\r\n")

    async def send(self, text: str) -> None:
        if self._closed:
            raise ConnectionClosed(f"connection to {self.peer} is closed")
        try:
            for line in text.split("\n"):
                await self._ws.send_text(line)
        except (WebSocketDisconnect, RuntimeError, ConnectionError) as exc:
            raise ConnectionClosed(str(exc)) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, ConnectionError):
            await self._ws.close()
