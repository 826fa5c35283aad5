import asyncio
import time
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from wordhunt.main import GameServer, app


@pytest.fixture()
def game_server(dictionary, store):
    server = GameServer(dictionary, store=store, host="127.0.0.1", port=0,
                        duration=1, tick_interval=0.5)
    app.state.game_server = server
    app.state.listen_tcp = False
    yield server
    app.state.game_server = None
    app.state.listen_tcp = True


@pytest.fixture()
def client(game_server):
    with TestClient(app) as c:
        yield c


def test_health(client, game_server):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"ok": True, "sessions": 0, "words": 8}


def test_leaderboard_combines_live_and_persisted(client, game_server, store):
    game_server.leaderboard.update("ann", 3)
    game_server.leaderboard.update("bob", 7)
    store.update_leaderboard("bob", 7)

    data = client.get("/api/leaderboard").json()
    assert data["leader"] == {"player_id": "bob", "score": 7}
    assert [e["player_id"] for e in data["live"]] == ["bob", "ann"]
    assert data["all_time"][0]["player_id"] == "bob"
    assert data["all_time"][0]["rank"] == 1


def test_leaderboard_empty(client):
    data = client.get("/api/leaderboard").json()
    assert data == {"live": [], "leader": None, "all_time": []}


def test_clear_leaderboard(client, store):
    store.update_leaderboard("ann", 3)
    assert client.post("/api/leaderboard/clear").json() == {"ok": True}
    assert client.get("/api/leaderboard").json()["all_time"] == []


def test_websocket_plays_a_full_game(client, game_server):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("PLAYER_NAME:Ann")
        assert ws.receive_text().startswith("Welcome, Ann!")
        assert ws.receive_text() == "Here is your grid:"
        rows = [ws.receive_text() for _ in range(4)]
        assert all(len(r.split(" ")) == 4 for r in rows)
        ws.send_text("WORD:zzzzz")
        lines = []
        while not lines or not lines[-1].startswith("Your final score"):
            lines.append(ws.receive_text())
    assert "Invalid word (not in dictionary). -1 point. Total score: -1" in lines
    assert "Time's up! Game over." in lines
    assert lines[-1] == "Your final score: -1"
    assert game_server.leaderboard.get("Ann") == -1


@pytest.mark.asyncio
async def test_tcp_listener_runs_a_game(dictionary, store):
    server = GameServer(dictionary, store=store, host="127.0.0.1", port=0,
                        duration=1, tick_interval=0.02)
    await server.start()
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        writer.write(b"PLAYER_NAME:Ann\r\n")
        await writer.drain()

        lines = []
        while True:
            raw = await asyncio.wait_for(reader.readline(), 3)
            if not raw:
                break
            lines.append(raw.decode().rstrip("\n"))
        writer.close()
    finally:
        await server.stop()

    assert lines[0] == "Welcome, Ann! You have 0:01 to guess as many words as possible."
    assert lines[1] == "Here is your grid:"
    assert lines[6:] == ["0:01", "0:00", "Time's up! Game over.", "Your final score: 0"]
    assert store.results_for("Ann") == [{"score": 0, "words": []}]


def test_binary_frame_closes_the_session(client, game_server):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"PLAYER_NAME:Ann")
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()
    deadline = time.monotonic() + 2
    while game_server.sessions and time.monotonic() < deadline:
        time.sleep(0.01)
    assert game_server.sessions == set()
    assert game_server.leaderboard.get("Ann") is None


def test_shutdown_disposes_the_store(game_server, store, monkeypatch):
    disposed = []
    monkeypatch.setattr(store, "dispose", lambda: disposed.append(True))
    with TestClient(app) as c:
        assert c.get("/api/health").status_code == 200
        assert disposed == []
    assert disposed == [True]
