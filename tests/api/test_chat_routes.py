import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from core.config import ChatSettings, Settings
from main import create_app


@pytest.fixture
def client():
    cfg = Settings(chat=ChatSettings(store="memory", monitor_interval_seconds=0))
    with TestClient(create_app(cfg)) as c:
        yield c


def test_routes_registered():
    paths = {r.path for r in create_app().routes}
    assert {"/join", "/leave", "/send", "/stream", "/users", "/history", "/status"} <= paths


def test_join_send_history_users_scenario(client: TestClient):
    r = client.post("/join", data={"username": "alice"})
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "success" and body["username"] == "alice"

    r = client.post("/send", data={"sender": "alice", "content": "hi"})
    assert r.status_code == 200
    assert r.json()["status"] == "success"

    r = client.get("/history", params={"limit": 10})
    history = r.json()
    assert history["status"] == "success"
    assert [m["type"] for m in history["messages"]] == ["join", "message"]
    assert history["messages"][1]["content"] == "hi"
    assert history["messages"][1]["timestamp"].endswith("Z")
    assert history["count"] == 2 and history["total"] == 2

    r = client.get("/users")
    users = r.json()
    assert users["total_count"] == 1
    assert users["users"][0]["name"] == "alice"
    assert users["users"][0]["is_online"] is True


def test_send_with_empty_content_is_rejected(client: TestClient):
    client.post("/join", data={"username": "alice"})
    before = client.get("/history").json()["total"]

    r = client.post("/send", data={"sender": "alice", "content": ""})
    assert r.status_code == 400
    body = r.json()
    assert body["status"] == "error"
    assert body["field"] == "content"

    r = client.post("/send", data={"sender": "alice"})
    assert r.status_code == 400

    assert client.get("/history").json()["total"] == before


def test_join_requires_username(client: TestClient):
    r = client.post("/join", data={})
    assert r.status_code == 400
    assert r.json()["error_type"] == "InvalidArgument"
    assert client.get("/status").json()["messages_total"] == 0


def test_leave_marks_offline_and_unknown_leave_succeeds(client: TestClient):
    client.post("/join", data={"username": "alice"})
    r = client.post("/leave", data={"username": "alice"})
    assert r.status_code == 200
    assert r.json() == {"status": "success", "message": "Left successfully"}
    assert client.get("/users").json()["total_count"] == 0

    r = client.post("/leave", data={"username": "nobody"})
    assert r.status_code == 200
    kinds = [m["type"] for m in client.get("/history").json()["messages"]]
    assert kinds == ["join", "leave", "leave"]


def test_history_limit_handling(client: TestClient):
    for i in range(60):
        client.post("/send", data={"sender": "bob", "content": f"m{i}"})

    assert client.get("/history").json()["count"] == 50
    assert client.get("/history", params={"limit": 0}).json()["count"] == 50
    assert client.get("/history", params={"limit": "abc"}).json()["count"] == 50
    limited = client.get("/history", params={"limit": 5}).json()
    assert [m["content"] for m in limited["messages"]] == [f"m{i}" for i in range(55, 60)]
    assert client.get("/history", params={"limit": 500}).json()["count"] == 60


def test_status_reports_counters(client: TestClient):
    client.post("/join", data={"username": "alice"})
    client.post("/join", data={"username": "bob"})
    client.post("/leave", data={"username": "bob"})

    status = client.get("/status").json()
    assert status["status"] == "online"
    assert status["users_online"] == 0
    assert status["users_active"] == 1
    assert status["users_total"] == 2
    assert status["messages_total"] == 3
    assert status["subscribers"] == 0
    assert status["timestamp"].endswith("Z")


def test_stream_requires_user(client: TestClient):
    r = client.get("/stream")
    assert r.status_code == 400
    assert r.json()["field"] == "user"


def test_request_id_is_echoed(client: TestClient):
    r = client.get("/status", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get("/status").headers.get("X-Request-ID")


async def _drive_stream(app, user: str, chunks_before_disconnect: int):
    """Run GET /stream against the ASGI app until the client hangs up."""
    start = {}
    bodies = []
    enough = asyncio.Event()
    request_sent = False

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await enough.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.start":
            start.update(message)
        elif message["type"] == "http.response.body" and message.get("body"):
            bodies.append(message["body"].decode())
            if len(bodies) >= chunks_before_disconnect:
                enough.set()

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/stream",
        "raw_path": b"/stream",
        "root_path": "",
        "query_string": f"user={user}".encode(),
        "headers": [(b"host", b"testserver")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    await asyncio.wait_for(app(scope, receive, send), timeout=5.0)
    headers = {k.decode().lower(): v.decode() for k, v in start.get("headers", [])}
    return start.get("status"), headers, bodies


@pytest.mark.asyncio
async def test_stream_replays_history_over_http_and_unregisters():
    cfg = Settings(chat=ChatSettings(store="memory", monitor_interval_seconds=0, stream_keepalive_seconds=0.05))
    app = create_app(cfg)
    async with app.router.lifespan_context(app):
        service = app.state.chat_service
        await service.join("alice")
        await service.post("alice", "hello")

        status, headers, bodies = await _drive_stream(app, "bob", chunks_before_disconnect=2)

        assert status == 200
        assert headers["content-type"].startswith("text/event-stream")
        assert headers["cache-control"] == "no-cache"
        assert headers["connection"] == "keep-alive"
        assert headers["access-control-allow-origin"] == "*"

        frames = [b for b in bodies if b.startswith("data: ")]
        assert len(frames) == 2
        assert all(f.endswith("\n\n") for f in frames)
        events = [json.loads(f[len("data: "):]) for f in frames]
        assert [e["type"] for e in events] == ["join", "message"]
        assert events[1]["sender"] == "alice" and events[1]["content"] == "hello"

        assert (await service.status())["subscribers"] == 0


def test_health_reports_store(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy", "store": "ok"}
