from __future__ import annotations

from fastapi.testclient import TestClient

from adapters.webhook import VERSION, create_app


class FakeDispatcher:
    def __init__(self) -> None:
        self.updates = []

    async def handle_update(self, update) -> None:
        self.updates.append(update)


class FakeRunner:
    """Collects submitted coroutines without scheduling them."""

    def __init__(self) -> None:
        self.names = []

    def submit(self, coro, name=None):
        self.names.append(name)
        coro.close()


def _client(token_set: bool = True, store_ok: bool = True):
    runner = FakeRunner()
    app = create_app(FakeDispatcher(), runner, token_set=token_set, store_ping=lambda: store_ok)
    return TestClient(app), runner


def test_post_update_is_acknowledged_and_scheduled() -> None:
    client, runner = _client()

    response = client.post("/webhook", json={"update_id": 17, "message": {"text": "/start"}})

    assert response.status_code == 200
    assert response.text == "OK"
    assert runner.names == ["update:17"]


def test_malformed_body_is_rejected() -> None:
    client, runner = _client()

    response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert runner.names == []


def test_non_object_body_is_rejected() -> None:
    client, runner = _client()

    response = client.post("/webhook", json=[1, 2, 3])

    assert response.status_code == 400
    assert runner.names == []


def test_status_endpoint() -> None:
    client, _ = _client(token_set=False, store_ok=True)

    data = client.get("/api/status").json()

    assert data["token_set"] is False
    assert data["store_connected"] is True
    assert data["version"] == VERSION
    assert isinstance(data["timestamp"], int)


def test_status_page_and_webhook_info() -> None:
    client, _ = _client(token_set=True, store_ok=False)

    index = client.get("/")
    info = client.get("/webhook")

    assert index.status_code == 200
    assert "Configuration incomplete." in index.text
    assert info.status_code == 200
    assert "webhook" in info.text.lower()
