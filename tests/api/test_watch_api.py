"""
Tests for the Watch API.

- The caller's identity comes from the bearer token only
- A missing tutorial or unusable link is terminal (404 / 422)
- Store failures surface as 503 with a generic message
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from recap.adapters.memory_store import InMemoryDocumentStore
from recap.api import deps
from recap.api.routes import watch
from recap.components.recorder import RecorderConfig
from recap.core.ports.auth import Identity
from recap.core.ports.store import StoreUnavailableError

STUDENT = Identity(id="u1", email="awa@ecole.fr", display_name="Awa")
AUTH = {"Authorization": "Bearer student-token"}


class FakeVerifier:
    """Maps known tokens to identities."""

    def __init__(self, tokens: dict[str, Identity]) -> None:
        self.tokens = tokens

    def verify(self, id_token: str) -> Identity | None:
        return self.tokens.get(id_token)


class DownStore(InMemoryDocumentStore):
    """Tutorial reads succeed, counter writes fail."""

    def transaction(self, fn):
        raise StoreUnavailableError("deadline exceeded")

    def get(self, path):
        if "/watchSessions/" in path:
            raise StoreUnavailableError("deadline exceeded")
        return super().get(path)


# --- Test Setup ---


@pytest.fixture
def store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.set_merge(
        "tutorials/t1",
        {"title": "Les listes", "videoUrl": "https://youtu.be/dQw4w9WgXcQ"},
    )
    store.set_merge("tutorials/bad-link", {"title": "Sans vidéo", "videoUrl": "https://vimeo.com/1"})
    return store


def make_app(store: InMemoryDocumentStore, clock) -> FastAPI:
    app = FastAPI()
    app.include_router(watch.router, prefix="/api/watch")

    app.dependency_overrides[deps.get_token_verifier] = lambda: FakeVerifier(
        {"student-token": STUDENT}
    )
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_recorder_config] = lambda: RecorderConfig()
    return app


@pytest.fixture
def client(store: InMemoryDocumentStore, clock) -> TestClient:
    return TestClient(make_app(store, clock))


# --- Auth ---


class TestAuth:
    def test_tick_without_token_is_401(self, client: TestClient) -> None:
        response = client.post("/api/watch/t1/tick")

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    def test_tick_with_unknown_token_is_401(self, client: TestClient) -> None:
        response = client.post(
            "/api/watch/t1/tick", headers={"Authorization": "Bearer forged"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_unauthenticated_tick_writes_nothing(
        self, client: TestClient, store: InMemoryDocumentStore
    ) -> None:
        client.post("/api/watch/t1/tick")

        assert store.get("users/u1/watchSessions/t1") is None
        assert store.list_collection("tutorials/t1/viewLogs") == []


# --- Tick ---


class TestTick:
    def test_first_tick_creates_session(
        self, client: TestClient, store: InMemoryDocumentStore, clock
    ) -> None:
        response = client.post("/api/watch/t1/tick", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {
            "tutorial_id": "t1",
            "total_minutes_watched": 1,
            "view_log_saved": True,
        }
        session = store.get("users/u1/watchSessions/t1").data
        assert session["totalMinutesWatched"] == 1
        assert session["lastUpdated"] == clock.now

    def test_ticks_accumulate(self, client: TestClient, store: InMemoryDocumentStore) -> None:
        for _ in range(3):
            response = client.post("/api/watch/t1/tick", headers=AUTH)

        assert response.json()["total_minutes_watched"] == 3
        markers = sorted(
            d.data["minuteMarker"] for d in store.list_collection("tutorials/t1/viewLogs")
        )
        assert markers == [1, 2, 3]

    def test_tick_refreshes_user_profile(
        self, client: TestClient, store: InMemoryDocumentStore
    ) -> None:
        client.post("/api/watch/t1/tick", headers=AUTH)

        profile = store.get("users/u1").data
        assert profile["email"] == "awa@ecole.fr"
        assert profile["displayName"] == "Awa"

    def test_unknown_tutorial_is_404(self, client: TestClient, store: InMemoryDocumentStore) -> None:
        response = client.post("/api/watch/missing/tick", headers=AUTH)

        assert response.status_code == 404
        assert response.json()["detail"] == "Tutorial not found"
        assert store.get("users/u1/watchSessions/missing") is None

    def test_invalid_video_is_422(self, client: TestClient, store: InMemoryDocumentStore) -> None:
        response = client.post("/api/watch/bad-link/tick", headers=AUTH)

        assert response.status_code == 422
        assert response.json()["detail"] == "Invalid video link"
        assert store.get("users/u1/watchSessions/bad-link") is None

    def test_store_failure_is_503(self, clock) -> None:
        store = DownStore()
        store.set_merge("tutorials/t1", {"videoUrl": "https://youtu.be/dQw4w9WgXcQ"})
        client = TestClient(make_app(store, clock))

        response = client.post("/api/watch/t1/tick", headers=AUTH)

        assert response.status_code == 503
        assert response.json()["detail"] == "Could not save watch time"
        assert "deadline" not in response.text


# --- Session ---


class TestSession:
    def test_never_watched_is_zero(self, client: TestClient) -> None:
        response = client.get("/api/watch/t1/session", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["total_minutes_watched"] == 0
        assert body["last_updated"] is None
        assert body["user_id"] == "u1"

    def test_reflects_ticks(self, client: TestClient) -> None:
        client.post("/api/watch/t1/tick", headers=AUTH)
        client.post("/api/watch/t1/tick", headers=AUTH)

        response = client.get("/api/watch/t1/session", headers=AUTH)

        assert response.json()["total_minutes_watched"] == 2

    def test_load_failure_is_503(self, clock) -> None:
        client = TestClient(make_app(DownStore(), clock))

        response = client.get("/api/watch/t1/session", headers=AUTH)

        assert response.status_code == 503
        assert response.json()["detail"] == "Could not load watch time"

    def test_requires_auth(self, client: TestClient) -> None:
        assert client.get("/api/watch/t1/session").status_code == 401
