"""Tests for websocket routes"""

import pytest
from fastapi import WebSocketDisconnect, status
from fastapi.testclient import TestClient

from clubportal.api.dependencies import (
    get_change_feed,
    get_redis_service,
    get_storage,
)
from clubportal.api.websocket_routes import COLLECTIONS, parse_collections
from clubportal.database import get_session_factory
from clubportal.main import app

from conftest import FakeRedisService, bearer


def token_for(user) -> str:
    return bearer(user)["Authorization"].split()[1]


class TestParseCollections:
    """Test collection query parsing"""

    def test_default_is_everything(self):
        assert parse_collections(None) == COLLECTIONS

    def test_unknown_names_dropped(self):
        assert parse_collections("users, contributions,bogus") == {"users", "contributions"}

    def test_only_unknown_names(self):
        assert parse_collections("bogus") == set()


class TestAuthorization:
    """Test sockets without a valid token are closed"""

    @pytest.fixture
    def client(self):
        app.dependency_overrides[get_redis_service] = FakeRedisService
        yield TestClient(app)
        app.dependency_overrides.clear()

    @pytest.mark.parametrize("path", ["/api/v1/ws/feed", "/api/v1/ws/leaderboard"])
    def test_missing_token(self, client, path):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(path):
                pass

        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_garbage_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/ws/feed?token=not-a-jwt"):
                pass

        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION


@pytest.fixture
def live_client(session_factory, storage, redis_service, feed):
    """Client whose HTTP calls and websockets share one event loop"""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_redis_service] = lambda: redis_service
    app.dependency_overrides[get_change_feed] = lambda: feed

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def submit(client, user, text="Designed the event poster") -> str:
    response = client.post("/api/v1/contributions", json={"text": text}, headers=bearer(user))
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["id"]


def approve(client, admin, contribution_id, points):
    response = client.post(
        f"/api/v1/contributions/{contribution_id}/approve",
        json={"points": points},
        headers=bearer(admin),
    )
    assert response.status_code == status.HTTP_200_OK


class TestLeaderboardSocket:
    """Test /api/v1/ws/leaderboard"""

    def test_ranking_pushed_after_approval(self, live_client, member, other_member, admin):
        """Test an approval sends the new ranking to connected clients"""
        contribution_id = submit(live_client, other_member)

        with live_client.websocket_connect(
            f"/api/v1/ws/leaderboard?token={token_for(member)}"
        ) as websocket:
            initial = websocket.receive_json()
            assert initial["type"] == "leaderboard"
            assert [e["user_id"] for e in initial["entries"]] == [member.id, other_member.id]

            approve(live_client, admin, contribution_id, 15)

            update = websocket.receive_json()
            assert update["type"] == "leaderboard"
            assert [(e["user_id"], e["total_points"]) for e in update["entries"]] == [
                (other_member.id, 15),
                (member.id, 10),
            ]
            assert update["entries"][0]["rank"] == 1


class TestFeedSocket:
    """Test /api/v1/ws/feed"""

    def test_committed_change_delivered(self, live_client, member):
        """Test a new contribution reaches a subscribed client"""
        with live_client.websocket_connect(
            f"/api/v1/ws/feed?token={token_for(member)}&collections=contributions"
        ) as websocket:
            connected = websocket.receive_json()
            assert connected == {
                "type": "connected",
                "user_id": member.id,
                "collections": ["contributions"],
            }

            contribution_id = submit(live_client, member)

            change = websocket.receive_json()
            assert change["type"] == "change"
            assert change["collection"] == "contributions"
            assert change["operation"] == "added"
            assert change["document_id"] == contribution_id
            assert change["data"]["status"] == "pending"

    def test_subscribe_and_unsubscribe(self, live_client, member, admin):
        """Test collections can be switched on an open socket"""
        contribution_id = submit(live_client, member)

        with live_client.websocket_connect(
            f"/api/v1/ws/feed?token={token_for(member)}&collections=users"
        ) as websocket:
            websocket.receive_json()

            websocket.send_json({"type": "unsubscribe", "collections": ["users"]})
            assert websocket.receive_json() == {"type": "unsubscribed", "collections": ["users"]}
            websocket.send_json({"type": "subscribe", "collections": ["contributions"]})
            assert websocket.receive_json() == {"type": "subscribed", "collections": ["contributions"]}

            approve(live_client, admin, contribution_id, 7)

            change = websocket.receive_json()
            assert change["collection"] == "contributions"
            assert change["data"]["points_awarded"] == 7

            # The users change from the same approval was filtered out
            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

    def test_unknown_collections_receive_nothing(self, live_client, member):
        """Test a filter of only unknown names is not widened to every collection"""
        with live_client.websocket_connect(
            f"/api/v1/ws/feed?token={token_for(member)}&collections=bogus"
        ) as websocket:
            assert websocket.receive_json()["collections"] == []

            submit(live_client, member)

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}
