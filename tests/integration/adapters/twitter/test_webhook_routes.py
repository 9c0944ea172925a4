"""
Integration tests for the Twitter webhook routes and the application
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from adapters import ActivityTypes
from adapters.twitter import TWITTER_DM, UserSubscriptionError, create_webhook_router
from adapters.twitter.config import TwitterSettings
from config import Settings
from main import create_app

pytestmark = [pytest.mark.integration, pytest.mark.webhook]


@pytest.fixture
def received():
    return []


@pytest.fixture
def app(adapter, received):
    async def logic(context):
        received.append(context.activity)
        if context.activity.type == ActivityTypes.MESSAGE:
            await context.send_activity(f"You said: {context.activity.text}")

    return create_app(
        settings=Settings(),
        twitter_settings=TwitterSettings(REGISTER_WEBHOOK_ON_STARTUP=False),
        adapter=adapter,
        logic=logic,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class TestCRCChallenge:
    """Test the GET side of the webhook"""

    def test_crc_challenge(self, client, adapter):
        """Test that the CRC token is answered with the signed response token"""
        response = client.get("/api/messages", params={"crc_token": "challenge"})

        assert response.status_code == 200
        assert response.json() == adapter.webhook_helper.validate_webhook("challenge")
        assert response.json()["response_token"].startswith("sha256=")

    def test_missing_crc_token(self, client):
        response = client.get("/api/messages")
        assert response.status_code == 400


class TestDeliveries:
    """Test the POST side of the webhook"""

    def test_direct_message_is_answered(self, client, twitter_mock, received, dm_event):
        """Test that a DM delivery runs the logic and the reply goes out"""
        twitter_mock.add("POST", "/1.1/direct_messages/events/new.json", json_body={"event": {"id": "999"}})

        response = client.post("/api/messages", json={"for_user_id": "1", "direct_message_events": [dm_event]})

        assert response.status_code == 200
        assert response.content == b""
        assert [(a.channel_id, a.text) for a in received] == [(TWITTER_DM, "hi bot")]
        assert len(twitter_mock.calls("POST", "/1.1/direct_messages/events/new.json")) == 1

    def test_failed_reply_still_acknowledged(self, client, twitter_mock, received, dm_event):
        twitter_mock.add("POST", "/1.1/direct_messages/events/new.json", status_code=500)

        response = client.post("/api/messages", json={"direct_message_events": [dm_event]})

        assert response.status_code == 200
        assert len(received) == 1

    def test_unhandled_families_acknowledged(self, client, received):
        response = client.post("/api/messages", json={"favorite_events": [{"id": "1"}]})

        assert response.status_code == 200
        assert received == []

    def test_bad_entry_keeps_valid_events(self, client, twitter_mock, received, dm_event):
        """Test that an entry that is not an object does not fail the delivery"""
        twitter_mock.add("POST", "/1.1/direct_messages/events/new.json", json_body={"event": {"id": "999"}})

        response = client.post("/api/messages", json={"direct_message_events": [dm_event, "garbage"]})

        assert response.status_code == 200
        assert [a.text for a in received] == ["hi bot"]

    def test_null_family_acknowledged(self, client, received, dm_event):
        response = client.post(
            "/api/messages",
            json={"tweet_create_events": None, "direct_message_events": [dm_event]},
        )

        assert response.status_code == 200
        assert len(received) == 1

    def test_invalid_json_acknowledged(self, client, received):
        response = client.post(
            "/api/messages",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.content == b""
        assert received == []

    def test_custom_route_path(self, adapter):
        app = FastAPI()
        app.include_router(create_webhook_router(adapter, AsyncMock(), "/twitter/webhook"))

        with TestClient(app) as client:
            assert client.get("/twitter/webhook", params={"crc_token": "x"}).status_code == 200
            assert client.get("/api/messages", params={"crc_token": "x"}).status_code == 404


class TestApplication:
    """Test the application wiring"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "adapter": "Twitter Adapter",
            "user_id": "1",
            "registration": "disabled",
        }

    def test_registration_skipped_when_disabled(self, app, adapter):
        with patch.object(adapter, "init", new=AsyncMock()) as init:
            with TestClient(app):
                pass

        init.assert_not_awaited()
        assert app.state.registration is None

    def test_registration_runs_on_startup(self, adapter):
        """Test that the webhook is registered once the app starts"""
        app = create_app(
            settings=Settings(),
            twitter_settings=TwitterSettings(REGISTER_WEBHOOK_ON_STARTUP=True),
            adapter=adapter,
        )

        with patch.object(adapter, "init", new=AsyncMock()) as init:
            with TestClient(app) as client:
                client.get("/health")
                registration = app.state.registration

        assert registration is not None
        init.assert_awaited_once()

    def test_failed_registration_reported_by_health(self, adapter):
        """Test that a registration failure is surfaced instead of lost"""
        app = create_app(
            settings=Settings(),
            twitter_settings=TwitterSettings(REGISTER_WEBHOOK_ON_STARTUP=True),
            adapter=adapter,
        )
        error = UserSubscriptionError("Invalid or expired token.", status_code=401)

        with patch.object(adapter, "init", new=AsyncMock(side_effect=error)):
            with TestClient(app) as client:
                for _ in range(50):
                    response = client.get("/health")
                    if response.json()["registration"] != "pending":
                        break
                registration = app.state.registration

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
        assert response.json()["registration"] == "failed"
        assert response.json()["error"] == "user_subscription"
        assert registration.exception() is error
