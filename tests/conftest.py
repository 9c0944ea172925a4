"""
Shared pytest fixtures and configuration
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

# Add the project root to Python path to make imports work
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables
os.environ["TWITTER_CONSUMER_KEY"] = "test_consumer_key"
os.environ["TWITTER_CONSUMER_SECRET"] = "test_consumer_secret"
os.environ["TWITTER_ACCESS_TOKEN"] = "test_access_token"
os.environ["TWITTER_ACCESS_TOKEN_SECRET"] = "test_access_token_secret"
os.environ["TWITTER_WEBHOOK_ENV"] = "dev"
os.environ["TWITTER_WEBHOOK_URL"] = "https://bot.example.com"
os.environ["TWITTER_REGISTER_WEBHOOK_ON_STARTUP"] = "false"

from adapters.twitter.adapter import TwitterAdapter, TwitterAdapterOptions
from adapters.twitter.api import TwitterAPI, TwitterOAuth
from adapters.twitter.webhook import TwitterWebhookHelper

BOT_USER_ID = "1"


class TwitterMock:
    """
    Stand-in for the Twitter API behind an httpx.MockTransport.

    Responses are queued per (method, path) and served in order; the last
    one queued keeps being served. Every request received is recorded.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[httpx.Response]] = {}
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handler)

    def add(self, method: str, path: str, status_code: int = 200, json_body: Any = None,
            headers: Optional[Dict[str, str]] = None, text: Optional[str] = None) -> "TwitterMock":
        if json_body is not None:
            response = httpx.Response(status_code, json=json_body, headers=headers)
        elif text is not None:
            response = httpx.Response(status_code, text=text, headers=headers)
        else:
            response = httpx.Response(status_code, headers=headers)
        self.routes.setdefault((method.upper(), path), []).append(response)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"errors": [{"code": 34, "message": "Sorry, that page does not exist."}]})
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def paths(self) -> List[Tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]


@pytest.fixture
def oauth() -> TwitterOAuth:
    """OAuth1 credentials of the test bot account."""
    return TwitterOAuth(
        token="test-token",
        token_secret="test-token-secret",
        consumer_key="test-consumer-key",
        consumer_secret="test-consumer-secret",
    )


@pytest.fixture
def twitter_mock() -> TwitterMock:
    return TwitterMock()


@pytest.fixture
def api(oauth, twitter_mock) -> TwitterAPI:
    return TwitterAPI(oauth, transport=twitter_mock.transport)


@pytest.fixture
def webhook_helper(oauth, twitter_mock) -> TwitterWebhookHelper:
    return TwitterWebhookHelper("dev", oauth, transport=twitter_mock.transport)


@pytest.fixture
def adapter_options(oauth) -> TwitterAdapterOptions:
    return TwitterAdapterOptions(
        oauth=oauth,
        webhook_env="dev",
        user_id=BOT_USER_ID,
        webhook_url="https://bot.example.com",
        webhook_uri="/api/messages",
    )


@pytest.fixture
def adapter(adapter_options, twitter_mock) -> TwitterAdapter:
    """A TwitterAdapter whose Twitter calls all go to twitter_mock."""
    return TwitterAdapter(adapter_options, transport=twitter_mock.transport)


@pytest.fixture
def tweet_event() -> Dict[str, Any]:
    """A tweet mentioning the bot, as delivered by the webhook."""
    return {
        "created_at": "Mon Oct 12 10:00:00 +0000 2026",
        "id": 100,
        "id_str": "100",
        "text": "@bot hello there",
        "user": {"id": 9, "id_str": "9", "screen_name": "alice"},
        "entities": {
            "hashtags": [],
            "urls": [],
            "user_mentions": [{"id_str": BOT_USER_ID, "screen_name": "bot"}],
        },
    }


@pytest.fixture
def dm_event() -> Dict[str, Any]:
    """A direct message sent to the bot."""
    return {
        "type": "message_create",
        "id": "1234567890",
        "created_timestamp": "1760000000000",
        "message_create": {
            "target": {"recipient_id": BOT_USER_ID},
            "sender_id": "9",
            "message_data": {
                "text": "hi bot",
                "entities": {"hashtags": [], "symbols": [], "user_mentions": [], "urls": []},
            },
        },
    }
