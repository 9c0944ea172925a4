# adapters/twitter/webhook.py
"""
Twitter Webhook Lifecycle
=========================

This module manages the registration of the bot's webhook with Twitter's
Account Activity API and the subscription of the bot account to it.

The TwitterWebhookHelper class provides methods for:
- Listing, removing and registering the webhook of an environment
- Answering Twitter's CRC challenge
- Verifying the bot account's credentials
- Subscribing and unsubscribing accounts, with quota accounting

Registration Sequence:
--------------------
Twitter allows a single webhook per environment and rejects subscriptions
for an environment without one, so first-time setup runs in this order:

1. remove_webhooks(): drop whatever is registered for the environment
2. set_webhook(): register the new URL (Twitter sends a CRC challenge)
3. subscribe(): subscribe the bot account to its own activity

Nothing here retries. Every operation either succeeds or raises one of the
errors in adapters.twitter.errors, and callers are expected to let those
abort startup.

State:
-----
Webhook registrations are never stored; Twitter is always asked. Two values
are cached per instance:
- the app-only bearer token, fetched once and never refreshed
- the subscription quota, adjusted locally on subscribe/unsubscribe and
  therefore best-effort; refresh_subscriptions_count() re-reads it
"""

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from adapters.twitter.api import DEFAULT_API_HOST, DEFAULT_API_VERSION, TwitterOAuth
from adapters.twitter.errors import (
    RateLimitError,
    TooManySubscriptionsError,
    TwitterError,
    UserSubscriptionError,
    WebhookURIError,
)

logger = logging.getLogger(__name__)

ENVIRONMENTS_URL = "https://developer.twitter.com/en/account/environments"

class TwitterWebhookHelper:
    """
    Webhook and subscription manager for one Account Activity environment.

    Attributes:
        env (str): Name of the Account Activity environment
        auth (TwitterOAuth): OAuth1 credentials of the bot account
        headers (Dict[str, str]): Extra headers sent with every request
    """

    def __init__(self, env: str, auth: TwitterOAuth, headers: Optional[Dict[str, str]] = None,
                 api_host: str = DEFAULT_API_HOST, api_version: str = DEFAULT_API_VERSION,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the webhook helper.

        Args:
            env (str): Name of the Account Activity environment
            auth (TwitterOAuth): OAuth1 credentials of the bot account
            headers (Optional[Dict[str, str]]): Extra headers for every request
            api_host (str): Root host of the Twitter API
            api_version (str): Twitter API version
            transport (Optional[httpx.AsyncBaseTransport]): Custom httpx transport
        """
        self.env = env
        self.auth = auth
        self.headers = dict(headers or {})
        self.api_host = api_host
        self.api_version = api_version
        self._transport = transport
        self._bearer_token: Optional[str] = None
        self._subscriptions_count: Optional[Dict[str, int]] = None

    def _url(self, path: str) -> str:
        return f"https://{self.api_host}/{self.api_version}{path}"

    def _env_url(self, path: str, env: Optional[str] = None) -> str:
        return self._url(f"/account_activity/all/{env or self.env}{path}")

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one request and return the response whatever its status."""
        async with httpx.AsyncClient(headers=self.headers, transport=self._transport) as client:
            return await client.request(method, url, **kwargs)

    async def _oauth_request(self, method: str, url: str, auth: Optional[TwitterOAuth] = None,
                             **kwargs) -> httpx.Response:
        return await self._request(method, url, auth=(auth or self.auth).signer(), **kwargs)

    async def _bearer_request(self, method: str, url: str, **kwargs) -> httpx.Response:
        token = await self.bearer_token()
        return await self._request(method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs)

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TypeError(f"Error while parsing the response from the Twitter API: {e}")

    def _environment_hint(self, env: str, status_code: int) -> str:
        return (
            f"Please check that '{env}' is a valid environment defined in your Developer dashboard "
            f"at {ENVIRONMENTS_URL}, and that your OAuth credentials are valid and can access "
            f"'{env}'. (HTTP status: {status_code})"
        )

    async def bearer_token(self) -> str:
        """
        Get the app-only bearer token, fetching it on first use.

        The token is kept for the lifetime of this helper and never refreshed.

        Returns:
            str: The bearer token

        Raises:
            TwitterError: If Twitter refuses the client credentials
        """
        if self._bearer_token:
            return self._bearer_token

        response = await self._request(
            "POST",
            f"https://{self.api_host}/oauth2/token",
            auth=(self.auth.consumer_key, self.auth.consumer_secret),
            data={"grant_type": "client_credentials"},
        )
        if response.status_code != 200:
            raise TwitterError.from_response(
                response,
                f"Cannot obtain a bearer token. Check your consumer key and secret. (HTTP status: {response.status_code})",
            )

        self._bearer_token = self._parse_json(response)["access_token"]
        return self._bearer_token

    async def get_subscriptions_count(self) -> Dict[str, int]:
        """
        Get the subscription quota of the app, cached after the first call.

        Returns:
            Dict[str, int]: ``subscriptions_count`` and ``provisioned_count``

        Raises:
            RateLimitError: On HTTP 429
            TwitterError: On any other non-200 answer
        """
        if self._subscriptions_count is not None:
            return self._subscriptions_count

        response = await self._bearer_request("GET", self._url("/account_activity/all/subscriptions/count.json"))
        if response.status_code == 429:
            raise RateLimitError.from_response(response)
        if response.status_code != 200:
            raise TwitterError.from_response(response)

        self._subscriptions_count = self._parse_json(response)
        return self._subscriptions_count

    async def refresh_subscriptions_count(self) -> Dict[str, int]:
        """Drop the cached quota and read it again from Twitter."""
        self._subscriptions_count = None
        return await self.get_subscriptions_count()

    def _update_subscriptions_count(self, increment: int) -> None:
        if self._subscriptions_count is None:
            return
        self._subscriptions_count["subscriptions_count"] += increment

    async def get_webhooks(self) -> List[Dict[str, Any]]:
        """
        List the webhooks registered for the environment.

        Returns:
            List[Dict[str, Any]]: Registered webhooks, each with ``id`` and ``url``

        Raises:
            RateLimitError: On HTTP 429
            TwitterError: On any other non-200 answer
            TypeError: If the response body is not a JSON list
        """
        logger.info("Getting webhooks…")
        response = await self._oauth_request("GET", self._env_url("/webhooks.json"))

        if response.status_code == 429:
            raise RateLimitError.from_response(response)
        if response.status_code != 200:
            raise TwitterError.from_response(
                response,
                "Cannot get webhooks. " + self._environment_hint(self.env, response.status_code),
            )

        webhooks = self._parse_json(response)
        if not isinstance(webhooks, list):
            raise TypeError(
                "Error while parsing the response from the Twitter API: "
                f"expected a list of webhooks, got {type(webhooks).__name__}"
            )
        return webhooks

    async def delete_webhooks(self, webhooks: List[Dict[str, Any]]) -> None:
        """
        Remove the given webhooks, one after another.

        Args:
            webhooks (List[Dict[str, Any]]): Webhooks as returned by get_webhooks

        Raises:
            RateLimitError: On HTTP 429
            TwitterError: If Twitter refuses to remove one of them
        """
        logger.info("Removing webhooks…")
        for webhook in webhooks:
            webhook_id, url = webhook["id"], webhook.get("url")
            logger.info(f"Removing {url}…")
            response = await self._oauth_request("DELETE", self._env_url(f"/webhooks/{webhook_id}.json"))

            if response.status_code in (200, 204):
                continue
            if response.status_code == 429:
                raise RateLimitError.from_response(response)
            raise TwitterError.from_response(
                response,
                f"Cannot remove {url}. Please make sure it belongs to '{self.env}'. "
                + self._environment_hint(self.env, response.status_code),
            )

    async def remove_webhooks(self) -> None:
        """Remove every webhook registered for the environment."""
        webhooks = await self.get_webhooks()
        await self.delete_webhooks(webhooks)

    async def set_webhook(self, webhook_url: str, env: Optional[str] = None) -> Dict[str, Any]:
        """
        Register a webhook URL for the environment.

        Twitter immediately sends a CRC challenge to the URL, so the webhook
        route must already be answering when this is called.

        Args:
            webhook_url (str): Public https URL of the webhook
            env (Optional[str]): Environment, defaults to the helper's

        Returns:
            Dict[str, Any]: The registered webhook as reported by Twitter

        Raises:
            TypeError: If the URL is malformed or not https (nothing is sent)
            WebhookURIError: If Twitter rejects the URL (HTTP 400 or 403)
            RateLimitError: On HTTP 429
            TwitterError: On any other failure
        """
        env = env or self.env
        parsed = urlparse(webhook_url or "")
        if not parsed.scheme or not parsed.netloc:
            raise TypeError(f"{webhook_url} is not a valid URL. Please provide a valid URL and try again.")
        if parsed.scheme != "https":
            raise TypeError(f"{webhook_url} is not a valid URL. Your webhook must be HTTPS.")

        logger.info(f"Registering {webhook_url} as a new webhook…")
        response = await self._oauth_request("POST", self._env_url("/webhooks.json", env), params={"url": webhook_url})

        if response.status_code in (200, 204):
            return self._parse_json(response)
        if response.status_code in (400, 403):
            raise WebhookURIError.from_response(
                response,
                f"Twitter rejected {webhook_url} (HTTP status: {response.status_code}). "
                "Make sure the URL is reachable and answers the CRC challenge.",
            )
        if response.status_code == 429:
            raise RateLimitError.from_response(response)
        raise TwitterError.from_response(
            response,
            f"Cannot register {webhook_url}. " + self._environment_hint(env, response.status_code),
        )

    def validate_webhook(self, crc_token: str, auth: Optional[TwitterOAuth] = None) -> Dict[str, str]:
        """
        Answer Twitter's CRC challenge.

        Args:
            crc_token (str): The ``crc_token`` query parameter Twitter sent
            auth (Optional[TwitterOAuth]): Credentials, defaults to the helper's

        Returns:
            Dict[str, str]: ``{"response_token": "sha256=<base64 digest>"}``
        """
        secret = (auth or self.auth).consumer_secret
        digest = hmac.new(secret.encode("utf-8"), crc_token.encode("utf-8"), hashlib.sha256).digest()
        return {"response_token": f"sha256={base64.b64encode(digest).decode('ascii')}"}

    async def verify_credentials(self, auth: Optional[TwitterOAuth] = None) -> Dict[str, Any]:
        """
        Check the bot credentials and return the account's profile.

        Returns:
            Dict[str, Any]: The authenticated user, including ``id`` and ``screen_name``

        Raises:
            UserSubscriptionError: If Twitter does not accept the credentials
        """
        response = await self._oauth_request("GET", self._url("/account/verify_credentials.json"), auth=auth)
        if response.status_code != 200:
            raise UserSubscriptionError.from_response(response)
        return self._parse_json(response)

    async def subscribe(self, auth: Optional[TwitterOAuth] = None) -> bool:
        """
        Subscribe the authenticated account to the environment's webhook.

        The quota is checked against the cached count before anything is sent.

        Returns:
            bool: True once subscribed

        Raises:
            UserSubscriptionError: If the credentials are invalid or Twitter refuses
            TooManySubscriptionsError: If every provisioned subscription is used
            RateLimitError: If reading the quota hits the rate limit
        """
        user = await self.verify_credentials(auth)
        screen_name = user.get("screen_name")
        counts = await self.get_subscriptions_count()

        if counts["subscriptions_count"] == counts["provisioned_count"]:
            raise TooManySubscriptionsError(
                f"Cannot subscribe to {screen_name}'s activities: you exceeded the number of "
                "subscriptions available to you. Please remove a subscription or upgrade your "
                "premium access at https://developer.twitter.com/apps."
            )

        response = await self._oauth_request("POST", self._env_url("/subscriptions.json"), auth=auth)
        if response.status_code != 204:
            raise UserSubscriptionError.from_response(response)

        logger.info(f"Subscribed to {screen_name}'s activities.")
        self._update_subscriptions_count(1)
        return True

    async def unsubscribe(self, user_id: str) -> bool:
        """
        Remove the subscription of an account, using app-only auth.

        Args:
            user_id (str): Id of the subscribed account

        Returns:
            bool: True once unsubscribed

        Raises:
            UserSubscriptionError: If Twitter refuses
        """
        response = await self._bearer_request("DELETE", self._env_url(f"/subscriptions/{user_id}.json"))
        if response.status_code != 204:
            raise UserSubscriptionError.from_response(response)

        logger.info(f"Unsubscribed from {user_id}'s activities.")
        self._update_subscriptions_count(-1)
        return True
