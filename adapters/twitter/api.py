# adapters/twitter/api.py
"""
Twitter API Client
==================

A small client for Twitter's v1.1 REST API. Every request is signed with the
bot account's OAuth1 user credentials, so it can call any endpoint the
account is allowed to use.

    api = TwitterAPI(oauth)
    await api.call_api('/direct_messages/events/new.json', 'POST', payload)

Signing is delegated to authlib's httpx integration; the HTTP round trip is
a single attempt with no retry or backoff.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from authlib.integrations.httpx_client import OAuth1Auth
from pydantic import BaseModel, ConfigDict

from adapters.twitter.errors import TwitterError, extract_twitter_message

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "api.twitter.com"
DEFAULT_API_VERSION = "1.1"


class TwitterOAuth(BaseModel):
    """
    OAuth1 credentials of the bot account, as generated in the Twitter
    developer portal. Immutable once built.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    token_secret: str
    consumer_key: str
    consumer_secret: str

    def signer(self) -> OAuth1Auth:
        """Return an httpx auth object that signs requests with these credentials."""
        return OAuth1Auth(
            client_id=self.consumer_key,
            client_secret=self.consumer_secret,
            token=self.token,
            token_secret=self.token_secret,
        )


class TwitterAPI:
    """
    Signed client for the Twitter REST API.

    Attributes:
        oauth (TwitterOAuth): Credentials used to sign every call
        api_host (str): Root host name, ``api.twitter.com`` unless overridden
        api_version (str): API version prefix, ``1.1`` unless overridden
    """

    def __init__(self, oauth: TwitterOAuth, api_host: str = DEFAULT_API_HOST,
                 api_version: str = DEFAULT_API_VERSION,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Create a Twitter API client.

        Args:
            oauth (TwitterOAuth): OAuth credentials of the bot account
            api_host (str): Alternate root host (for mocking, proxies, etc.)
            api_version (str): Alternate API version
            transport (Optional[httpx.AsyncBaseTransport]): Custom httpx transport

        Raises:
            ValueError: If no credentials are given
        """
        if not oauth:
            raise ValueError("Authentication is required!")

        self.oauth = oauth
        self.api_host = api_host
        self.api_version = api_version
        self._transport = transport

    def build_url(self, path: str) -> str:
        """Build the absolute URL of an API path such as ``/statuses/update.json``."""
        return f"https://{self.api_host}/{self.api_version}{path}"

    async def call_api(self, path: str, method: str = "POST",
                       payload: Optional[Dict[str, Any]] = None,
                       form: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call one of the Twitter APIs.

        For GET requests the payload is percent-encoded into the query string.
        For every other method the payload is sent as a JSON body, unless a
        form is given: then the body is form-encoded and any payload moves to
        the query string.

        Args:
            path (str): Endpoint path, for example ``/direct_messages/events/new.json``
            method (str): HTTP method, for example POST, GET, DELETE or PUT
            payload (Optional[Dict[str, Any]]): Parameters of the call
            form (Optional[Dict[str, Any]]): Form fields for endpoints that need them

        Returns:
            Any: The parsed JSON response, or None when the body is empty

        Raises:
            httpx.HTTPError: If the request could not be sent
            TwitterError: If Twitter reports an error in the response body
        """
        method = method.upper()
        payload = payload or {}

        request_kwargs: Dict[str, Any] = {}
        if method == "GET":
            request_kwargs["params"] = payload
        elif form is not None:
            request_kwargs["data"] = form
            if payload:
                request_kwargs["params"] = payload
        else:
            request_kwargs["json"] = payload

        url = self.build_url(path)
        logger.debug(f"Calling Twitter API {method} {path}")

        async with httpx.AsyncClient(auth=self.oauth.signer(), transport=self._transport) as client:
            response = await client.request(method, url, **request_kwargs)

        if not response.content:
            return None

        try:
            body = response.json()
        except ValueError as e:
            raise TypeError(f"Error while parsing the response from the Twitter API: {e}")

        if isinstance(body, dict) and ("error" in body or "errors" in body):
            twitter_message = extract_twitter_message(body)
            raise TwitterError(
                twitter_message or f"Twitter API returned HTTP {response.status_code}",
                status_code=response.status_code,
                twitter_message=twitter_message,
            )

        return body

    async def post_thread_reply(self, payloads: Sequence[Any]) -> List[Any]:
        """
        Post a sequence of tweets as a thread.

        The first payload's ``in_reply_to_status_id`` is the tweet the thread
        answers; every following payload replies to the tweet posted just
        before it. Posting stops at the first failure and tweets already
        posted are left in place.

        Args:
            payloads (Sequence[TweetPayload]): Tweets to post, in thread order

        Returns:
            List[Any]: The API response of every posted tweet

        Raises:
            TwitterError: If a tweet fails or comes back without an ``id_str``
        """
        if not payloads:
            return []

        responses = []
        in_reply_to_id = payloads[0].in_reply_to_status_id
        for index, payload in enumerate(payloads):
            tweet = payload.model_copy(update={"in_reply_to_status_id": in_reply_to_id})
            res = await self.call_api("/statuses/update.json", "POST", {}, tweet.to_form())
            if not isinstance(res, dict) or not res.get("id_str"):
                raise TwitterError(
                    f"Tweet {index + 1} of {len(payloads)} in the thread was posted without an id_str "
                    "to chain the next reply to"
                )
            responses.append(res)
            in_reply_to_id = res["id_str"]
            logger.debug(f"Posted tweet {in_reply_to_id} in thread")

        return responses
