# adapters/twitter/errors.py
"""
Twitter Adapter Errors
======================

Error taxonomy raised by the Twitter API client and the webhook lifecycle
manager.

Every error belongs to exactly one member of TwitterErrorKind and carries only
what a caller needs to react to it: the HTTP status code, the message Twitter
reported, and for rate limits the epoch second at which the window resets.
The httpx response object itself is never kept on the exception.

Kinds:
------
- RATE_LIMIT: Twitter answered 429, the caller should back off
- API: any other non-2xx answer or an error object in a response body
- WEBHOOK_URI: Twitter refused the webhook URL (usually a failed CRC check)
- USER_SUBSCRIPTION: credential verification or subscription change failed
- TOO_MANY_SUBSCRIPTIONS: the subscription quota is exhausted
"""

from enum import Enum
from typing import Optional, Any

import httpx


class TwitterErrorKind(str, Enum):
    """Closed set of failure kinds reported by the Twitter adapter."""
    RATE_LIMIT = "rate_limit"
    API = "api"
    WEBHOOK_URI = "webhook_uri"
    USER_SUBSCRIPTION = "user_subscription"
    TOO_MANY_SUBSCRIPTIONS = "too_many_subscriptions"


def extract_twitter_message(body: Any) -> Optional[str]:
    """
    Pull the human readable error message out of a Twitter response body.

    Handles both the ``{"error": {"message": ...}}`` shape and the v1.1
    ``{"errors": [{"code": ..., "message": ...}]}`` shape.

    Args:
        body (Any): Parsed JSON body

    Returns:
        Optional[str]: The reported message, or None when there is none
    """
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message") or str(error)
    if isinstance(error, str):
        return error

    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            return first.get("message") or str(first)
        return str(first)

    return None


class TwitterError(Exception):
    """
    Generic failure reported by a Twitter endpoint.

    Base class of every other adapter error, so ``except TwitterError``
    catches them all while ``kind`` still tells them apart.

    Attributes:
        kind (TwitterErrorKind): The failure kind
        status_code (Optional[int]): HTTP status returned by Twitter, if any
        twitter_message (Optional[str]): Message reported by Twitter, if any
    """

    kind = TwitterErrorKind.API

    def __init__(self, message: str, status_code: Optional[int] = None,
                 twitter_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.twitter_message = twitter_message

    @classmethod
    def from_response(cls, response: httpx.Response, message: Optional[str] = None, **kwargs):
        """
        Build an error from a Twitter HTTP response.

        Args:
            response (httpx.Response): The response Twitter sent back
            message (Optional[str]): Explanation to use instead of the default

        Returns:
            TwitterError: An instance of the calling class
        """
        try:
            twitter_message = extract_twitter_message(response.json())
        except ValueError:
            twitter_message = response.text or None

        if message is None:
            message = f"Twitter API returned HTTP {response.status_code}"
            if twitter_message:
                message += f": {twitter_message}"

        return cls(message, status_code=response.status_code, twitter_message=twitter_message, **kwargs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"


class RateLimitError(TwitterError):
    """
    Twitter answered 429 Too Many Requests.

    There is no built-in retry; ``reset_at`` holds the epoch second from the
    ``x-rate-limit-reset`` header when Twitter sent one.
    """

    kind = TwitterErrorKind.RATE_LIMIT

    def __init__(self, message: str, status_code: Optional[int] = 429,
                 twitter_message: Optional[str] = None, reset_at: Optional[int] = None):
        super().__init__(message, status_code=status_code, twitter_message=twitter_message)
        self.reset_at = reset_at

    @classmethod
    def from_response(cls, response: httpx.Response, message: Optional[str] = None, **kwargs):
        reset = response.headers.get("x-rate-limit-reset")
        reset_at = int(reset) if reset and reset.isdigit() else None
        if message is None:
            message = "You exceeded the rate limit for this Twitter endpoint. Wait before trying again."
            if reset_at:
                message += f" (limit resets at {reset_at})"
        return super().from_response(response, message, reset_at=reset_at, **kwargs)


class WebhookURIError(TwitterError):
    """Twitter refused to register the webhook URL."""

    kind = TwitterErrorKind.WEBHOOK_URI


class UserSubscriptionError(TwitterError):
    """Credential verification or a subscription change failed."""

    kind = TwitterErrorKind.USER_SUBSCRIPTION


class TooManySubscriptionsError(TwitterError):
    """The Account Activity subscription quota is exhausted."""

    kind = TwitterErrorKind.TOO_MANY_SUBSCRIPTIONS
