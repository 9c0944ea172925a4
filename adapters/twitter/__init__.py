# adapters/twitter/__init__.py
"""
Twitter Adapter Package
=======================

Connects a bot to Twitter through the Account Activity webhook API and the
v1.1 REST API.

Components:
----------
- TwitterAPI: OAuth1-signed client for any REST endpoint, plus thread posting
- TwitterWebhookHelper: webhook registration, CRC answers and subscriptions
- translator: conversion between activities and Twitter payloads
- TwitterAdapter: the bot adapter tying the pieces together
- TwitterBotWorker: sends messages outside of a webhook turn
- create_webhook_router: FastAPI routes for the webhook

Channels:
--------
- TwitterMention: tweets mentioning the bot, answered with reply threads
- TwitterDM: direct messages, typing indicators and read receipts
"""

from .api import TwitterAPI, TwitterOAuth
from .errors import (
    RateLimitError,
    TooManySubscriptionsError,
    TwitterError,
    TwitterErrorKind,
    UserSubscriptionError,
    WebhookURIError,
)
from .webhook import TwitterWebhookHelper
from .translator import TWITTER_DM, TWITTER_MENTION
from .adapter import TwitterAdapter, TwitterAdapterOptions
from .worker import TwitterBotWorker
from .routes import create_webhook_router

__all__ = [
    'TwitterAPI', 'TwitterOAuth', 'TwitterWebhookHelper',
    'TwitterAdapter', 'TwitterAdapterOptions', 'TwitterBotWorker', 'create_webhook_router',
    'TWITTER_DM', 'TWITTER_MENTION',
    'TwitterError', 'TwitterErrorKind', 'RateLimitError', 'WebhookURIError',
    'UserSubscriptionError', 'TooManySubscriptionsError',
]
