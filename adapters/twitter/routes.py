# adapters/twitter/routes.py
"""
Twitter Webhook Routes
======================

FastAPI routes for the Account Activity webhook. Both routes live on the
same path:

- GET answers Twitter's CRC challenge with the signed response token
- POST receives event deliveries and runs the bot logic for each event

Twitter re-sends the CRC challenge periodically, so the GET route has to
stay up for as long as the webhook is registered.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from adapters import BotLogic
from adapters.twitter.adapter import TwitterAdapter

logger = logging.getLogger(__name__)

def create_webhook_router(adapter: TwitterAdapter, logic: BotLogic, webhook_uri: Optional[str] = None) -> APIRouter:
    """
    Create a router serving the Twitter webhook.

    Args:
        adapter (TwitterAdapter): The adapter processing deliveries
        logic (BotLogic): Bot logic run for every incoming activity
        webhook_uri (Optional[str]): Route path, defaults to the adapter's webhook_uri

    Returns:
        APIRouter: Router with the CRC and delivery routes
    """
    router = APIRouter(tags=["twitter", "webhook"])
    path = webhook_uri or adapter.options.webhook_uri

    @router.get(path)
    async def crc_challenge(crc_token: Optional[str] = Query(None)):
        """Answer Twitter's CRC challenge."""
        if not crc_token:
            raise HTTPException(status_code=400, detail="Missing crc_token")
        logger.debug("Answering Twitter CRC challenge")
        return JSONResponse(status_code=200, content=adapter.validate_crc(crc_token))

    @router.post(path)
    async def receive_events(request: Request):
        """Process an Account Activity delivery."""
        return await adapter.process_activity(request, logic)

    return router
