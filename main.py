# Standard library imports
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Tuple

# Third-party imports
from fastapi import FastAPI
from fastapi.responses import JSONResponse

# Local imports
from config import Settings, get_settings
from adapters import ActivityTypes, BotLogic, TurnContext
from adapters.twitter import TwitterAdapter, TwitterErrorKind, create_webhook_router
from adapters.twitter.config import TwitterSettings, get_twitter_settings

logger = logging.getLogger(__name__)

async def log_activity(context: TurnContext) -> None:
    """Default bot logic: record what arrived and acknowledge nothing."""
    activity = context.activity
    if activity.type == ActivityTypes.MESSAGE:
        logger.info(f"[{activity.channel_id}] {activity.from_property.id if activity.from_property else '?'}: {activity.text}")
    else:
        logger.debug(f"[{activity.channel_id}] {activity.type.value} activity received")

async def register_webhook(adapter: TwitterAdapter) -> None:
    """Run the adapter's registration sequence, logging the outcome."""
    logger.info(f"Registering Twitter webhook at {adapter.webhook_address}")
    try:
        await adapter.init()
    except Exception as e:
        logger.error(f"Twitter webhook registration failed: {e}", exc_info=True)
        raise
    logger.info("Twitter webhook registered and account subscribed")

def registration_status(task: Optional[asyncio.Task]) -> Tuple[str, Optional[BaseException]]:
    """Describe the background registration task as a status and its error, if any."""
    if task is None:
        return "disabled", None
    if not task.done():
        return "pending", None
    if task.cancelled():
        return "cancelled", None
    error = task.exception()
    return ("failed", error) if error is not None else ("complete", None)

def create_app(settings: Optional[Settings] = None,
               twitter_settings: Optional[TwitterSettings] = None,
               adapter: Optional[TwitterAdapter] = None,
               logic: Optional[BotLogic] = None) -> FastAPI:
    """
    Build the FastAPI application serving the Twitter webhook.

    When TWITTER_REGISTER_WEBHOOK_ON_STARTUP is set, the webhook is registered
    and the bot account subscribed in the background once the server accepts
    connections, since Twitter sends a CRC challenge during registration.
    Until registration completes /health answers 503, reporting the
    registration state and, after a failure, the error kind.
    """
    settings = settings or get_settings()
    twitter_settings = twitter_settings or get_twitter_settings()
    adapter = adapter or TwitterAdapter.from_settings(twitter_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registration = None
        if twitter_settings.REGISTER_WEBHOOK_ON_STARTUP:
            registration = asyncio.create_task(register_webhook(adapter))
            # Retrieve the outcome so a failure is never left unobserved
            registration.add_done_callback(registration_status)
        app.state.registration = registration
        yield
        if registration is not None and not registration.done():
            registration.cancel()

    app = FastAPI(title=settings.APP_TITLE, lifespan=lifespan)
    app.state.adapter = adapter
    app.state.registration = None

    # Mount the webhook (CRC challenge + event deliveries)
    app.include_router(create_webhook_router(adapter, logic or log_activity))
    logger.info(f"Mounted Twitter webhook at {adapter.options.webhook_uri}")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        status, error = registration_status(app.state.registration)
        content = {
            "status": "healthy",
            "adapter": adapter.name,
            "user_id": adapter.options.user_id,
            "registration": status,
        }
        if status in ("disabled", "complete"):
            return content

        content["status"] = "degraded"
        if error is not None:
            kind = getattr(error, "kind", None)
            content["error"] = kind.value if isinstance(kind, TwitterErrorKind) else type(error).__name__
        return JSONResponse(status_code=503, content=content)

    return app

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    # Set up logging
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format=settings.LOG_FORMAT
    )

    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        use_colors=True
    )
