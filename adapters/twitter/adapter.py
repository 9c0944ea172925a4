# adapters/twitter/adapter.py
"""
Twitter Adapter
===============

Connects a bot to Twitter. Incoming Account Activity webhook deliveries are
turned into activities and run through the bot logic; activities the bot
sends are turned into direct messages, typing indicators and threaded tweet
replies.

The adapter is bound to a single Twitter account, the one owning the OAuth
credentials in its options.

Usage with FastAPI:
------------------
    adapter = TwitterAdapter(TwitterAdapterOptions(oauth=oauth, webhook_env="dev",
                                                   webhook_url="https://bot.example.com"))

    async def logic(context):
        await context.send_activity(f"You said: {context.activity.text}")

    app.include_router(create_webhook_router(adapter, logic))
    await adapter.init()
"""

import logging
from typing import Any, List, Optional

import httpx
from fastapi import Request, Response
from pydantic import BaseModel

from adapters import (
    Activity,
    ActivityTypes,
    BotAdapter,
    BotLogic,
    ConversationReference,
    ResourceResponse,
    TurnContext,
)
from adapters.twitter.api import DEFAULT_API_HOST, DEFAULT_API_VERSION, TwitterAPI, TwitterOAuth
from adapters.twitter.config import TwitterSettings
from adapters.twitter.translator import (
    MAX_TWEET_LENGTH,
    OutboundKind,
    activity_to_direct_message,
    activity_to_tweets,
    activity_to_typing_indicator,
    classify_outbound,
    delivery_to_activities,
)
from adapters.twitter.webhook import TwitterWebhookHelper

logger = logging.getLogger(__name__)

class TwitterAdapterOptions(BaseModel):
    """
    Options accepted by the TwitterAdapter constructor.

    Attributes:
        oauth (Optional[TwitterOAuth]): Full OAuth credentials of the bot account
        webhook_env (str): Name of the Account Activity environment
        api_host (str): Alternate root host for Twitter API calls (mocking, proxies)
        api_version (str): Alternate API version
        user_id (Optional[str]): Id of the bot account, resolved by init() when missing
        webhook_url (Optional[str]): Public https base URL the webhook URI is appended to
        webhook_uri (str): Path of the webhook route
        max_tweet_length (int): Size of the chunks a mention reply is cut into
    """

    oauth: Optional[TwitterOAuth] = None
    webhook_env: str = ""
    api_host: str = DEFAULT_API_HOST
    api_version: str = DEFAULT_API_VERSION
    user_id: Optional[str] = None
    webhook_url: Optional[str] = None
    webhook_uri: str = "/api/messages"
    max_tweet_length: int = MAX_TWEET_LENGTH

class TwitterAdapter(BotAdapter):
    """
    Bot adapter for Twitter mentions and direct messages.

    Class Attributes:
        name (str): Display name of the adapter
    """

    name = "Twitter Adapter"

    def __init__(self, options: TwitterAdapterOptions,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Create the adapter.

        Args:
            options (TwitterAdapterOptions): Adapter configuration
            transport (Optional[httpx.AsyncBaseTransport]): Custom httpx transport
                used for every call to Twitter

        Raises:
            ValueError: If the OAuth credentials are missing
        """
        super().__init__()

        if not options.oauth:
            raise ValueError(
                "Adapter must receive full oauth credentials for the bot account "
                "(token, token_secret, consumer_key, consumer_secret)"
            )

        self.options = options
        self._transport = transport
        self.webhook_helper = TwitterWebhookHelper(
            options.webhook_env,
            options.oauth,
            api_host=options.api_host,
            api_version=options.api_version,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: TwitterSettings, **kwargs) -> "TwitterAdapter":
        """
        Build an adapter from TWITTER_* settings.

        Args:
            settings (TwitterSettings): Loaded settings

        Returns:
            TwitterAdapter: The configured adapter
        """
        oauth = None
        if settings.ACCESS_TOKEN and settings.CONSUMER_KEY:
            oauth = TwitterOAuth(
                token=settings.ACCESS_TOKEN,
                token_secret=settings.ACCESS_TOKEN_SECRET,
                consumer_key=settings.CONSUMER_KEY,
                consumer_secret=settings.CONSUMER_SECRET,
            )

        options = TwitterAdapterOptions(
            oauth=oauth,
            webhook_env=settings.WEBHOOK_ENV,
            api_host=settings.API_HOST,
            api_version=settings.API_VERSION,
            user_id=settings.USER_ID,
            webhook_url=settings.WEBHOOK_URL or None,
            webhook_uri=settings.WEBHOOK_URI,
            max_tweet_length=settings.MAX_TWEET_LENGTH,
        )
        return cls(options, **kwargs)

    @property
    def webhook_address(self) -> str:
        """Full URL registered with Twitter for the webhook."""
        if self.options.webhook_url:
            return self.options.webhook_url.rstrip("/") + self.options.webhook_uri
        return self.options.webhook_uri

    async def init(self) -> None:
        """
        Resolve the bot's user id, register the webhook and subscribe.

        The webhook route must already be served, since Twitter sends a CRC
        challenge while the webhook is registered. Any error aborts the
        sequence and is raised to the caller.
        """
        profile = await self.webhook_helper.verify_credentials(self.options.oauth)
        self.options.user_id = str(profile.get("id_str") or profile["id"])
        logger.info(f"Twitter adapter authenticated as {profile.get('screen_name')} ({self.options.user_id})")

        await self.webhook_helper.remove_webhooks()
        await self.webhook_helper.set_webhook(self.webhook_address, self.options.webhook_env)
        await self.webhook_helper.subscribe(self.options.oauth)

    async def get_api(self) -> TwitterAPI:
        """
        Get a Twitter API client with the adapter's credentials.

        Returns:
            TwitterAPI: A ready to use client

        Raises:
            ValueError: If the adapter has no credentials
        """
        if not self.options.oauth:
            raise ValueError("Missing credentials for the Twitter account.")
        return TwitterAPI(self.options.oauth, self.options.api_host, self.options.api_version,
                          transport=self._transport)

    def validate_crc(self, crc_token: str) -> dict:
        """Answer a CRC challenge for the webhook route."""
        return self.webhook_helper.validate_webhook(crc_token, self.options.oauth)

    async def _send_activity(self, activity: Activity) -> List[ResourceResponse]:
        kind = classify_outbound(activity)
        if kind == OutboundKind.UNSUPPORTED:
            logger.debug(f"Unknown message type encountered in send_activities: {activity.channel_id}/{activity.type.value}")
            return []

        api = await self.get_api()

        if kind == OutboundKind.TWEET_THREAD:
            tweets = activity_to_tweets(activity, self.options.max_tweet_length)
            if not tweets:
                logger.debug("Skipping mention reply without text")
                return []
            results = await api.post_thread_reply(tweets)
            return [ResourceResponse(id=res.get("id_str")) for res in results if res]

        if kind == OutboundKind.DIRECT_MESSAGE:
            message = activity_to_direct_message(activity)
            res = await api.call_api("/direct_messages/events/new.json", "POST", message.to_json())
            logger.debug(f"RESPONSE FROM Twitter > {res}")
            message_id = _message_id(res)
            return [ResourceResponse(id=message_id)] if message_id else []

        indicator = activity_to_typing_indicator(activity)
        res = await api.call_api("/direct_messages/indicate_typing.json", "POST", {}, indicator.to_form())
        logger.debug(f"RESPONSE FROM Twitter > {res}")
        return []

    async def send_activities(self, context: TurnContext, activities: List[Activity]) -> List[ResourceResponse]:
        """
        Send the bot's activities to Twitter, in order.

        A failure is logged and the next activity is still attempted; it is
        not reported to the caller.

        Args:
            context (TurnContext): The current turn
            activities (List[Activity]): Outgoing activities

        Returns:
            List[ResourceResponse]: Ids of the tweets and direct messages created
        """
        responses: List[ResourceResponse] = []
        for activity in activities:
            try:
                responses.extend(await self._send_activity(activity))
            except Exception as e:
                logger.error(f"Error sending activity to Twitter: {e}")
        return responses

    async def update_activity(self, context: TurnContext, activity: Activity) -> None:
        """Twitter adapter does not support update_activity."""
        logger.debug("Twitter adapter does not support update_activity.")

    async def delete_activity(self, context: TurnContext, reference: ConversationReference) -> None:
        """Twitter adapter does not support delete_activity."""
        logger.debug("Twitter adapter does not support delete_activity.")

    async def continue_conversation(self, reference: ConversationReference, logic: BotLogic) -> None:
        """
        Run bot logic in an existing conversation, outside of any webhook.

        Args:
            reference (ConversationReference): The conversation to continue
            logic (BotLogic): Bot logic in the form ``async def logic(context)``
        """
        activity = TurnContext.apply_conversation_reference(
            Activity(type=ActivityTypes.EVENT, name="continueConversation"),
            reference,
            is_incoming=True,
        )
        context = TurnContext(self, activity)
        await self.run_middleware(context, logic)

    async def process_activity(self, request: Request, logic: BotLogic) -> Response:
        """
        Accept a webhook delivery and run the bot logic for each event in it.

        Events are processed one at a time, in order; the response is only
        returned once all of them are done. A body that is not JSON is logged
        and acknowledged without running any turn.

        Args:
            request (Request): The incoming webhook request
            logic (BotLogic): Bot logic in the form ``async def logic(context)``

        Returns:
            Response: An empty 200 response
        """
        try:
            body = await request.json()
        except ValueError as e:
            logger.warning(f"Ignoring webhook body that is not valid JSON: {e}")
            return Response(status_code=200)

        logger.debug(f"IN FROM Twitter > {body}")
        await self.process_delivery(body, logic)
        return Response(status_code=200)

    async def process_delivery(self, body: Any, logic: BotLogic) -> int:
        """
        Run the bot logic for every event of a parsed webhook body.

        A turn that raises is logged and the following events still run.

        Returns:
            int: Number of turns that were run
        """
        if not isinstance(body, dict):
            logger.warning(f"Ignoring webhook body of unexpected type {type(body).__name__}")
            return 0

        activities = delivery_to_activities(body, self.options.user_id)
        for activity in activities:
            context = TurnContext(self, activity)
            try:
                await self.run_middleware(context, logic)
            except Exception as e:
                logger.error(f"Error processing {activity.channel_id} {activity.type.value} activity: {e}", exc_info=True)
        return len(activities)

    async def spawn(self, reference: Optional[ConversationReference] = None):
        """
        Create a bot worker for sending messages outside of a turn.

        Args:
            reference (Optional[ConversationReference]): Conversation to start in

        Returns:
            TwitterBotWorker: A worker whose ``api`` attribute is ready to use
        """
        from adapters.twitter.worker import TwitterBotWorker

        worker = TwitterBotWorker(self, reference)
        worker.api = await self.get_api()
        return worker

def _message_id(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    event = response.get("event")
    if isinstance(event, dict) and event.get("id"):
        return str(event["id"])
    message_id = response.get("message_id")
    return str(message_id) if message_id else None
