# adapters/twitter/translator.py
"""
Twitter Activity Translator
===========================

Converts between normalized activities and Twitter's wire formats.

Outbound, by channel and activity type:
-------------------------------------
- TwitterDM / message: a ``message_create`` direct message event
- TwitterDM / typing: a typing indicator for the recipient
- TwitterMention / message: one threaded reply tweet per 280 character chunk
- anything else: not sent

Inbound, by webhook event family:
-------------------------------
- tweet_create_events: message activities on TwitterMention
- direct_message_events: message activities on TwitterDM
- direct_message_indicate_typing_events: typing activities on TwitterDM
- direct_message_mark_read_events: messageReaction activities on TwitterDM

Mentions and direct messages written by the bot itself are dropped, so the
bot never answers its own tweets. Entities (mentions, urls, media, ...) are
merged flatly into ``channel_data`` next to the raw event.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from adapters import Activity, ActivityTypes, ChannelAccount, ConversationAccount
from adapters.twitter.models import (
    DirectMessageCreate,
    DirectMessageData,
    DirectMessageEvent,
    DirectMessageEventBody,
    DirectMessagePayload,
    MarkReadEvent,
    MessageTarget,
    QuickReply,
    TweetCreateEvent,
    TweetPayload,
    TypingEvent,
    TypingIndicatorPayload,
    WebhookDelivery,
)

logger = logging.getLogger(__name__)

TWITTER_MENTION = "TwitterMention"
TWITTER_DM = "TwitterDM"

MAX_TWEET_LENGTH = 280


class OutboundKind(str, Enum):
    """What an outgoing activity becomes on Twitter."""
    DIRECT_MESSAGE = "direct_message"
    TYPING_INDICATOR = "typing_indicator"
    TWEET_THREAD = "tweet_thread"
    UNSUPPORTED = "unsupported"


def classify_outbound(activity: Activity) -> OutboundKind:
    """
    Decide which Twitter call an outgoing activity maps to.

    Args:
        activity (Activity): The outgoing activity

    Returns:
        OutboundKind: The matching kind, UNSUPPORTED when nothing is sent
    """
    if activity.channel_id == TWITTER_DM:
        if activity.type == ActivityTypes.MESSAGE:
            return OutboundKind.DIRECT_MESSAGE
        if activity.type == ActivityTypes.TYPING:
            return OutboundKind.TYPING_INDICATOR
    elif activity.channel_id == TWITTER_MENTION and activity.type == ActivityTypes.MESSAGE:
        return OutboundKind.TWEET_THREAD
    return OutboundKind.UNSUPPORTED


def _require_recipient(activity: Activity) -> str:
    if activity.recipient is None or not activity.recipient.id:
        raise ValueError(f"Activity of type {activity.type.value} on {activity.channel_id} has no recipient")
    return activity.recipient.id


def activity_to_direct_message(activity: Activity) -> DirectMessagePayload:
    """
    Convert a message activity into a direct message event.

    ``channel_data.quick_replies`` becomes a quick reply of type ``options``
    and ``channel_data.ctas`` is passed through as call-to-action buttons.
    """
    message_data = DirectMessageData(text=activity.text)

    channel_data = activity.channel_data or {}
    if channel_data.get("quick_replies"):
        message_data.quick_reply = QuickReply(options=channel_data["quick_replies"])
    if channel_data.get("ctas"):
        message_data.ctas = channel_data["ctas"]

    message = DirectMessagePayload(
        event=DirectMessageEventBody(
            message_create=DirectMessageCreate(
                target=MessageTarget(recipient_id=_require_recipient(activity)),
                message_data=message_data,
            )
        )
    )
    logger.debug(f"OUT TO Twitter > {message.to_json()}")
    return message


def activity_to_typing_indicator(activity: Activity) -> TypingIndicatorPayload:
    return TypingIndicatorPayload(recipient_id=_require_recipient(activity))


def split_tweet_text(text: str, limit: int = MAX_TWEET_LENGTH) -> List[str]:
    """
    Cut text into consecutive chunks of at most ``limit`` characters.

    Chunks are fixed width, not word aware; joining them gives back the text.
    """
    if limit < 1:
        raise ValueError("limit must be a positive number of characters")
    return [text[i:i + limit] for i in range(0, len(text), limit)]


def activity_to_tweets(activity: Activity, limit: int = MAX_TWEET_LENGTH) -> List[TweetPayload]:
    """
    Convert a mention reply into the tweets of a reply thread.

    The first tweet answers ``activity.reply_to_id``; the API client chains
    the rest when it posts them.
    """
    return [
        TweetPayload(
            status=chunk,
            in_reply_to_status_id=activity.reply_to_id,
            auto_populate_reply_metadata=True,
        )
        for chunk in split_tweet_text(activity.text or "", limit)
    ]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _merge_entities(raw: Dict[str, Any], entities: Dict[str, Any]) -> Dict[str, Any]:
    channel_data = dict(raw)
    for key, value in entities.items():
        channel_data[key] = value
    return channel_data


def tweet_to_activity(raw: Dict[str, Any], user_id: Optional[str]) -> Optional[Activity]:
    """
    Convert a tweet_create_events entry into a message activity.

    Args:
        raw (Dict[str, Any]): The tweet as delivered by the webhook
        user_id (Optional[str]): Id of the bot account

    Returns:
        Optional[Activity]: The activity, or None when the bot wrote the tweet

    Raises:
        ValidationError: If the tweet lacks a field the adapter needs
    """
    tweet = TweetCreateEvent.model_validate(raw)
    if user_id is not None and tweet.user.id == str(user_id):
        logger.debug(f"Skipping tweet {tweet.id_str} written by the bot")
        return None

    extended = raw.get("extended_tweet")
    text = extended.get("full_text", tweet.text) if isinstance(extended, dict) else tweet.text

    return Activity(
        type=ActivityTypes.MESSAGE,
        channel_id=TWITTER_MENTION,
        id=tweet.id_str,
        timestamp=_now(),
        conversation=ConversationAccount(id=tweet.user.id),
        from_property=ChannelAccount(id=tweet.user.id, name=tweet.user.screen_name),
        recipient=ChannelAccount(id=str(user_id), name=str(user_id)) if user_id is not None else None,
        text=text,
        channel_data=_merge_entities(raw, tweet.entities),
    )


def direct_message_to_activity(raw: Dict[str, Any], user_id: Optional[str]) -> Optional[Activity]:
    """
    Convert a direct_message_events entry into a message activity.

    Returns None for messages the bot sent itself and for event types other
    than ``message_create``.
    """
    event = DirectMessageEvent.model_validate(raw)
    if event.type != "message_create" or event.message_create is None:
        logger.warning(f"Ignoring direct message event of unsupported type {event.type!r}")
        return None

    message = event.message_create
    if user_id is not None and message.sender_id == str(user_id):
        logger.debug(f"Skipping direct message {event.id} sent by the bot")
        return None

    return Activity(
        type=ActivityTypes.MESSAGE,
        channel_id=TWITTER_DM,
        id=event.id,
        timestamp=_now(),
        conversation=ConversationAccount(id=message.sender_id),
        from_property=ChannelAccount(id=message.sender_id, name=message.sender_id),
        recipient=ChannelAccount(id=message.target.recipient_id, name=message.target.recipient_id),
        text=message.message_data.text,
        channel_data=_merge_entities(raw, message.message_data.entities),
    )


def typing_event_to_activity(raw: Dict[str, Any]) -> Activity:
    event = TypingEvent.model_validate(raw)
    return Activity(
        type=ActivityTypes.TYPING,
        channel_id=TWITTER_DM,
        timestamp=_now(),
        conversation=ConversationAccount(id=event.sender_id),
        from_property=ChannelAccount(id=event.sender_id, name=event.sender_id),
        recipient=ChannelAccount(id=event.target.recipient_id, name=event.target.recipient_id),
        channel_data=dict(raw),
    )


def mark_read_event_to_activity(raw: Dict[str, Any]) -> Activity:
    event = MarkReadEvent.model_validate(raw)
    return Activity(
        type=ActivityTypes.MESSAGE_REACTION,
        channel_id=TWITTER_DM,
        timestamp=_now(),
        conversation=ConversationAccount(id=event.sender_id),
        from_property=ChannelAccount(id=event.sender_id, name=event.sender_id),
        recipient=ChannelAccount(id=event.target.recipient_id, name=event.target.recipient_id),
        channel_data=dict(raw),
    )


def delivery_to_activities(body: Dict[str, Any], user_id: Optional[str]) -> List[Activity]:
    """
    Convert a whole webhook delivery into activities.

    Families are handled in the order tweets, direct messages, typing events,
    read receipts; events keep their array order within a family. Events that
    are not objects or do not match their schema are logged and skipped, and a
    body that is not a delivery at all yields no activities.

    Args:
        body (Dict[str, Any]): Parsed webhook POST body
        user_id (Optional[str]): Id of the bot account

    Returns:
        List[Activity]: Activities to process, in order
    """
    try:
        delivery = WebhookDelivery.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed webhook delivery: {e.error_count()} validation error(s)")
        return []

    unknown = delivery.unknown_families()
    if unknown:
        logger.debug(f"Ignoring unsupported webhook event families: {', '.join(unknown)}")

    families = [
        ("tweet_create_events", delivery.tweet_create_events, lambda raw: tweet_to_activity(raw, user_id)),
        ("direct_message_events", delivery.direct_message_events, lambda raw: direct_message_to_activity(raw, user_id)),
        ("direct_message_indicate_typing_events", delivery.direct_message_indicate_typing_events, typing_event_to_activity),
        ("direct_message_mark_read_events", delivery.direct_message_mark_read_events, mark_read_event_to_activity),
    ]

    activities = []
    for family, events, convert in families:
        for raw in events:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping entry of type {type(raw).__name__} in {family}")
                continue
            try:
                activity = convert(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed entry in {family}: {e.error_count()} validation error(s)")
                continue
            if activity is not None:
                activities.append(activity)

    return activities
