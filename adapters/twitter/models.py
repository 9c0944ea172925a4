# adapters/twitter/models.py
"""
Twitter Wire Models
===================

Pydantic schemas for the JSON exchanged with Twitter.

Inbound (Account Activity webhook deliveries):
-------------------------------------------
- TweetCreateEvent: a tweet mentioning or replying to the bot
- DirectMessageEvent: a ``message_create`` direct message event
- TypingEvent: a user started typing in a DM conversation
- MarkReadEvent: a user read the DM conversation
- WebhookDelivery: one POST body, holding zero or more events per family

Outbound (bodies for the REST API):
--------------------------------
- DirectMessagePayload: ``/direct_messages/events/new.json``
- TypingIndicatorPayload: ``/direct_messages/indicate_typing.json``
- TweetPayload: ``/statuses/update.json``

Event models allow unknown fields, since Twitter adds to them freely, but each
declares the fields the adapter relies on as required. Twitter sends ids as
numbers in some places and strings in others; they are normalized to strings.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field


def _to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


TwitterId = Annotated[str, BeforeValidator(_to_str)]


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


# Entries are left untyped; the translator validates them one by one
EventList = Annotated[List[Any], BeforeValidator(_none_to_list)]


class TwitterEventModel(BaseModel):
    """Base for inbound event models; keeps fields this adapter does not know."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class TwitterUser(TwitterEventModel):
    id: TwitterId
    screen_name: Optional[str] = None
    name: Optional[str] = None


class TweetCreateEvent(TwitterEventModel):
    id_str: TwitterId
    text: str
    user: TwitterUser
    entities: Dict[str, Any] = Field(default_factory=dict)


class MessageTarget(TwitterEventModel):
    recipient_id: TwitterId


class MessageData(TwitterEventModel):
    text: str = ""
    entities: Dict[str, Any] = Field(default_factory=dict)


class MessageCreate(TwitterEventModel):
    target: MessageTarget
    sender_id: TwitterId
    message_data: MessageData


class DirectMessageEvent(TwitterEventModel):
    type: str
    id: Optional[TwitterId] = None
    created_timestamp: Optional[str] = None
    message_create: Optional[MessageCreate] = None


class TypingEvent(TwitterEventModel):
    created_timestamp: Optional[str] = None
    sender_id: TwitterId
    target: MessageTarget


class MarkReadEvent(TwitterEventModel):
    created_timestamp: Optional[str] = None
    sender_id: TwitterId
    target: MessageTarget
    last_read_event_id: Optional[TwitterId] = None


class WebhookDelivery(TwitterEventModel):
    """
    Top level of a webhook POST body.

    Events stay raw here and a family sent as null counts as empty; each
    event is validated on its own by the translator so that one malformed
    event does not discard its neighbours.
    """

    for_user_id: Optional[TwitterId] = None
    tweet_create_events: EventList = Field(default_factory=list)
    direct_message_events: EventList = Field(default_factory=list)
    direct_message_indicate_typing_events: EventList = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "direct_message_indicate_typing_events",
            "direct_messsage_indicate_typing_events",
        ),
    )
    direct_message_mark_read_events: EventList = Field(default_factory=list)

    def unknown_families(self) -> List[str]:
        """Names of event families present in the body that are not handled."""
        return sorted(key for key in (self.model_extra or {}) if key.endswith("_events"))


class QuickReply(BaseModel):
    type: str = "options"
    options: List[Dict[str, Any]]


class DirectMessageData(BaseModel):
    text: Optional[str] = None
    quick_reply: Optional[QuickReply] = None
    ctas: Optional[List[Dict[str, Any]]] = None


class DirectMessageCreate(BaseModel):
    target: MessageTarget
    message_data: DirectMessageData


class DirectMessageEventBody(BaseModel):
    type: str = "message_create"
    message_create: DirectMessageCreate


class DirectMessagePayload(BaseModel):
    """JSON body of a direct message; empty optional fields are left out."""

    event: DirectMessageEventBody

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TypingIndicatorPayload(BaseModel):
    recipient_id: str

    def to_form(self) -> Dict[str, Any]:
        return self.model_dump()


class TweetPayload(BaseModel):
    """Form fields of one tweet posted as a reply."""

    status: str
    in_reply_to_status_id: Optional[str] = None
    auto_populate_reply_metadata: bool = True

    def to_form(self) -> Dict[str, Any]:
        form = self.model_dump(exclude_none=True)
        form["auto_populate_reply_metadata"] = "true" if self.auto_populate_reply_metadata else "false"
        return form
