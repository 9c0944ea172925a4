# adapters/__init__.py
"""
Bot Adapter Foundation
======================

This module defines the seam between a conversational bot and the channel
adapters that connect it to messaging services. It provides the normalized
activity schema every adapter speaks and the base class adapters implement.

Core Concepts:
-------------
- Activity: one normalized event exchanged with a channel (message, typing,
  reaction, or an internal event)
- TurnContext: wraps the incoming activity of one turn and lets bot logic
  reply to it
- BotAdapter: translates activities to and from a channel and runs the
  middleware pipeline before handing a turn to the bot logic
- ConversationReference: enough addressing information to continue a
  conversation outside of a turn

Turn Lifecycle:
--------------
1. A channel delivers an event to the adapter (usually over a webhook)
2. The adapter converts it into an Activity and wraps it in a TurnContext
3. Registered middleware runs in order, each deciding whether to continue
4. The bot logic runs and may send activities back through the context
5. The adapter converts the outgoing activities into channel API calls

Writing an Adapter:
------------------
Subclass BotAdapter and implement send_activities, update_activity,
delete_activity and continue_conversation for the target channel.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

class ActivityTypes(str, Enum):
    """
    Types of activity the adapters understand.

    Types:
        MESSAGE: A text message
        TYPING: The sender is typing
        MESSAGE_REACTION: A reaction to a message, such as a read receipt
        EVENT: An internal event, such as continuing a conversation
    """
    MESSAGE = "message"
    TYPING = "typing"
    MESSAGE_REACTION = "messageReaction"
    EVENT = "event"

class ChannelAccount(BaseModel):
    """A user or bot account on a channel."""
    id: str
    name: Optional[str] = None

class ConversationAccount(BaseModel):
    """A conversation on a channel."""
    id: str

class Activity(BaseModel):
    """
    Normalized activity exchanged between a channel and the bot.

    The sender is stored as ``from_property`` because ``from`` is a Python
    keyword; it serializes under the ``from`` alias.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: ActivityTypes
    channel_id: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    timestamp: Optional[datetime] = None
    conversation: Optional[ConversationAccount] = None
    from_property: Optional[ChannelAccount] = Field(default=None, alias="from")
    recipient: Optional[ChannelAccount] = None
    text: Optional[str] = None
    reply_to_id: Optional[str] = None
    channel_data: Dict[str, Any] = Field(default_factory=dict)

class ResourceResponse(BaseModel):
    """Identifier of a resource created by sending an activity."""
    id: Optional[str] = None

class ConversationReference(BaseModel):
    """Addressing information needed to continue a conversation."""
    channel_id: Optional[str] = None
    conversation: Optional[ConversationAccount] = None
    user: Optional[ChannelAccount] = None
    bot: Optional[ChannelAccount] = None
    activity_id: Optional[str] = None

BotLogic = Callable[["TurnContext"], Awaitable[None]]
Middleware = Callable[["TurnContext", Callable[[], Awaitable[None]]], Awaitable[None]]

class TurnContext:
    """
    Context of a single turn of conversation.

    Attributes:
        adapter (BotAdapter): The adapter that created the turn
        activity (Activity): The incoming activity
        responded (bool): Whether anything was sent during the turn
    """

    def __init__(self, adapter: "BotAdapter", activity: Activity):
        self.adapter = adapter
        self.activity = activity
        self.responded = False

    @staticmethod
    def get_conversation_reference(activity: Activity) -> ConversationReference:
        """
        Build a conversation reference from an incoming activity.

        Args:
            activity (Activity): An activity received from a channel

        Returns:
            ConversationReference: Reference addressing the activity's sender
        """
        return ConversationReference(
            channel_id=activity.channel_id,
            conversation=activity.conversation,
            user=activity.from_property,
            bot=activity.recipient,
            activity_id=activity.id,
        )

    @staticmethod
    def apply_conversation_reference(activity: Activity, reference: ConversationReference,
                                     is_incoming: bool = False) -> Activity:
        """
        Address an activity using a conversation reference.

        Outgoing activities are sent from the bot to the user and reply to the
        referenced activity; incoming ones run the other way.

        Args:
            activity (Activity): Activity to update in place
            reference (ConversationReference): Where the activity belongs
            is_incoming (bool): Whether the activity is treated as received

        Returns:
            Activity: The same activity, addressed
        """
        activity.channel_id = reference.channel_id
        activity.conversation = reference.conversation
        if is_incoming:
            activity.from_property = reference.user
            activity.recipient = reference.bot
            if reference.activity_id:
                activity.id = reference.activity_id
        else:
            activity.from_property = reference.bot
            activity.recipient = reference.user
            if reference.activity_id:
                activity.reply_to_id = reference.activity_id
        return activity

    async def send_activity(self, activity_or_text: Union[Activity, str]) -> Optional[ResourceResponse]:
        """
        Send one activity, or a plain text message, in reply to this turn.

        Returns:
            Optional[ResourceResponse]: The first resource the channel reported, if any
        """
        responses = await self.send_activities([activity_or_text])
        return responses[0] if responses else None

    async def send_activities(self, activities: List[Union[Activity, str]]) -> List[ResourceResponse]:
        """Send several activities, in order, in reply to this turn."""
        reference = self.get_conversation_reference(self.activity)
        outgoing = []
        for item in activities:
            if isinstance(item, str):
                item = Activity(type=ActivityTypes.MESSAGE, text=item)
            else:
                item = item.model_copy(deep=True)
            outgoing.append(self.apply_conversation_reference(item, reference))

        self.responded = True
        return await self.adapter.send_activities(self, outgoing)

class BotAdapter:
    """
    Base class for channel adapters.

    Holds the middleware pipeline shared by every adapter. Middleware are
    awaitables called as ``await middleware(context, next)``; a middleware that
    does not await ``next`` stops the turn before the bot logic runs.
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def use(self, *middleware: Middleware) -> "BotAdapter":
        """Register middleware to run, in order, on every turn."""
        self._middleware.extend(middleware)
        logger.debug(f"Registered {len(middleware)} middleware on {self.__class__.__name__}")
        return self

    async def run_middleware(self, context: TurnContext, logic: Optional[BotLogic] = None) -> None:
        """
        Run the middleware pipeline and then the bot logic for one turn.

        Args:
            context (TurnContext): The turn to process
            logic (Optional[BotLogic]): Bot logic run after all middleware
        """
        async def run(index: int) -> None:
            if index < len(self._middleware):
                await self._middleware[index](context, lambda: run(index + 1))
            elif logic is not None:
                await logic(context)

        await run(0)

    async def send_activities(self, context: TurnContext, activities: List[Activity]) -> List[ResourceResponse]:
        """Send activities to the channel."""
        raise NotImplementedError("Subclasses must implement send_activities")

    async def update_activity(self, context: TurnContext, activity: Activity) -> None:
        """Replace an activity previously sent to the channel."""
        raise NotImplementedError("Subclasses must implement update_activity")

    async def delete_activity(self, context: TurnContext, reference: ConversationReference) -> None:
        """Delete an activity previously sent to the channel."""
        raise NotImplementedError("Subclasses must implement delete_activity")

    async def continue_conversation(self, reference: ConversationReference, logic: BotLogic) -> None:
        """Start a proactive turn in an existing conversation."""
        raise NotImplementedError("Subclasses must implement continue_conversation")
