# adapters/twitter/worker.py
"""
Twitter Bot Worker
==================

A handle for sending messages outside of a webhook turn, for scheduled
messages or alerts triggered by external events.

    bot = await adapter.spawn()
    bot.start_conversation_with_user(USER_ID)
    await bot.say("Howdy human!")
"""

import logging
from typing import List, Optional, Union

from adapters import (
    Activity,
    ChannelAccount,
    ConversationAccount,
    ConversationReference,
    ResourceResponse,
    TurnContext,
)
from adapters.twitter.api import TwitterAPI
from adapters.twitter.translator import TWITTER_DM

logger = logging.getLogger(__name__)

class TwitterBotWorker:
    """
    Bot worker bound to a TwitterAdapter.

    Attributes:
        adapter (TwitterAdapter): The adapter used to send messages
        reference (Optional[ConversationReference]): Current conversation
        api (Optional[TwitterAPI]): Signed client, set by TwitterAdapter.spawn()
    """

    def __init__(self, adapter, reference: Optional[ConversationReference] = None):
        self.adapter = adapter
        self.reference = reference
        self.api: Optional[TwitterAPI] = None

    def start_conversation_with_user(self, user_id: str) -> ConversationReference:
        """
        Switch the worker to a direct message conversation with a user.

        Args:
            user_id (str): Twitter id of the user

        Returns:
            ConversationReference: The new current conversation
        """
        bot_id = self.adapter.options.user_id
        self.reference = ConversationReference(
            channel_id=TWITTER_DM,
            conversation=ConversationAccount(id=str(user_id)),
            user=ChannelAccount(id=str(user_id), name=str(user_id)),
            bot=ChannelAccount(id=bot_id, name=bot_id) if bot_id else None,
        )
        return self.reference

    async def say(self, message: Union[Activity, str]) -> List[ResourceResponse]:
        """
        Send a message in the current conversation.

        Raises:
            ValueError: If no conversation was started
        """
        if self.reference is None:
            raise ValueError("No conversation to send to. Call start_conversation_with_user() first.")

        responses: List[ResourceResponse] = []

        async def deliver(context: TurnContext) -> None:
            response = await context.send_activity(message)
            if response is not None:
                responses.append(response)

        await self.adapter.continue_conversation(self.reference, deliver)
        return responses
