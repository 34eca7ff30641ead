"""
Reply to a fixed trigger message.

The inferred intents never include the privileged message content intent, so
guild messages arrive with empty ``content`` unless they mention the bot. The
module therefore answers ``trigger`` as-is in direct messages and
``@bot trigger`` in guild channels. The bot's own user id is taken from READY,
which needs no intent, so a bot running just this module still asks for the
guild and direct message intents and nothing else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

from ..bootstrap import BotContext
from ..core.contracts import Message, ModuleConfig, Ready
from ..core.dispatcher import EventDispatcher
from ..core.rest import RestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PingModule:
    """Answer ``trigger`` with ``response`` in the same channel."""

    name: ClassVar[str] = "modules.ping"

    trigger: str = "!ping"
    response: str = "pong"
    ignore_bots: bool = True

    @classmethod
    def from_config(cls, config: ModuleConfig) -> PingModule:
        options = config.options
        return cls(
            trigger=str(options.get("trigger", cls.trigger)),
            response=str(options.get("response", cls.response)),
            ignore_bots=bool(options.get("ignore_bots", cls.ignore_bots)),
        )

    def matches(self, message: Message, bot_user_id: str | None) -> bool:
        """Return ``True`` when ``message`` asks for a reply."""
        text = message.content.strip()
        if message.guild_id is None:
            return text == self.trigger
        if bot_user_id is None:
            return False
        for mention in (f"<@{bot_user_id}>", f"<@!{bot_user_id}>"):
            if text.startswith(mention):
                return text[len(mention) :].strip() == self.trigger
        return False

    def register(self, dispatcher: EventDispatcher, context: BotContext) -> None:
        bot_user: dict[str, str] = {}

        def on_ready(ready: Ready) -> None:
            bot_user["id"] = ready.user.id

        async def on_message(message: Message) -> None:
            if self.ignore_bots and message.author.bot:
                return
            if not self.matches(message, bot_user.get("id")):
                return
            try:
                await context.client.create_message(message.channel_id, self.response)
            except RestError as exc:
                logger.warning(
                    "Failed to answer %s in %s: %s", self.trigger, message.channel_id, exc
                )

        dispatcher.on_ready(on_ready)
        dispatcher.on_message_create(on_message)
