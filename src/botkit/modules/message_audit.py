"""
Audit trail for edited and deleted messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from ..bootstrap import BotContext
from ..core.contracts import GatewayEvent, MessageDelete, MessageUpdate, ModuleConfig
from ..core.dispatcher import EventDispatcher


@dataclass(frozen=True)
class MessageAuditModule:
    """Log message edits and deletions, optionally limited to some guilds."""

    name: ClassVar[str] = "modules.message_audit"

    guild_ids: frozenset[str] = field(default_factory=frozenset)
    include_bulk: bool = True

    @classmethod
    def from_config(cls, config: ModuleConfig) -> MessageAuditModule:
        options = config.options
        guild_ids = options.get("guild_ids") or []
        return cls(
            guild_ids=frozenset(str(guild_id) for guild_id in guild_ids),
            include_bulk=bool(options.get("include_bulk", True)),
        )

    def _watching(self, guild_id: str | None) -> bool:
        return not self.guild_ids or guild_id in self.guild_ids

    def register(self, dispatcher: EventDispatcher, context: BotContext) -> None:
        log = context.logger

        def on_update(message: MessageUpdate) -> None:
            if not self._watching(message.guild_id):
                return
            log.info("Message %s edited in channel %s", message.id, message.channel_id)

        def on_delete(message: MessageDelete) -> None:
            if not self._watching(message.guild_id):
                return
            log.info("Message %s deleted in channel %s", message.id, message.channel_id)

        dispatcher.on_message_update(on_update)
        dispatcher.on_message_delete(on_delete)

        if self.include_bulk:

            def on_bulk_delete(event: GatewayEvent) -> None:
                data = event.model_dump()
                if not self._watching(data.get("guild_id")):
                    return
                log.info(
                    "%d messages bulk deleted in channel %s",
                    len(data.get("ids") or []),
                    data.get("channel_id"),
                )

            dispatcher.on_message_delete_bulk(on_bulk_delete)
