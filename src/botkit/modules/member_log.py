"""
Log members joining and leaving guilds.

Member events sit behind the privileged ``GUILD_MEMBERS`` intent, which has
to be enabled for the application before the gateway will accept it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from ..bootstrap import BotContext
from ..core.contracts import GuildMember, GuildMemberRemove, ModuleConfig
from ..core.dispatcher import EventDispatcher


@dataclass(frozen=True)
class MemberLogModule:
    name: ClassVar[str] = "modules.member_log"

    include_updates: bool = False

    @classmethod
    def from_config(cls, config: ModuleConfig) -> MemberLogModule:
        return cls(include_updates=bool(config.options.get("include_updates", False)))

    def register(self, dispatcher: EventDispatcher, context: BotContext) -> None:
        log = context.logger

        def on_join(member: GuildMember) -> None:
            log.info(
                "Member %s (%s) joined guild %s",
                member.user.username,
                member.user.id,
                member.guild_id,
            )

        def on_leave(member: GuildMemberRemove) -> None:
            log.info(
                "Member %s (%s) left guild %s",
                member.user.username,
                member.user.id,
                member.guild_id,
            )

        dispatcher.on_guild_member_add(on_join)
        dispatcher.on_guild_member_remove(on_leave)

        if self.include_updates:

            def on_update(member: GuildMember) -> None:
                log.info(
                    "Member %s updated in guild %s (roles=%s)",
                    member.user.id,
                    member.guild_id,
                    member.roles,
                )

            dispatcher.on_guild_member_update(on_update)
