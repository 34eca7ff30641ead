"""
Contracts and payload schemas for gateway events.

Event categories are the names the gateway uses in the ``t`` field of a
dispatch payload. Each category has a pydantic model that handlers receive;
categories without a dedicated model are delivered as ``GatewayEvent``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventCategory(str, Enum):
    """Named class of realtime gateway events."""

    READY = "READY"
    RESUMED = "RESUMED"
    GUILD_CREATE = "GUILD_CREATE"
    GUILD_UPDATE = "GUILD_UPDATE"
    GUILD_DELETE = "GUILD_DELETE"
    GUILD_ROLE_CREATE = "GUILD_ROLE_CREATE"
    GUILD_ROLE_UPDATE = "GUILD_ROLE_UPDATE"
    GUILD_ROLE_DELETE = "GUILD_ROLE_DELETE"
    CHANNEL_CREATE = "CHANNEL_CREATE"
    CHANNEL_UPDATE = "CHANNEL_UPDATE"
    CHANNEL_DELETE = "CHANNEL_DELETE"
    THREAD_CREATE = "THREAD_CREATE"
    THREAD_UPDATE = "THREAD_UPDATE"
    THREAD_DELETE = "THREAD_DELETE"
    GUILD_MEMBER_ADD = "GUILD_MEMBER_ADD"
    GUILD_MEMBER_UPDATE = "GUILD_MEMBER_UPDATE"
    GUILD_MEMBER_REMOVE = "GUILD_MEMBER_REMOVE"
    GUILD_BAN_ADD = "GUILD_BAN_ADD"
    GUILD_BAN_REMOVE = "GUILD_BAN_REMOVE"
    GUILD_EMOJIS_UPDATE = "GUILD_EMOJIS_UPDATE"
    GUILD_INTEGRATIONS_UPDATE = "GUILD_INTEGRATIONS_UPDATE"
    WEBHOOKS_UPDATE = "WEBHOOKS_UPDATE"
    INVITE_CREATE = "INVITE_CREATE"
    INVITE_DELETE = "INVITE_DELETE"
    VOICE_STATE_UPDATE = "VOICE_STATE_UPDATE"
    PRESENCE_UPDATE = "PRESENCE_UPDATE"
    MESSAGE_CREATE = "MESSAGE_CREATE"
    MESSAGE_UPDATE = "MESSAGE_UPDATE"
    MESSAGE_DELETE = "MESSAGE_DELETE"
    MESSAGE_DELETE_BULK = "MESSAGE_DELETE_BULK"
    MESSAGE_REACTION_ADD = "MESSAGE_REACTION_ADD"
    MESSAGE_REACTION_REMOVE = "MESSAGE_REACTION_REMOVE"
    MESSAGE_REACTION_REMOVE_ALL = "MESSAGE_REACTION_REMOVE_ALL"
    TYPING_START = "TYPING_START"
    INTERACTION_CREATE = "INTERACTION_CREATE"
    USER_UPDATE = "USER_UPDATE"


class BasePayload(BaseModel):
    """Base class for all gateway event payloads."""

    model_config = ConfigDict(extra="allow", frozen=True)


class GatewayEvent(BasePayload):
    """Fallback payload for categories without a dedicated schema."""


class User(BasePayload):
    id: str
    username: str = Field(default="")
    bot: bool = Field(default=False)


class Ready(BasePayload):
    """Session established; first dispatch after IDENTIFY."""

    v: int = Field(default=10, description="Gateway protocol version.")
    user: User
    session_id: str
    guilds: list[dict[str, Any]] = Field(default_factory=list)
    resume_gateway_url: str | None = Field(default=None)


class Resumed(BasePayload):
    """Previous session replayed successfully."""


class Message(BasePayload):
    id: str
    channel_id: str
    guild_id: str | None = Field(default=None)
    author: User
    content: str = Field(default="")
    timestamp: str | None = Field(default=None)


class MessageUpdate(BasePayload):
    """Partial message; only ``id`` and ``channel_id`` are guaranteed."""

    id: str
    channel_id: str
    guild_id: str | None = Field(default=None)
    author: User | None = Field(default=None)
    content: str | None = Field(default=None)


class MessageDelete(BasePayload):
    id: str
    channel_id: str
    guild_id: str | None = Field(default=None)


class MessageReaction(BasePayload):
    user_id: str
    channel_id: str
    message_id: str
    guild_id: str | None = Field(default=None)
    emoji: dict[str, Any] = Field(default_factory=dict)


class GuildMember(BasePayload):
    guild_id: str
    user: User
    nick: str | None = Field(default=None)
    roles: list[str] = Field(default_factory=list)


class GuildMemberRemove(BasePayload):
    guild_id: str
    user: User


class TypingStart(BasePayload):
    channel_id: str
    user_id: str
    guild_id: str | None = Field(default=None)
    timestamp: int = Field(default=0)


EVENT_PAYLOADS: dict[EventCategory, type[BasePayload]] = {
    EventCategory.READY: Ready,
    EventCategory.RESUMED: Resumed,
    EventCategory.MESSAGE_CREATE: Message,
    EventCategory.MESSAGE_UPDATE: MessageUpdate,
    EventCategory.MESSAGE_DELETE: MessageDelete,
    EventCategory.MESSAGE_REACTION_ADD: MessageReaction,
    EventCategory.MESSAGE_REACTION_REMOVE: MessageReaction,
    EventCategory.GUILD_MEMBER_ADD: GuildMember,
    EventCategory.GUILD_MEMBER_UPDATE: GuildMember,
    EventCategory.GUILD_MEMBER_REMOVE: GuildMemberRemove,
    EventCategory.TYPING_START: TypingStart,
}


def parse_payload(category: EventCategory, data: dict[str, Any] | None) -> BasePayload:
    """Validate raw dispatch data into the payload model for ``category``."""
    model = EVENT_PAYLOADS.get(category, GatewayEvent)
    return model.model_validate(data or {})


class ModuleConfig(BaseModel):
    """Baseline configuration contract applied to bundled modules."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = Field(default=True)
    options: dict[str, Any] = Field(
        default_factory=dict, description="Arbitrary module configuration."
    )
