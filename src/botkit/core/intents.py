"""
Gateway intents and their inference from module subscriptions.

``IntentRecorder`` implements the same surface as the live dispatcher but
never binds anything; registering every module against it yields the set of
event categories the bot needs. ``reduce_intents`` turns that set into the
intent mask sent with IDENTIFY.
"""

from __future__ import annotations

import functools
import logging
import operator
from collections.abc import Iterable
from enum import IntFlag

from .contracts import EventCategory
from .dispatcher import EventDispatcher, H

logger = logging.getLogger(__name__)


class GatewayIntents(IntFlag):
    """Intent bits for gateway v10."""

    GUILDS = 1 << 0
    GUILD_MEMBERS = 1 << 1
    GUILD_MODERATION = 1 << 2
    GUILD_EMOJIS_AND_STICKERS = 1 << 3
    GUILD_INTEGRATIONS = 1 << 4
    GUILD_WEBHOOKS = 1 << 5
    GUILD_INVITES = 1 << 6
    GUILD_VOICE_STATES = 1 << 7
    GUILD_PRESENCES = 1 << 8
    GUILD_MESSAGES = 1 << 9
    GUILD_MESSAGE_REACTIONS = 1 << 10
    GUILD_MESSAGE_TYPING = 1 << 11
    DIRECT_MESSAGES = 1 << 12
    DIRECT_MESSAGE_REACTIONS = 1 << 13
    DIRECT_MESSAGE_TYPING = 1 << 14
    MESSAGE_CONTENT = 1 << 15
    GUILD_SCHEDULED_EVENTS = 1 << 16
    AUTO_MODERATION_CONFIGURATION = 1 << 20
    AUTO_MODERATION_EXECUTION = 1 << 21

    PRIVILEGED = GUILD_MEMBERS | GUILD_PRESENCES | MESSAGE_CONTENT
    NON_PRIVILEGED = (
        GUILDS
        | GUILD_MODERATION
        | GUILD_EMOJIS_AND_STICKERS
        | GUILD_INTEGRATIONS
        | GUILD_WEBHOOKS
        | GUILD_INVITES
        | GUILD_VOICE_STATES
        | GUILD_MESSAGES
        | GUILD_MESSAGE_REACTIONS
        | GUILD_MESSAGE_TYPING
        | DIRECT_MESSAGES
        | DIRECT_MESSAGE_REACTIONS
        | DIRECT_MESSAGE_TYPING
        | GUILD_SCHEDULED_EVENTS
        | AUTO_MODERATION_CONFIGURATION
        | AUTO_MODERATION_EXECUTION
    )


_MESSAGES = GatewayIntents.GUILD_MESSAGES | GatewayIntents.DIRECT_MESSAGES
_REACTIONS = GatewayIntents.GUILD_MESSAGE_REACTIONS | GatewayIntents.DIRECT_MESSAGE_REACTIONS
_TYPING = GatewayIntents.GUILD_MESSAGE_TYPING | GatewayIntents.DIRECT_MESSAGE_TYPING

# Categories missing from this table (READY, RESUMED, INTERACTION_CREATE,
# USER_UPDATE) are delivered without any intent.
CATEGORY_INTENTS: dict[EventCategory, GatewayIntents] = {
    EventCategory.GUILD_CREATE: GatewayIntents.GUILDS,
    EventCategory.GUILD_UPDATE: GatewayIntents.GUILDS,
    EventCategory.GUILD_DELETE: GatewayIntents.GUILDS,
    EventCategory.GUILD_ROLE_CREATE: GatewayIntents.GUILDS,
    EventCategory.GUILD_ROLE_UPDATE: GatewayIntents.GUILDS,
    EventCategory.GUILD_ROLE_DELETE: GatewayIntents.GUILDS,
    EventCategory.CHANNEL_CREATE: GatewayIntents.GUILDS,
    EventCategory.CHANNEL_UPDATE: GatewayIntents.GUILDS,
    EventCategory.CHANNEL_DELETE: GatewayIntents.GUILDS,
    EventCategory.THREAD_CREATE: GatewayIntents.GUILDS,
    EventCategory.THREAD_UPDATE: GatewayIntents.GUILDS,
    EventCategory.THREAD_DELETE: GatewayIntents.GUILDS,
    EventCategory.GUILD_MEMBER_ADD: GatewayIntents.GUILD_MEMBERS,
    EventCategory.GUILD_MEMBER_UPDATE: GatewayIntents.GUILD_MEMBERS,
    EventCategory.GUILD_MEMBER_REMOVE: GatewayIntents.GUILD_MEMBERS,
    EventCategory.GUILD_BAN_ADD: GatewayIntents.GUILD_MODERATION,
    EventCategory.GUILD_BAN_REMOVE: GatewayIntents.GUILD_MODERATION,
    EventCategory.GUILD_EMOJIS_UPDATE: GatewayIntents.GUILD_EMOJIS_AND_STICKERS,
    EventCategory.GUILD_INTEGRATIONS_UPDATE: GatewayIntents.GUILD_INTEGRATIONS,
    EventCategory.WEBHOOKS_UPDATE: GatewayIntents.GUILD_WEBHOOKS,
    EventCategory.INVITE_CREATE: GatewayIntents.GUILD_INVITES,
    EventCategory.INVITE_DELETE: GatewayIntents.GUILD_INVITES,
    EventCategory.VOICE_STATE_UPDATE: GatewayIntents.GUILD_VOICE_STATES,
    EventCategory.PRESENCE_UPDATE: GatewayIntents.GUILD_PRESENCES,
    EventCategory.MESSAGE_CREATE: _MESSAGES,
    EventCategory.MESSAGE_UPDATE: _MESSAGES,
    EventCategory.MESSAGE_DELETE: _MESSAGES,
    EventCategory.MESSAGE_DELETE_BULK: GatewayIntents.GUILD_MESSAGES,
    EventCategory.MESSAGE_REACTION_ADD: _REACTIONS,
    EventCategory.MESSAGE_REACTION_REMOVE: _REACTIONS,
    EventCategory.MESSAGE_REACTION_REMOVE_ALL: _REACTIONS,
    EventCategory.TYPING_START: _TYPING,
}


def intent_for(category: EventCategory) -> GatewayIntents | None:
    """Return the intent required for ``category`` or ``None`` if it needs none."""
    return CATEGORY_INTENTS.get(category)


class IntentRecorder(EventDispatcher):
    """Dry-run dispatcher that records subscribed categories without binding callbacks."""

    def __init__(self) -> None:
        self._categories: set[EventCategory] = set()

    def subscribe(self, category: EventCategory, handler: H) -> H:
        self.record(category)
        return handler

    def record(self, category: EventCategory) -> None:
        self._categories.add(category)

    @property
    def categories(self) -> frozenset[EventCategory]:
        return frozenset(self._categories)

    @property
    def intents(self) -> GatewayIntents:
        return reduce_intents(self._categories)


def reduce_intents(categories: Iterable[EventCategory]) -> GatewayIntents:
    """
    Join the intents required by ``categories`` with bitwise OR.

    Falls back to ``GatewayIntents.NON_PRIVILEGED`` when no category needs an
    intent, so the result is always a mask the gateway accepts.
    """
    required = [intent for intent in map(intent_for, categories) if intent is not None]
    if not required:
        logger.debug("No intents recorded; using the non-privileged default.")
        return GatewayIntents.NON_PRIVILEGED
    return functools.reduce(operator.or_, required)
