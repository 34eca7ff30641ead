"""
Event subscription surface and the asyncio dispatcher behind it.

Modules are written against ``EventDispatcher`` only. Every ``on_*`` method
funnels into ``subscribe``, so any subclass that implements ``subscribe``
supports the whole surface: the live dispatcher binds callbacks, the intent
recorder in ``botkit.core.intents`` only notes the category.
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import ValidationError

from .contracts import BasePayload, EventCategory, parse_payload

logger = logging.getLogger(__name__)


Handler = Callable[[Any], Awaitable[None] | None]
H = TypeVar("H", bound=Handler)


class EventDispatcher(abc.ABC):
    """Abstract subscription surface with one registration method per category."""

    @classmethod
    def build(cls) -> LiveEventDispatcher:
        """Construct the live dispatcher used for the real registration pass."""
        return LiveEventDispatcher()

    @abc.abstractmethod
    def subscribe(self, category: EventCategory, handler: H) -> H:
        """Register ``handler`` for ``category`` and return it unchanged."""

    # Lifecycle

    def on_ready(self, handler: H) -> H:
        return self.subscribe(EventCategory.READY, handler)

    def on_resume(self, handler: H) -> H:
        return self.subscribe(EventCategory.RESUMED, handler)

    # Guilds

    def on_guild_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_CREATE, handler)

    def on_guild_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_UPDATE, handler)

    def on_guild_delete(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_DELETE, handler)

    def on_guild_role_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_ROLE_CREATE, handler)

    def on_guild_role_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_ROLE_UPDATE, handler)

    def on_guild_role_delete(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_ROLE_DELETE, handler)

    def on_channel_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.CHANNEL_CREATE, handler)

    def on_channel_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.CHANNEL_UPDATE, handler)

    def on_channel_delete(self, handler: H) -> H:
        return self.subscribe(EventCategory.CHANNEL_DELETE, handler)

    def on_thread_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.THREAD_CREATE, handler)

    def on_thread_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.THREAD_UPDATE, handler)

    def on_thread_delete(self, handler: H) -> H:
        return self.subscribe(EventCategory.THREAD_DELETE, handler)

    # Members and moderation

    def on_guild_member_add(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_MEMBER_ADD, handler)

    def on_guild_member_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_MEMBER_UPDATE, handler)

    def on_guild_member_remove(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_MEMBER_REMOVE, handler)

    def on_guild_ban_add(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_BAN_ADD, handler)

    def on_guild_ban_remove(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_BAN_REMOVE, handler)

    # Guild resources

    def on_guild_emojis_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_EMOJIS_UPDATE, handler)

    def on_guild_integrations_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.GUILD_INTEGRATIONS_UPDATE, handler)

    def on_webhooks_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.WEBHOOKS_UPDATE, handler)

    def on_invite_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.INVITE_CREATE, handler)

    def on_invite_delete(self, handler: H) -> H:
        return self.subscribe(EventCategory.INVITE_DELETE, handler)

    def on_voice_state_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.VOICE_STATE_UPDATE, handler)

    def on_presence_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.PRESENCE_UPDATE, handler)

    # Messages

    def on_message_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_CREATE, handler)

    def on_message_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_UPDATE, handler)

    def on_message_delete(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_DELETE, handler)

    def on_message_delete_bulk(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_DELETE_BULK, handler)

    def on_message_reaction_add(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_REACTION_ADD, handler)

    def on_message_reaction_remove(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_REACTION_REMOVE, handler)

    def on_message_reaction_remove_all(self, handler: H) -> H:
        return self.subscribe(EventCategory.MESSAGE_REACTION_REMOVE_ALL, handler)

    def on_typing_start(self, handler: H) -> H:
        return self.subscribe(EventCategory.TYPING_START, handler)

    # Misc

    def on_interaction_create(self, handler: H) -> H:
        return self.subscribe(EventCategory.INTERACTION_CREATE, handler)

    def on_user_update(self, handler: H) -> H:
        return self.subscribe(EventCategory.USER_UPDATE, handler)


class LiveEventDispatcher(EventDispatcher):
    """
    Dispatcher that binds callbacks and fans gateway events out to them.

    Each handler runs in its own task so slow callbacks never stall the
    gateway reader. Failures are logged and do not reach the gateway.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventCategory, list[Handler]] = defaultdict(list)
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._dispatched_total = 0

    def subscribe(self, category: EventCategory, handler: H) -> H:
        self._handlers[category].append(handler)
        logger.debug("Bound handler %s to %s", handler, category.value)
        return handler

    @property
    def categories(self) -> frozenset[EventCategory]:
        """Categories with at least one bound handler."""
        return frozenset(category for category, handlers in self._handlers.items() if handlers)

    @property
    def handler_count(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())

    @property
    def dispatched_total(self) -> int:
        return self._dispatched_total

    async def dispatch(self, event_name: str, data: dict[str, Any] | None) -> int:
        """
        Schedule every handler bound to ``event_name``.

        Returns the number of handler tasks created. Unknown event names and
        payloads that fail validation are logged and skipped.
        """
        try:
            category = EventCategory(event_name)
        except ValueError:
            logger.debug("Ignoring unknown gateway event %s", event_name)
            return 0
        handlers = list(self._handlers.get(category, []))
        if not handlers:
            return 0
        try:
            payload = parse_payload(category, data)
        except ValidationError:
            logger.exception("Discarding malformed %s payload.", event_name)
            return 0
        logger.debug("Dispatching %s to %d handlers", event_name, len(handlers))
        for handler in handlers:
            task = asyncio.create_task(self._call_handler(handler, payload))
            self._handler_tasks.add(task)

            def _on_done(t: asyncio.Task[None], _event: str = event_name) -> None:
                self._handler_tasks.discard(t)
                if t.cancelled():
                    return
                exc = t.exception()
                if exc is not None:
                    logger.error("Handler failed on %s", _event, exc_info=exc)

            task.add_done_callback(_on_done)
        self._dispatched_total += 1
        return len(handlers)

    async def close(self) -> None:
        """Wait for in-flight handler tasks to finish."""
        if not self._handler_tasks:
            return
        pending = list(self._handler_tasks)
        self._handler_tasks.clear()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Dispatcher drained %d handler tasks.", len(pending))

    async def _call_handler(self, handler: Handler, payload: BasePayload) -> None:
        result = handler(payload)
        if inspect.isawaitable(result):
            await result
