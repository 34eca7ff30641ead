"""
Bot bootstrap: module registry, intent inference, and gateway lifecycle.

Every module is registered twice. The first pass runs against an
``IntentRecorder`` to learn which event categories the bot needs; the
recorded categories are reduced into the intent mask sent to the gateway.
The second pass runs the very same module objects against the live
dispatcher. Registration must therefore subscribe to the same categories on
both passes.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .core.dispatcher import EventDispatcher
from .core.gateway import AutoGateway
from .core.intents import GatewayIntents, IntentRecorder
from .core.rest import RestClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotContext:
    """Read-only handles shared with modules during registration."""

    client: RestClient
    logger: logging.Logger


@runtime_checkable
class BotModule(Protocol):
    """Plugin implementing bot functionality through event subscriptions."""

    def register(self, dispatcher: EventDispatcher, context: BotContext) -> None: ...


RegisterFunction = Callable[[EventDispatcher, BotContext], None]


@dataclass(frozen=True)
class FunctionModule:
    """Adapter turning a plain registration function into a ``BotModule``."""

    function: RegisterFunction

    def register(self, dispatcher: EventDispatcher, context: BotContext) -> None:
        self.function(dispatcher, context)


def log_bot_state(dispatcher: EventDispatcher, context: BotContext) -> None:
    """Built-in module logging session lifecycle events."""

    def _on_ready(_payload: object) -> None:
        context.logger.info("Bot has started and is ready for events")

    def _on_resume(_payload: object) -> None:
        context.logger.info("Bot has resumed a previous websocket session")

    dispatcher.on_ready(_on_ready)
    dispatcher.on_resume(_on_resume)


class BotBase:
    """Ordered module registry with the lifecycle logger pre-installed."""

    def __init__(self) -> None:
        self._modules: list[BotModule] = []
        self._sealed = False
        self.register_module(log_bot_state)

    @property
    def modules(self) -> tuple[BotModule, ...]:
        return tuple(self._modules)

    def register_module(self, module: BotModule | RegisterFunction) -> BotModule:
        """Append a module; plain functions are wrapped once."""
        if self._sealed:
            raise RuntimeError("Modules can only be registered while configuring the bot.")
        if not isinstance(module, BotModule):
            if not callable(module):
                raise TypeError(f"Expected a BotModule or callable, got {type(module).__name__}")
            module = FunctionModule(module)
        self._modules.append(module)
        logger.debug("Registered module %s", module)
        return module

    def seal(self) -> None:
        self._sealed = True


Builder = Callable[[BotBase], None]


def infer_intents(modules: tuple[BotModule, ...], context: BotContext) -> GatewayIntents:
    """Dry-run every module against an ``IntentRecorder`` and reduce the result."""
    recorder = IntentRecorder()
    for module in modules:
        module.register(recorder, context)
    intents = recorder.intents
    logger.info(
        "Computed intents %d from %d categories across %d modules",
        intents,
        len(recorder.categories),
        len(modules),
    )
    return intents


async def bot(token: str, builder: Builder) -> None:
    """
    Build, connect, and run a bot until the gateway closes.

    ``builder`` receives the ``BotBase`` and registers modules on it. The
    call returns once the gateway session ends; SIGINT/SIGTERM end it early.
    """
    base = BotBase()
    builder(base)
    base.seal()
    modules = base.modules

    client = RestClient.default(token)
    try:
        context = BotContext(client=client, logger=logging.getLogger("botkit.bootstrap.lifecycle"))
        intents = infer_intents(modules, context)

        dispatcher = EventDispatcher.build()
        for module in modules:
            module.register(dispatcher, context)
        logger.info("Bound %d handlers", dispatcher.handler_count)

        gateway = AutoGateway(
            token=token,
            intents=intents,
            rest_client=client,
            event_dispatcher=dispatcher,
        )
        remove_handlers = _install_signal_handlers(gateway)
        try:
            await gateway.start()
            await gateway.block()
        finally:
            remove_handlers()
            await gateway.stop()
    finally:
        await client.aclose()


def run_bot(token: str, builder: Builder) -> None:
    """Synchronous wrapper around ``bot`` for scripts."""
    asyncio.run(bot(token, builder))


def _install_signal_handlers(gateway: AutoGateway) -> Callable[[], None]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def _request_shutdown(sig_name: str) -> None:
        logger.info("Received %s - beginning graceful shutdown.", sig_name)
        gateway.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows loops and non-main threads; cancellation still reaches stop().
            logger.debug("Signal handler for %s not installed", sig.name)
            continue
        installed.append(sig)

    def _remove() -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)

    return _remove


__all__ = [
    "BotBase",
    "BotContext",
    "BotModule",
    "FunctionModule",
    "bot",
    "infer_intents",
    "log_bot_state",
    "run_bot",
]
