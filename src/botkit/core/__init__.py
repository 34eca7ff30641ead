"""
Core infrastructure: event contracts, the subscription surface, intent
inference, and the REST and gateway transports.
"""

from .contracts import BasePayload, EventCategory, GatewayEvent, ModuleConfig
from .dispatcher import EventDispatcher, LiveEventDispatcher
from .gateway import AutoGateway, GatewayError
from .intents import CATEGORY_INTENTS, GatewayIntents, IntentRecorder, reduce_intents
from .rest import RestClient, RestError

__all__ = [
    "CATEGORY_INTENTS",
    "AutoGateway",
    "BasePayload",
    "EventCategory",
    "EventDispatcher",
    "GatewayError",
    "GatewayEvent",
    "GatewayIntents",
    "IntentRecorder",
    "LiveEventDispatcher",
    "ModuleConfig",
    "RestClient",
    "RestError",
    "reduce_intents",
]
