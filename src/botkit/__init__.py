"""
botkit - gateway bot framework

Modules declare the events they handle; the bootstrap infers the gateway
intents from those declarations and runs the bot.
"""

__version__ = "0.1.0"

from botkit.bootstrap import BotBase, BotContext, BotModule, FunctionModule, bot, run_bot
from botkit.core.intents import GatewayIntents

__all__ = [
    "BotBase",
    "BotContext",
    "BotModule",
    "FunctionModule",
    "GatewayIntents",
    "bot",
    "run_bot",
]
