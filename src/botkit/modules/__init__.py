"""
Bundled feature modules.

Each module is an immutable object exposing ``register(dispatcher, context)``
and a ``from_config`` constructor used by the CLI manifest.
"""

from .member_log import MemberLogModule
from .message_audit import MessageAuditModule
from .ping import PingModule

__all__ = [
    "MemberLogModule",
    "MessageAuditModule",
    "PingModule",
]
