# action_lock_guard/__init__.py

from action_lock_guard.core.action_guard import ActionGuard, LockTicket
from action_lock_guard.core.context import ActionContext

__all__ = [
    "ActionGuard",
    "ActionContext",
    "LockTicket",
]
