# action_lock_guard/core/__init__.py

__all__ = [
    "action_guard",
    "context",
]
