# action_lock_guard/ports/__init__.py

__all__ = [
    "context",
    "database",
    "lock",
    "sink",
]
