# action_lock_guard/db/__init__.py

__all__ = [
    "client",
    "lock",
]
