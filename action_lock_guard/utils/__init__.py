# action_lock_guard/utils/__init__.py

__all__ = [
    "keys",
    "sinks",
]
