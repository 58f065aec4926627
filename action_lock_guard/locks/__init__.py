# action_lock_guard/locks/__init__.py

__all__ = [
    "file",
    "memory",
]
