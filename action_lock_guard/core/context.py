# action_lock_guard/core/context.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class ActionContext:
    """
    Default operation context handed to the guard by a dispatcher.

    - `route` identifies the operation and is the default lock key.
    - `proceed` is the gate the guard flips to False to reject the run.
    - `params` carries whatever a custom key function needs (user id, args...).
    """
    route: str | None = None
    proceed: bool = True
    params: dict[str, Any] = field(default_factory=dict)
