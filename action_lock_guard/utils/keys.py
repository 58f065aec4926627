# action_lock_guard/utils/keys.py

import hashlib
import re

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def lock_file_name(key: str) -> str:
    """
    File name for a lock key: readable prefix plus md5 of the full key.
    Keys may hold any characters and be up to a few hundred symbols long.
    """
    digest = hashlib.md5(key.encode("utf-8")).hexdigest()
    prefix = _SAFE_NAME_RE.sub("_", key)[:40].strip("_.")
    return f"{prefix}.{digest}.lock" if prefix else f"{digest}.lock"
