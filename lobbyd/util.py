from __future__ import annotations

import os


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def short_repr(value, limit: int = 200) -> str:
    """Single-line, truncated repr of a frame for log output."""
    s = " ".join(str(value).split())
    if len(s) > limit:
        s = s[: limit - 3] + "..."
    return s
