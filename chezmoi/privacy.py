"""Deciding whether a path is private."""

from __future__ import annotations

import os


def is_private(path: str | os.PathLike) -> bool:
    """Return whether path has no group or other permissions."""
    return os.stat(path).st_mode & 0o077 == 0