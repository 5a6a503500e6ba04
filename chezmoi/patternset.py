"""Sets of include and exclude glob patterns."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache


class BadPatternError(ValueError):
    """Raised when a glob pattern is malformed."""


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    """Read one character of a character class at i, handling escapes."""
    if i >= len(pattern) or pattern[i] in "-]":
        raise BadPatternError(pattern)
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            raise BadPatternError(pattern)
    return pattern[i], i + 1


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "*":
            parts.append("[^/]*")
            i += 1
        elif c == "?":
            parts.append("[^/]")
            i += 1
        elif c == "\\":
            if i + 1 >= len(pattern):
                raise BadPatternError(pattern)
            parts.append(re.escape(pattern[i + 1]))
            i += 2
        elif c == "[":
            i += 1
            if i >= len(pattern):
                raise BadPatternError(pattern)
            negated = pattern[i] == "^"
            if negated:
                i += 1
            ranges: list[str] = []
            count = 0
            while True:
                if i < len(pattern) and pattern[i] == "]" and count > 0:
                    i += 1
                    break
                lo, i = _class_char(pattern, i)
                hi = lo
                if i < len(pattern) and pattern[i] == "-":
                    hi, i = _class_char(pattern, i + 1)
                count += 1
                if lo <= hi:
                    ranges.append(f"{re.escape(lo)}-{re.escape(hi)}")
            if not ranges:
                parts.append("(?s:.)" if negated else "(?!)")
            else:
                parts.append(("[^" if negated else "[") + "".join(ranges) + "]")
        else:
            parts.append(re.escape(c))
            i += 1
    return re.compile("".join(parts), re.DOTALL)


def glob_match(pattern: str, name: str) -> bool:
    """Return whether name matches the shell glob pattern.

    ``*`` and ``?`` do not match ``/``. Raises BadPatternError for a
    malformed pattern.
    """
    return _compile(pattern).fullmatch(name) is not None


@dataclass
class PatternSet:
    """A set of include and exclude patterns."""

    includes: set[str] = field(default_factory=set)
    excludes: set[str] = field(default_factory=set)

    def add(self, pattern: str, include: bool) -> None:
        """Add pattern; malformed patterns are silently dropped."""
        try:
            glob_match(pattern, "")
        except BadPatternError:
            return
        (self.includes if include else self.excludes).add(pattern)

    def match(self, name: str) -> bool:
        """Return whether name matches an include and no exclude pattern."""
        if any(glob_match(pattern, name) for pattern in self.excludes):
            return False
        return any(glob_match(pattern, name) for pattern in self.includes)