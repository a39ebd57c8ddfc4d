"""Criteria pattern compilation.

A criteria string is split on runs of separator characters and every segment
is mapped to a regular expression fragment::

    "/user/:id"      -> named capture ``id`` of one or more non-separators
    "/files/*.json"  -> ``*`` matches one or more non-separators
    "/static/about"  -> literal segments

The fragments are joined by a one-or-more-separators group and anchored at
both ends, so ``"/a/*"`` matches ``"/a/b"`` but not ``"/a/b/c"``.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field

DEFAULT_SEPARATORS = "/"


@dataclass(frozen=True, slots=True)
class Matcher:
    """Compiled, immutable matcher for one criteria pattern."""

    criteria: str
    separators: str
    regex: re.Pattern[str] = field(repr=False, compare=False)

    def match(self, subject: str) -> dict[str, str] | None:
        """Return the named captures when ``subject`` matches, else ``None``."""
        found = self.regex.match(subject)
        if found is None:
            return None
        return found.groupdict()


def _separator_class(separators: str) -> str:
    return "[" + "".join(re.escape(char) for char in separators) + "]"


def _map_segment(segment: str, not_separator: str) -> str:
    if segment.startswith(":"):
        return f"(?P<{segment[1:]}>{not_separator}+)"
    if "*" in segment:
        wildcard = f"(?:{not_separator}+)"
        return wildcard.join(re.escape(part) for part in segment.split("*"))
    return re.escape(segment)


@functools.lru_cache(maxsize=1024)
def compile_pattern(criteria: str, separators: str = DEFAULT_SEPARATORS) -> Matcher:
    """Compile ``criteria`` into a :class:`Matcher`.

    Args:
        criteria: Pattern source, e.g. ``"/user/:id"``.
        separators: Characters that delimit segments; any run of them counts
            as a single boundary.

    Raises:
        ValueError: ``separators`` is empty.
        re.error: The pattern cannot be compiled, e.g. a capture name that is
            not a valid identifier or is used twice.
    """
    if not separators:
        raise ValueError("separators must contain at least one character")

    separator = _separator_class(separators) + "+"
    not_separator = "[^" + _separator_class(separators)[1:]

    segments = re.split(separator, criteria)
    body = separator.join(_map_segment(segment, not_separator) for segment in segments)

    return Matcher(
        criteria=criteria,
        separators=separators,
        regex=re.compile(rf"\A{body}\Z"),
    )


__all__ = ["DEFAULT_SEPARATORS", "Matcher", "compile_pattern"]
