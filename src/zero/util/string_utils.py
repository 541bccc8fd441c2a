"""String helpers used when building embeds and matching in-game names."""

from __future__ import annotations

import re
from collections import Counter
from typing import Any

_WHITESPACE = re.compile(r"\s+")
_NON_LETTERS = re.compile(r"[^A-Za-z]")
_DURATION = re.compile(r"^(\d+)\s*([smhdw])$", re.IGNORECASE)

_DURATION_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


class StringBuilder:
    """Chainable text builder for embed descriptions and field values."""

    def __init__(self, initial: Any = "") -> None:
        self._parts: list[str] = [str(initial)] if initial != "" else []

    def append(self, value: Any) -> "StringBuilder":
        self._parts.append(str(value))
        return self

    def append_line(self, count: int = 1) -> "StringBuilder":
        self._parts.append("\n" * count)
        return self

    def reverse(self) -> "StringBuilder":
        self._parts = [self.str()[::-1]]
        return self

    @property
    def length(self) -> int:
        return len(self.str())

    def str(self) -> str:
        return "".join(self._parts)

    def __str__(self) -> str:
        return self.str()


def compare_two_strings(first: str, second: str) -> float:
    """Return the Dice coefficient of the character bigrams of two strings.

    Whitespace is ignored. The result is 1.0 for identical strings and 0.0 when
    either string is too short to have a bigram.
    """
    first = _WHITESPACE.sub("", first)
    second = _WHITESPACE.sub("", second)

    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    bigrams = Counter(first[i:i + 2] for i in range(len(first) - 1))
    intersection = 0
    for i in range(len(second) - 1):
        bigram = second[i:i + 2]
        if bigrams[bigram] > 0:
            bigrams[bigram] -= 1
            intersection += 1

    return (2.0 * intersection) / (len(first) + len(second) - 2)


def strip_non_letters(text: str) -> str:
    return _NON_LETTERS.sub("", text)


def apply_code_block(text: Any, language: str = "") -> str:
    return f"```{language}\n{text}```"


def parse_duration(text: str) -> int | None:
    """Parse ``30m``, ``2h``, ``1d``, ``45s`` or ``1w`` into seconds.

    Returns None if ``text`` is not a duration.
    """
    match = _DURATION.match(text.strip())
    if not match:
        return None
    return int(match.group(1)) * _DURATION_SECONDS[match.group(2).lower()]


def format_duration(seconds: int) -> str:
    """Render a number of seconds the way :func:`parse_duration` reads them back."""
    for suffix, size in (("w", 604800), ("d", 86400), ("h", 3600), ("m", 60)):
        if seconds >= size and seconds % size == 0:
            return f"{seconds // size}{suffix}"
    return f"{seconds}s"
