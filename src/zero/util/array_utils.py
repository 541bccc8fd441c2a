from __future__ import annotations

import random
from typing import Callable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def get_random_element(items: Sequence[T]) -> T:
    return random.choice(items)


def generate_leaderboard_array(items: Sequence[T], key: Callable[[T], float]) -> List[Tuple[int, T]]:
    """Rank ``items`` by ``key``, highest first.

    Items with equal keys share a place and the following place is skipped,
    so scores 9, 7, 7, 3 are ranked 1, 2, 2, 4.

    Returns:
        List of ``(place, item)`` tuples in ranking order.
    """
    ordered = sorted(items, key=key, reverse=True)
    leaderboard: List[Tuple[int, T]] = []
    previous_score = None
    place = 0
    for index, item in enumerate(ordered, start=1):
        score = key(item)
        if score != previous_score:
            place = index
            previous_score = score
        leaderboard.append((place, item))
    return leaderboard


def array_to_string_fields(
    items: Sequence[T],
    render: Callable[[int, T], str],
    max_length: int = 1012,
) -> List[str]:
    """Concatenate rendered items into chunks no longer than ``max_length``.

    Embed field values are capped at 1024 characters; the default leaves room
    for a trailing marker. An item whose rendering alone exceeds the limit
    becomes a chunk of its own.
    """
    fields: List[str] = []
    current = ""
    for index, item in enumerate(items):
        text = render(index, item)
        if current and len(current) + len(text) > max_length:
            fields.append(current)
            current = ""
        current += text
    if current:
        fields.append(current)
    return fields
