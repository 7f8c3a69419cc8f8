"""
Text Processing Utilities for Tags and Vocabulary

This module provides pure list/string functions for:
- Case-insensitive deduplication (first-seen casing wins)
- Case-insensitive membership filtering
- Exact-match list editing (remove then append)
- Half-up rounding (the pool quota rounds .5 upwards)

These are standalone functions (not class methods) for easy reuse
across the tag normalizer, the profile sampler and the vocabulary pool.
"""

import math
from typing import Iterable, List


def remove_case_insensitive_duplicates(items: Iterable[str]) -> List[str]:
    """
    Drop later items whose lowercase form was already seen.

    Insertion order and the casing of the first occurrence are preserved:
        ["a", "A", "b"] -> ["a", "b"]

    Args:
        items: Strings (non-strings are compared via str())

    Returns:
        New list without case-variant duplicates
    """
    seen = set()
    result = []
    for item in items:
        key = str(item).lower()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def exclude_case_insensitive(items: Iterable[str], excluded: Iterable[str]) -> List[str]:
    """Items whose lowercase form is not in `excluded` (compared lowercase)"""
    blocked = {str(word).lower() for word in excluded}
    return [item for item in items if str(item).lower() not in blocked]


def edit_words(words: Iterable[str], to_remove: Iterable[str], to_add: Iterable[str] = ()) -> List[str]:
    """
    Remove exact matches of `to_remove`, then append `to_add` items not already present.

    Matching is exact (stored casing), as on the words page.
    """
    removed = set(to_remove)
    result = [word for word in words if word not in removed]
    for word in to_add:
        if word not in result:
            result.append(word)
    return result


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3, not 2)"""
    return int(math.floor(value + 0.5))
