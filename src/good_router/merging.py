"""Pure value transforms used to compose route data safely."""

from __future__ import annotations

import copy
from collections.abc import Mapping, MutableMapping
from typing import Any, TypeVar

T = TypeVar("T")


def clone(value: T) -> T:
    """Deep copy ``value`` so later external mutation cannot leak in."""
    return copy.deepcopy(value)


def merge_unique(target: list[Any], items: Any) -> list[Any]:
    """Append every item of ``items`` not already in ``target``, in order."""
    for item in items:
        if item not in target:
            target.append(item)
    return target


def deep_merge(target: MutableMapping[str, Any], source: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Merge ``source`` into ``target`` in place and return ``target``.

    Nested mappings merge key by key, lists merge as an ordered union, and any
    other value in ``source`` replaces the one in ``target``. Values taken from
    ``source`` are deep-copied.
    """
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, MutableMapping) and isinstance(value, Mapping):
            deep_merge(current, value)
        elif isinstance(current, list) and isinstance(value, (list, tuple)):
            merge_unique(current, clone(list(value)))
        else:
            target[key] = clone(value)
    return target


__all__ = ["clone", "deep_merge", "merge_unique"]
