"""Handler and condition reference validation and resolution.

A reference is either a service name, resolved through the injected
``resolve`` callable, or an object that already exposes the required method.
Route references are resolved when the route is registered. Middleware and
dispatchers seeded on a dispatch context are resolved as the chain reaches them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .errors import (
    InvalidCondition,
    InvalidMiddleware,
    UnresolvableCondition,
    UnresolvableHandler,
)
from .protocols import Condition, ConditionRef, Handler, HandlerRef, Resolver


def _has_method(obj: Any, name: str) -> bool:
    return callable(getattr(obj, name, None))


def is_handler_ref(ref: Any) -> bool:
    """True for a service name or an object with a callable ``dispatch``."""
    return isinstance(ref, str) or _has_method(ref, "dispatch")


def is_condition_ref(ref: Any) -> bool:
    """True for a service name or an object with a callable ``is_valid``."""
    return isinstance(ref, str) or _has_method(ref, "is_valid")


def _flatten(items: Any) -> list[Any]:
    """Normalize absent / single / sequence / mapping shapes into a flat list."""
    if items is None:
        return []
    if isinstance(items, str):
        return [items]
    if isinstance(items, Mapping):
        return _flatten(list(items.values()))
    if isinstance(items, (list, tuple)):
        flat: list[Any] = []
        for item in items:
            if isinstance(item, (list, tuple)):
                flat.extend(_flatten(item))
            elif item is not None:
                flat.append(item)
        return flat
    return [items]


def normalize_middleware(*groups: Any) -> list[HandlerRef]:
    """Flatten middleware groups into an ordered list of handler references.

    Each group may be absent, a single reference, a list/tuple of references
    or a mapping whose values are references.

    Raises:
        InvalidMiddleware: An element is neither a name nor a handler object.
    """
    middleware: list[HandlerRef] = []
    for group in groups:
        for ref in _flatten(group):
            if not is_handler_ref(ref):
                raise InvalidMiddleware(
                    "Expected middleware to be service names or handler objects",
                    detail=f"Invalid middleware type {type(ref).__name__!r}",
                )
            middleware.append(ref)
    return middleware


def normalize_conditions(conditions: Any) -> list[ConditionRef]:
    """Flatten conditions into an ordered list of condition references.

    Raises:
        InvalidCondition: An element is neither a name nor a condition object.
    """
    refs = _flatten(conditions)
    for ref in refs:
        if not is_condition_ref(ref):
            raise InvalidCondition(
                "Expected conditions to be service names or condition objects",
                detail=f"Invalid condition type {type(ref).__name__!r}",
            )
    return refs


def describe(ref: Any) -> str:
    """Short label for a reference, used in logs and error details."""
    if isinstance(ref, str):
        return ref
    return type(ref).__name__


def resolve_handler(ref: HandlerRef, resolve: Resolver) -> Handler:
    """Turn a handler reference into an object with a callable ``dispatch``.

    Raises:
        UnresolvableHandler: The resolved object lacks ``dispatch``.
    """
    handler = resolve(ref) if isinstance(ref, str) else ref
    if not _has_method(handler, "dispatch"):
        raise UnresolvableHandler(
            "Contract expectation failed",
            detail=f"Method 'dispatch' on handler {describe(ref)!r} is not callable",
        )
    return handler


def resolve_condition(ref: ConditionRef, resolve: Resolver) -> Condition:
    """Turn a condition reference into an object with a callable ``is_valid``.

    Raises:
        UnresolvableCondition: The resolved object lacks ``is_valid``.
    """
    condition = resolve(ref) if isinstance(ref, str) else ref
    if not _has_method(condition, "is_valid"):
        raise UnresolvableCondition(
            "Contract expectation failed",
            detail=f"Method 'is_valid' on condition {describe(ref)!r} is not callable",
        )
    return condition


__all__ = [
    "describe",
    "is_condition_ref",
    "is_handler_ref",
    "normalize_conditions",
    "normalize_middleware",
    "resolve_condition",
    "resolve_handler",
]
