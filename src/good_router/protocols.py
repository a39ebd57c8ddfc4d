"""Capability protocols and type aliases shared across the router.

Handlers and conditions are duck-typed: the router checks for the required
method, never for a base class.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from .context import DispatchContext, Event
    from .registration import Route

RouteId: TypeAlias = str
Criteria: TypeAlias = str


@runtime_checkable
class Handler(Protocol):
    """Anything with a ``dispatch`` method; sync or async."""

    def dispatch(self, event: Event, context: DispatchContext) -> Any: ...


@runtime_checkable
class RecoveringHandler(Handler, Protocol):
    """A handler that recovers locally from its own ``dispatch`` failures."""

    def on_error(
        self, error: Exception, event: Event, context: DispatchContext
    ) -> Any: ...


@runtime_checkable
class Condition(Protocol):
    """Extra predicate a matched route must satisfy."""

    def is_valid(self, event: Event, route: Route) -> bool | Awaitable[bool]: ...


@runtime_checkable
class AbortSignal(Protocol):
    """Minimal cancellation contract read by the chain executor."""

    aborted: bool
    reason: Any


HandlerRef: TypeAlias = "str | Handler"
ConditionRef: TypeAlias = "str | Condition"

Resolver: TypeAlias = Callable[[str], Any]
"""Turns a service name into the object registered under it."""
