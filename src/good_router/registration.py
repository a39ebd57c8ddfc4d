"""Route records and the insertion-ordered route table.

CONTENTS:
- Route: Normalized, immutable route record
- RouteEntry: A route paired with its compiled matcher
- RouteTable: Thread-safe, insertion-ordered id -> RouteEntry store

ORDERING: Matching walks the table in insertion order. Several non-terminal
routes can therefore contribute middleware, in the order they were
registered, before a terminal route supplies the dispatcher.

RESOLUTION: Middleware, dispatcher and condition names are resolved when the
route is registered, so an unknown or malformed service fails ``set()``.

THREAD SAFETY: Registration operations are protected by threading.RLock.
Dispatch reads a snapshot from ``entries()``; interleaving registration with
in-flight dispatches reading the same id is the caller's responsibility.
"""

from __future__ import annotations

import copy
import logging
import re
import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from .errors import InvalidRoute, InvalidRoutesType
from .merging import clone
from .pattern import DEFAULT_SEPARATORS, Matcher, compile_pattern
from .protocols import Condition, Handler, Resolver, RouteId
from .resolution import (
    describe,
    is_handler_ref,
    normalize_conditions,
    normalize_middleware,
    resolve_condition,
    resolve_handler,
)

logger = logging.getLogger(__name__)

# keys consumed by normalization; everything else lands in Route.details
_ROUTE_KEYS = frozenset(
    {
        "criteria",
        "dispatcher",
        "middleware",
        "middlewares",
        "conditions",
        "separators",
        "separator",
    }
)


@dataclass(frozen=True, slots=True)
class Route:
    """Normalized route record.

    Attributes:
        id: Unique route identifier
        criteria: Pattern source the event criteria is matched against
        separators: Segment separator characters used to compile ``criteria``
        middleware: Ordered handlers contributed on match
        dispatcher: Terminal handler, or None for a filter route
        conditions: Conditions that must all pass on match
        details: Any other keys of the route config, deep-copied
    """

    id: RouteId
    criteria: str
    separators: str = DEFAULT_SEPARATORS
    middleware: tuple[Handler, ...] = ()
    dispatcher: Handler | None = None
    conditions: tuple[Condition, ...] = ()
    details: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_terminal(self) -> bool:
        """True when matching this route ends the walk."""
        return self.dispatcher is not None


@dataclass(frozen=True, slots=True)
class RouteEntry:
    """A route together with its matcher, compiled once at registration."""

    route: Route
    matcher: Matcher


def build_route(
    id: RouteId, config: Any, resolve: Resolver, separators: str | None = None
) -> RouteEntry:
    """Validate and normalize a route config into a :class:`RouteEntry`.

    Args:
        id: Route identifier
        config: Mapping with a string ``criteria`` and optional ``dispatcher``,
            ``middleware``/``middlewares``, ``conditions`` and
            ``separators``/``separator`` keys
        resolve: Turns a service name into the object registered under it
        separators: Fallback separators when the config declares none

    Raises:
        InvalidRoute: Config is not a mapping, criteria is not a string, the
            dispatcher reference is invalid or the pattern does not compile.
        InvalidMiddleware: A middleware element has the wrong type.
        InvalidCondition: A condition element has the wrong type.
        UnresolvableHandler: A middleware or the dispatcher lacks ``dispatch``.
        UnresolvableCondition: A condition lacks ``is_valid``.
        Exception: Whatever ``resolve`` raises for an unknown name.
    """
    if not isinstance(config, Mapping):
        raise InvalidRoute(
            f"Expecting route {id!r} to be a mapping",
            detail=f"Invalid route type {type(config).__name__!r}",
        )

    criteria = config.get("criteria")
    if not isinstance(criteria, str):
        raise InvalidRoute(
            f"Expecting route {id!r} to have a string 'criteria'",
            detail=f"Invalid route criteria type {type(criteria).__name__!r}",
        )

    dispatcher = config.get("dispatcher")
    if dispatcher is not None and not is_handler_ref(dispatcher):
        raise InvalidRoute(
            f"Expecting route {id!r} to have a valid 'dispatcher'",
            detail=f"Invalid dispatcher type {type(dispatcher).__name__!r}",
        )

    middleware = normalize_middleware(config.get("middlewares"), config.get("middleware"))
    conditions = normalize_conditions(config.get("conditions"))

    middleware = [resolve_handler(ref, resolve) for ref in middleware]
    if dispatcher is not None:
        dispatcher = resolve_handler(dispatcher, resolve)
    conditions = [resolve_condition(ref, resolve) for ref in conditions]

    route_separators = (
        config.get("separators")
        or config.get("separator")
        or separators
        or DEFAULT_SEPARATORS
    )

    try:
        matcher = compile_pattern(criteria, route_separators)
    except (re.error, ValueError, TypeError) as e:
        raise InvalidRoute(
            f"Unable to compile criteria of route {id!r}",
            detail=f"{criteria!r}: {e}",
        ) from e

    details = {key: value for key, value in config.items() if key not in _ROUTE_KEYS}
    try:
        details = clone(details)
    except (TypeError, copy.Error) as e:
        raise InvalidRoute(
            f"Unable to copy the details of route {id!r}",
            detail=str(e),
        ) from e

    route = Route(
        id=id,
        criteria=criteria,
        separators=route_separators,
        middleware=tuple(middleware),
        dispatcher=dispatcher,
        conditions=tuple(conditions),
        details=MappingProxyType(details),
    )
    return RouteEntry(route=route, matcher=matcher)


class RouteTable:
    """Insertion-ordered mapping of route id to :class:`RouteEntry`.

    Registering an id twice fails; registering ``False`` deletes the id.
    Failed registrations leave the table unchanged.
    """

    def __init__(
        self,
        resolve: Resolver,
        separators: str = DEFAULT_SEPARATORS,
        debug: bool = False,
    ):
        """
        Args:
            resolve: Turns handler and condition names into objects
            separators: Default separators for routes that declare none
            debug: Enable debug logging for registration operations
        """
        self._lock = threading.RLock()
        self._entries: dict[RouteId, RouteEntry] = {}
        self._resolve = resolve
        self._separators = separators
        self._debug = debug

    def set(
        self,
        id: RouteId,
        config: Mapping[str, Any] | Literal[False],
        separators: str | None = None,
    ) -> None:
        """Register ``config`` under ``id``, or delete ``id`` when ``config`` is False.

        Raises:
            InvalidRoute: ``id`` already exists or ``config`` is malformed.
            InvalidMiddleware: A middleware element has the wrong type.
            InvalidCondition: A condition element has the wrong type.
            UnresolvableHandler: A middleware or the dispatcher lacks ``dispatch``.
            UnresolvableCondition: A condition lacks ``is_valid``.
        """
        if config is False:
            self.delete(id)
            return

        with self._lock:
            if id in self._entries:
                raise InvalidRoute(f"Route {id!r} already exists")

            entry = build_route(id, config, self._resolve, separators or self._separators)
            self._entries[id] = entry

        if self._debug:
            route = entry.route
            logger.debug(
                f"Registered route {id!r} criteria={route.criteria!r} "
                f"middleware={[describe(ref) for ref in route.middleware]} "
                f"dispatcher={describe(route.dispatcher) if route.is_terminal else None}"
            )

    def set_routes(
        self,
        routes: Mapping[RouteId, Mapping[str, Any] | Literal[False]],
        separators: str | None = None,
    ) -> None:
        """Call :meth:`set` for every pair of ``routes``, in order.

        Raises:
            InvalidRoutesType: ``routes`` is not a mapping.
        """
        if not isinstance(routes, Mapping):
            raise InvalidRoutesType(
                "Routes must be a mapping of route id to route config",
                detail=f"Invalid routes type {type(routes).__name__!r}",
            )

        for id, config in routes.items():
            self.set(id, config, separators)

    def delete(self, id: RouteId) -> bool:
        """Remove ``id``; returns False when it was not registered."""
        with self._lock:
            removed = self._entries.pop(id, None) is not None

        if removed and self._debug:
            logger.debug(f"Deleted route {id!r}")
        return removed

    def get(self, id: RouteId) -> Route | None:
        with self._lock:
            entry = self._entries.get(id)
        return entry.route if entry else None

    def entries(self) -> list[RouteEntry]:
        """Snapshot of all entries in insertion order."""
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, id: object) -> bool:
        with self._lock:
            return id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[RouteId]:
        with self._lock:
            return iter(list(self._entries))


__all__ = ["Route", "RouteEntry", "RouteTable", "build_route"]
