"""Match accumulation across every route of the table.

Routes are tested in insertion order. Each fully matched route merges its
named captures into ``event.param``, appends its id to the trace and its
middleware to the accumulated list. The walk stops at the first matched route
that declares a dispatcher.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable

from .context import DispatchContext, Event
from .errors import NoDispatcher
from .merging import deep_merge, merge_unique
from .registration import Route, RouteEntry

logger = logging.getLogger(__name__)


async def conditions_pass(route: Route, event: Event) -> bool:
    """True when every condition of ``route`` accepts ``event``.

    Conditions are evaluated in order and short-circuit on the first refusal.
    """
    for condition in route.conditions:
        result = condition.is_valid(event, route)
        if inspect.isawaitable(result):
            result = await result
        if not result:
            return False
    return True


async def accumulate(
    entries: Iterable[RouteEntry],
    event: Event,
    context: DispatchContext,
) -> DispatchContext:
    """Merge every matching route into ``event`` and ``context.route``.

    Raises:
        NoDispatcher: No terminal route matched and no dispatcher was
            pre-seeded on the context.
    """
    view = context.route

    for entry in entries:
        route = entry.route
        captures = entry.matcher.match(event.criteria)
        if captures is None:
            continue
        if route.conditions and not await conditions_pass(route, event):
            logger.debug(f"Route {route.id!r} matched {event.criteria!r} but a condition refused it")
            continue

        event.param.update(captures)
        merge_unique(view.trace, [route.id])
        merge_unique(view.middleware, route.middleware)
        if route.details:
            deep_merge(view.details, route.details)

        if route.is_terminal:
            view.dispatcher = route.dispatcher
            break

    if view.dispatcher is None:
        raise NoDispatcher(
            f"No dispatcher found for {event.criteria!r}",
            detail=(
                f"No dispatcher found in any of the matched routes: {' → '.join(view.trace)}"
                if view.trace
                else "No route matched the criteria"
            ),
        )

    return context


__all__ = ["accumulate", "conditions_pass"]
