"""Router core implementation.

This module contains the Router class, the facade over route registration,
match accumulation and chain execution.

CONTENTS:
- Router: Registration API (set, set_routes, delete) and dispatch API
  (dispatch, dispatch_sync)

DISPATCH FLOW:
1. Normalize the event and the dispatch context
2. Walk the route table in insertion order, accumulating params, middleware
   and the trace until the first terminal route
3. Execute middleware + dispatcher as a re-entrant chain
4. Return the context, or raise DispatchFailed wrapping the cause

THREAD SAFETY: Registration is lock-protected. Each dispatch owns its context
and chain state, so concurrent dispatches on one event loop are independent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterator, Mapping
from typing import Any, Literal

from .chain import ChainState, ChainStatus
from .config import RouterConfig
from .context import DispatchContext, Event, coerce_event, dispatch_ctx, normalize_context
from .errors import DispatchFailed
from .matching import accumulate
from .protocols import Resolver, RouteId
from .registration import Route, RouteTable
from .tracing import DispatchTracer

logger = logging.getLogger(__name__)


def _criteria_of(event: Any) -> Any:
    if isinstance(event, Mapping):
        return event.get("criteria")
    return getattr(event, "criteria", None)


class Router:
    """
    In-process event router with multi-route accumulation and onion middleware.

    PURPOSE: Match an event's criteria against every registered route pattern,
    collect params and middleware from all matching routes up to the first
    terminal one, then run the resulting handler chain.

    LIFECYCLE:
    1. Initialization: Router created with a resolver and optional RouterConfig
    2. Registration: Routes added via set() / set_routes(), patterns compiled and
       handler names resolved once
    3. Dispatch: dispatch() matches, builds the chain and executes it
    4. Result: The DispatchContext is returned, carrying route.trace and state

    TYPICAL USAGE:
    ```python
    locator = Locator()
    router = Router(locator.locate)

    locator.set("auth", AuthMiddleware())
    locator.set("show-user", ShowUser())

    router.set_routes(
        {
            "authenticated": {"criteria": "/user/*", "middleware": "auth"},
            "show-user": {"criteria": "/user/:id", "dispatcher": "show-user"},
        }
    )

    ctx = await router.dispatch({"criteria": "/user/42"})
    ctx.route.trace  # ["authenticated", "show-user"]
    ```

    ERROR HANDLING:
    - Registration errors (InvalidRoute, InvalidMiddleware, ...) raise immediately
    - Every dispatch failure is raised as DispatchFailed, chained to its cause
    - A handler failure is recovered only by that handler's own on_error
    - Cancellation via context.abortion is not an error; dispatch still returns

    RELATED CLASSES:
    - RouteTable: Insertion-ordered route storage
    - DispatchContext: Per-dispatch state handed to handlers
    - ChainState: Re-entrant executor exposed as context.chain
    """

    def __init__(
        self,
        resolve: Resolver,
        config: RouterConfig | None = None,
        *,
        debug: bool | None = None,
        event_trace: bool | None = None,
    ):
        """
        Initialize Router.

        Args:
            resolve: Callable turning a service name into a handler or condition
            config: Router options; defaults to RouterConfig()
            debug: Override config.debug
            event_trace: Override config.event_trace
        """
        if not callable(resolve):
            raise TypeError(f"resolve must be callable, got {type(resolve).__name__!r}")

        overrides = {
            key: value
            for key, value in (("debug", debug), ("event_trace", event_trace))
            if value is not None
        }
        self._config = (config or RouterConfig()).model_copy(update=overrides)
        self._resolve = resolve
        self._debug = self._config.debug
        self._routes = RouteTable(resolve, self._config.separators, debug=self._debug)
        self._tracer = DispatchTracer(
            enabled=self._config.event_trace,
            verbosity=self._config.trace_verbosity,
            use_rich=self._config.trace_use_rich,
        )
        if self._config.event_trace:
            logger.debug("Dispatch tracing enabled")

    @property
    def config(self) -> RouterConfig:
        return self._config

    @property
    def routes(self) -> RouteTable:
        """The underlying route table."""
        return self._routes

    # Registration

    def set(
        self,
        id: RouteId,
        route: Mapping[str, Any] | Literal[False],
        separators: str | None = None,
    ) -> None:
        """Register ``route`` under ``id``; ``False`` deletes ``id`` instead.

        Args:
            id: Unique route identifier
            route: Mapping with a string ``criteria`` and optional
                ``dispatcher``, ``middleware``, ``conditions`` and
                ``separators``; any other keys become route details
            separators: Separators used when the route declares none

        Raises:
            InvalidRoute: Duplicate id, missing criteria or malformed config.
            InvalidMiddleware: A middleware element has the wrong type.
            InvalidCondition: A condition element has the wrong type.
            UnresolvableHandler: A middleware or the dispatcher lacks ``dispatch``.
            UnresolvableCondition: A condition lacks ``is_valid``.
        """
        self._routes.set(id, route, separators)

    def set_routes(
        self,
        routes: Mapping[RouteId, Mapping[str, Any] | Literal[False]],
        separators: str | None = None,
    ) -> None:
        """Register every route of ``routes`` in order.

        Raises:
            InvalidRoutesType: ``routes`` is not a mapping.
        """
        self._routes.set_routes(routes, separators)

    def delete(self, id: RouteId) -> bool:
        """Remove a route; returns False when it was not registered."""
        return self._routes.delete(id)

    def get(self, id: RouteId) -> Route | None:
        return self._routes.get(id)

    def __contains__(self, id: object) -> bool:
        return id in self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[RouteId]:
        return iter(self._routes)

    # Tracing

    def set_event_trace(
        self, enabled: bool, verbosity: int = 1, use_rich: bool = True
    ) -> None:
        """
        Enable or disable dispatch tracing.

        Args:
            enabled: Whether to trace dispatches
            verbosity: Level of detail (0=minimal, 1=normal, 2=verbose)
            use_rich: Whether to use Rich formatting for output
        """
        self._tracer.configure(enabled, verbosity, use_rich)

    @property
    def event_trace_enabled(self) -> bool:
        return self._tracer.enabled

    @property
    def ctx(self) -> DispatchContext:
        """Context of the dispatch currently running."""
        ctx = dispatch_ctx.get()
        if ctx is None:
            raise RuntimeError("No dispatch context available")
        return ctx

    # Dispatch

    async def dispatch(
        self,
        event: Event | Mapping[str, Any],
        context: DispatchContext | Mapping[str, Any] | None = None,
    ) -> DispatchContext:
        """
        Match ``event`` against the route table and run the handler chain.

        Args:
            event: Event, or a mapping with a ``criteria`` key
            context: Optional DispatchContext (or mapping) to seed the dispatch,
                e.g. with a pre-aborted controller or initial state

        Returns:
            The dispatch context, carrying ``route.trace``, ``state`` and the
            finished ``chain``

        Raises:
            DispatchFailed: Any failure during normalization, matching or
                execution; the underlying error is its ``__cause__``.
        """
        start_time = time.perf_counter()
        criteria = _criteria_of(event)
        chain: ChainState | None = None
        token = None

        try:
            event = coerce_event(event)
            context = normalize_context(context)
            context.event = event
            token = dispatch_ctx.set(context)

            await accumulate(self._routes.entries(), event, context)

            chain = ChainState(
                [*context.route.middleware, context.route.dispatcher],
                event,
                context,
                self._resolve,
                debug=self._debug,
            )
            context.bind_chain(chain)
            status = await chain.run()

        except Exception as reason:
            if self._debug:
                logger.exception(f"Failed to dispatch {criteria!r}")
            self._trace(criteria, event, context, chain, start_time, ChainStatus.FAILED, reason)
            raise DispatchFailed(f"Failed to dispatch {criteria!r}") from reason

        finally:
            if token is not None:
                dispatch_ctx.reset(token)

        if status is ChainStatus.ABORTED:
            logger.debug(
                f"Dispatch of {criteria!r} aborted after {chain.index} of "
                f"{len(chain.handlers)} handler(s)"
            )
        self._trace(criteria, event, context, chain, start_time, status)
        return context

    def dispatch_sync(
        self,
        event: Event | Mapping[str, Any],
        context: DispatchContext | Mapping[str, Any] | None = None,
    ) -> DispatchContext:
        """Run :meth:`dispatch` to completion from synchronous code.

        Raises:
            RuntimeError: Called while an event loop is running in this thread.
            DispatchFailed: As for :meth:`dispatch`.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.dispatch(event, context))
        raise RuntimeError(
            "dispatch_sync() cannot be called from a running event loop; "
            "await dispatch() instead"
        )

    def _trace(
        self,
        criteria: Any,
        event: Any,
        context: Any,
        chain: ChainState | None,
        start_time: float,
        status: ChainStatus,
        error: BaseException | None = None,
    ) -> None:
        if not self._tracer.enabled:
            return
        self._tracer.emit(
            str(criteria),
            handler_count=len(chain.handlers) if chain else 0,
            status=status.value,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            params=event.param if isinstance(event, Event) else None,
            trace=context.route.trace if isinstance(context, DispatchContext) else None,
            error=error,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(routes={list(self._routes)!r})"


__all__ = ["Router"]
