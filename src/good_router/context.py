"""Events, dispatch contexts and cooperative cancellation.

A :class:`DispatchContext` is created (or normalized from caller input) at the
start of every ``Router.dispatch`` call and handed to each handler in the
chain. It carries the merged view of the matched routes, the cancellation
controller, a free-form ``state`` dict for handlers to share data, and the
read-only chain state exposing ``next()``.
"""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import (
    ChainAlreadyBound,
    InvalidAbortionType,
    InvalidContextType,
    InvalidMiddleware,
)
from .protocols import AbortSignal, HandlerRef, RouteId
from .resolution import describe, is_handler_ref, normalize_middleware

if TYPE_CHECKING:
    from .chain import ChainState

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Event:
    """The routed event.

    ``criteria`` is the match subject; ``param`` collects the named captures
    of every matched route, later matches overwriting earlier ones.
    """

    criteria: str
    param: dict[str, str] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> Event:
        """Build an event from ``{"criteria": ..., "param": ..., **data}``.

        A mutable mapping shares its ``param`` dict with the event, so the
        captures of a dispatch are visible in the caller's mapping.
        """
        data = {
            key: value for key, value in values.items() if key not in ("criteria", "param")
        }
        param = values.get("param")
        if not isinstance(param, dict):
            param = dict(param or {})
            if isinstance(values, MutableMapping):
                values["param"] = param
        return cls(
            criteria=values.get("criteria"),  # type: ignore[arg-type]
            param=param,
            data=data,
        )


def coerce_event(event: Event | Mapping[str, Any]) -> Event:
    """Accept an :class:`Event` or a mapping and return an :class:`Event`.

    Raises:
        TypeError: The event is neither, or its criteria is not a string.
    """
    if isinstance(event, Mapping):
        event = Event.from_mapping(event)
    elif not isinstance(event, Event):
        raise TypeError(f"Expected an Event or a mapping, got {type(event).__name__!r}")

    if not isinstance(event.criteria, str):
        raise TypeError(
            f"Expected event criteria to be a string, got {type(event.criteria).__name__!r}"
        )
    return event


class AbortController:
    """Cooperative cancellation flag with a reason.

    Aborting only prevents handlers that have not started yet from running;
    a handler already executing is never interrupted.
    """

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._listeners: list[Callable[[AbortController], None]] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def abort(self, reason: Any = None) -> None:
        """Set the flag and notify listeners; later calls are ignored."""
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        for listener in list(self._listeners):
            listener(self)

    def add_listener(self, listener: Callable[[AbortController], None]) -> None:
        """Call ``listener(controller)`` once the controller is aborted."""
        self._listeners.append(listener)

    def __repr__(self) -> str:
        return f"AbortController(aborted={self._aborted!r}, reason={self._reason!r})"


@dataclass(slots=True)
class RouteView:
    """Merged view of every route matched during one dispatch."""

    middleware: list[HandlerRef] = field(default_factory=list)
    dispatcher: HandlerRef | None = None
    trace: list[RouteId] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DispatchContext:
    """Per-dispatch scratch space handed to every handler.

    ``chain`` is read-only and can be bound exactly once, so a context
    belongs to a single dispatch.
    """

    route: RouteView = field(default_factory=RouteView)
    abortion: AbortSignal | None = None
    state: dict[str, Any] = field(default_factory=dict)
    event: Event | None = None
    _chain: ChainState | None = field(default=None, init=False, repr=False)

    @property
    def chain(self) -> ChainState:
        """Executor state; ``await context.chain.next()`` runs the rest of the chain."""
        if self._chain is None:
            raise RuntimeError("The dispatch chain has not been bound to this context")
        return self._chain

    @property
    def has_chain(self) -> bool:
        return self._chain is not None

    def bind_chain(self, chain: ChainState) -> None:
        """Attach the executor state.

        Raises:
            ChainAlreadyBound: The context was already used by a dispatch.
        """
        if self._chain is not None:
            raise ChainAlreadyBound(
                "Dispatch context is already bound to a chain",
                detail="A context cannot be reused across dispatches",
            )
        self._chain = chain


# Context variable for the context of the dispatch currently running
dispatch_ctx: contextvars.ContextVar[DispatchContext | None] = contextvars.ContextVar(
    "dispatch_ctx", default=None
)


def _log_abort(controller: AbortController) -> None:
    logger.warning(f"Unable to dispatch: aborted (reason={controller.reason!r})")


def _route_view(route: Any) -> RouteView:
    if route is None:
        return RouteView()
    if isinstance(route, RouteView):
        return route
    if isinstance(route, Mapping):
        return RouteView(
            middleware=list(route.get("middleware") or []),
            dispatcher=route.get("dispatcher"),
            trace=list(route.get("trace") or []),
            details=dict(route.get("details") or {}),
        )
    raise InvalidContextType(
        "Expected context route to be a mapping",
        detail=f"Invalid route type {type(route).__name__!r}",
    )


def normalize_context(context: DispatchContext | Mapping[str, Any] | None) -> DispatchContext:
    """Return a context with validated middleware and a cancellation controller.

    Args:
        context: None, an existing :class:`DispatchContext`, or a mapping with
            optional ``route``, ``abortion`` and ``state`` keys

    Raises:
        InvalidContextType: ``context`` has an unsupported type.
        ChainAlreadyBound: ``context`` was already used by a dispatch.
        InvalidMiddleware: A pre-seeded middleware or dispatcher is invalid.
        InvalidAbortionType: The supplied controller lacks ``aborted``/``reason``.
    """
    if context is None:
        context = DispatchContext()
    elif isinstance(context, Mapping):
        context = DispatchContext(
            route=_route_view(context.get("route")),
            abortion=context.get("abortion"),
            state=dict(context.get("state") or {}),
        )
    elif not isinstance(context, DispatchContext):
        raise InvalidContextType(
            "Expected context to be a DispatchContext or a mapping",
            detail=f"Invalid context type {type(context).__name__!r}",
        )
    elif context.has_chain:
        raise ChainAlreadyBound(
            "Dispatch context is already bound to a chain",
            detail="A context cannot be reused across dispatches",
        )

    context.route.middleware = normalize_middleware(context.route.middleware)

    dispatcher = context.route.dispatcher
    if dispatcher is not None and not is_handler_ref(dispatcher):
        raise InvalidMiddleware(
            "Expected the pre-seeded dispatcher to be a service name or handler object",
            detail=f"Invalid dispatcher type {describe(dispatcher)!r}",
        )

    if context.abortion is None:
        controller = AbortController()
        controller.add_listener(_log_abort)
        context.abortion = controller
    elif not isinstance(context.abortion, AbortSignal):
        raise InvalidAbortionType(
            "Expecting context abortion to expose 'aborted' and 'reason'",
            detail=f"Invalid abortion type {type(context.abortion).__name__!r}",
        )

    return context


__all__ = [
    "AbortController",
    "DispatchContext",
    "Event",
    "RouteView",
    "coerce_event",
    "dispatch_ctx",
    "normalize_context",
]
