"""Re-entrant chain executor.

The chain is the accumulated middleware followed by the terminal dispatcher.
A single cursor is shared by every call to :meth:`ChainState.next`, which
gives the onion layering::

    class Timing:
        async def dispatch(self, event, context):
            started = time.perf_counter()
            await context.chain.next()       # everything downstream runs here
            context.state["elapsed"] = time.perf_counter() - started

Code before ``next()`` runs before the downstream handlers, code after it
runs once they have all completed. A handler that never calls ``next()``
still lets the walk continue once it returns. Since the cursor is shared, the
downstream sequence runs at most once: calling ``next()`` again, or the outer
walk resuming after an explicit ``next()``, finds the cursor exhausted and
does nothing.

STATES: IDLE -> RUNNING -> COMPLETED | ABORTED | FAILED
"""

from __future__ import annotations

import enum
import inspect
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .protocols import HandlerRef, Resolver
from .resolution import describe, resolve_handler

if TYPE_CHECKING:
    from .context import DispatchContext, Event

logger = logging.getLogger(__name__)


class ChainStatus(enum.Enum):
    """Lifecycle of one chain execution."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ChainState:
    """Cursor, finalized handler sequence and ``next`` continuation.

    Bound once to a :class:`DispatchContext` as its read-only ``chain``.
    """

    __slots__ = ("_context", "_cursor", "_debug", "_event", "_handlers", "_resolve", "_status")

    def __init__(
        self,
        handlers: Sequence[HandlerRef],
        event: Event,
        context: DispatchContext,
        resolve: Resolver,
        debug: bool = False,
    ):
        self._handlers: tuple[HandlerRef, ...] = tuple(handlers)
        self._event = event
        self._context = context
        self._resolve = resolve
        self._debug = debug
        self._cursor = 0
        self._status = ChainStatus.IDLE

    @property
    def handlers(self) -> tuple[HandlerRef, ...]:
        """Middleware references followed by the dispatcher reference."""
        return self._handlers

    @property
    def index(self) -> int:
        """Number of handlers pulled from the sequence so far."""
        return self._cursor

    @property
    def status(self) -> ChainStatus:
        return self._status

    @property
    def remaining(self) -> int:
        return len(self._handlers) - self._cursor

    def _pull(self) -> HandlerRef | None:
        if self._cursor >= len(self._handlers):
            return None
        ref = self._handlers[self._cursor]
        self._cursor += 1
        return ref

    def _aborted(self) -> bool:
        abortion = self._context.abortion
        return abortion is not None and bool(abortion.aborted)

    async def next(self) -> bool:
        """Run the remaining handlers in order.

        Returns:
            True if at least one handler was invoked by this call, False when
            the sequence was already exhausted or the dispatch was aborted.

        Raises:
            Exception: The first handler failure not recovered by ``on_error``.
        """
        ran = False
        while self.remaining:
            if self._aborted():
                self._status = ChainStatus.ABORTED
                logger.warning(
                    f"Chain aborted before {describe(self._handlers[self._cursor])!r} "
                    f"(reason={self._context.abortion.reason!r}, "  # type: ignore[union-attr]
                    f"{self.remaining} handler(s) skipped)"
                )
                break

            ref = self._pull()
            ran = True
            await self._invoke(ref)  # type: ignore[arg-type]
        return ran

    async def _invoke(self, ref: HandlerRef) -> None:
        handler = resolve_handler(ref, self._resolve)
        try:
            await _maybe_await(handler.dispatch(self._event, self._context))
        except Exception as e:
            on_error = getattr(handler, "on_error", None)
            if not callable(on_error):
                raise
            if self._debug:
                logger.exception(f"Handler {describe(ref)!r} failed; recovering with on_error")
            await _maybe_await(on_error(e, self._event, self._context))

    async def run(self) -> ChainStatus:
        """Execute the chain from the start and return its terminal status."""
        self._status = ChainStatus.RUNNING
        try:
            await self.next()
        except Exception:
            self._status = ChainStatus.FAILED
            raise

        if self._status is ChainStatus.RUNNING:
            self._status = ChainStatus.COMPLETED
        return self._status

    def __repr__(self) -> str:
        return (
            f"ChainState(status={self._status.value!r}, index={self._cursor}, "
            f"handlers={[describe(ref) for ref in self._handlers]})"
        )


__all__ = ["ChainState", "ChainStatus"]
