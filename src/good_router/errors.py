"""Exception taxonomy for route registration and dispatch.

Every error carries a stable ``code`` string so callers can branch on the
failure kind without importing the class, plus an optional ``detail`` with a
human readable explanation. Wrapped causes are chained with ``raise ... from``
and exposed again through :attr:`RouterError.cause`.

Registration errors are raised synchronously by ``Router.set`` and
``Router.set_routes``. Anything that goes wrong during ``Router.dispatch`` is
re-raised as :class:`DispatchFailed`.
"""

from __future__ import annotations

from typing import ClassVar


class RouterError(Exception):
    """Base class for every error raised by the router."""

    code: ClassVar[str] = "E_ROUTER"

    def __init__(self, message: str, *, detail: str | None = None):
        super().__init__(message)
        self.detail = detail

    @property
    def cause(self) -> BaseException | None:
        """The wrapped exception, if this error was raised from another."""
        return self.__cause__

    def __str__(self) -> str:
        message = str(self.args[0]) if self.args else ""
        if self.detail:
            return f"{message} ({self.detail})"
        return message


class InvalidRoute(RouterError, ValueError):
    """Malformed route config, missing criteria or duplicate route id."""

    code = "E_ROUTER_INVALID_ROUTE"


class InvalidRoutesType(RouterError, TypeError):
    """``set_routes`` received something other than a mapping."""

    code = "E_ROUTER_INVALID_ROUTES_TYPE"


class InvalidMiddleware(RouterError, TypeError):
    """A middleware element is neither a name nor a handler object."""

    code = "E_ROUTER_INVALID_MIDDLEWARE"


class InvalidCondition(RouterError, TypeError):
    """A condition element is neither a name nor a condition object."""

    code = "E_ROUTER_INVALID_CONDITION"


class UnresolvableHandler(RouterError, TypeError):
    """The resolved handler does not expose a callable ``dispatch``."""

    code = "E_ROUTER_UNRESOLVABLE_HANDLER"


class UnresolvableCondition(RouterError, TypeError):
    """The resolved condition does not expose a callable ``is_valid``."""

    code = "E_ROUTER_UNRESOLVABLE_CONDITION"


class NoDispatcher(RouterError, LookupError):
    """No terminal route matched the event criteria."""

    code = "E_ROUTER_DISPATCH_NO_DISPATCHER"


class DispatchFailed(RouterError):
    """Wraps any failure raised while normalizing, matching or executing."""

    code = "E_ROUTER_DISPATCH_FAILED"


class InvalidAbortionType(RouterError, TypeError):
    """The supplied cancellation controller lacks ``aborted``/``reason``."""

    code = "E_ROUTER_INVALID_META_ABORTION_TYPE"


class InvalidContextType(RouterError, TypeError):
    """The supplied dispatch context is not a mapping or DispatchContext."""

    code = "E_ROUTER_INVALID_CONTEXT_TYPE"


class ChainAlreadyBound(RouterError, RuntimeError):
    """A dispatch context was handed to ``dispatch`` a second time."""

    code = "E_ROUTER_CHAIN_ALREADY_BOUND"


class ServiceNotLoaded(RouterError, KeyError):
    """``Locator.locate`` was asked for a name it does not hold."""

    code = "E_LOCATOR_LOCATE"


__all__ = [
    "RouterError",
    "InvalidRoute",
    "InvalidRoutesType",
    "InvalidMiddleware",
    "InvalidCondition",
    "UnresolvableHandler",
    "UnresolvableCondition",
    "NoDispatcher",
    "DispatchFailed",
    "InvalidAbortionType",
    "InvalidContextType",
    "ChainAlreadyBound",
    "ServiceNotLoaded",
]
