"""Re-export the router's public API under one import path."""

from __future__ import annotations

# Main Router class
from .core import Router

# Chain execution
from .chain import ChainState, ChainStatus

# Configuration
from .config import RouterConfig

# Events and dispatch contexts
from .context import (
    AbortController,
    DispatchContext,
    Event,
    RouteView,
    dispatch_ctx,
    normalize_context,
)

# Errors
from .errors import (
    ChainAlreadyBound,
    DispatchFailed,
    InvalidAbortionType,
    InvalidCondition,
    InvalidContextType,
    InvalidMiddleware,
    InvalidRoute,
    InvalidRoutesType,
    NoDispatcher,
    RouterError,
    ServiceNotLoaded,
    UnresolvableCondition,
    UnresolvableHandler,
)

# Service locator
from .locator import Locator

# Pattern compilation
from .pattern import Matcher, compile_pattern

# Capability protocols
from .protocols import AbortSignal, Condition, Handler, RecoveringHandler, Resolver

# Route records
from .registration import Route, RouteEntry, RouteTable

__all__ = [
    # Core classes
    "Router",
    "RouteTable",
    "Route",
    "RouteEntry",
    "RouterConfig",
    "Locator",
    # Dispatch
    "AbortController",
    "ChainState",
    "ChainStatus",
    "DispatchContext",
    "Event",
    "RouteView",
    "normalize_context",
    # Patterns
    "Matcher",
    "compile_pattern",
    # Protocols
    "AbortSignal",
    "Condition",
    "Handler",
    "RecoveringHandler",
    "Resolver",
    # Errors
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
    # Context variable (advanced usage)
    "dispatch_ctx",
]

__version__ = "0.1.0"
