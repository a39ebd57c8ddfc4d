from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from good_router import DispatchContext, Event, Locator, Router


class Recorder:
    """Handler that appends its name to a shared call log."""

    def __init__(
        self,
        name: str,
        calls: list[str],
        action: Callable[[Event, DispatchContext], Any] | None = None,
    ):
        self.name = name
        self.calls = calls
        self.action = action

    async def dispatch(self, event: Event, context: DispatchContext) -> None:
        self.calls.append(self.name)
        if self.action is not None:
            self.action(event, context)


class Toggle:
    """Condition whose verdict is set by the test."""

    def __init__(self, verdict: bool):
        self.verdict = verdict
        self.seen: list[tuple[Event, Any]] = []

    def is_valid(self, event: Event, route: Any) -> bool:
        self.seen.append((event, route))
        return self.verdict


@pytest.fixture()
def locator() -> Locator:
    return Locator()


@pytest.fixture()
def router(locator: Locator) -> Router:
    return Router(locator.locate)


@pytest.fixture()
def calls() -> list[str]:
    return []


@pytest.fixture()
def recorder(locator: Locator, calls: list[str]) -> Callable[..., Recorder]:
    """Create a Recorder, registered in the locator under its name."""

    def make(
        name: str, action: Callable[[Event, DispatchContext], Any] | None = None
    ) -> Recorder:
        handler = Recorder(name, calls, action)
        locator.set(name, handler)
        return handler

    return make


@pytest.fixture()
def toggle() -> Callable[[bool], Toggle]:
    return Toggle
