"""Minimal in-memory service locator.

The router only needs a ``resolve(name)`` callable; ``Locator.locate`` is one.

    locator = Locator()
    router = Router(locator.locate)
    locator.set("auth", AuthMiddleware())
"""

from __future__ import annotations

from typing import Any

from .errors import ServiceNotLoaded


class Locator(dict[str, Any]):
    """Name -> service map."""

    def set(self, name: str, service: Any) -> None:
        self[name] = service

    def locate(self, name: str) -> Any:
        """Return the service registered under ``name``.

        Raises:
            ServiceNotLoaded: Nothing is registered under ``name``.
        """
        try:
            return self[name]
        except KeyError:
            raise ServiceNotLoaded(f"Service {name!r} has not been loaded") from None


__all__ = ["Locator"]
