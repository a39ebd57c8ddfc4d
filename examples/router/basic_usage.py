"""Minimal Router example covering registration and async dispatch."""

from __future__ import annotations

import asyncio

from good_router import DispatchContext, Event, Locator, Router

locator = Locator()
router = Router(locator.locate)


class Greet:
    async def dispatch(self, event: Event, context: DispatchContext) -> None:
        context.state["output"] = f"Hello, {event.param['name']}!"


class Audit:
    def dispatch(self, event: Event, context: DispatchContext) -> None:
        print(f"greet called for {event.param['name']}")


locator.set("greet", Greet())
locator.set("audit", Audit())

router.set_routes(
    {
        "audit": {"criteria": "demo/*", "middleware": "audit"},
        "greet": {"criteria": "demo/:name", "dispatcher": "greet"},
    }
)


async def main() -> None:
    ctx = await router.dispatch({"criteria": "demo/Ada"})
    print(ctx.state["output"])
    print(" → ".join(ctx.route.trace))


if __name__ == "__main__":
    asyncio.run(main())
