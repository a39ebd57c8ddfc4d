"""Wrap a dispatcher with timing middleware and recover from a failure locally."""

from __future__ import annotations

import asyncio
import time

from good_router import DispatchContext, Event, Locator, Router

locator = Locator()
router = Router(locator.locate)


class Timing:
    async def dispatch(self, event: Event, context: DispatchContext) -> None:
        started = time.perf_counter()
        await context.chain.next()
        context.state["elapsed_ms"] = (time.perf_counter() - started) * 1000


class Fetch:
    async def dispatch(self, event: Event, context: DispatchContext) -> None:
        await asyncio.sleep(0.01)
        if event.param["id"] == "0":
            raise LookupError("no such order")
        context.state["order"] = {"id": event.param["id"]}

    def on_error(self, error: Exception, event: Event, context: DispatchContext) -> None:
        context.state["order"] = None
        context.state["error"] = str(error)


locator.set("timing", Timing())
locator.set("fetch", Fetch())

router.set("orders", {"criteria": "/orders/:id", "middleware": "timing", "dispatcher": "fetch"})


async def main() -> None:
    for order_id in ("7", "0"):
        ctx = await router.dispatch({"criteria": f"/orders/{order_id}"})
        print(
            f"order={ctx.state['order']} error={ctx.state.get('error')} "
            f"took={ctx.state['elapsed_ms']:.2f}ms"
        )


if __name__ == "__main__":
    asyncio.run(main())
