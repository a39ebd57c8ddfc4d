"""Dispatch from synchronous code, with tracing and cancellation."""

from __future__ import annotations

from good_router import AbortController, Locator, Router, RouterConfig

locator = Locator()
router = Router(locator.locate, RouterConfig(separators="/.", event_trace=True))


class Convert:
    def dispatch(self, event, context) -> None:
        context.state["target"] = f"{event.param['name']}.{event.param['ext']}"


locator.set("convert", Convert())
router.set("convert", {"criteria": "/files/:name.:ext", "dispatcher": "convert"})


def main() -> None:
    ctx = router.dispatch_sync({"criteria": "/files/report.pdf"})
    print(f"target={ctx.state['target']} status={ctx.chain.status.value}")

    controller = AbortController()
    controller.abort("shutting down")
    ctx = router.dispatch_sync({"criteria": "/files/report.pdf"}, {"abortion": controller})
    print(f"status={ctx.chain.status.value} reason={ctx.abortion.reason}")


if __name__ == "__main__":
    main()
