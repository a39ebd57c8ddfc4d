"""Match accumulation across routes and the dispatch API surface."""

from __future__ import annotations

import asyncio

import pytest

from good_router import (
    ChainStatus,
    DispatchContext,
    DispatchFailed,
    Event,
    Locator,
    NoDispatcher,
    Router,
    dispatch_ctx,
)


@pytest.mark.asyncio()
async def test_dispatches_event_to_matching_route(
    router: Router, recorder, calls: list[str]
) -> None:
    seen: list[str] = []
    recorder("testDispatcher", lambda event, _: seen.append(event.param["id"]))
    router.set("testRoute", {"criteria": "/test/:id", "dispatcher": "testDispatcher"})

    ctx = await router.dispatch({"criteria": "/test/123"})

    assert calls == ["testDispatcher"]
    assert seen == ["123"]
    assert ctx.route.trace == ["testRoute"]
    assert ctx.chain.status is ChainStatus.COMPLETED


@pytest.mark.asyncio()
async def test_middleware_route_runs_before_terminal_route(
    router: Router, recorder, calls: list[str]
) -> None:
    recorder("M1")
    recorder("D")
    router.set("R1", {"criteria": "/*/*", "middleware": "M1"})
    router.set("R2", {"criteria": "/test/123", "dispatcher": "D"})

    ctx = await router.dispatch({"criteria": "/test/123"})

    assert ctx.route.trace == ["R1", "R2"]
    assert calls == ["M1", "D"]


@pytest.mark.asyncio()
async def test_chain_accumulates_across_many_routes(router: Router, recorder) -> None:
    def set_state(key: str, value: int):
        return lambda _, ctx: ctx.state.__setitem__(key, value)

    def increment(_, ctx: DispatchContext) -> None:
        ctx.state["qux"] += 1

    recorder("middleware1", set_state("foo", 1))
    recorder("middleware2", set_state("bar", 2))
    recorder("middleware3", set_state("baz", 3))
    recorder("middleware4", set_state("qux", 4))
    recorder("dispatcher1", increment)

    router.set("middleware1route", {"middleware": "middleware1", "criteria": "/*/*"})
    router.set("middleware2route", {"middleware": "middleware2", "criteria": "/test/*"})
    router.set("middleware3route", {"middleware": "middleware3", "criteria": "/test/:num"})
    router.set("middleware4route", {"middleware": "middleware4", "criteria": "/:tier/:id"})
    router.set("dispatcher1route", {"dispatcher": "dispatcher1", "criteria": "/test/123"})

    event = Event(criteria="/test/123")
    ctx = await router.dispatch(event)

    assert ctx.state == {"foo": 1, "bar": 2, "baz": 3, "qux": 5}
    assert event.param == {"num": "123", "id": "123", "tier": "test"}
    assert ctx.route.trace == [
        "middleware1route",
        "middleware2route",
        "middleware3route",
        "middleware4route",
        "dispatcher1route",
    ]


@pytest.mark.asyncio()
async def test_later_captures_overwrite_earlier_ones(router: Router, recorder) -> None:
    recorder("D")
    router.set("first", {"criteria": "/:a/:b", "middleware": []})
    router.set("second", {"criteria": "/:b/:a", "dispatcher": "D"})

    event = Event(criteria="/x/y")
    await router.dispatch(event)

    assert event.param == {"a": "y", "b": "x"}


@pytest.mark.asyncio()
async def test_walk_stops_at_first_terminal_route(
    router: Router, recorder, calls: list[str]
) -> None:
    recorder("first")
    recorder("second")
    recorder("late-middleware")
    router.set("terminal1", {"criteria": "/a/:id", "dispatcher": "first"})
    router.set("filter", {"criteria": "/a/*", "middleware": "late-middleware"})
    router.set("terminal2", {"criteria": "/a/b", "dispatcher": "second"})

    ctx = await router.dispatch({"criteria": "/a/b"})

    assert calls == ["first"]
    assert ctx.route.trace == ["terminal1"]


@pytest.mark.asyncio()
async def test_registration_order_decides_chain_order(
    router: Router, recorder, calls: list[str]
) -> None:
    recorder("b")
    recorder("a")
    recorder("D")
    router.set("second", {"criteria": "/x", "middleware": "b"})
    router.set("first", {"criteria": "/x", "middleware": "a"})
    router.set("end", {"criteria": "/x", "dispatcher": "D"})

    await router.dispatch({"criteria": "/x"})

    assert calls == ["b", "a", "D"]


@pytest.mark.asyncio()
async def test_shared_middleware_runs_once(router: Router, recorder, calls: list[str]) -> None:
    auth = recorder("auth")
    dispatcher = recorder("D")
    router.set("one", {"criteria": "/x/*", "middleware": "auth"})
    router.set("two", {"criteria": "/*/y", "middleware": "auth"})
    router.set("end", {"criteria": "/x/y", "dispatcher": "D"})

    ctx = await router.dispatch({"criteria": "/x/y"})

    assert calls == ["auth", "D"]
    assert ctx.chain.handlers == (auth, dispatcher)


@pytest.mark.asyncio()
async def test_handler_objects_dispatch_without_resolution(calls: list[str]) -> None:
    class Inline:
        def dispatch(self, event: Event, context: DispatchContext) -> None:
            calls.append("inline")

    def resolve(name: str) -> object:
        raise AssertionError(f"unexpected lookup of {name!r}")

    router = Router(resolve)
    router.set("route", {"criteria": "/x", "dispatcher": Inline()})

    await router.dispatch({"criteria": "/x"})

    assert calls == ["inline"]


@pytest.mark.asyncio()
async def test_failing_condition_excludes_route(
    router: Router, recorder, toggle, calls: list[str]
) -> None:
    recorder("skipped")
    recorder("D")
    refuse = toggle(False)
    router.set("guarded", {"criteria": "/x", "middleware": "skipped", "conditions": [refuse]})
    router.set("end", {"criteria": "/x", "dispatcher": "D"})

    ctx = await router.dispatch({"criteria": "/x"})

    assert calls == ["D"]
    assert ctx.route.trace == ["end"]
    assert len(refuse.seen) == 1


@pytest.mark.asyncio()
async def test_conditions_receive_event_and_route_record(
    router: Router, locator: Locator, recorder, toggle
) -> None:
    recorder("D")
    accept = toggle(True)
    locator.set("accept", accept)
    router.set("guarded", {"criteria": "/x/:id", "dispatcher": "D", "conditions": "accept"})

    await router.dispatch({"criteria": "/x/7"})

    [(event, route)] = accept.seen
    assert event.criteria == "/x/7"
    assert route is router.get("guarded")


@pytest.mark.asyncio()
async def test_conditions_are_not_evaluated_for_unmatched_routes(
    router: Router, recorder, toggle
) -> None:
    recorder("D")
    never = toggle(True)
    router.set("other", {"criteria": "/other", "dispatcher": "D", "conditions": [never]})
    router.set("end", {"criteria": "/x", "dispatcher": "D"})

    await router.dispatch({"criteria": "/x"})

    assert never.seen == []


@pytest.mark.asyncio()
async def test_async_conditions_are_awaited(router: Router, recorder, calls: list[str]) -> None:
    class AsyncCheck:
        def __init__(self, verdict: bool):
            self.verdict = verdict

        async def is_valid(self, event: Event, route: object) -> bool:
            await asyncio.sleep(0)
            return self.verdict

    recorder("refused")
    recorder("accepted")
    router.set("no", {"criteria": "/x", "dispatcher": "refused", "conditions": [AsyncCheck(False)]})
    router.set("yes", {"criteria": "/x", "dispatcher": "accepted", "conditions": [AsyncCheck(True)]})

    await router.dispatch({"criteria": "/x"})

    assert calls == ["accepted"]


@pytest.mark.asyncio()
async def test_route_details_are_merged_into_context(router: Router, recorder) -> None:
    recorder("D")
    router.set("api", {"criteria": "/api/*", "scopes": ["read"], "meta": {"owner": "core"}})
    router.set("end", {"criteria": "/api/users", "dispatcher": "D", "scopes": ["write"], "meta": {"cache": 60}})

    ctx = await router.dispatch({"criteria": "/api/users"})

    assert ctx.route.details == {"scopes": ["read", "write"], "meta": {"owner": "core", "cache": 60}}
    assert router.get("api").details == {"scopes": ["read"], "meta": {"owner": "core"}}  # type: ignore[union-attr]


@pytest.mark.asyncio()
async def test_mapping_events_are_coerced(router: Router, recorder) -> None:
    recorder("D")
    router.set("route", {"criteria": "/users/:id", "dispatcher": "D"})

    ctx = await router.dispatch({"criteria": "/users/9", "user": "ada"})

    assert isinstance(ctx.event, Event)
    assert ctx.event.param == {"id": "9"}
    assert ctx.event.data == {"user": "ada"}


@pytest.mark.asyncio()
async def test_mapping_event_receives_captured_params(router: Router, recorder) -> None:
    recorder("D")
    router.set("route", {"criteria": "/users/:id", "dispatcher": "D"})
    event = {"criteria": "/users/42"}

    ctx = await router.dispatch(event)

    assert event["param"] == {"id": "42"}
    assert event["param"] is ctx.event.param


@pytest.mark.asyncio()
async def test_caller_seeded_middleware_runs_first(
    router: Router, recorder, calls: list[str]
) -> None:
    recorder("audit")
    recorder("auth")
    recorder("D")
    router.set("route", {"criteria": "/x", "middleware": "auth", "dispatcher": "D"})

    await router.dispatch({"criteria": "/x"}, {"route": {"middleware": ["audit"]}})

    assert calls == ["audit", "auth", "D"]


@pytest.mark.asyncio()
async def test_caller_seeded_dispatcher_is_used_when_nothing_terminal_matches(
    router: Router, recorder, calls: list[str]
) -> None:
    recorder("fallback")
    recorder("M")
    router.set("filter", {"criteria": "/x", "middleware": "M"})

    ctx = await router.dispatch({"criteria": "/x"}, {"route": {"dispatcher": "fallback"}})

    assert calls == ["M", "fallback"]
    assert ctx.route.trace == ["filter"]


@pytest.mark.asyncio()
async def test_no_matching_route_fails_with_no_dispatcher(router: Router) -> None:
    with pytest.raises(DispatchFailed) as exc_info:
        await router.dispatch({"criteria": "/nonexistent"})

    error = exc_info.value
    assert error.code == "E_ROUTER_DISPATCH_FAILED"
    assert isinstance(error.cause, NoDispatcher)
    assert error.cause.code == "E_ROUTER_DISPATCH_NO_DISPATCHER"
    assert error.cause.detail == "No route matched the criteria"


@pytest.mark.asyncio()
async def test_only_non_terminal_matches_fail_with_trace(router: Router, recorder) -> None:
    recorder("m1")
    recorder("m2")
    router.set("a", {"criteria": "/x/*", "middleware": "m1"})
    router.set("b", {"criteria": "/*/y", "middleware": "m2"})

    with pytest.raises(DispatchFailed) as exc_info:
        await router.dispatch({"criteria": "/x/y"})

    cause = exc_info.value.cause
    assert isinstance(cause, NoDispatcher)
    assert cause.detail == "No dispatcher found in any of the matched routes: a → b"


@pytest.mark.asyncio()
async def test_context_variable_exposes_active_context(router: Router, locator: Locator) -> None:
    seen: list[DispatchContext | None] = []

    class Capture:
        def dispatch(self, event: Event, context: DispatchContext) -> None:
            seen.append(dispatch_ctx.get())
            seen.append(router.ctx)

    locator.set("capture", Capture())
    router.set("route", {"criteria": "/x", "dispatcher": "capture"})

    ctx = await router.dispatch({"criteria": "/x"})

    assert seen == [ctx, ctx]
    assert dispatch_ctx.get() is None
    with pytest.raises(RuntimeError):
        router.ctx


@pytest.mark.asyncio()
async def test_concurrent_dispatches_are_independent(router: Router, locator: Locator) -> None:
    class Slow:
        async def dispatch(self, event: Event, context: DispatchContext) -> None:
            context.state["before"] = event.param["id"]
            await asyncio.sleep(0.01)
            context.state["after"] = event.param["id"]

    locator.set("slow", Slow())
    router.set("route", {"criteria": "/job/:id", "dispatcher": "slow"})

    first, second = await asyncio.gather(
        router.dispatch({"criteria": "/job/1"}),
        router.dispatch({"criteria": "/job/2"}),
    )

    assert first.state == {"before": "1", "after": "1"}
    assert second.state == {"before": "2", "after": "2"}
    assert first.chain is not second.chain


def test_dispatch_sync_runs_without_event_loop(router: Router, recorder, calls: list[str]) -> None:
    recorder("D")
    router.set("route", {"criteria": "/x", "dispatcher": "D"})

    ctx = router.dispatch_sync({"criteria": "/x"})

    assert calls == ["D"]
    assert ctx.chain.status is ChainStatus.COMPLETED


@pytest.mark.asyncio()
async def test_dispatch_sync_refuses_running_loop(router: Router) -> None:
    with pytest.raises(RuntimeError):
        router.dispatch_sync({"criteria": "/x"})
