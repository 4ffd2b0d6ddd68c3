"""Tests for nestling.composer — flattening nested factories into routes."""

import logging
from typing import Any

import anyio
import pytest

from nestling.binding import Dependencies, bind_route_actions
from nestling.composer import Composer, compose
from nestling.config import AppConfig
from nestling.errors import (
    ConfigurationError,
    DependencyResolutionError,
    FactoryCreationError,
    NestedFactoryError,
)
from nestling.factory import Factory
from nestling.routing.methods import HttpMethod
from nestling.routing.route import BoundRoute, RouteDeclaration


def _named(name: str):
    async def action(deps, ctx, next):
        return {"name": name}

    return action


def _factory(
    *paths: str,
    prefix: str = "",
    nested: Any = None,
    method: HttpMethod = HttpMethod.GET,
    name: str | None = None,
) -> Factory:
    """Factory with one GET route per path; each action returns its path."""
    return Factory(
        prefix=prefix,
        get_dependencies=dict,
        create=lambda deps: bind_route_actions(
            deps, [RouteDeclaration(path, method, _named(path)) for path in paths]
        ),
        nested=nested,
        name=name,
    )


def _triples(routes) -> list[tuple[str, str]]:
    return [(str(route.method), route.full_path) for route in routes]


class TestPrefixAccumulation:
    async def test_single_factory(self) -> None:
        routes = await compose([_factory("/x", prefix="/p")])
        assert _triples(routes) == [("GET", "/p/x")]

    async def test_no_prefix(self) -> None:
        routes = await compose([_factory("/top")])
        assert _triples(routes) == [("GET", "/top")]

    async def test_child_without_prefix(self) -> None:
        child = _factory("/nested")
        parent = _factory("/top", prefix="/all", nested=lambda: [child])

        routes = await compose([parent])

        assert _triples(routes) == [("GET", "/all/top"), ("GET", "/all/nested")]

    async def test_child_with_prefix(self) -> None:
        child = _factory("/nested", prefix="/b")
        parent = _factory("/top", prefix="/all", nested=lambda: [child])

        routes = await compose([parent])

        assert _triples(routes) == [("GET", "/all/top"), ("GET", "/all/b/nested")]

    async def test_double_nested(self) -> None:
        deep = _factory("/nested", prefix="/a")
        middle = _factory("/nested", prefix="/b", nested=lambda: [deep])
        top = _factory("/top", prefix="/all", nested=lambda: [middle])

        routes = await compose([top])

        assert _triples(routes) == [
            ("GET", "/all/top"),
            ("GET", "/all/b/nested"),
            ("GET", "/all/b/a/nested"),
        ]

    async def test_flat_nesting(self) -> None:
        child = _factory("/nested")
        parent = _factory("/top", nested=lambda: [child])

        routes = await compose([parent])

        assert _triples(routes) == [("GET", "/top"), ("GET", "/nested")]

    async def test_raw_concatenation(self) -> None:
        routes = await compose([_factory("/x", "y", "", prefix="/p/")])
        assert [r.full_path for r in routes] == ["/p//x", "/p/y", "/p/"]

    async def test_empty_nested(self) -> None:
        routes = await compose([_factory("/top", nested=lambda: [])])
        assert _triples(routes) == [("GET", "/top")]

    async def test_factory_without_routes_still_nests(self) -> None:
        child = _factory("/leaf")
        parent = _factory(prefix="/group", nested=lambda: [child])

        routes = await compose([parent])

        assert _triples(routes) == [("GET", "/group/leaf")]


class TestOrdering:
    async def test_own_routes_then_nested_then_next_sibling(self) -> None:
        c1 = _factory("/r3")
        f1 = _factory("/r1", "/r2", nested=lambda: [c1])
        f2 = _factory("/r4", "/r5")

        routes = await compose([f1, f2])

        assert [r.full_path for r in routes] == ["/r1", "/r2", "/r3", "/r4", "/r5"]

    async def test_nested_order_follows_nested_sequence(self) -> None:
        a = _factory("/a")
        b = _factory("/b")
        c = _factory("/c")
        parent = _factory(nested=lambda: [c, a, b])

        routes = await compose([parent])

        assert [r.full_path for r in routes] == ["/c", "/a", "/b"]

    async def test_completion_order_does_not_leak(self) -> None:
        """The slowest sibling still comes first when declared first."""

        def delayed(path: str, delay: float) -> Factory:
            async def get_dependencies():
                await anyio.sleep(delay)
                return {}

            return Factory(
                get_dependencies=get_dependencies,
                create=lambda deps: bind_route_actions(
                    deps, [RouteDeclaration(path, HttpMethod.GET, _named(path))]
                ),
            )

        routes = await compose([delayed("/slow", 0.05), delayed("/medium", 0.02), delayed("/fast", 0)])

        assert [r.full_path for r in routes] == ["/slow", "/medium", "/fast"]

    async def test_duplicates_are_passed_through(self) -> None:
        routes = await compose([_factory("/x"), _factory("/x")])
        assert _triples(routes) == [("GET", "/x"), ("GET", "/x")]

    @pytest.mark.parametrize("concurrent", [True, False])
    async def test_same_order_either_mode(self, concurrent: bool) -> None:
        child = _factory("/c")
        forest = [_factory("/a", nested=lambda: [child, _factory("/d")]), _factory("/b")]

        routes = await compose(forest, config=AppConfig(concurrent=concurrent))

        assert [r.full_path for r in routes] == ["/a", "/c", "/d", "/b"]


class TestConcurrency:
    async def test_sibling_resolution_overlaps(self) -> None:
        """Each sibling waits on the other; only concurrent resolution finishes."""
        a_started = anyio.Event()
        b_started = anyio.Event()

        async def deps_a():
            a_started.set()
            await b_started.wait()
            return {}

        async def deps_b():
            b_started.set()
            await a_started.wait()
            return {}

        empty = lambda deps: []  # noqa: E731
        forest = [
            Factory(get_dependencies=deps_a, create=empty),
            Factory(get_dependencies=deps_b, create=empty),
        ]

        with anyio.fail_after(5):
            assert await compose(forest) == []

    async def test_sequential_mode_resolves_in_order(self) -> None:
        calls: list[str] = []

        def tracked(label: str) -> Factory:
            async def get_dependencies():
                calls.append(f"{label}:start")
                await anyio.sleep(0)
                calls.append(f"{label}:end")
                return {}

            return Factory(get_dependencies=get_dependencies, create=lambda deps: [])

        await compose([tracked("a"), tracked("b")], config=AppConfig(concurrent=False))

        assert calls == ["a:start", "a:end", "b:start", "b:end"]

    async def test_create_waits_for_dependencies(self) -> None:
        events: list[str] = []

        async def get_dependencies():
            await anyio.sleep(0.01)
            events.append("deps")
            return {}

        def create(deps):
            events.append("create")
            return []

        await compose([Factory(get_dependencies=get_dependencies, create=create)])

        assert events == ["deps", "create"]


class TestAsyncSteps:
    async def test_async_create_and_nested(self) -> None:
        child = _factory("/child")

        async def create(deps):
            await anyio.sleep(0)
            return bind_route_actions(deps, [RouteDeclaration("/own", HttpMethod.POST, _named("own"))])

        async def nested():
            await anyio.sleep(0)
            return [child]

        parent = Factory(prefix="/p", get_dependencies=dict, create=create, nested=nested)

        routes = await compose([parent])

        assert _triples(routes) == [("POST", "/p/own"), ("GET", "/p/child")]

    async def test_nested_may_return_any_iterable(self) -> None:
        parent = _factory(nested=lambda: (f for f in [_factory("/a"), _factory("/b")]))
        routes = await compose([parent])
        assert [r.full_path for r in routes] == ["/a", "/b"]

    async def test_create_may_return_any_iterable(self) -> None:
        def create(deps):
            return iter(bind_route_actions(deps, [RouteDeclaration("/x", HttpMethod.GET, _named("x"))]))

        routes = await compose([Factory(get_dependencies=dict, create=create)])
        assert _triples(routes) == [("GET", "/x")]

    async def test_string_methods_are_coerced(self) -> None:
        async def action(ctx, next):
            return None

        factory = Factory(
            get_dependencies=dict,
            create=lambda deps: [BoundRoute("/x", "patch", action)],  # type: ignore[arg-type]
        )

        routes = await compose([factory])

        assert routes[0].method is HttpMethod.PATCH


class TestDependencies:
    async def test_create_receives_exactly_resolved_set(self) -> None:
        resolved = Dependencies(token="abc")
        received: list[Any] = []

        def create(deps):
            received.append(deps)
            return []

        await compose([Factory(get_dependencies=lambda: resolved, create=create)])

        assert received == [resolved]
        assert received[0] is resolved

    async def test_sibling_isolation(self) -> None:
        async def whoami(deps, ctx, next):
            return deps["name"]

        def factory(value: str, prefix: str) -> Factory:
            return Factory(
                prefix=prefix,
                get_dependencies=lambda: {"name": value},
                create=lambda deps: bind_route_actions(
                    deps, [RouteDeclaration("/whoami", HttpMethod.GET, whoami)]
                ),
            )

        routes = await compose([factory("left", "/l"), factory("right", "/r")])

        assert [await r.action(None, None) for r in routes] == ["left", "right"]

    async def test_child_does_not_inherit_parent_dependencies(self) -> None:
        async def peek(deps, ctx, next):
            return "secret" in deps

        child = Factory(
            get_dependencies=dict,
            create=lambda deps: bind_route_actions(deps, [RouteDeclaration("/peek", HttpMethod.GET, peek)]),
        )
        parent = Factory(
            get_dependencies=lambda: {"secret": 1},
            create=lambda deps: bind_route_actions(deps, [RouteDeclaration("/peek", HttpMethod.GET, peek)]),
            nested=lambda: [child],
        )

        routes = await compose([parent])

        assert [await r.action(None, None) for r in routes] == [True, False]

    async def test_db_scenario(self) -> None:
        class DbConnection:
            def __init__(self) -> None:
                self.is_connected = True

        async def disconnect(deps, ctx, next):
            deps.db.is_connected = False

        async def status(deps, ctx, next):
            return {"connected": deps.db.is_connected}

        factory = Factory(
            prefix="/db",
            get_dependencies=lambda: Dependencies(db=DbConnection()),
            create=lambda deps: bind_route_actions(
                deps,
                [
                    RouteDeclaration("/disconnect", HttpMethod.POST, disconnect),
                    RouteDeclaration("/status", HttpMethod.GET, status),
                ],
            ),
        )

        post, get = await compose([factory])

        assert (str(post.method), post.full_path) == ("POST", "/db/disconnect")
        assert await get.action(None, None) == {"connected": True}
        await post.action(None, None)
        assert await get.action(None, None) == {"connected": False}

    async def test_class_based_factory(self) -> None:
        class Test:
            prefix = "/prefixed"

            def __init__(self) -> None:
                self.greeting = "hello"

            def get_dependencies(self):
                return {"foo": "baz"}

            def create(self, dependencies):
                return bind_route_actions(
                    Dependencies.merge(self, dependencies),
                    [
                        RouteDeclaration("/test1", HttpMethod.GET, Test.test1),
                        RouteDeclaration("/test2", HttpMethod.GET, Test.test2),
                    ],
                )

            @staticmethod
            async def test1(deps, ctx, next):
                return {"foobar": deps.foo}

            @staticmethod
            async def test2(deps, ctx, next):
                return {"greeting": deps.greeting}

        routes = await compose([Test()])

        assert [r.full_path for r in routes] == ["/prefixed/test1", "/prefixed/test2"]
        assert await routes[0].action(None, None) == {"foobar": "baz"}
        assert await routes[1].action(None, None) == {"greeting": "hello"}


class TestIdempotence:
    async def test_compose_twice(self) -> None:
        child = _factory("/nested", prefix="/b")
        forest = [_factory("/top", prefix="/all", nested=lambda: [child]), _factory("/other")]

        first = await compose(forest)
        second = await compose(forest)

        assert _triples(first) == _triples(second)
        assert [await r.action(None, None) for r in first] == [
            await r.action(None, None) for r in second
        ]

    async def test_composer_is_reusable(self) -> None:
        composer = Composer()
        assert _triples(await composer.compose([_factory("/a")])) == [("GET", "/a")]
        assert _triples(await composer.compose([_factory("/b")])) == [("GET", "/b")]


class TestFailures:
    async def test_dependency_failure(self) -> None:
        def get_dependencies():
            raise RuntimeError("store unavailable")

        factory = Factory(prefix="/db", get_dependencies=get_dependencies, create=lambda d: [], name="db")

        with pytest.raises(DependencyResolutionError) as exc_info:
            await compose([_factory("/ok"), factory])

        err = exc_info.value
        assert err.factory == "db"
        assert err.prefix == "/db"
        assert isinstance(err.__cause__, RuntimeError)
        assert "store unavailable" in str(err)

    async def test_async_dependency_failure(self) -> None:
        async def get_dependencies():
            await anyio.sleep(0)
            raise LookupError("no such tenant")

        with pytest.raises(DependencyResolutionError) as exc_info:
            await compose([Factory(get_dependencies=get_dependencies, create=lambda d: [])])

        assert isinstance(exc_info.value.__cause__, LookupError)

    async def test_create_failure(self) -> None:
        def create(deps):
            raise ValueError("bad declaration")

        with pytest.raises(FactoryCreationError) as exc_info:
            await compose([Factory(get_dependencies=dict, create=create)])

        assert isinstance(exc_info.value.__cause__, ValueError)

    async def test_create_returns_non_route(self) -> None:
        factory = Factory(get_dependencies=dict, create=lambda deps: ["/not-a-route"])

        with pytest.raises(FactoryCreationError, match="expected a BoundRoute"):
            await compose([factory])

    async def test_create_returns_bad_method(self) -> None:
        async def action(ctx, next):
            return None

        factory = Factory(
            get_dependencies=dict,
            create=lambda deps: [BoundRoute("/x", "BREW", action)],  # type: ignore[arg-type]
        )

        with pytest.raises(ConfigurationError, match="BREW"):
            await compose([factory])

    async def test_nested_failure(self) -> None:
        def nested():
            raise ImportError("child module missing")

        with pytest.raises(NestedFactoryError) as exc_info:
            await compose([_factory("/top", prefix="/all", nested=nested)])

        assert exc_info.value.prefix == "/all"
        assert isinstance(exc_info.value.__cause__, ImportError)

    async def test_deep_failure_aborts_everything(self) -> None:
        def broken():
            raise RuntimeError("deep")

        deep = Factory(get_dependencies=broken, create=lambda d: [], prefix="/a")
        middle = _factory("/nested", prefix="/b", nested=lambda: [deep])
        top = _factory("/top", prefix="/all", nested=lambda: [middle])

        with pytest.raises(DependencyResolutionError) as exc_info:
            await compose([top, _factory("/other")])

        assert exc_info.value.prefix == "/all/b/a"

    async def test_failure_cancels_pending_siblings(self) -> None:
        finished: list[str] = []

        async def slow():
            await anyio.sleep(10)
            finished.append("slow")
            return {}

        def broken():
            raise RuntimeError("boom")

        forest = [
            Factory(get_dependencies=slow, create=lambda d: []),
            Factory(get_dependencies=broken, create=lambda d: []),
        ]

        with anyio.fail_after(5):
            with pytest.raises(DependencyResolutionError):
                await compose(forest)

        assert finished == []


class TestGuards:
    async def test_self_nesting_cycle(self) -> None:
        holder: dict[str, Factory] = {}
        holder["loop"] = _factory("/x", prefix="/loop", nested=lambda: [holder["loop"]], name="loop")

        with pytest.raises(ConfigurationError, match="Cyclic"):
            await compose([holder["loop"]])

    async def test_mutual_cycle(self) -> None:
        holder: dict[str, Factory] = {}
        holder["a"] = _factory("/a", nested=lambda: [holder["b"]])
        holder["b"] = _factory("/b", nested=lambda: [holder["a"]])

        with pytest.raises(ConfigurationError, match="Cyclic"):
            await compose([holder["a"]])

    async def test_shared_factory_in_two_branches_is_not_a_cycle(self) -> None:
        shared = _factory("/health")
        forest = [
            _factory(prefix="/v1", nested=lambda: [shared]),
            _factory(prefix="/v2", nested=lambda: [shared]),
        ]

        routes = await compose(forest)

        assert [r.full_path for r in routes] == ["/v1/health", "/v2/health"]

    async def test_depth_limit(self) -> None:
        def endless() -> Factory:
            return _factory(prefix="/n", nested=lambda: [endless()])

        with pytest.raises(ConfigurationError, match="max_depth=3"):
            await compose([endless()], config=AppConfig(max_depth=3))

    async def test_depth_limit_is_inclusive(self) -> None:
        def chain(levels: int) -> Factory:
            if levels == 0:
                return _factory("/leaf", prefix="/n")
            return _factory(prefix="/n", nested=lambda: [chain(levels - 1)])

        routes = await compose([chain(3)], config=AppConfig(max_depth=3))

        assert [r.full_path for r in routes] == ["/n/n/n/n/leaf"]


class TestStrictPaths:
    async def test_default_allows_anything(self) -> None:
        routes = await compose([_factory("x", prefix="/p/")])
        assert routes[0].full_path == "/p/x"

    async def test_missing_leading_slash(self) -> None:
        with pytest.raises(ConfigurationError, match="does not start with"):
            await compose([_factory("x")], config=AppConfig(strict_paths=True))

    async def test_double_slash(self) -> None:
        with pytest.raises(ConfigurationError, match="'//'"):
            await compose([_factory("/x", prefix="/p/")], config=AppConfig(strict_paths=True))

    async def test_valid_paths_pass(self) -> None:
        routes = await compose([_factory("/x", prefix="/p")], config=AppConfig(strict_paths=True))
        assert routes[0].full_path == "/p/x"


class TestLogging:
    async def test_summary_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="nestling.composer"):
            await compose([_factory("/a", "/b")])

        assert "Composed 2 routes from 1 top-level factories" in caplog.text

    async def test_log_routes(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="nestling.composer"):
            await compose([_factory("/a", prefix="/p")], config=AppConfig(log_routes=True))

        assert "/p/a" in caplog.text
