"""Composer — flatten a forest of route factories into resolved routes.

For each factory, in order:

    1. Resolve its dependency set (``get_dependencies``)
    2. Bind its routes (``create``)
    3. Prefix them with every ancestor prefix plus its own
    4. Recurse into ``nested()`` with the accumulated prefix

Own routes come before nested routes; siblings keep declaration order.
Siblings may resolve concurrently in an anyio task group, but each one
writes into its own result slot, so completion order never leaks into
the output.

Any failure aborts the whole composition. There is no partial result.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any

import anyio

from nestling._internal.invoke import invoke
from nestling.config import AppConfig
from nestling.errors import (
    ConfigurationError,
    DependencyResolutionError,
    FactoryCreationError,
    NestedFactoryError,
)
from nestling.factory import describe_factory, factory_prefix
from nestling.routing.methods import HttpMethod
from nestling.routing.route import ResolvedRoute

logger = logging.getLogger("nestling.composer")


class Composer:
    """Reusable composition walk over route factories.

    Usage::

        composer = Composer(AppConfig(max_depth=8))
        routes = await composer.compose([api, admin])

    A ``Composer`` holds only configuration, so one instance may compose
    any number of forests, concurrently or not.
    """

    __slots__ = ("config",)

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()

    async def compose(self, factories: Iterable[Any]) -> list[ResolvedRoute]:
        """Resolve *factories* and return their routes as one ordered list."""
        top_level = list(factories)
        routes = await self._resolve_siblings(top_level, "", 0, ())
        logger.info(
            "Composed %d routes from %d top-level factories",
            len(routes),
            len(top_level),
        )
        if self.config.log_routes:
            for route in routes:
                logger.info("  %-7s %s", route.method, route.full_path)
        return routes

    async def _resolve_siblings(
        self,
        factories: Sequence[Any],
        prefix: str,
        depth: int,
        lineage: tuple[int, ...],
    ) -> list[ResolvedRoute]:
        """Resolve one level of factories, preserving their order."""
        if not factories:
            return []

        if not self.config.concurrent or len(factories) == 1:
            routes: list[ResolvedRoute] = []
            for factory in factories:
                routes.extend(await self._resolve(factory, prefix, depth, lineage))
            return routes

        slots: list[list[ResolvedRoute]] = [[] for _ in factories]
        failures: list[Exception] = []

        async with anyio.create_task_group() as tg:

            async def run(index: int, factory: Any) -> None:
                try:
                    slots[index] = await self._resolve(factory, prefix, depth, lineage)
                except Exception as exc:
                    # First failure wins; the rest of the level is cancelled.
                    failures.append(exc)
                    tg.cancel_scope.cancel()

            for index, factory in enumerate(factories):
                tg.start_soon(run, index, factory)

        if failures:
            raise failures[0]

        return [route for slot in slots for route in slot]

    async def _resolve(
        self,
        factory: Any,
        prefix: str,
        depth: int,
        lineage: tuple[int, ...],
    ) -> list[ResolvedRoute]:
        """Resolve one factory and, recursively, its nested factories."""
        label = describe_factory(factory)
        full_prefix = prefix + factory_prefix(factory)

        if id(factory) in lineage:
            msg = f"Cyclic factory nesting: {label!r} is nested inside itself at {full_prefix!r}"
            raise ConfigurationError(msg)
        if depth > self.config.max_depth:
            msg = (
                f"Factory nesting deeper than max_depth={self.config.max_depth} "
                f"at {label!r} ({full_prefix!r})"
            )
            raise ConfigurationError(msg)

        try:
            dependencies = await invoke(factory.get_dependencies)
        except Exception as exc:
            raise DependencyResolutionError(
                label, full_prefix, f"Resolving dependencies failed: {exc}"
            ) from exc

        try:
            bound = list(await invoke(factory.create, dependencies))
        except Exception as exc:
            raise FactoryCreationError(
                label, full_prefix, f"Creating routes failed: {exc}"
            ) from exc

        routes = [self._resolve_route(route, full_prefix, label) for route in bound]
        logger.debug(
            "Resolved factory %s at %r: %d routes", label, full_prefix, len(routes)
        )

        nested = getattr(factory, "nested", None)
        if nested is None:
            return routes

        try:
            children = list(await invoke(nested))
        except Exception as exc:
            raise NestedFactoryError(
                label, full_prefix, f"Producing nested factories failed: {exc}"
            ) from exc

        routes.extend(
            await self._resolve_siblings(
                children, full_prefix, depth + 1, (*lineage, id(factory))
            )
        )
        return routes

    def _resolve_route(self, route: Any, full_prefix: str, label: str) -> ResolvedRoute:
        """Prefix one bound route, checking it has the bound-route shape."""
        try:
            path = route.path
            method = route.method
            action = route.action
        except AttributeError:
            msg = f"create() returned {route!r}, expected a BoundRoute"
            raise FactoryCreationError(label, full_prefix, msg) from None

        full_path = full_prefix + path
        if self.config.strict_paths:
            _check_strict_path(full_path, label)

        return ResolvedRoute(
            method=HttpMethod.coerce(method),
            full_path=full_path,
            action=action,
        )


def _check_strict_path(full_path: str, label: str) -> None:
    if not full_path.startswith("/"):
        msg = f"Route path {full_path!r} from {label!r} does not start with '/'"
        raise ConfigurationError(msg)
    if "//" in full_path:
        msg = f"Route path {full_path!r} from {label!r} contains '//'"
        raise ConfigurationError(msg)


async def compose(
    factories: Iterable[Any],
    *,
    config: AppConfig | None = None,
) -> list[ResolvedRoute]:
    """Compose *factories* into a flat, ordered list of ``ResolvedRoute``.

    Usage::

        routes = await compose([db_routes, user_routes])
        for route in routes:
            registrar.register(route.method, route.full_path, route.action)
    """
    return await Composer(config).compose(factories)
