"""Registrar — attach composed routes to a router primitive.

The composer never talks to a router directly. Whatever receives the
routes only has to accept ``register(method, full_path, action)``,
called once per route in composition order.
"""

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from nestling._internal.types import BoundAction
from nestling.composer import compose
from nestling.config import AppConfig
from nestling.routing.methods import HttpMethod
from nestling.routing.route import ResolvedRoute, Route
from nestling.routing.router import Router


@runtime_checkable
class Registrar(Protocol):
    """Anything that can register a ``(method, full_path, action)`` triple."""

    def register(self, method: HttpMethod, full_path: str, action: BoundAction) -> None: ...


def register_routes(registrar: Registrar, routes: Iterable[ResolvedRoute]) -> None:
    """Register every route with *registrar*, preserving order."""
    for route in routes:
        registrar.register(route.method, route.full_path, route.action)


class RouterRegistrar:
    """Registers composed routes on a nestling ``Router``."""

    __slots__ = ("router",)

    def __init__(self, router: Router) -> None:
        self.router = router

    def register(self, method: HttpMethod, full_path: str, action: BoundAction) -> None:
        self.router.add(Route(path=full_path, method=str(method), handler=action))


async def create_router(
    factories: Iterable[Any],
    *,
    config: AppConfig | None = None,
) -> Router:
    """Compose *factories* into a compiled ``Router``.

    Composition runs to completion before anything is registered, so a
    failing factory leaves no half-built router behind.

    Usage::

        router = await create_router([db_routes, user_routes])
        match = router.match("GET", "/db/status")
    """
    routes = await compose(factories, config=config)
    router = Router()
    register_routes(RouterRegistrar(router), routes)
    router.compile()
    return router
