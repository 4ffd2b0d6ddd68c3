"""Nestling application class.

Mutable during setup (factories are mounted). Composed and frozen at
startup: during ASGI lifespan, when entered by the TestClient, or on the
first request if the server skips lifespan.
"""

from collections.abc import Iterable
from typing import Any

import anyio

from nestling._internal.asgi import Receive, Scope, Send
from nestling.composer import Composer
from nestling.config import AppConfig
from nestling.registrar import RouterRegistrar, register_routes
from nestling.routing.route import ResolvedRoute
from nestling.routing.router import Router
from nestling.server.handler import handle_request


class App:
    """An ASGI application serving composed route factories.

    Usage::

        app = App([db_routes, user_routes])

        # or, incrementally
        app = App(config=AppConfig(max_depth=8))
        app.mount(db_routes)
        app.mount(user_routes)

    Composition happens once. A failing factory fails startup, so the
    server never accepts a request with a partial route table.
    """

    __slots__ = (
        "_factories",
        "_router",
        "_routes",
        "_started",
        "_startup_lock",
        "config",
    )

    def __init__(
        self,
        factories: Iterable[Any] = (),
        config: AppConfig | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._factories: list[Any] = list(factories)
        self._started: bool = False
        self._startup_lock: anyio.Lock = anyio.Lock()

        # Composed state, set during startup()
        self._routes: list[ResolvedRoute] = []
        self._router: Router | None = None

    # -- Setup --

    def mount(self, *factories: Any) -> None:
        """Add top-level factories. Must be called before startup."""
        self._check_not_started()
        self._factories.extend(factories)

    @property
    def factories(self) -> tuple[Any, ...]:
        return tuple(self._factories)

    # -- Composed state --

    @property
    def started(self) -> bool:
        return self._started

    @property
    def routes(self) -> list[ResolvedRoute]:
        """The composed routes, in registration order."""
        self._check_started()
        return list(self._routes)

    @property
    def router(self) -> Router:
        self._check_started()
        assert self._router is not None
        return self._router

    async def startup(self) -> None:
        """Compose every mounted factory and compile the router.

        Safe to call more than once; only the first call composes.
        Composition errors propagate unchanged.
        """
        if self._started:
            return
        async with self._startup_lock:
            if self._started:
                return
            await self._compose()

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        await self.startup()
        assert self._router is not None

        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            debug=self.config.debug,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Composition runs on ``lifespan.startup``; a failure is reported as
        ``lifespan.startup.failed`` so the server refuses to start.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    await send(
                        {
                            "type": "lifespan.startup.failed",
                            "message": str(exc),
                        }
                    )
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    async def _compose(self) -> None:
        """Compose, register, and compile. Caller holds ``_startup_lock``."""
        routes = await Composer(self.config).compose(self._factories)
        router = Router()
        register_routes(RouterRegistrar(router), routes)
        router.compile()

        self._routes = routes
        self._router = router
        self._started = True

    def _check_not_started(self) -> None:
        if self._started:
            msg = (
                "Cannot mount factories after the app has started. "
                "Mount every factory before serving requests."
            )
            raise RuntimeError(msg)

    def _check_started(self) -> None:
        if not self._started:
            msg = "Routes are composed at startup. Await app.startup() first."
            raise RuntimeError(msg)
