"""ASGI handler — translates ASGI scope/messages to nestling types.

The only component that touches raw ASGI directly. Converts scope dicts
to a Request, wraps it in a Context, dispatches through the router to
the bound route actions, and sends the Response back through ASGI send().
"""

from collections.abc import Sequence
from typing import Any

from nestling._internal.asgi import Receive, Scope, Send
from nestling.errors import HTTPError, NotFound
from nestling.http.request import Context, Request
from nestling.http.response import Response
from nestling.routing.route import Route
from nestling.routing.router import Router
from nestling.server.errors import http_error_response, internal_error_response
from nestling.server.negotiation import negotiate
from nestling.server.sender import send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    debug: bool = False,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    try:
        response = await dispatch(router, request)
    except HTTPError as exc:
        response = http_error_response(exc)
    except Exception as exc:
        response = internal_error_response(exc, request, debug=debug)

    await send_response(response, send, head=request.method == "HEAD")


async def dispatch(router: Router, request: Request) -> Response:
    """Match *request* and run its route chain.

    A non-``None`` return value from the action is the response body.
    Otherwise the response is whatever the action left on ``ctx``; if it
    left nothing, the request is a 404.
    """
    match = router.match(request.method, request.path)
    ctx = Context(request=request, params=dict(match.path_params))

    result = await run_chain(match.routes, ctx)

    if result is None:
        result = ctx.body
    if result is not None:
        return negotiate(result, status=ctx.status).with_headers(ctx.headers)
    if ctx.status is not None:
        return Response(status=ctx.status, headers=tuple(ctx.headers))

    raise NotFound(f"No response produced for {request.method} {request.path!r}")


async def run_chain(routes: Sequence[Route], ctx: Context) -> Any:
    """Call the first route's action; its ``next`` runs the following one.

    ``next()`` on the last route returns ``None``.
    """

    async def call(index: int) -> Any:
        if index >= len(routes):
            return None

        async def next_route() -> Any:
            return await call(index + 1)

        return await routes[index].handler(ctx, next_route)

    return await call(0)
