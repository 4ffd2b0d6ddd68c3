"""Error responses for the request pipeline.

HTTPErrors raised by the router or by route actions become their status
code. Anything else is a deferred action failure (typically a dependency
the action expected but its factory never provided) and becomes a 500.
"""

import logging

from nestling.errors import HTTPError
from nestling.http.request import Request
from nestling.http.response import Response, json_response

logger = logging.getLogger("nestling.server")


def http_error_response(exc: HTTPError) -> Response:
    """Render an HTTPError as a JSON error body."""
    detail = exc.detail or str(exc.status)
    return json_response({"error": detail}, status=exc.status).with_headers(exc.headers)


def internal_error_response(exc: Exception, request: Request, *, debug: bool) -> Response:
    """Log an unexpected action failure and render a 500."""
    logger.exception("Unhandled error in %s %s", request.method, request.path)
    detail = f"{type(exc).__name__}: {exc}" if debug else "Internal Server Error"
    return json_response({"error": detail}, status=500)
