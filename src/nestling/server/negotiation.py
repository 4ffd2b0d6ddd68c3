"""Content negotiation — maps action return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

from typing import Any

from nestling.errors import ConfigurationError
from nestling.http.response import Response, json_response


def negotiate(value: Any, *, status: int | None = None) -> Response:
    """Convert a bound action's response value to a Response.

    Dispatch order:

    1. ``Response``            -> pass through
    2. ``(value, int)``        -> negotiate value, override status
    3. ``str``                 -> text/plain
    4. ``bytes``               -> application/octet-stream
    5. anything JSON-ish       -> application/json (dict, list, numbers, bools)

    *status* overrides the default 200 for non-``Response`` values.
    """
    match value:
        case Response():
            return value if status is None else value.with_status(status)
        case (inner, int() as code) if isinstance(value, tuple):
            return negotiate(inner, status=code)
        case str():
            return Response(body=value, status=status or 200)
        case bytes():
            return Response(
                body=value,
                status=status or 200,
                content_type="application/octet-stream",
            )
        case dict() | list() | int() | float() | bool():
            return json_response(value, status=status or 200)
        case _:
            msg = (
                f"Route action returned {type(value).__name__!r}, which cannot be "
                "sent as a response. Return a Response, str, bytes, dict, or list."
            )
            raise ConfigurationError(msg)
