"""Request and per-request context.

``Request`` is frozen metadata with async body access. ``Context`` is the
mutable object handed to every bound action as ``ctx``: it carries the
request, the captured path parameters, and the response the action may
build up instead of returning a value.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from typing import Any, NoReturn
from urllib.parse import parse_qsl

from nestling._internal.asgi import Receive, Scope
from nestling.errors import HTTPError


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. Body is read asynchronously via
    ``.body()``, ``.text()``, or ``.json()`` and cached after the first read.
    """

    method: str
    path: str
    headers: Mapping[str, str]
    query: Mapping[str, str]
    http_version: str
    client: tuple[str, int] | None

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: mutable cache for the body
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    async def body(self) -> bytes:
        """Read the full request body. The ASGI receive is consumed once."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    async def json(self) -> Any:
        """Parse the body as JSON."""
        raw = await self.body()
        return json_module.loads(raw)

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers: dict[str, str] = {}
        for raw_name, raw_value in scope.get("headers", ()):
            name = raw_name.decode("latin-1").lower()
            value = raw_value.decode("latin-1")
            headers[name] = f"{headers[name]}, {value}" if name in headers else value

        query_string = scope.get("query_string", b"").decode("latin-1")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=headers,
            query=dict(parse_qsl(query_string, keep_blank_values=True)),
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
            _receive=receive,
        )


@dataclass(slots=True)
class Context:
    """Per-request state passed to bound actions as ``ctx``.

    An action either returns its response value, or leaves it on the
    context::

        async def disconnect(deps, ctx, next):
            deps.db.is_connected = False
            ctx.status = 204
    """

    request: Request
    params: dict[str, Any] = field(default_factory=dict)
    status: int | None = None
    body: Any = None
    headers: list[tuple[str, str]] = field(default_factory=list)
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def responded(self) -> bool:
        """True once the action has set a body or a status."""
        return self.body is not None or self.status is not None

    def set_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def throw(self, status: int, detail: str = "") -> NoReturn:
        """Abort the request with an HTTP error."""
        raise HTTPError(status=status, detail=detail)
