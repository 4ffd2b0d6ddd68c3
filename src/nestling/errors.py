"""Nestling exception hierarchy.

Shared across the binder, composer, router, and serving adapter so every
module raises and catches the same types.
"""

from dataclasses import dataclass


class NestlingError(Exception):
    """Base for all nestling-specific errors."""


class ConfigurationError(NestlingError):
    """Raised when the factory forest or its routes are invalid.

    Covers unknown HTTP methods, cyclic nesting, runaway nesting depth,
    and (with ``strict_paths``) malformed full paths. Always raised at
    composition time, before anything is registered.
    """


class CompositionError(NestlingError):
    """A factory step failed while composing routes.

    The original exception is chained as ``__cause__``. Composition is
    all-or-nothing: once this propagates no route has been registered.
    """

    def __init__(self, factory: str, prefix: str, message: str) -> None:
        self.factory = factory
        self.prefix = prefix
        super().__init__(f"{message} (factory {factory!r} at prefix {prefix!r})")


class DependencyResolutionError(CompositionError):
    """``get_dependencies()`` raised."""


class FactoryCreationError(CompositionError):
    """``create()`` raised or produced something that is not a route."""


class NestedFactoryError(CompositionError):
    """``nested()`` raised."""


@dataclass(frozen=True, slots=True)
class HTTPError(NestlingError):
    """An error that maps directly to an HTTP status code.

    Raised by the router or by route actions. The ASGI handler catches
    these and answers with the status and a JSON error body.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405 — route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
