"""Route frozen dataclasses.

Three stages of a factory route, plus the router's own view of it::

    RouteDeclaration  -- declared by application code (action takes deps)
    BoundRoute        -- action closed over one factory's dependency set
    ResolvedRoute     -- full path after prefix accumulation
    Route / RouteMatch -- what the Router stores and returns
"""

from dataclasses import dataclass, field
from typing import Any

from nestling._internal.types import BoundAction, RouteAction
from nestling.routing.methods import HttpMethod


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/users``  (is_param=False)
    Param:   ``/{id}``   (is_param=True, param_name="id")
    Typed:   ``/{id:int}`` (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class RouteDeclaration:
    """A route as written by application code.

    ``action`` is called as ``action(deps, ctx, next)`` once bound.
    ``method`` accepts any letter case and is stored as an ``HttpMethod``.
    """

    path: str
    method: HttpMethod
    action: RouteAction

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", HttpMethod.coerce(self.method))


@dataclass(frozen=True, slots=True)
class BoundRoute:
    """A declaration whose action is closed over a dependency set.

    ``action`` is awaited as ``action(ctx, next)``.
    """

    path: str
    method: HttpMethod
    action: BoundAction


@dataclass(frozen=True, slots=True)
class ResolvedRoute:
    """A composed route, ready for registration."""

    method: HttpMethod
    full_path: str
    action: BoundAction


@dataclass(frozen=True, slots=True)
class Route:
    """A route as stored by the Router. One method per registration."""

    path: str
    method: str
    handler: BoundAction


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match.

    ``routes`` holds every route registered for the method at the matched
    path, first-registered first.
    """

    routes: tuple[Route, ...]
    path_params: dict[str, Any] = field(default_factory=dict)

    @property
    def route(self) -> Route:
        """The route that handles the request."""
        return self.routes[0]
