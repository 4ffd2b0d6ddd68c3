"""Route factories — the integration contract for application code.

A factory is anything with this shape (no base class required)::

    prefix            optional str, "" when absent
    get_dependencies  () -> dependency set          (sync or async)
    create            (deps) -> iterable of BoundRoute   (sync or async)
    nested            optional () -> iterable of factories (sync or async)

Plain data::

    users = Factory(
        prefix="/users",
        get_dependencies=lambda: {"store": store},
        create=lambda deps: bind_route_actions(deps, [...]),
    )

Or a class::

    class UserRoutes:
        prefix = "/users"

        async def get_dependencies(self):
            return Dependencies(store=await open_store())

        def create(self, deps):
            return bind_route_actions(deps, [...])
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from nestling.routing.route import BoundRoute


@runtime_checkable
class RouteFactory(Protocol):
    """Structural protocol for route factories.

    Only ``get_dependencies`` and ``create`` are required. ``prefix`` and
    ``nested`` are read with ``getattr`` and may be omitted entirely.
    """

    def get_dependencies(self) -> Any: ...
    def create(self, dependencies: Any) -> Iterable[BoundRoute] | Any: ...


@dataclass(frozen=True, slots=True)
class Factory:
    """A route factory declared as data.

    ``nested`` is a zero-argument producer, invoked lazily during
    composition, so building a ``Factory`` never builds its descendants.
    """

    get_dependencies: Callable[[], Any]
    create: Callable[[Any], Any]
    prefix: str = ""
    nested: Callable[[], Any] | None = None
    name: str | None = None


def factory_prefix(factory: object) -> str:
    """The factory's own prefix, ``""`` when absent or ``None``."""
    return getattr(factory, "prefix", None) or ""


def describe_factory(factory: object) -> str:
    """Human-readable label for logs and error messages."""
    name = getattr(factory, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(factory).__qualname__
