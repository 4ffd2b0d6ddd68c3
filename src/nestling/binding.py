"""Action binding — close route actions over a factory's dependency set.

A declared action takes the dependency set as its first argument::

    async def status(deps, ctx, next):
        return {"connected": deps.db.is_connected}

``bind_route_actions`` turns each declaration into a ``BoundRoute`` whose
action is called as ``action(ctx, next)``. Every action bound from the
same dependency set sees the same instance, so mutations made by one
action are visible to the others for the lifetime of that factory.

Nothing is validated at bind time. A handler that reads a missing field
fails when it runs, not when it is bound.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from nestling._internal.invoke import invoke
from nestling._internal.types import BoundAction, Next, RouteAction
from nestling.routing.route import BoundRoute, RouteDeclaration


def bind_route_actions(
    dependencies: Any,
    declarations: Iterable[RouteDeclaration],
) -> list[BoundRoute]:
    """Bind every declaration's action to *dependencies*.

    Output length and order match *declarations*. Pure: no I/O, nothing
    is registered.
    """
    return [
        BoundRoute(
            path=declaration.path,
            method=declaration.method,
            action=bind_action(dependencies, declaration.action),
        )
        for declaration in declarations
    ]


def bind_action(dependencies: Any, action: RouteAction) -> BoundAction:
    """Return ``(ctx, next) -> Awaitable`` calling ``action(dependencies, ctx, next)``.

    Sync and async actions are both accepted; the bound form is always
    awaitable.
    """

    async def bound(ctx: Any, next: Next) -> Any:  # noqa: A002
        return await invoke(action, dependencies, ctx, next)

    bound.__name__ = getattr(action, "__name__", bound.__name__)
    bound.__qualname__ = getattr(action, "__qualname__", bound.__qualname__)
    bound.__doc__ = getattr(action, "__doc__", None)
    bound.__wrapped__ = action  # type: ignore[attr-defined]
    return bound


class Dependencies:
    """Mutable attribute namespace for a factory's dependency set.

    Fields read as attributes or items::

        deps = Dependencies(db=connection)
        deps.db is deps["db"]

    Unknown fields raise ``AttributeError`` (or ``KeyError`` for item
    access) when read, in keeping with deferred validation.
    """

    def __init__(self, fields: Mapping[str, Any] | None = None, /, **values: Any) -> None:
        if fields:
            self.__dict__.update(fields)
        self.__dict__.update(values)

    @classmethod
    def merge(cls, *sources: Any) -> "Dependencies":
        """Layer *sources* left to right into one namespace.

        Mappings contribute their items. Other objects contribute their
        public data attributes (class-level fields such as ``prefix`` and
        instance fields, instance winning), so a class-based factory can
        expose its own configuration next to its resolved dependencies::

            def create(self, deps):
                return bind_route_actions(Dependencies.merge(self, deps), [...])
        """
        merged: dict[str, Any] = {}
        for source in sources:
            if isinstance(source, Mapping):
                merged.update(source)
            else:
                merged.update(_public_attributes(source))
        return cls(merged)

    def __getitem__(self, name: str) -> Any:
        return self.__dict__[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.__dict__[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self.__dict__

    def __iter__(self) -> Iterator[str]:
        return iter(self.__dict__)

    def __len__(self) -> int:
        return len(self.__dict__)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Dependencies):
            return self.__dict__ == other.__dict__
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"Dependencies({fields})"


def _public_attributes(source: Any) -> dict[str, Any]:
    """Public data attributes of *source*: class fields, then instance fields.

    Methods, properties and other descriptors are skipped. Slotted
    instance fields are included.
    """
    attributes: dict[str, Any] = {}
    for klass in reversed(type(source).__mro__[:-1]):
        for name, value in vars(klass).items():
            if name.startswith("_") or callable(value) or hasattr(value, "__get__"):
                continue
            attributes[name] = value

    if hasattr(source, "__dict__"):
        names: Iterable[str] = list(vars(source))
    else:
        names = [
            name
            for klass in type(source).__mro__
            for name in getattr(klass, "__slots__", ())
        ]
    attributes.update(
        (name, getattr(source, name))
        for name in names
        if not name.startswith("_") and hasattr(source, name)
    )
    return attributes
