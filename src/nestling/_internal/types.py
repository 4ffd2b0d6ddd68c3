"""Shared type aliases used across nestling modules."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

# Continuation passed to a bound action: runs the next route for the same
# method and path, or returns None when there is none.
Next: TypeAlias = Callable[[], Awaitable[Any]]

# Declared route action: receives the factory's dependency set explicitly
RouteAction: TypeAlias = Callable[..., Any]

# Bound route action: (ctx, next) -> response value or None
BoundAction: TypeAlias = Callable[[Any, Next], Awaitable[Any]]
