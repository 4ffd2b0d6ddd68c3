"""Trie-based router — the primitive composed routes are registered on.

Routes are added one ``(method, path)`` at a time, then the router is
compiled into an immutable lookup structure before serving.
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from nestling.errors import ConfigurationError, MethodNotAllowed, NotFound
from nestling.routing.params import convert_param, converter_pattern
from nestling.routing.route import PathSegment, Route, RouteMatch

logger = logging.getLogger("nestling.router")


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"          -> [PathSegment("users")]
        "/users/{id}"     -> [PathSegment("users"), PathSegment("{id}", is_param=True, ...)]
        "/users/{id:int}" -> [PathSegment("{id:int}", is_param=True, param_type="int")]
        "/files/{path:path}" -> [PathSegment("{path:path}", is_param=True, param_type="path")]
    """
    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if part.startswith("<") and part.endswith(">"):
            msg = (
                f"Route path {path!r} uses <param> syntax. "
                "Nestling expects {param} (e.g. /users/{id})."
            )
            raise ConfigurationError(msg)
        if part.startswith("{") and part.endswith("}"):
            inner = part[1:-1]
            if ":" in inner:
                param_name, param_type = inner.split(":", 1)
            else:
                param_name = inner
                param_type = "str"
            segments.append(
                PathSegment(
                    value=part,
                    is_param=True,
                    param_name=param_name,
                    param_type=param_type,
                )
            )
        else:
            segments.append(PathSegment(value=part))
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during registration only."""

    __slots__ = ("catch_all", "children", "param_children", "routes_by_method")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Parameter edges, one per distinct (name, converter), in registration order
        self.param_children: list[_ParamEdge] = []
        # Catch-all edge (path converter)
        self.catch_all: _CatchAllEdge | None = None
        # Routes at this node, keyed by HTTP method, in registration order
        self.routes_by_method: dict[str, list[Route]] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    """A catch-all (path) edge — consumes the remaining path."""

    param_name: str
    routes_by_method: dict[str, list[Route]] = field(default_factory=dict)


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.add(Route("/users", "GET", handler))
        router.add(Route("/users/{id:int}", "GET", handler))
        router.compile()
        match = router.match("GET", "/users/42")

    Registering the same ``(method, path)`` twice is allowed: the first
    registration handles requests and later ones are reachable through
    ``RouteMatch.routes`` (the ``next`` continuation at request time).
    """

    __slots__ = ("_compiled", "_registered", "_root")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._registered: list[Route] = []
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route to the router. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = parse_path(route.path)
        node = self._root
        bucket: dict[str, list[Route]] | None = None

        for seg in segments:
            if seg.is_param and seg.param_type == "path":
                # Catch-all: consumes rest of path, must be last segment
                if node.catch_all is None:
                    node.catch_all = _CatchAllEdge(param_name=seg.param_name or "path")
                bucket = node.catch_all.routes_by_method
                break

            if seg.is_param:
                node = _param_edge(node, seg.param_name or "", seg.param_type).node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        if bucket is None:
            bucket = node.routes_by_method

        existing = bucket.setdefault(route.method, [])
        if existing:
            logger.warning(
                "Duplicate route %s %s; the first registration handles requests",
                route.method,
                route.path,
            )
        existing.append(route)
        self._registered.append(route)

    @property
    def routes(self) -> list[Route]:
        """Return all registered routes in registration order."""
        return list(self._registered)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    @property
    def compiled(self) -> bool:
        return self._compiled

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method against registered routes.

        Candidate paths are tried static first, then parameter edges in
        registration order, then catch-alls. The first candidate with a
        route for *method* wins. ``HEAD`` falls back to ``GET``.

        Returns a ``RouteMatch`` on success.
        Raises ``NotFound`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        method = method.upper()
        parts = [p for p in path.strip("/").split("/") if p]
        allowed: set[str] = set()

        for routes_by_method, params in self._candidates(self._root, parts, 0, {}):
            routes = routes_by_method.get(method)
            if not routes and method == "HEAD":
                routes = routes_by_method.get("GET")
            if routes:
                return RouteMatch(routes=tuple(routes), path_params=params)
            allowed.update(routes_by_method)

        if not allowed:
            raise NotFound(f"No route matches {method} {path!r}")
        raise MethodNotAllowed(frozenset(allowed))

    def _candidates(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, object],
    ) -> Iterator[tuple[dict[str, list[Route]], dict[str, object]]]:
        """Yield every route bucket matching *parts*, most specific first."""
        # All parts consumed: this node's routes
        if index == len(parts):
            if node.routes_by_method:
                yield node.routes_by_method, params
            return

        part = parts[index]

        # 1. Static child (exact match)
        if part in node.children:
            yield from self._candidates(node.children[part], parts, index + 1, params)

        # 2. Parameter edges
        for edge in node.param_children:
            if edge.regex.match(part):
                new_params = {**params, edge.param_name: convert_param(part, edge.param_type)}
                yield from self._candidates(edge.node, parts, index + 1, new_params)

        # 3. Catch-all
        if node.catch_all is not None and node.catch_all.routes_by_method:
            remaining = "/".join(parts[index:])
            yield node.catch_all.routes_by_method, {
                **params,
                node.catch_all.param_name: remaining,
            }


def _param_edge(node: _TrieNode, name: str, param_type: str) -> _ParamEdge:
    """Return the edge for ``{name:param_type}`` under *node*, adding it if new."""
    for edge in node.param_children:
        if edge.param_name == name and edge.param_type == param_type:
            return edge
    edge = _ParamEdge(
        param_name=name,
        param_type=param_type,
        regex=re.compile(f"^{converter_pattern(param_type)}$"),
        node=_TrieNode(),
    )
    node.param_children.append(edge)
    return edge
