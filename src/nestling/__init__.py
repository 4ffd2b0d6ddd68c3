"""Nestling — compose HTTP routes from nested, dependency-bound factories.

Routes are declared as data, grouped into factories that each resolve
their own dependencies, and nested to build URL prefixes. Composition
flattens the whole forest into an ordered list of
``(method, full_path, action)`` triples for a router to register.

Basic usage::

    from nestling import App, Factory, HttpMethod, RouteDeclaration, bind_route_actions

    async def status(deps, ctx, next):
        return {"connected": deps["db"].is_connected}

    db_routes = Factory(
        prefix="/db",
        get_dependencies=lambda: {"db": connect()},
        create=lambda deps: bind_route_actions(deps, [
            RouteDeclaration("/status", HttpMethod.GET, status),
        ]),
    )

    app = App([db_routes])  # any ASGI server
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "BoundRoute",
    "Composer",
    "CompositionError",
    "ConfigurationError",
    "Context",
    "Dependencies",
    "DependencyResolutionError",
    "Factory",
    "FactoryCreationError",
    "HTTPError",
    "HttpMethod",
    "MethodNotAllowed",
    "NestedFactoryError",
    "NestlingError",
    "NotFound",
    "Registrar",
    "Request",
    "ResolvedRoute",
    "Response",
    "RouteDeclaration",
    "RouteFactory",
    "Router",
    "RouterRegistrar",
    "bind_route_actions",
    "compose",
    "create_router",
    "register_routes",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import nestling`` fast while providing a clean top-level API.
    """
    if name == "App":
        from nestling.app import App

        return App

    if name == "AppConfig":
        from nestling.config import AppConfig

        return AppConfig

    if name in ("bind_route_actions", "Dependencies"):
        from nestling import binding as _binding

        return getattr(_binding, name)

    if name in ("Factory", "RouteFactory"):
        from nestling import factory as _factory

        return getattr(_factory, name)

    if name in ("Composer", "compose"):
        from nestling import composer as _composer

        return getattr(_composer, name)

    if name in ("Registrar", "RouterRegistrar", "create_router", "register_routes"):
        from nestling import registrar as _registrar

        return getattr(_registrar, name)

    if name == "HttpMethod":
        from nestling.routing.methods import HttpMethod

        return HttpMethod

    if name in ("BoundRoute", "ResolvedRoute", "RouteDeclaration"):
        from nestling.routing import route as _route

        return getattr(_route, name)

    if name == "Router":
        from nestling.routing.router import Router

        return Router

    if name in ("Context", "Request"):
        from nestling.http import request as _request

        return getattr(_request, name)

    if name == "Response":
        from nestling.http.response import Response

        return Response

    if name in (
        "CompositionError",
        "ConfigurationError",
        "DependencyResolutionError",
        "FactoryCreationError",
        "HTTPError",
        "MethodNotAllowed",
        "NestedFactoryError",
        "NestlingError",
        "NotFound",
    ):
        from nestling import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
