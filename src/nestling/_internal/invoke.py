"""Invoke helpers — call sync or async callables uniformly.

Factory steps (``get_dependencies``, ``create``, ``nested``) and route
actions can be ``def`` or ``async def``. Any code that calls one of them
goes through this helper so the sync/async check lives in exactly one place.

Usage::

    from nestling._internal.invoke import invoke

    deps = await invoke(factory.get_dependencies)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable.

    Works with both sync and async callables::

        # sync: returns immediately
        def get_dependencies():
            return {"db": connection}

        # async: returns a coroutine
        async def get_dependencies():
            return {"db": await pool.acquire()}
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
