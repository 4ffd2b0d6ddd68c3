"""Routing — route data model, HTTP methods, and the trie router.

Factories declare ``RouteDeclaration``s, bind them into ``BoundRoute``s,
and the composer flattens those into ``ResolvedRoute``s. The ``Router``
is the primitive those resolved routes are registered on.
"""
