"""Path parameter parsing and type conversion.

Built-in converters for route path segments like ``{id:int}``.
"""

from nestling.errors import ConfigurationError

# (regex_pattern, python_type) for each supported converter
CONVERTERS: dict[str, tuple[str, type]] = {
    "str": (r"[^/]+", str),
    "int": (r"\d+", int),
    "float": (r"\d+(?:\.\d+)?", float),
    "path": (r".+", str),
}


def converter_pattern(param_type: str) -> str:
    """Return the regex for *param_type*.

    Raises ``ConfigurationError`` for unknown converters so a typo in a
    route path fails at registration, not on the first request.
    """
    try:
        pattern, _ = CONVERTERS[param_type]
    except KeyError:
        known = ", ".join(sorted(CONVERTERS))
        msg = f"Unknown path converter {param_type!r}. Known converters: {known}"
        raise ConfigurationError(msg) from None
    return pattern


def convert_param(value: str, param_type: str) -> str | int | float:
    """Convert a captured path parameter string to the target type.

    Raises ``ValueError`` if the string cannot be converted.
    """
    _, target_type = CONVERTERS[param_type]
    return target_type(value)
