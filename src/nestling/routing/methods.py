"""The closed set of HTTP methods a route may be declared with."""

from enum import StrEnum

from nestling.errors import ConfigurationError


class HttpMethod(StrEnum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"

    @classmethod
    def coerce(cls, value: "HttpMethod | str") -> "HttpMethod":
        """Return *value* as an ``HttpMethod``, accepting any letter case.

        Raises ``ConfigurationError`` for methods outside the enumeration.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            msg = f"Unknown HTTP method {value!r}. Expected one of: {allowed}"
            raise ConfigurationError(msg) from None
