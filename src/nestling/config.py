"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Composition and serving configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(max_depth=8, concurrent=False)
    """

    # Composition
    max_depth: int = 64  # Nesting levels below the top-level factories
    concurrent: bool = True  # Resolve sibling factories in one task group
    strict_paths: bool = False  # Reject full paths without a leading "/" or with "//"

    # Serving
    debug: bool = False  # Expose exception text in default 500 responses

    # Logging
    log_routes: bool = False  # Log every composed route at INFO level
