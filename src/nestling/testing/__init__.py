"""Test utilities for nestling applications.

::

    from nestling.testing import TestClient
"""

from nestling.testing.client import TestClient

__all__ = ["TestClient"]
