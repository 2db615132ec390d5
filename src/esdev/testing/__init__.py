"""Test utilities for esdev servers.

Provides an in-process ASGI test client and SSE parsing helpers::

    from esdev.testing import TestClient
"""

from esdev.testing.client import TestClient
from esdev.testing.sse import SSETestResult, parse_sse_frames

__all__ = [
    "SSETestResult",
    "TestClient",
    "parse_sse_frames",
]
