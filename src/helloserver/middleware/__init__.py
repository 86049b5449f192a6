"""
=============================================================================
MIDDLEWARE
=============================================================================

Code that runs between receiving a parsed request and calling the router.

AccessLogMiddleware:
    Writes one access line per request to the "helloserver.access" logger,
    including requests that end in 404 or 500.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import AccessLogMiddleware, AccessLogEntry, RequestOutcome

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    # Access log
    "AccessLogMiddleware",
    "AccessLogEntry",
    "RequestOutcome",
]
