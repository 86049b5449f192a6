"""
=============================================================================
HTTP LAYER
=============================================================================

Turns bytes from a connection into an HTTPRequest, decides which greeting
to send back, and turns the resulting HTTPResponse into bytes again.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST PARSER (request.py)                                         │
    │   b"GET /hello HTTP/1.1\r\n..."  →  HTTPRequest(path="/hello")      │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   HTTPRequest  →  Route(kind, delay)  →  HelloRenderer  →  response │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE BUILDER (response.py)                                      │
    │   HTTPResponse  →  b"HTTP/1.1 200 OK\r\n..."                        │
    │   not_found() / internal_error()  →  {"message":"..."}              │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.NOT_FOUND → 404, phrase="Not Found"                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    not_found,       # 404 {"message":"not found"}
    internal_error,  # 500 {"message":"internal server error"}
)
from .router import Router, Route, DelayPolicy, ROUTES
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "not_found",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "DelayPolicy",
    "ROUTES",

    # Status codes
    "HTTPStatus",
]
