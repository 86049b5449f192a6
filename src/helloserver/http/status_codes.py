"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes this server can put on the wire, with their reason phrases.

=============================================================================
WHICH CODES, AND WHO SENDS THEM
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  Code  │  Sent by                                                  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  200   │  Router: one of the seven hello routes rendered           │
    │  400   │  Server: request bytes could not be parsed                │
    │  404   │  Router: path is not in the route table                   │
    │  408   │  Server: client did not finish its request in time        │
    │  413   │  Server: request exceeded max_request_size                │
    │  500   │  Router/Server: rendering or handler failure              │
    │  503   │  Server: connection accepted while draining               │
    │  505   │  Parser: HTTP version other than 1.0 / 1.1                │
    └────────┴───────────────────────────────────────────────────────────┘

Only 200, 404 and 500 ever reach the access log. The others are
transport-level rejections that happen before a request is dispatched.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so a status compares equal to its number:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200                            # Greeting rendered

    BAD_REQUEST = 400                   # Malformed request syntax
    NOT_FOUND = 404                     # Path not in the route table
    REQUEST_TIMEOUT = 408               # Client took too long to send request
    PAYLOAD_TOO_LARGE = 413             # Request body too large

    INTERNAL_SERVER_ERROR = 500         # Rendering failed
    SERVICE_UNAVAILABLE = 503           # Server is draining
    HTTP_VERSION_NOT_SUPPORTED = 505    # HTTP version not supported

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
