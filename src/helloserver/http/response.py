"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Builds HTTP/1.1 responses and serializes them to bytes (RFC 7230).

=============================================================================
RESPONSE ANATOMY
=============================================================================

    HTTP/1.1 200 OK\\r\\n                              ← status line
    Content-Type: application/json; charset=utf-8\\r\\n
    Content-Length: 26\\r\\n                           ← always added
    Date: Mon, 19 Oct 2026 12:00:00 GMT\\r\\n          ← always added
    Server: helloserver/1.0\\r\\n                      ← always added
    \\r\\n
    {"message":"Hello World!"}                        ← body

=============================================================================
ERROR BODIES
=============================================================================

Every error this server reports to a dispatched request has the same JSON
shape as the greeting itself:

    404  {"message":"not found"}
    500  {"message":"internal server error"}

error_response() writes the message into the body WITHOUT JSON-escaping it.
That is only correct because the two messages above are fixed literals with
no quote, backslash or control characters. Anything else (parse errors,
timeouts) goes through ResponseBuilder.json(), which escapes properly.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json; charset=utf-8"

SERVER_NAME = "helloserver/1.0"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder for a more convenient way to construct responses.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line, e.g. "HTTP/1.1 404 Not Found".
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def to_bytes(self, server_name: str = SERVER_NAME, include_body: bool = True) -> bytes:
        """
        Serialize the response to bytes for sending over the socket.

        Content-Length always describes the full body, even when
        include_body is False (HEAD requests), as RFC 7231 §4.3.2 asks.

        Args:
            server_name: Value for the Server header.
            include_body: False to send headers only.

        Returns:
            Complete HTTP response as bytes ready for socket.sendall()
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"

        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.BAD_REQUEST)
            .json({"message": "bad request"})
            .close_connection()
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the response body. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Set a JSON response body.

        Serialized compactly (no spaces after separators) with non-ASCII
        characters kept as UTF-8.
        """
        self._body = json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client this connection closes after the response."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Mon, 19 Oct 2026 12:00:00 GMT

    HTTP dates are always GMT. The names are spelled out here rather than
    taken from strftime() so the output does not depend on the locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# ERROR RESPONDER
# =============================================================================

NOT_FOUND_MESSAGE = "not found"
INTERNAL_ERROR_MESSAGE = "internal server error"


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    Create a JSON error response with body {"message":"<message>"}.

    The message is formatted in as-is, not JSON-escaped. Only call this with
    NOT_FOUND_MESSAGE or INTERNAL_ERROR_MESSAGE; for arbitrary text use
    ResponseBuilder().json({"message": text}).

    Args:
        status: HTTP status for the status line.
        message: One of the fixed error messages.

    Returns:
        HTTPResponse with the given status and JSON content type.
    """
    return HTTPResponse(
        status=status,
        headers={"Content-Type": JSON_CONTENT_TYPE},
        body=f'{{"message":"{message}"}}'.encode("utf-8"),
    )


def not_found() -> HTTPResponse:
    """404 for any path outside the route table."""
    return error_response(HTTPStatus.NOT_FOUND, NOT_FOUND_MESSAGE)


def internal_error() -> HTTPResponse:
    """500 for a request whose rendering failed."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)
