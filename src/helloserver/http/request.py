"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest object.

=============================================================================
WHAT THE REST OF THE SERVER NEEDS FROM A REQUEST
=============================================================================

The hello server routes on the PATH only. Method, query string and body are
carried along (keep-alive and Content-Length framing need them) but never influence
which route answers.

    GET /hello.json?x=1 HTTP/1.1\r\n
    Host: localhost:8080\r\n
    User-Agent: curl/8.5.0\r\n
    X-Forwarded-For: 10.0.0.7\r\n
    \r\n

        │
        ▼

    HTTPRequest(
        method="GET",
        uri="/hello.json?x=1",      ← raw request-target, for the access log
        path="/hello.json",         ← decoded path, for the router
        headers={"host": ..., "user-agent": ..., "x-forwarded-for": ...},
        ...
    )

The access log wants three headers (X-Forwarded-For, User-Agent, Referer)
and the raw request URI exactly as the client sent it, so both `uri` and
`path` are kept.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import unquote, urlsplit
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code that should be returned to the client:

        400 Bad Request                - Malformed request syntax
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Header names are stored lowercase.
    """

    method: str                          # Any RFC 7230 token; routing ignores it
    path: str                            # Decoded path without query string
    uri: str = ""                        # Raw request-target from the request line
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        if not self.uri:
            self.uri = self.path

    @property
    def remote_addr(self) -> str:
        """Client address as "ip:port", the form used in access logs."""
        host, port = self.client_address[0], self.client_address[1]
        if ":" in host:
            return f"[{host}]:{port}"
        return f"{host}:{port}"

    @property
    def user_agent(self) -> str:
        """User-Agent header, or "" when the client did not send one."""
        return self.headers.get("user-agent", "")

    @property
    def referer(self) -> str:
        """Referer header (sic, RFC 7231 spelling), or ""."""
        return self.headers.get("referer", "")

    @property
    def forwarded_for(self) -> str:
        """X-Forwarded-For header set by proxies, or ""."""
        return self.headers.get("x-forwarded-for", "")

    @property
    def is_head(self) -> bool:
        """HEAD responses carry headers only."""
        return self.method == "HEAD"

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        HTTP/1.1 defaults to keep-alive unless "Connection: close".
        HTTP/1.0 defaults to close unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        1. Size check               → 413 if over max_request_size
        2. Split on \\r\\n\\r\\n       → 400 if missing
        3. Request line             → 400 if malformed, 505 if bad version
        4. Headers                  → lowercase names, repeated values joined
        5. Body by Content-Length   → 400 if short or non-numeric
              │
              ▼
        HTTPRequest

    REQUEST_LINE_PATTERN accepts any RFC 7230 token as the method. The hello
    routes answer every method the same way, so there is no allow-list.
    """

    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        """
        Initialize the request parser.

        Args:
            max_request_size: Maximum allowed request size in bytes.
                              Larger requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, uri, path, version = self._parse_request_line(lines[0])

        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']!r}"
            )
        if content_length < 0 or len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            uri=uri,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, str, str]:
        """
        Parse the HTTP request line.

            "GET /hello.json?x=1 HTTP/1.1"
             ─┬─ ───────┬─────── ───┬────
              │         │           │
            Method  Request-URI  Version

        Returns:
            Tuple of (method, raw uri, decoded path, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        return method, uri, self._target_path(uri), version

    def _target_path(self, uri: str) -> str:
        """
        Decoded path of a request-target.

            origin-form     /hello.json?x=1           → /hello.json
            absolute-form   http://host/hello?x=1    → /hello
            asterisk-form   *                         → *

        Everything before "?" is the path, including ";params" and a
        leading "//", so those never collide with a registered route.
        """
        if uri.startswith("/") or uri == "*":
            raw_path = uri.partition("?")[0]
        elif "://" in uri:
            raw_path = urlsplit(uri).path or "/"
        else:
            raise HTTPParseError(f"Invalid request-target: {uri!r}")
        return unquote(raw_path)

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse HTTP headers into a dictionary with lowercase names.

        Obsolete line folding (continuation lines starting with whitespace)
        is appended to the previous header. Repeated headers are joined
        with ", ", which is what X-Forwarded-For chains expect.
        """
        headers: Dict[str, str] = {}
        current_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # Lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
