"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Writes exactly one access line per dispatched request, whatever happened
to it: a greeting, a 404, a rendering failure, or an exception escaping the
handler chain.

=============================================================================
LINE FORMAT
=============================================================================

Six space-separated fields, missing headers rendered as "-":

    ┌────────────────┬──────────────────┬────────────┬─────────┬────────────┬────────┐
    │ remote addr    │ X-Forwarded-For  │ User-Agent │ Referer │ URI        │ status │
    ├────────────────┼──────────────────┼────────────┼─────────┼────────────┼────────┤
    │ 127.0.0.1:5321 │ -                │ curl/8.5.0 │ -       │ /hello?x=1 │ 200    │
    └────────────────┴──────────────────┴────────────┴─────────┴────────────┴────────┘

    127.0.0.1:53210 - curl/8.5.0 - /hello?x=1 200

Header values are written as received, so a User-Agent containing spaces
spans several whitespace-separated tokens. Parse from both ends if needed.

The line goes to the "helloserver.access" logger at INFO so deployments can
route access lines separately:

    logging.getLogger("helloserver.access").addHandler(file_handler)

=============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


logger = logging.getLogger("helloserver.access")

MISSING = "-"


class RequestOutcome(Enum):
    """Classification of a finished request."""
    SUCCESS = "success"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"

    @classmethod
    def from_status(cls, status: int) -> "RequestOutcome":
        if status >= 500:
            return cls.SERVER_ERROR
        if status >= 400:
            return cls.CLIENT_ERROR
        return cls.SUCCESS


@dataclass
class AccessLogEntry:
    """
    One access line.

    Built from the request and the final status by from_request(); rendered
    by to_text().
    """

    remote_addr: str
    forwarded_for: str
    user_agent: str
    referer: str
    uri: str
    status: int

    @property
    def outcome(self) -> RequestOutcome:
        return RequestOutcome.from_status(self.status)

    @classmethod
    def from_request(cls, request: HTTPRequest, status: int) -> "AccessLogEntry":
        return cls(
            remote_addr=request.remote_addr,
            forwarded_for=request.forwarded_for or MISSING,
            user_agent=request.user_agent or MISSING,
            referer=request.referer or MISSING,
            uri=request.uri,
            status=int(status),
        )

    def to_text(self) -> str:
        return (
            f"{self.remote_addr} {self.forwarded_for} {self.user_agent} "
            f"{self.referer} {self.uri} {self.status}"
        )


class AccessLogMiddleware(Middleware):
    """
    Access logging middleware. Must be FIRST in the pipeline so it sees
    every outcome the handlers below it can produce.

        pipeline.add(AccessLogMiddleware())

    If the next handler raises, the line is written with status 500 and the
    exception propagates; the worker turns it into a 500 response.
    """

    def __init__(self, log_level: int = logging.INFO):
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            response = next(request)
        except Exception:
            self._emit(AccessLogEntry.from_request(request, HTTPStatus.INTERNAL_SERVER_ERROR))
            raise

        self._emit(AccessLogEntry.from_request(request, response.status))
        return response

    def _emit(self, entry: AccessLogEntry) -> None:
        logger.log(self.log_level, entry.to_text(), extra={"outcome": entry.outcome.value})
