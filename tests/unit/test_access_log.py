"""
Unit tests for the access log middleware.
"""

import logging

import pytest

from helloserver.http.request import HTTPRequest
from helloserver.http.response import HTTPResponse, not_found, internal_error
from helloserver.http.status_codes import HTTPStatus
from helloserver.middleware import (
    AccessLogMiddleware,
    AccessLogEntry,
    MiddlewarePipeline,
    RequestOutcome,
)


ACCESS_LOGGER = "helloserver.access"


def make_request(headers=None, uri="/hello?x=1") -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path=uri.split("?")[0],
        uri=uri,
        headers=headers or {},
        client_address=("127.0.0.1", 53210),
    )


def access_lines(caplog):
    return [r.getMessage() for r in caplog.records if r.name == ACCESS_LOGGER]


class TestAccessLogEntry:
    """Tests for AccessLogEntry formatting."""

    def test_all_fields_present(self):
        request = make_request({
            "x-forwarded-for": "10.0.0.7",
            "user-agent": "curl/8.5.0",
            "referer": "http://example.com/",
        })

        entry = AccessLogEntry.from_request(request, 200)

        assert entry.to_text() == (
            "127.0.0.1:53210 10.0.0.7 curl/8.5.0 http://example.com/ /hello?x=1 200"
        )

    def test_missing_headers_render_as_dash(self):
        entry = AccessLogEntry.from_request(make_request(), 404)

        assert entry.to_text() == "127.0.0.1:53210 - - - /hello?x=1 404"

    @pytest.mark.parametrize("status,outcome", [
        (200, RequestOutcome.SUCCESS),
        (404, RequestOutcome.CLIENT_ERROR),
        (500, RequestOutcome.SERVER_ERROR),
    ])
    def test_outcome(self, status, outcome):
        assert AccessLogEntry.from_request(make_request(), status).outcome is outcome


class TestAccessLogMiddleware:
    """Tests for AccessLogMiddleware."""

    def test_logs_success(self, caplog):
        middleware = AccessLogMiddleware()

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            response = middleware(make_request(), lambda r: HTTPResponse(body=b"ok"))

        assert response.status == HTTPStatus.OK
        assert access_lines(caplog) == ["127.0.0.1:53210 - - - /hello?x=1 200"]

    def test_logs_not_found(self, caplog):
        middleware = AccessLogMiddleware()

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            middleware(make_request(uri="/missing"), lambda r: not_found())

        assert access_lines(caplog) == ["127.0.0.1:53210 - - - /missing 404"]

    def test_record_carries_outcome(self, caplog):
        middleware = AccessLogMiddleware()

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            middleware(make_request(uri="/missing"), lambda r: not_found())

        records = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        assert records[0].outcome == "client_error"

    def test_logs_internal_error(self, caplog):
        middleware = AccessLogMiddleware()

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            middleware(make_request(), lambda r: internal_error())

        assert access_lines(caplog)[0].endswith(" 500")

    def test_exception_logged_once_as_500_and_reraised(self, caplog):
        middleware = AccessLogMiddleware()

        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            with pytest.raises(RuntimeError):
                middleware(make_request(), broken)

        assert access_lines(caplog) == ["127.0.0.1:53210 - - - /hello?x=1 500"]

    def test_one_line_per_request(self, caplog):
        handler = MiddlewarePipeline().add(AccessLogMiddleware()).wrap(lambda r: HTTPResponse())

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            for _ in range(3):
                handler(make_request())

        assert len(access_lines(caplog)) == 3

    def test_log_level_is_configurable(self, caplog):
        middleware = AccessLogMiddleware(log_level=logging.DEBUG)

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            middleware(make_request(), lambda r: HTTPResponse())

        assert access_lines(caplog) == []


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline ordering."""

    def test_first_added_is_outermost(self):
        calls = []

        class Tag(AccessLogMiddleware):
            def __init__(self, tag):
                super().__init__()
                self.tag = tag

            def __call__(self, request, next):
                calls.append(f"{self.tag}:before")
                response = next(request)
                calls.append(f"{self.tag}:after")
                return response

        pipeline = MiddlewarePipeline().add(Tag("outer")).add(Tag("inner"))
        pipeline.wrap(lambda r: HTTPResponse())(make_request())

        assert calls == ["outer:before", "inner:before", "inner:after", "outer:after"]
        assert len(pipeline) == 2
