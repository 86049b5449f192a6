"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware protocol and the pipeline for chaining middleware
(Chain of Responsibility).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        REQUEST PATH                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   worker ──► AccessLogMiddleware ──► Router.handle                  │
    │                    │                      │                         │
    │                    │                      ▼                         │
    │                    │                 HTTPResponse                   │
    │                    ▼                      │                         │
    │   worker ◄── log one access line ◄────────┘                         │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Each middleware receives the request and the NEXT handler. It may act
before calling next, after it returns, or when it raises.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# Signature shared by the router and every wrapped layer.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    One layer around the router.

    Subclasses implement __call__ and decide what happens around next():

        class Timing(Middleware):
            def __call__(self, request, next):
                started = time.monotonic()
                response = next(request)
                logger.debug(f"{request.uri} took {time.monotonic() - started:.3f}s")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Handle `request`, normally by delegating to `next`.

        Exceptions from `next` may be observed but should be re-raised; the
        worker owns the 500 fallback.
        """

    @property
    def name(self) -> str:
        return type(self).__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware, folded around a final handler by wrap().

        handler = MiddlewarePipeline().add(AccessLogMiddleware()).wrap(router.handle)

    Order matters: add() appends an inner layer, so the first middleware
    added sees the request first and the response last.
    """

    def __init__(self):
        self._layers: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._layers.append(middleware)
        logger.debug(f"Middleware layer {len(self._layers)}: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the request callable.

            [AccessLog, X] + router.handle
                → AccessLog(request, next=X(request, next=router.handle))
        """
        for layer in reversed(self._layers):
            handler = partial(layer, next=handler)
        return handler

    def __len__(self) -> int:
        return len(self._layers)
