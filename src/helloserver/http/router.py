"""
=============================================================================
ROUTE DISPATCHER
=============================================================================

Maps a request path to one of the seven hello routes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        DISPATCH FLOW                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Incoming Request                                                  │
    │   GET /sloth/hello.json                                             │
    │        │                                                            │
    │        ▼                                                            │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTES (exact path lookup)                                 │   │
    │   │                                                             │   │
    │   │   /                  → JSON   NONE                          │   │
    │   │   /hello             → TEXT   NONE                          │   │
    │   │   /hello.html        → HTML   NONE                          │   │
    │   │   /hello.json        → JSON   NONE                          │   │
    │   │   /sloth/hello       → TEXT   SLOTH                         │   │
    │   │   /sloth/hello.html  → HTML   SLOTH                         │   │
    │   │   /sloth/hello.json  → JSON   SLOTH    ← MATCH!             │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                            │
    │        ▼                                                            │
    │   sleep(sloth_delay)  →  renderer.render(JSON)  →  200              │
    │                                                                     │
    │   No match            →  not_found()            →  404              │
    │   Renderer raised     →  internal_error()       →  500              │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHING RULES
=============================================================================

Exact match on the decoded path, nothing else:

    /hello           matches
    /hello/          does NOT match  (no trailing-slash cleanup)
    /Hello           does NOT match  (case-sensitive)
    /hello?x=1       matches         (query string is not part of the path)
    POST /hello      matches         (method is ignored)

The table is fixed at import time. There is no registration API.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging
import time

from ..handlers.hello import ContentKind, HelloRenderer
from .request import HTTPRequest
from .response import HTTPResponse, ResponseBuilder, internal_error, not_found


logger = logging.getLogger(__name__)


class DelayPolicy(Enum):
    """Whether a route responds immediately or after the sloth delay."""
    NONE = "none"
    SLOTH = "sloth"


@dataclass(frozen=True)
class Route:
    """
    One entry of the route table.

    Example:
        Route(path="/sloth/hello.html", kind=ContentKind.HTML, delay=DelayPolicy.SLOTH)
    """
    path: str
    kind: ContentKind
    delay: DelayPolicy = DelayPolicy.NONE

    @property
    def is_sloth(self) -> bool:
        return self.delay is DelayPolicy.SLOTH


def _build_routes(*routes: Route) -> Dict[str, Route]:
    return {route.path: route for route in routes}


ROUTES: Dict[str, Route] = _build_routes(
    Route("/", ContentKind.JSON),
    Route("/hello", ContentKind.TEXT),
    Route("/hello.html", ContentKind.HTML),
    Route("/hello.json", ContentKind.JSON),
    Route("/sloth/hello", ContentKind.TEXT, DelayPolicy.SLOTH),
    Route("/sloth/hello.html", ContentKind.HTML, DelayPolicy.SLOTH),
    Route("/sloth/hello.json", ContentKind.JSON, DelayPolicy.SLOTH),
)


class Router:
    """
    Dispatches requests to the hello renderer.

    The router is a plain request handler: handle(request) -> HTTPResponse.
    It is shared by every worker thread and holds no mutable state.

    Usage:
        router = Router(HelloRenderer("Hello World!"), sloth_delay=30.0)
        response = router.handle(request)

    Tests pass their own `sleep` to observe or shorten the sloth delay.
    """

    def __init__(
        self,
        renderer: HelloRenderer,
        sloth_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        routes: Optional[Dict[str, Route]] = None,
    ):
        self.renderer = renderer
        self.sloth_delay = sloth_delay
        self._sleep = sleep
        self._routes = ROUTES if routes is None else routes

    def match(self, path: str) -> Optional[Route]:
        """Find the route for `path`, or None if it is not registered."""
        return self._routes.get(path)

    def routes(self) -> List[Route]:
        """All registered routes, in registration order."""
        return list(self._routes.values())

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request to the renderer.

        1. Look up the path (404 if missing)
        2. Sleep for sloth routes
        3. Render the greeting (500 if rendering fails)

        Args:
            request: The parsed HTTP request.

        Returns:
            The response to send. Never raises for a rendering failure.
        """
        route = self.match(request.path)
        if route is None:
            return not_found()

        if route.is_sloth:
            # Not interruptible: a draining server waits for this to finish.
            self._sleep(self.sloth_delay)

        try:
            rendered = self.renderer.render(route.kind)
        except Exception:
            logger.exception(f"Failed to render {route.kind.value} for {request.path}")
            return internal_error()

        return (ResponseBuilder()
                .content_type(rendered.content_type)
                .body(rendered.body)
                .build())
