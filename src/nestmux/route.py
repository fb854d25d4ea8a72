"""Declarative route trees compiled into a ServeMux.

Routes are built with chained `use`/`add` calls, then mounted:

    root = Route("/api").use(auth).add(
        Route("/user/{id}").add(
            get(get_user),
            patch(update_user).use(audit),
        ),
    )
    mux = root.mount()

Each node's path is appended verbatim to its parent's and its middleware is
appended to its parent's chain, so `GET /api/user/{id}` is served by
`auth(get_user)` and `PATCH /api/user/{id}` by `auth(audit(update_user))`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from functools import reduce

from nestmux.mux import ServeMux
from nestmux.rsgi import RSGIHTTPHandler

logger = logging.getLogger(__name__)

type Middleware = Callable[[RSGIHTTPHandler], RSGIHTTPHandler]
type WalkFn = Callable[[Route, str, tuple[Middleware, ...]], object]


def compose(*middleware: Middleware) -> Middleware:
    """Combine middleware into one, applied so that the first runs first.

    `compose(m0, m1, m2)(h)` is `m0(m1(m2(h)))`. With no middleware the
    handler is returned unchanged.
    """

    def composed(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        return reduce(lambda h, m: m(h), reversed(middleware), handler)

    return composed


class Route:
    """A node in a route tree.

    Holds a path segment, the middleware applied to itself and everything
    below it, child routes, and optionally a handler for one method (the
    empty method matches any method).

    Routes are mutable until mounted. `mount` takes a snapshot: changing the
    tree afterwards has no effect on muxes already returned.
    """

    __slots__ = ("handler", "method", "middlewares", "path", "routes")
    path: str
    middlewares: list[Middleware]
    routes: list[Route]
    handler: RSGIHTTPHandler | None
    method: str

    def __init__(
        self,
        path: str = "",
        *,
        handler: RSGIHTTPHandler | None = None,
        method: str = "",
    ) -> None:
        self.path = path
        self.middlewares = []
        self.routes = []
        self.handler = handler
        self.method = method

    def __repr__(self) -> str:
        return (
            f"Route(path={self.path!r}, method={self.method!r}, "
            f"handler={self.handler!r}, middlewares={len(self.middlewares)}, "
            f"routes={len(self.routes)})"
        )

    def use(self, *middleware: Middleware) -> Route:
        """Adds middleware that runs before this route's handler and child routes."""
        if any(mw is None for mw in middleware):
            msg = "middleware cannot contain None"
            raise ValueError(msg)
        self.middlewares.extend(middleware)
        return self

    def add(self, *routes: Route) -> Route:
        """Adds child routes."""
        for route in routes:
            if route is None:
                msg = "routes cannot contain None"
                raise ValueError(msg)
            if not isinstance(route, Route):
                msg = f"routes must be Route instances, got {type(route).__name__}"
                raise TypeError(msg)
        self.routes.extend(routes)
        return self

    def mount(self) -> ServeMux:
        """Returns a new ServeMux with every handler in the tree registered.

        Performs no validation of the tree: routes without handlers are
        skipped and an empty tree gives an empty mux. Pattern errors come from
        ServeMux.handle.
        """
        return self._mount(None)

    def mount_and_walk(self, walk_fn: WalkFn) -> ServeMux:
        """Same as `mount`, calling walk_fn for every route in the tree.

        walk_fn receives the route along with the path and middleware
        accumulated by its parents (excluding the route's own), before the
        route is registered. It must not modify the tree.
        """
        if walk_fn is None:
            msg = "walk_fn cannot be None"
            raise ValueError(msg)
        return self._mount(walk_fn)

    def _mount(self, walk_fn: WalkFn | None) -> ServeMux:
        mux = ServeMux()
        start_time = time.perf_counter()
        visited = self._inspect_route("", (), mux, walk_fn)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "nestmux.mount: %d routes, %d nodes, %.1fms",
            len(mux.patterns()),
            visited,
            elapsed_ms,
        )
        return mux

    def _inspect_route(
        self,
        path: str,
        middleware: tuple[Middleware, ...],
        mux: ServeMux,
        walk_fn: WalkFn | None,
    ) -> int:
        """Registers this route and its children on mux, depth first.

        Returns the number of routes visited.
        """
        chained_path = path + self.path
        chained_middleware = middleware + tuple(self.middlewares)

        if walk_fn is not None:
            walk_fn(self, path, middleware)

        if self.handler is not None:
            pattern = f"{self.method} {chained_path}" if self.method else chained_path
            logger.debug(
                "nestmux.mount: %s -> %s (%d middleware)",
                pattern,
                getattr(self.handler, "__qualname__", self.handler),
                len(chained_middleware),
            )
            mux.handle(pattern, compose(*chained_middleware)(self.handler))

        visited = 1
        for route in self.routes:
            visited += route._inspect_route(
                chained_path, chained_middleware, mux, walk_fn
            )
        return visited


def new_route(path: str) -> Route:
    """Returns an empty route for path."""
    return Route(path)


def connect(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for CONNECT."""
    return Route(handler=handler, method="CONNECT")


def delete(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for DELETE."""
    return Route(handler=handler, method="DELETE")


def get(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for GET (and HEAD)."""
    return Route(handler=handler, method="GET")


def head(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for HEAD."""
    return Route(handler=handler, method="HEAD")


def options(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for OPTIONS."""
    return Route(handler=handler, method="OPTIONS")


def patch(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for PATCH."""
    return Route(handler=handler, method="PATCH")


def post(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for POST."""
    return Route(handler=handler, method="POST")


def put(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for PUT."""
    return Route(handler=handler, method="PUT")


def trace(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for TRACE."""
    return Route(handler=handler, method="TRACE")


def handle(handler: RSGIHTTPHandler | None) -> Route:
    """Returns a route with no path serving handler for any method.

    Methods registered on their own for the same path take precedence.
    """
    return Route(handler=handler)
