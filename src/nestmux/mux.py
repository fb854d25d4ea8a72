"""HTTP request multiplexer implementation.

Inspired by go 1.22+ net/http's ServeMux
"""

from collections.abc import Callable
from functools import lru_cache

from nestmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler
from nestmux.tree import (
    FrozenDict,
    LeafKey,
    Node,
    add_route,
    allowed_methods,
    find_handler,
    http_route,
    leaf_key,
    path_params,
)

type LookupResult = tuple[
    RSGIHTTPHandler | None, FrozenDict[str, str], str, tuple[str, ...]
]
type Lookup = Callable[[str, LeafKey | None], LookupResult]


async def not_found(_scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(
        404, [("content-type", "text/plain; charset=utf-8")], "404 page not found\n"
    )


async def method_not_allowed(_scope: HTTPScope, proto: HTTPProtocol) -> None:
    headers = [("content-type", "text/plain; charset=utf-8")]
    allowed = allowed_methods.get(())
    if allowed:
        headers.append(("allow", ", ".join(allowed)))
    proto.response_str(405, headers, "Method Not Allowed\n")


class ServeMux:
    """Matches each request against the registered patterns.

    Patterns look like `"[METHOD ]/path"`, e.g. `"GET /user/{id}"` or
    `"/static/"`. Without a method the pattern matches any method not
    registered on its own for the same path.
    """

    __slots__ = (
        "_lookup",
        "_method_not_allowed_handler",
        "_not_found_handler",
        "_patterns",
        "_tree",
    )
    _tree: Node[RSGIHTTPHandler]
    _lookup: Lookup
    _patterns: list[str]
    _not_found_handler: RSGIHTTPHandler
    _method_not_allowed_handler: RSGIHTTPHandler

    def __init__(
        self,
        *,
        not_found_handler: RSGIHTTPHandler | None = None,
        method_not_allowed_handler: RSGIHTTPHandler | None = None,
    ) -> None:
        self._tree = Node()
        self._lookup = _cached_lookup(self._tree)
        self._patterns = []
        self._not_found_handler = not_found_handler or not_found
        self._method_not_allowed_handler = (
            method_not_allowed_handler or method_not_allowed
        )

    async def __rsgi__(self, scope: HTTPScope, proto: HTTPProtocol) -> None:
        if scope.proto != "http":
            msg = f"unsupported protocol {scope.proto!r}"
            raise ValueError(msg)
        # path is unescaped by the rsgi server, so we don't need to use urllib.parse.(un)quote
        handler, params, route, allowed = self._lookup(
            scope.path, leaf_key(scope.method)
        )
        if handler is None:
            handler = (
                self._method_not_allowed_handler
                if allowed
                else self._not_found_handler
            )
        params_token = path_params.set(params)
        route_token = http_route.set(route)
        allowed_token = allowed_methods.set(allowed)
        try:
            await handler(scope, proto)
        finally:
            allowed_methods.reset(allowed_token)
            http_route.reset(route_token)
            path_params.reset(params_token)

    def handler(
        self, method: str, path: str
    ) -> tuple[RSGIHTTPHandler, dict[str, str], str]:
        """Returns the handler, path params and route that would serve method/path.

        route is "" when the error handlers are returned.
        """
        handler, params, route, allowed = self._lookup(path, leaf_key(method))
        if handler is None:
            if allowed:
                return self._method_not_allowed_handler, {}, ""
            return self._not_found_handler, {}, ""
        return handler, dict(params), route

    def handle(self, pattern: str, handler: RSGIHTTPHandler) -> None:
        """Registers handler for pattern.

        Raises ValueError if the pattern is malformed or conflicts with one
        already registered.
        """
        if handler is None:
            msg = f"nil handler for pattern {pattern!r}"
            raise ValueError(msg)
        method, path = _parse_pattern(pattern)
        try:
            tree = add_route(self._tree, method, path, handler)
        except ValueError as e:
            msg = f"pattern {pattern!r}: {e}"
            raise ValueError(msg) from e
        self._tree = tree
        self._lookup = _cached_lookup(tree)
        self._patterns.append(pattern)

    def patterns(self) -> tuple[str, ...]:
        """Registered patterns, in registration order."""
        return tuple(self._patterns)


def _parse_pattern(pattern: str) -> tuple[LeafKey, str]:
    method, sep, path = pattern.partition(" ")
    if not sep:  # no method
        method, path = "", pattern
    path = path.lstrip(" \t")
    if not path:
        msg = f"empty path in pattern {pattern!r}"
        raise ValueError(msg)
    key = leaf_key(method)
    if key is None:
        msg = f"unsupported method {method!r} in pattern {pattern!r}"
        raise ValueError(msg)
    if not path.startswith("/"):
        msg = f"path must start with '/' in pattern {pattern!r}"
        raise ValueError(msg)
    return key, path


def _cached_lookup(tree: Node[RSGIHTTPHandler]) -> Lookup:
    """Memoise find_handler on tree, keyed by path and method only.

    Handlers are opaque callables and need not be hashable.
    """

    @lru_cache(maxsize=1024)
    def lookup(path: str, method: LeafKey | None) -> LookupResult:
        return find_handler(path, method, tree)

    return lookup
