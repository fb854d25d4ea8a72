"""Human-readable views of a route tree, built by walking it during a mount."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nestmux.route import Middleware, Route


@dataclass(frozen=True, slots=True)
class RouteInfo:
    """One registered pattern with the chain that serves it."""

    method: str  # "" for any method
    path: str
    handler: str
    middleware: tuple[str, ...]


def collect_routes(route: Route) -> list[RouteInfo]:
    """Returns every pattern the tree registers, in registration order."""
    routes: list[RouteInfo] = []

    def walk(node: Route, path: str, middleware: tuple[Middleware, ...]) -> None:
        if node.handler is None:
            return
        routes.append(
            RouteInfo(
                method=node.method,
                path=path + node.path,
                handler=_qualname(node.handler),
                middleware=tuple(
                    _qualname(m) for m in (*middleware, *node.middlewares)
                ),
            )
        )

    route.mount_and_walk(walk)
    return routes


def format_routes(route: Route, *, tree: bool = False) -> str:
    """Format the routes of a tree as a human-readable string.

    By default produces a column-aligned list in registration order, with
    the middleware in execution order:

        GET    /api/foo         get_foo_handler    [general > foo > get_foo]
        POST   /api/bar         post_bar_handler   [general > bar]
        *      /api/{path...}   fallback_handler   [general]

    With `tree=True`, renders the route nodes themselves, with each node's
    own middleware:

        /api [general]
        ├── /foo [foo]
        │   └── [GET] get_foo_handler [get_foo]
        ├── /bar [bar]
        │   └── [POST] post_bar_handler
        └── /{path...}
            └── [*] fallback_handler
    """
    if tree:
        return _format_tree(route)
    return _format_route_list(collect_routes(route))


def _format_route_list(routes: list[RouteInfo]) -> str:
    """Column-aligned flat route list."""
    if not routes:
        return ""

    method_w = max(len(r.method or "*") for r in routes)
    path_w = max(len(r.path) for r in routes)
    handler_w = max(len(r.handler) for r in routes)

    lines: list[str] = []
    for r in routes:
        method = r.method or "*"
        if r.middleware:
            lines.append(
                f"{method:<{method_w}}   {r.path:<{path_w}}   "
                f"{r.handler:<{handler_w}}   [{' > '.join(r.middleware)}]"
            )
        else:
            lines.append(f"{method:<{method_w}}   {r.path:<{path_w}}   {r.handler}")
    return "\n".join(lines)


def _format_tree(route: Route) -> str:
    """Visual tree with box-drawing characters."""
    lines: list[str] = []
    prefixes: dict[int, tuple[str, str]] = {}

    def walk(node: Route, _path: str, _middleware: tuple[Middleware, ...]) -> None:
        # walk is pre-order, so a node's prefix is known before its children
        prefix = prefixes.pop(id(node), None)
        if prefix is None:
            lines.append(_node_label(node))
            child_prefix = ""
        else:
            lead, child_prefix = prefix
            lines.append(f"{lead}{_node_label(node)}")
        for i, child in enumerate(node.routes):
            is_last = i == len(node.routes) - 1
            connector = "└── " if is_last else "├── "
            extension = "    " if is_last else "│   "
            prefixes[id(child)] = (
                child_prefix + connector,
                child_prefix + extension,
            )

    route.mount_and_walk(walk)
    return "\n".join(lines)


def _node_label(node: Route) -> str:
    parts: list[str] = []
    if node.path:
        parts.append(node.path)
    if node.handler is not None:
        parts.append(f"[{node.method or '*'}] {_qualname(node.handler)}")
    if not parts:
        parts.append("(empty)")
    if node.middlewares:
        parts.append(f"[{' > '.join(_qualname(m) for m in node.middlewares)}]")
    return " ".join(parts)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
