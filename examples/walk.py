# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "nestmux",
# ]
#
# [tool.uv.sources]
# nestmux = { path = "../", editable = true }
# ///
"""Inspect a route tree without serving it.

`mount_and_walk` visits every node with the path and middleware accumulated
from its ancestors. `format_routes` builds on it to print the compiled table
and the tree as declared.
"""

import logging

from nestmux import get, handle, new_route, post
from nestmux.debug import format_routes
from nestmux.route import Middleware, Route
from nestmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler


def auth(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
    return handler


def audit(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
    return handler


async def list_users(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_empty(200, [])


async def create_user(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_empty(201, [])


async def files(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_empty(200, [])


root = (
    new_route("/api")
    .use(auth)
    .add(
        new_route("/users").add(get(list_users), post(create_user).use(audit)),
        new_route("/files/{path...}").add(handle(files)),
    )
)


def print_node(node: Route, path: str, middleware: tuple[Middleware, ...]) -> None:
    depth = path.count("/")
    print(f"{'  ' * depth}{path!r} + {node!r} ({len(middleware)} middleware)")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    mux = root.mount_and_walk(print_node)
    print(mux.patterns())
    print()
    print(format_routes(root))
    print()
    print(format_routes(root, tree=True))
