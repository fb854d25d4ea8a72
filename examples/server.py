# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "nestmux[server]",
# ]
#
# [tool.uv.sources]
# nestmux = { path = "../", editable = true }
# ///
"""RSGI server demo.

A nested route tree with middleware at each level, mounted and served by
Granian. Try:

    curl localhost:8000/api/foo
    curl -X POST localhost:8000/api/bar
    curl localhost:8000/api/user/42
    curl -X DELETE localhost:8000/api/foo
"""

import asyncio
import logging
import time

import uvloop
from granian.server.embed import Server

from nestmux import get, handle, new_route, path_params, post
from nestmux.debug import format_routes
from nestmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler

ADDRESS = "127.0.0.1"
PORT = 8000

logger = logging.getLogger("server")


# --- middleware ---
def timing(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
    async def timed(scope: HTTPScope, proto: HTTPProtocol) -> None:
        start = time.perf_counter()
        try:
            await handler(scope, proto)
        finally:
            elapsed = (time.perf_counter() - start) * 1000
            logger.info("%s %s %.2fms", scope.method, scope.path, elapsed)

    return timed


def label(name: str):
    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def labelled(scope: HTTPScope, proto: HTTPProtocol) -> None:
            logger.info("middleware %s", name)
            await handler(scope, proto)

        return labelled

    middleware.__qualname__ = name
    return middleware


# --- handlers ---
async def get_foo(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(200, [("content-type", "text/plain")], "Handler getFoo")


async def post_bar(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(201, [("content-type", "text/plain")], "Handler postBar")


async def get_user(scope: HTTPScope, proto: HTTPProtocol) -> None:
    user_id = path_params.get()["id"]
    proto.response_str(200, [("content-type", "text/plain")], f"user {user_id}")


async def fallback(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(200, [("content-type", "text/plain")], "Handler fallback")


# --- app setup ---
root = (
    new_route("/api")
    .use(timing, label("general"))
    .add(
        new_route("/foo").use(label("foo")).add(get(get_foo).use(label("get_foo"))),
        new_route("/bar").use(label("bar")).add(post(post_bar)),
        new_route("/user/{id}").add(get(get_user)),
        new_route("/other/").add(handle(fallback)),
    )
)


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    print(format_routes(root))

    mux = root.mount()
    server = Server(mux, address=ADDRESS, port=PORT, log_access=True)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await server.shutdown()


if __name__ == "__main__":
    uvloop.run(main())
