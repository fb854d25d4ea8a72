# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "nestmux[otel,server]",
#     "httpx>=0.28.1,<0.29.0",
#     "opentelemetry-sdk>=1.39.1,<2.0.0",
# ]
#
# [tool.uv.sources]
# nestmux = { path = "../", editable = true }
# ///
"""RSGI OpenTelemetry tracing middleware demo.

Tracing is attached to one branch of the tree, so only that branch produces
spans. Spans are collected in memory and printed once the requests finish.
"""

import asyncio
import logging
import sys

import httpx
import uvloop
from granian.server.embed import Server
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from nestmux import get, new_route, path_params
from nestmux.middleware.otel import otel
from nestmux.rsgi import HTTPProtocol, HTTPScope

ADDRESS = "127.0.0.1"
PORT = 8000


# --- handlers ---
async def hello(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(200, [("content-type", "text/plain")], "hello world")


async def greet(scope: HTTPScope, proto: HTTPProtocol) -> None:
    name = path_params.get()["name"]
    proto.response_str(200, [("content-type", "text/plain")], f"hello {name}")


async def health(scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(200, [("content-type", "text/plain")], "ok")


# --- app setup ---
exporter = InMemorySpanExporter()
provider = TracerProvider()
provider.add_span_processor(SimpleSpanProcessor(exporter))

# 404/405 responses come from the mux and bypass route middleware
mux = (
    new_route("")
    .add(
        new_route("/health").add(get(health)),
        new_route("")
        .use(otel(tracer_provider=provider))
        .add(
            new_route("/{$}").add(get(hello)),
            new_route("/greet/{name}").add(get(greet)),
        ),
    )
    .mount()
)


# --- run ---
async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    task = asyncio.create_task(serve())
    await asyncio.sleep(0.1)
    await requests()
    provider.shutdown()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def serve() -> None:
    server = Server(mux, address=ADDRESS, port=PORT, log_access=True)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await server.shutdown()


async def requests() -> None:
    base_url = f"http://{ADDRESS}:{PORT}"

    async with httpx.AsyncClient(base_url=base_url) as client:
        for method, path in [
            ("GET", "/"),
            ("GET", "/greet/world"),
            ("GET", "/health"),
            ("GET", "/nonexistent"),
            ("DELETE", "/"),
        ]:
            response = await client.request(method, path)
            print(f"--- {method} {path} -> {response.status_code}", file=sys.stderr)

    print("--- Collected spans ---", file=sys.stderr)
    for span in exporter.get_finished_spans():
        attrs = span.attributes or {}
        print(
            f"  {span.name:<30} "
            f"status={attrs['http.response.status_code']:<4} "
            f"path={attrs['url.path']}",
            file=sys.stderr,
        )


if __name__ == "__main__":
    uvloop.run(main())
