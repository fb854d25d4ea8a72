from importlib.metadata import version

from .mux import ServeMux
from .route import (
    Middleware,
    Route,
    WalkFn,
    compose,
    connect,
    delete,
    get,
    handle,
    head,
    new_route,
    options,
    patch,
    post,
    put,
    trace,
)
from .tree import http_route, path_params

__all__ = [
    "Middleware",
    "Route",
    "ServeMux",
    "WalkFn",
    "__version__",
    "compose",
    "connect",
    "delete",
    "get",
    "handle",
    "head",
    "http_route",
    "new_route",
    "options",
    "patch",
    "path_params",
    "post",
    "put",
    "trace",
]

__version__ = version("nestmux")
