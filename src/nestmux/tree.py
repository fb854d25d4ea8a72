"""Immutable segment trie backing ServeMux.

Inspired by go 1.22+ net/http's routingNode
"""

from __future__ import annotations

from collections.abc import Iterator
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Never

path_params: ContextVar[dict[str, str]] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")
allowed_methods: ContextVar[tuple[str, ...]] = ContextVar("allowed_methods")

type SegmentKind = Literal["literal", "wildcard", "catchall"]


class LeafKey(Enum):
    """Valid keys for leaf nodes: HTTP methods.

    Methods from the following RFCs are all observed:

        * RFC 9110: HTTP Semantics, obsoletes 7231, which obsoleted 2616
        * RFC 5789: PATCH Method for HTTP

    ANY_HTTP represents any http method (the empty method token in a pattern)
    """

    CONNECT = "CONNECT"
    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"
    TRACE = "TRACE"

    ANY_HTTP = "ANY_HTTP"

    def __repr__(self) -> str:
        return str(self.value)


class FrozenDict[K, V](dict[K, V]):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._hash: int | None = None

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self.items()))
        return self._hash

    def _immutable(self, *args, **kwargs) -> Never:
        msg = "FrozenDict is immutable"
        raise TypeError(msg)

    __setitem__ = __delitem__ = clear = pop = popitem = setdefault = update = _immutable


@dataclass(slots=True, frozen=True)
class Node[T]:
    """Segment-based trie node.

    Literal segments and method leaves share `children`. Wildcard and
    catch-all branches are shared by every pattern with the same shape: a
    leaf holds the handler, the route path it was registered under and the
    names its wildcards bind, in path order ("" for an anonymous subtree).
    """

    handler: T | None = field(default=None)
    route: str = ""
    names: tuple[str, ...] = ()
    children: FrozenDict[str | LeafKey, Node[T]] = field(default_factory=FrozenDict)
    wildcard: Node[T] | None = field(default=None)
    catchall: Node[T] | None = field(default=None)


def leaf_key(method: str) -> LeafKey | None:
    """Map a method token to its leaf key, None for methods the trie can't store.

    Methods are case-sensitive: "get" is not GET.
    """
    if method == "":
        return LeafKey.ANY_HTTP
    try:
        key = LeafKey(method)
    except ValueError:
        return None
    return None if key is LeafKey.ANY_HTTP else key


def find_handler[T](
    path: str,
    method: LeafKey | None,
    tree: Node[T],
) -> tuple[T | None, FrozenDict[str, str], str, tuple[str, ...]]:
    """Traverses the tree to find the best match handler.

    Each path segment priority is: exact match > wildcard match > catchall match,
    backtracking when a higher priority branch has no route for the path.
    At the matched node the exact method wins, then GET for HEAD, then any method.

    Returns (handler, params, route, allowed). handler is None when nothing
    matches: allowed is empty for not found, else it lists the methods the
    path does accept (method not allowed).
    """
    segments = path[1:].split("/") if path.startswith("/") else path.split("/")

    allowed: set[str] = set()
    for node, values in _candidates(tree, segments, 0, ()):
        leaf = _leaf(node, method)
        if leaf is not None:
            params = FrozenDict(
                (name, value)
                for name, value in zip(leaf.names, values, strict=True)
                if name
            )
            return leaf.handler, params, leaf.route, ()
        allowed.update(k.value for k in node.children if isinstance(k, LeafKey))

    if LeafKey.GET.value in allowed:
        allowed.add(LeafKey.HEAD.value)
    return None, FrozenDict(), "", tuple(sorted(allowed))


def _candidates[T](
    node: Node[T],
    segments: list[str],
    i: int,
    values: tuple[str, ...],
) -> Iterator[tuple[Node[T], tuple[str, ...]]]:
    """Yield every node matching the whole path, in priority order."""
    if i == len(segments):
        yield node, values
        return

    seg = segments[i]
    child = node.children.get(seg)
    if child is not None:  # exact match
        yield from _candidates(child, segments, i + 1, values)
    if node.wildcard is not None and seg != "":  # wildcards never match empty
        yield from _candidates(node.wildcard, segments, i + 1, (*values, seg))
    if node.catchall is not None:  # consumes the rest of the path
        yield node.catchall, (*values, "/".join(segments[i:]))


def _leaf[T](node: Node[T], method: LeafKey | None) -> Node[T] | None:
    leaf = None
    if method is not None:
        leaf = node.children.get(method)
        if leaf is None and method is LeafKey.HEAD:
            leaf = node.children.get(LeafKey.GET)
    if leaf is None:
        leaf = node.children.get(LeafKey.ANY_HTTP)
    return leaf


def add_route[T](tree: Node[T], method: LeafKey, path: str, handler: T) -> Node[T]:
    """add route to tree for handler on method/path, error on conflict"""
    new_tree = _construct_route_tree(method, path, handler)
    return _merge_trees(tree, new_tree)


def parse_path(path: str) -> list[tuple[SegmentKind, str]]:
    """Split a pattern path into typed segments.

    `{name}` matches one segment, `{name...}` the rest of the path, `{$}` only
    the trailing slash. A path ending in `/` matches its whole subtree.
    """
    if not path.startswith("/"):
        msg = f"path must start with '/', provided {path=}"
        raise ValueError(msg)
    raw = path[1:].split("/")

    segments: list[tuple[SegmentKind, str]] = []
    names: set[str] = set()
    for i, seg in enumerate(raw):
        last = i == len(raw) - 1
        if "{" not in seg and "}" not in seg:
            if seg == "" and last:
                segments.append(("catchall", ""))  # trailing slash
            else:
                segments.append(("literal", seg))
            continue
        if not (seg.startswith("{") and seg.endswith("}")):
            msg = f"bad wildcard segment {seg!r} in {path=}: must be a whole segment"
            raise ValueError(msg)
        name = seg[1:-1]
        if name == "$":
            if not last:
                msg = f"{{$}} not at end of {path=}"
                raise ValueError(msg)
            segments.append(("literal", ""))
            continue
        kind: SegmentKind = "wildcard"
        if name.endswith("..."):
            if not last:
                msg = f"{{{name}}} not at end of {path=}"
                raise ValueError(msg)
            kind = "catchall"
            name = name[:-3]
        if not name.isidentifier():
            msg = f"bad wildcard name {name!r} in {path=}"
            raise ValueError(msg)
        if name in names:
            msg = f"duplicate wildcard name {name!r} in {path=}"
            raise ValueError(msg)
        names.add(name)
        segments.append((kind, name))
    return segments


def _construct_route_tree[T](method: LeafKey, path: str, handler: T) -> Node[T]:
    """construct tree for handler on method/path"""
    segments = parse_path(path)
    names = tuple(value for kind, value in segments if kind != "literal")
    child: Node[T] = Node(
        children=FrozenDict(
            {method: Node(handler=handler, route=path, names=names)}
        ),
    )
    for kind, value in reversed(segments):
        if kind == "catchall":
            child = Node(catchall=child)
        elif kind == "wildcard":
            child = Node(wildcard=child)
        else:
            child = Node(children=FrozenDict({value: child}))
    return child


def _merge_trees[T](tree1: Node[T], tree2: Node[T]) -> Node[T]:
    """merge tree1 and tree2, error on conflict

    Wildcard branches merge regardless of names, so two patterns conflict
    only when they have the same method and shape.
    """
    if tree1.handler is not None and tree2.handler is not None:
        msg = f"{tree2.route!r} conflicts with {tree1.route!r}"
        raise ValueError(msg)
    leaf = tree1 if tree1.handler is not None else tree2

    tree1_keys = set(tree1.children.keys())
    tree2_keys = set(tree2.children.keys())
    common_keys = tree1_keys.intersection(tree2_keys)
    children: FrozenDict[str | LeafKey, Node[T]] = FrozenDict(
        {k: tree1.children[k] for k in tree1_keys - tree2_keys}
        | {k: tree2.children[k] for k in tree2_keys - tree1_keys}
        | {k: _merge_trees(tree1.children[k], tree2.children[k]) for k in common_keys}
    )

    return Node(
        handler=leaf.handler,
        route=leaf.route,
        names=leaf.names,
        children=children,
        wildcard=_merge_branches(tree1.wildcard, tree2.wildcard),
        catchall=_merge_branches(tree1.catchall, tree2.catchall),
    )


def _merge_branches[T](node1: Node[T] | None, node2: Node[T] | None) -> Node[T] | None:
    if node1 is None or node2 is None:
        return node1 or node2
    return _merge_trees(node1, node2)
