"""Segment-based routing trie with parameter and wildcard support.

Paths are split on "/" with empty segments dropped, so "/users/", "users"
and "//users" all address the same node. Each segment is one of:

    users    literal, matched by exact text
    :id      parameter, captures the segment under the name "id"
    *        wildcard, absorbs exactly one segment without capturing it

Per level the priority is: literal > parameter > wildcard. The walk is
greedy and never backtracks: once a literal child is taken, the parameter
and wildcard siblings are not tried for that segment.

`FrozenDict` is taken from muxy's routing tree.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Never

from routetrie.cache import RouteCache
from routetrie.types import HandlerFunc, MiddlewareFunc

logger = logging.getLogger(__name__)

ANY_METHOD = "*"
PARAM_PREFIX = ":"
WILDCARD = "*"


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
    __ior__ = _immutable


@dataclass(slots=True, frozen=True, eq=False)
class RouteHandler:
    """A handler registered at a route, plus its dispatch metadata.

    `method` is a single method, a sequence of methods, or "*" for any
    method. `weight` is used for weighted selection when several handlers
    share a route. `timeout` and `retries` are carried for the embedding
    dispatch layer; the router does not enforce them.
    """

    id: str
    method: str | Sequence[str]
    handler: HandlerFunc
    middleware: Sequence[MiddlewareFunc] = ()
    weight: float = 1
    timeout: float | None = None
    retries: int | None = None

    def __post_init__(self) -> None:
        if not callable(self.handler):
            msg = f"handler {self.id!r} is not callable"
            raise ValueError(msg)
        middleware = tuple(self.middleware)
        for mw in middleware:
            if not callable(mw):
                msg = f"middleware {mw!r} of handler {self.id!r} is not callable"
                raise ValueError(msg)
        object.__setattr__(self, "middleware", middleware)
        if not self.methods:
            msg = f"handler {self.id!r} declares no methods"
            raise ValueError(msg)
        if self.weight <= 0:
            msg = f"weight must be > 0, got {self.weight}"
            raise ValueError(msg)
        if self.timeout is not None and self.timeout < 0:
            msg = f"timeout must be >= 0, got {self.timeout}"
            raise ValueError(msg)
        if self.retries is not None and self.retries < 0:
            msg = f"retries must be >= 0, got {self.retries}"
            raise ValueError(msg)

    @property
    def methods(self) -> tuple[str, ...]:
        """Declared methods, upper-cased and de-duplicated in order."""
        raw = (self.method,) if isinstance(self.method, str) else self.method
        return tuple(dict.fromkeys(m.upper() for m in raw if m))


@dataclass(slots=True, frozen=True)
class RouteMatch:
    """Result of resolving a (method, path) pair.

    Matches are shared through the route cache, so `params` is immutable.
    `route` is the registered pattern that matched (e.g. "/users/:id") and
    `method` is the key the handler was found under: the request method,
    "*", or None for the default handler.
    """

    handler: RouteHandler
    params: FrozenDict[str, str] = field(default_factory=FrozenDict)
    wildcard: bool = False
    route: str = "/"
    method: str | None = None


@dataclass(slots=True)
class ParamEdge:
    name: str
    node: TrieNode


class TrieNode:
    __slots__ = (
        "default_handler",
        "literal_children",
        "method_handlers",
        "param_child",
        "wildcard_child",
    )

    def __init__(self) -> None:
        self.literal_children: dict[str, TrieNode] = {}
        self.param_child: ParamEdge | None = None
        self.wildcard_child: TrieNode | None = None
        self.method_handlers: dict[str, RouteHandler] = {}
        # last handler inserted here, used for method-agnostic lookups
        self.default_handler: RouteHandler | None = None


def split_path(path: str) -> list[str]:
    """Split a path into its non-empty segments."""
    return [seg for seg in path.split("/") if seg]


def join_path(segments: Sequence[str]) -> str:
    return "/" + "/".join(segments)


def valid_route(path: object, handler: object) -> bool:
    """Checks a route definition, logging why it is rejected."""
    if not isinstance(path, str):
        logger.warning("ignoring route with non-string path %r", path)
        return False
    if not isinstance(handler, RouteHandler):
        logger.warning("ignoring route %r with invalid handler %r", path, handler)
        return False
    if PARAM_PREFIX in split_path(path):
        logger.warning("ignoring route %r with unnamed parameter", path)
        return False
    return True


class RouteTrie:
    """Prefix tree over path segments with an instance-owned match cache.

    Usage::

        trie = RouteTrie()
        trie.insert("/users/:id", RouteHandler("users.show", "GET", show_user))
        match = trie.search("/users/42", "GET")
        match.params  # {"id": "42"}

    Not thread safe: concurrent `insert` and `search` calls on one instance
    must be serialised by the caller.
    """

    __slots__ = ("_cache", "_root")

    def __init__(self, *, max_cache_size: int = 1000) -> None:
        self._root = TrieNode()
        self._cache = RouteCache(max_cache_size)

    def insert(self, path: str, handler: RouteHandler) -> None:
        """Registers handler at path under each of its declared methods.

        Invalid input is logged and ignored rather than raised.
        """
        if not valid_route(path, handler):
            return

        node = self._root
        for seg in split_path(path):
            if seg == WILDCARD:
                if node.wildcard_child is None:
                    node.wildcard_child = TrieNode()
                node = node.wildcard_child
            elif seg.startswith(PARAM_PREFIX):
                name = seg[len(PARAM_PREFIX) :]
                if node.param_child is None:
                    node.param_child = ParamEdge(name=name, node=TrieNode())
                elif node.param_child.name != name:
                    logger.warning(
                        "parameter :%s renamed to :%s by route %r",
                        node.param_child.name,
                        name,
                        path,
                    )
                    node.param_child.name = name
                node = node.param_child.node
            else:
                node = node.literal_children.setdefault(seg, TrieNode())

        for method in handler.methods:
            node.method_handlers[method] = handler
        node.default_handler = handler

        self._cache.clear()
        logger.debug("route %s %s -> %s", ",".join(handler.methods), path, handler.id)

    def search(self, path: str, method: str | None) -> RouteMatch | None:
        """Returns the match for method and path, or None on a routing miss.

        A concrete method resolves to the handler registered for that method,
        then to one registered for "*". A method of None or "" resolves to
        the node's most recently inserted handler.
        """
        if not isinstance(path, str):
            logger.warning("ignoring search for non-string path %r", path)
            return None
        if method is not None and not isinstance(method, str):
            logger.warning("ignoring search for non-string method %r", method)
            return None
        method = method.upper() if method else None

        key = RouteCache.key(method, path)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        node = self._root
        params: dict[str, str] = {}
        route: list[str] = []
        wildcard = False
        for seg in split_path(path):
            child = node.literal_children.get(seg)
            if child is not None:  # exact match
                wildcard = False
                route.append(seg)
                node = child
                continue
            if node.param_child is not None:  # fallback to parameter
                wildcard = False
                params[node.param_child.name] = seg
                route.append(PARAM_PREFIX + node.param_child.name)
                node = node.param_child.node
                continue
            if node.wildcard_child is not None:  # fallback to wildcard
                wildcard = True
                route.append(WILDCARD)
                node = node.wildcard_child
                continue
            logger.debug("no route for %s %s", method, path)
            return None

        resolved = _resolve_handler(node, method)
        if resolved is None:
            logger.debug("no handler for %s %s", method, path)
            return None
        handler, resolved_method = resolved

        match = RouteMatch(
            handler=handler,
            params=FrozenDict(params),
            wildcard=wildcard,
            route=join_path(route),
            method=resolved_method,
        )
        self._cache.set(key, match)
        return match

    def get_all_routes(self) -> list[tuple[str, RouteHandler]]:
        """Every registered (path, handler) pair, paths rebuilt from the trie."""
        routes: list[tuple[str, RouteHandler]] = []
        _collect_routes(self._root, [], routes)
        return routes

    def clear(self) -> None:
        """Drops every route and empties the cache."""
        self._root = TrieNode()
        self._cache.clear()
        logger.info("route trie cleared")

    def get_cache_stats(self) -> dict[str, int]:
        return self._cache.stats()


def _resolve_handler(
    node: TrieNode, method: str | None
) -> tuple[RouteHandler, str | None] | None:
    if method is None:
        if node.default_handler is None:
            return None
        return node.default_handler, None
    handler = node.method_handlers.get(method)
    if handler is not None:
        return handler, method
    handler = node.method_handlers.get(ANY_METHOD)  # fallback to any method
    if handler is not None:
        return handler, ANY_METHOD
    return None


def _children(node: TrieNode) -> list[tuple[str, TrieNode]]:
    """Child nodes in match priority order, labelled with their segment."""
    children = list(node.literal_children.items())
    if node.param_child is not None:
        children.append((PARAM_PREFIX + node.param_child.name, node.param_child.node))
    if node.wildcard_child is not None:
        children.append((WILDCARD, node.wildcard_child))
    return children


def _collect_routes(
    node: TrieNode,
    parts: list[str],
    routes: list[tuple[str, RouteHandler]],
) -> None:
    seen: set[int] = set()
    for handler in node.method_handlers.values():
        if id(handler) not in seen:
            seen.add(id(handler))
            routes.append((join_path(parts), handler))
    for seg, child in _children(node):
        _collect_routes(child, [*parts, seg], routes)


def format_routes(trie: RouteTrie, *, tree: bool = False) -> str:
    """Format registered routes as a human-readable string.

    By default produces a column-aligned flat route list:

        GET    /files/*              files.read
        GET    /users/:id            users.show      [auth > audit]
        *      /users/:id/avatar     users.avatar

    With `tree=True`, produces a visual tree instead:

        /
        ├── files
        │   └── *
        │       └── [GET] files.read
        └── users
            └── :id
                ├── [GET] users.show [auth > audit]
                └── avatar
                    └── [*] users.avatar
    """
    if tree:
        lines = ["/"]
        _render_tree(trie._root, "", lines)
        return "\n".join(lines)

    rows: list[tuple[str, str, str, str]] = []
    _collect_rows(trie._root, [], rows)
    rows.sort(key=lambda r: (r[1], r[0]))
    if not rows:
        return ""
    method_w = max(len(r[0]) for r in rows)
    path_w = max(len(r[1]) for r in rows)
    id_w = max(len(r[2]) for r in rows)
    lines = []
    for method, path, handler_id, mw in rows:
        if mw:
            lines.append(
                f"{method:<{method_w}}   {path:<{path_w}}   "
                f"{handler_id:<{id_w}}   [{mw}]"
            )
        else:
            lines.append(f"{method:<{method_w}}   {path:<{path_w}}   {handler_id}")
    return "\n".join(lines)


def _collect_rows(
    node: TrieNode, parts: list[str], rows: list[tuple[str, str, str, str]]
) -> None:
    for method, handler in node.method_handlers.items():
        rows.append((method, join_path(parts), handler.id, _middleware_label(handler)))
    for seg, child in _children(node):
        _collect_rows(child, [*parts, seg], rows)


def _render_tree(node: TrieNode, prefix: str, lines: list[str]) -> None:
    items: list[tuple[str, TrieNode | None]] = []
    for method, handler in sorted(node.method_handlers.items()):
        label = f"[{method}] {handler.id}"
        if handler.middleware:
            label += f" [{_middleware_label(handler)}]"
        items.append((label, None))
    items.extend(_children(node))

    for i, (label, child) in enumerate(items):
        is_last = i == len(items) - 1
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{label}")
        if child is not None:
            extension = "    " if is_last else "│   "
            _render_tree(child, prefix + extension, lines)


def _middleware_label(handler: RouteHandler) -> str:
    return " > ".join(_qualname(mw) for mw in handler.middleware)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
