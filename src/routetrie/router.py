"""Router with weighted load balancing across handlers sharing a route.

Dispatch is synchronous up to the point the selected handler is called.
Whatever the handler returns is handed back to the caller of `handle`, so a
coroutine-function handler can simply be awaited:

    await router.handle(request, response, next)
"""

from __future__ import annotations

import logging
import random as _random
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from routetrie.tree import (
    PARAM_PREFIX,
    RouteHandler,
    RouteTrie,
    join_path,
    split_path,
    valid_route,
)

if TYPE_CHECKING:
    from routetrie.types import (
        MiddlewareFunc,
        NextFunction,
        RandomSource,
        Request,
        Response,
    )

logger = logging.getLogger(__name__)

NOT_FOUND_BODY = {"error": "Route not found"}


class OptimizedRouter:
    """Routes (method, path) pairs to handlers held in a `RouteTrie`.

    Several handlers may be added at the same method and path; every request
    to that route then picks one of them at random, in proportion to their
    weights. `random` replaces `random.random` as the source of draws, e.g.
    to make selection deterministic in tests.
    """

    __slots__ = ("_pools", "_random", "_trie")

    def __init__(
        self,
        *,
        max_cache_size: int = 1000,
        random: RandomSource | None = None,
    ) -> None:
        self._trie = RouteTrie(max_cache_size=max_cache_size)
        self._pools: dict[str, list[RouteHandler]] = {}
        self._random = random if random is not None else _random.random

    @property
    def trie(self) -> RouteTrie:
        return self._trie

    def add_route(self, path: str, handler: RouteHandler) -> None:
        """Registers handler at path and adds it to the route's pool."""
        if not valid_route(path, handler):
            return
        self._trie.insert(path, handler)
        for method in handler.methods:
            self._pools.setdefault(_pool_key(method, path), []).append(handler)

    def handle(self, request: Request, response: Response, next: NextFunction) -> Any:
        """Dispatches request to the handler matching its method and path.

        Unmatched requests get a 404 with `{"error": "Route not found"}`.
        Matched path parameters are merged into `request.params`, overriding
        existing keys, and `request.route` is set to the matched pattern.

        The selected handler's middleware runs first, in order. Each one must
        call `next()` to continue; `next(error)` skips the rest of the chain
        and the handler and calls the `next` given here with the error. A
        middleware that never calls `next` stalls the request.
        """
        match = self._trie.search(request.path, request.method)
        if match is None:
            return response.status(404).json(dict(NOT_FOUND_BODY))

        request.params = {**(getattr(request, "params", None) or {}), **match.params}
        request.route = match.route

        handler = match.handler
        pool = self._pools.get(_pool_key(match.method, match.route))
        if pool:
            handler = self.select_handler(pool)

        def final() -> Any:
            return handler.handler(request, response, next)

        if handler.middleware:
            return _run_middleware(handler.middleware, request, response, final, next)
        return final()

    def select_handler(self, handlers: Sequence[RouteHandler]) -> RouteHandler:
        """Weighted random choice among handlers."""
        if not handlers:
            msg = "cannot select from an empty handler pool"
            raise ValueError(msg)
        if len(handlers) == 1:
            return handlers[0]

        draw = self._random()
        if not 0 <= draw < 1:
            msg = f"random source must return a float in [0, 1), got {draw!r}"
            raise ValueError(msg)
        remaining = draw * sum(h.weight for h in handlers)
        for handler in handlers:
            remaining -= handler.weight
            if remaining <= 0:
                logger.debug("selected handler %s", handler.id)
                return handler
        return handlers[0]  # float rounding

    def get_stats(self) -> dict[str, int]:
        return {
            "routes": len(self._trie.get_all_routes()),
            "cache_size": self._trie.get_cache_stats()["size"],
            "load_balancers": len(self._pools),
        }

    def clear(self) -> None:
        """Drops every route, cached match and handler pool."""
        self._trie.clear()
        self._pools.clear()


Router = OptimizedRouter


def _pool_key(method: str | None, route: str) -> str:
    # parameter names are dropped: a later insert may rename the trie edge
    segments = [
        PARAM_PREFIX if seg.startswith(PARAM_PREFIX) else seg
        for seg in split_path(route)
    ]
    return f"{method or ''}:{join_path(segments)}"


def _run_middleware(
    middleware: Sequence[MiddlewareFunc],
    request: Request,
    response: Response,
    final: Callable[[], Any],
    on_error: NextFunction,
) -> Any:
    index = 0

    def next_(error: object = None) -> Any:
        nonlocal index
        if error:
            return on_error(error)
        if index >= len(middleware):
            return final()
        mw = middleware[index]
        index += 1
        return mw(request, response, next_)

    return next_()
