# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "routetrie",
# ]
#
# [tool.uv.sources]
# routetrie = { path = "../", editable = true }
# ///
"""Weighted load balancing demo.

Registers two handlers on the same route with weights 1 and 3, dispatches a
batch of requests and prints how they were spread.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field

from routetrie import RouteHandler, Router, format_routes


@dataclass
class Request:
    method: str
    path: str
    params: dict[str, str] = field(default_factory=dict)
    route: str = ""


@dataclass
class Response:
    status_code: int = 200
    body: object = None

    def status(self, code: int) -> "Response":
        self.status_code = code
        return self

    def json(self, body: object) -> None:
        self.body = body


# --- handlers ---
def user_v1(req: Request, res: Response, next) -> None:
    res.json({"backend": "v1", "user": req.params["id"]})


def user_v2(req: Request, res: Response, next) -> None:
    res.json({"backend": "v2", "user": req.params["id"]})


def health(req: Request, res: Response, next) -> None:
    res.json({"ok": True})


# --- middleware ---
def require_json(req: Request, res: Response, next) -> None:
    if req.method not in {"GET", "HEAD"}:
        next(ValueError("only reads are served here"))
        return
    next()


def on_error(error: object = None) -> None:
    print(f"error: {error}")


router = Router()
router.add_route("/users/:id", RouteHandler("users.v1", "GET", user_v1, weight=1))
router.add_route(
    "/users/:id",
    RouteHandler("users.v2", "GET", user_v2, middleware=(require_json,), weight=3),
)
router.add_route("/health", RouteHandler("health", "*", health))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    print(format_routes(router.trie))
    print()
    print(format_routes(router.trie, tree=True))
    print()

    backends: Counter[str] = Counter()
    for i in range(1000):
        res = Response()
        router.handle(Request("GET", f"/users/{i % 10}"), res, on_error)
        backends[res.body["backend"]] += 1  # type: ignore[index]
    print(f"backends: {dict(backends)}")

    res = Response()
    router.handle(Request("GET", "/nope"), res, on_error)
    print(f"/nope -> {res.status_code} {res.body}")
    print(f"stats: {router.get_stats()}")


if __name__ == "__main__":
    main()
