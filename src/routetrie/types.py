"""Callable and object shapes the router dispatches to.

These only describe what the router touches; any framework's request and
response objects fit as long as they expose the same attributes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol


class Request(Protocol):
    method: str
    path: str
    params: Mapping[str, str]
    route: str


class Response(Protocol):
    status_code: int

    def status(self, code: int) -> Response: ...

    def json(self, body: object) -> Any: ...


type NextFunction = Callable[..., Any]
type HandlerFunc = Callable[[Request, Response, NextFunction], Any]
type MiddlewareFunc = Callable[[Request, Response, NextFunction], Any]
type RandomSource = Callable[[], float]
