from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MockRequest:
    method: str = "GET"
    path: str = "/"
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    route: str = ""


class MockResponse:
    """Mock response that captures status and body."""

    def __init__(self) -> None:
        self.status_code: int = 200
        self.body: Any = None

    def status(self, code: int) -> "MockResponse":
        self.status_code = code
        return self

    def json(self, body: object) -> None:
        self.body = body


class MockNext:
    """Records every call to the final continuation."""

    def __init__(self) -> None:
        self.calls: list[object] = []

    def __call__(self, error: object = None) -> str:
        self.calls.append(error)
        return "next"


def mock_request(
    path: str = "/",
    method: str = "GET",
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
) -> MockRequest:
    return MockRequest(
        method=method, path=path, params=params or {}, headers=headers or {}
    )
