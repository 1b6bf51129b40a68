# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "routetrie[otel]",
#     "opentelemetry-sdk>=1.27,<2.0.0",
# ]
#
# [tool.uv.sources]
# routetrie = { path = "../", editable = true }
# ///
"""OpenTelemetry tracing middleware demo.

Shows usage of otel middleware with an in-memory exporter so traces can be
printed to the console without needing an external collector.
"""

import logging
from dataclasses import dataclass, field

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from routetrie import RouteHandler, Router
from routetrie.middleware.otel import otel


@dataclass
class Request:
    method: str
    path: str
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
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
def hello(req: Request, res: Response, next) -> None:
    res.json({"message": "hello world"})


def greet(req: Request, res: Response, next) -> None:
    res.json({"message": f"hello {req.params['name']}"})


# --- app setup ---
exporter = InMemorySpanExporter()
provider = TracerProvider()
provider.add_span_processor(SimpleSpanProcessor(exporter))

trace_middleware = otel(tracer_provider=provider)

router = Router()
router.add_route(
    "/", RouteHandler("hello", "GET", hello, middleware=(trace_middleware,))
)
router.add_route(
    "/greet/:name", RouteHandler("greet", "GET", greet, middleware=(trace_middleware,))
)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    for path in ("/", "/greet/world", "/greet/otel"):
        router.handle(Request("GET", path), Response(), lambda error=None: None)
    provider.shutdown()

    for span in exporter.get_finished_spans():
        print(f"{span.name:<20} {dict(span.attributes or {})}")


if __name__ == "__main__":
    main()
