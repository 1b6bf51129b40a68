"""OpenTelemetry tracing and metrics middleware.

Creates HTTP server spans and metrics with semantic conventions for each
request dispatched through a route's middleware chain.

Install with: pip install "routetrie[otel]"
"""

from __future__ import annotations

import inspect
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from routetrie.types import MiddlewareFunc, NextFunction, Request, Response

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import (
        Span,
        SpanKind,
        StatusCode,
        TracerProvider,
    )
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: pip install 'routetrie[otel]'"
    )
    raise ImportError(msg) from e


_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> MiddlewareFunc:
    """Create OpenTelemetry tracing and metrics middleware.

    The span covers the rest of the chain and the handler. When the handler
    returns an awaitable, the span stays open until it completes.

    Extracts trace context from `request.headers` (e.g. ``traceparent``) when
    present. Only depends on ``opentelemetry-api``; users bring their own SDK
    and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Example:
        RouteHandler("users.show", "GET", show_user, middleware=(otel(),))
    """
    tracer = trace.get_tracer(
        "routetrie",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "routetrie",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    def middleware(request: Request, response: Response, next: NextFunction) -> Any:
        ctx = extract(getattr(request, "headers", None) or {})

        # set by the router before the chain runs
        route = getattr(request, "route", "")
        method = request.method
        span_name = f"{method} {route}" if route else method

        attributes: dict[str, str | int] = {
            "http.request.method": method,
            "url.path": request.path,
        }
        if route:
            attributes["http.route"] = route
        # not part of semantic conventions but having path params is useful
        params = getattr(request, "params", None) or {}
        for key, value in params.items():
            attributes[f"http.route.param.{key}"] = value

        active_attrs: dict[str, str | int] = {"http.request.method": method}
        if route:
            active_attrs["http.route"] = route

        active_requests_counter.add(1, active_attrs)
        start = time.perf_counter()
        span = tracer.start_span(
            span_name,
            context=ctx,
            kind=SpanKind.SERVER,
            attributes=attributes,
        )

        def finish() -> None:
            duration = time.perf_counter() - start
            active_requests_counter.add(-1, active_attrs)
            duration_attrs = dict(active_attrs)
            status = getattr(response, "status_code", None)
            if isinstance(status, int):
                span.set_attribute("http.response.status_code", status)
                duration_attrs["http.response.status_code"] = status
                if status >= 500:
                    span.set_status(StatusCode.ERROR)
            duration_histogram.record(duration, duration_attrs)
            span.end()

        try:
            with trace.use_span(span, set_status_on_exception=True):
                result = next()
        except BaseException:
            finish()
            raise

        if inspect.isawaitable(result):
            return _traced(result, span, finish)
        finish()
        return result

    return middleware


async def _traced(
    awaitable: Awaitable[Any], span: Span, finish: Callable[[], None]
) -> Any:
    try:
        with trace.use_span(span, set_status_on_exception=True):
            return await awaitable
    finally:
        finish()
