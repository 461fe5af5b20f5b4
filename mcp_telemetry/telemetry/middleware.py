"""Request hook point for instrumented servers.

Defines the per-request context, the chain builder that composes async
middleware around a handler, and :class:`TelemetryMiddleware`, which
wraps each request in a span and records request metrics through a
:class:`TelemetryPipeline`.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from opentelemetry.trace import Status, StatusCode

from mcp_telemetry.telemetry.pipeline import TelemetryPipeline

# ── Handler protocols ────────────────────────────────────────────────────


class RequestHandler(Protocol):
    """Serves one instrumented request."""

    async def __call__(self, ctx: RequestContext) -> Any: ...


class RequestMiddleware(Protocol):
    """Runs around a :class:`RequestHandler`; telemetry is one such layer."""

    async def __call__(self, ctx: RequestContext, next_handler: RequestHandler) -> Any: ...


# ── Request context ─────────────────────────────────────────────────────


@dataclass
class RequestContext:
    """One MCP request as seen by the telemetry layer.

    ``mcp_method`` and ``capability_name`` name the span
    (``mcp.<method>.<capability>``). ``arguments`` feed argument
    collection when consent allows it. ``error`` is set if the request
    failed, and ``metadata`` is free for other layers to use.
    """

    capability_name: str
    mcp_method: str
    arguments: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    start_time: float = field(default_factory=time.monotonic)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since request start."""
        return (time.monotonic() - self.start_time) * 1000.0


# ── Chain builder ────────────────────────────────────────────────────────


def build_chain(
    layers: List[RequestMiddleware],
    handler: RequestHandler,
) -> Callable[[RequestContext], Awaitable[Any]]:
    """Return *handler* wrapped in *layers*, outermost first."""

    def bind(layer: RequestMiddleware, inner: RequestHandler) -> RequestHandler:
        async def call(ctx: RequestContext) -> Any:
            return await layer(ctx, inner)

        return call

    chain = handler
    for layer in reversed(layers):
        chain = bind(layer, chain)
    return chain


# ── Telemetry middleware ─────────────────────────────────────────────────

REQUEST_DURATION = "mcp.request.duration"
REQUEST_COUNT = "mcp.request.count"
REQUEST_ERRORS = "mcp.request.errors"


class TelemetryMiddleware:
    """MCP middleware that records a span and metrics per request."""

    def __init__(self, pipeline: TelemetryPipeline) -> None:
        self._pipeline = pipeline
        self._duration = pipeline.get_histogram(
            REQUEST_DURATION, description="MCP request duration", unit="ms"
        )
        self._count = pipeline.get_increment_counter(
            REQUEST_COUNT, description="Total MCP requests processed"
        )
        self._errors = pipeline.get_increment_counter(
            REQUEST_ERRORS, description="Total MCP request errors"
        )

    async def __call__(self, ctx: RequestContext, next_handler: RequestHandler) -> Any:
        """Wrap the request in a span and record metrics."""
        await self._pipeline.on_request()

        attributes: Dict[str, Any] = {
            "mcp.method": ctx.mcp_method,
            "mcp.capability": ctx.capability_name,
            "mcp.request_id": ctx.request_id,
            "mcp.session_id": ctx.session_id,
        }
        attributes.update(self._pipeline.get_argument_attributes(ctx.arguments))
        span = self._pipeline.create_span(f"mcp.{ctx.mcp_method}.{ctx.capability_name}", attributes)

        try:
            result = await next_handler(ctx)
            span.set_status(Status(StatusCode.OK))
            return result
        except Exception as exc:
            ctx.error = exc
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, type(exc).__name__))
            raise
        finally:
            span.end()
            metric_attrs = {
                "mcp.method": ctx.mcp_method,
                "mcp.capability": ctx.capability_name,
                "mcp.outcome": "error" if ctx.error else "success",
            }
            self._duration(ctx.elapsed_ms, metric_attrs)
            self._count(1, metric_attrs)
            if ctx.error is not None:
                self._errors(1, metric_attrs)
