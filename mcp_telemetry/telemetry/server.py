"""Wire telemetry into an MCP server built with the ``mcp`` SDK.

Wraps the server's registered ``tools/call``, ``resources/read`` and
``prompts/get`` handlers with :class:`TelemetryMiddleware`, so each
request gets a span and request metrics without changes to the tool code.
Handlers must be registered before the server is instrumented.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from mcp import types
from mcp.server.lowlevel import Server

from mcp_telemetry.config.schema import TelemetryConfig
from mcp_telemetry.errors import ToolCallError
from mcp_telemetry.telemetry.middleware import RequestContext, TelemetryMiddleware
from mcp_telemetry.telemetry.pipeline import TelemetryPipeline

logger = logging.getLogger(__name__)

_INSTRUMENTED_FLAG = "_mcp_telemetry_instrumented"

# request type → (method name, capability name, arguments)
_Describe = Callable[[Any], Tuple[str, str, Optional[Dict[str, Any]]]]

_HANDLERS: Dict[type, _Describe] = {
    types.CallToolRequest: lambda p: ("call_tool", p.name, p.arguments),
    types.ReadResourceRequest: lambda p: ("read_resource", str(p.uri), None),
    types.GetPromptRequest: lambda p: ("get_prompt", p.name, p.arguments),
}


def _lowlevel(server: Any) -> Server:
    # FastMCP keeps its low-level server in ``_mcp_server``.
    return getattr(server, "_mcp_server", server)


def instrument_mcp_server(server: Any, pipeline: TelemetryPipeline) -> int:
    """Wrap *server*'s request handlers with telemetry.

    Accepts a low-level :class:`mcp.server.lowlevel.Server` or a
    ``FastMCP`` instance. Already wrapped handlers are left alone.

    Returns:
        The number of handlers wrapped.
    """
    lowlevel = _lowlevel(server)
    middleware = TelemetryMiddleware(pipeline)
    wrapped = 0
    for request_type, describe in _HANDLERS.items():
        handler = lowlevel.request_handlers.get(request_type)
        if handler is None or getattr(handler, _INSTRUMENTED_FLAG, False):
            continue
        lowlevel.request_handlers[request_type] = _wrap(handler, describe, middleware)
        wrapped += 1
    logger.info("Instrumented %d MCP request handler(s) on '%s'", wrapped, lowlevel.name)
    return wrapped


def _wrap(handler: Callable, describe: _Describe, middleware: TelemetryMiddleware) -> Callable:
    async def instrumented(request: Any) -> Any:
        method, capability, arguments = describe(request.params)
        ctx = RequestContext(capability_name=capability, mcp_method=method, arguments=arguments)

        async def call(_ctx: RequestContext) -> Any:
            result = await handler(request)
            # The SDK turns tool exceptions into results with isError set.
            if getattr(getattr(result, "root", result), "isError", False):
                raise ToolCallError(result)
            return result

        try:
            return await middleware(ctx, call)
        except ToolCallError as exc:
            return exc.result

    setattr(instrumented, _INSTRUMENTED_FLAG, True)
    return instrumented


async def instrument_server(
    config: Union[TelemetryConfig, Mapping[str, Any]],
    server: Any = None,
    **kwargs: Any,
) -> TelemetryPipeline:
    """Build a pipeline, run startup consent negotiation and instrument *server*.

    Keyword arguments are passed to :class:`TelemetryPipeline`. Without a
    *server*, the host wires :class:`TelemetryMiddleware` itself.
    """
    pipeline = TelemetryPipeline(config, **kwargs)
    await pipeline.start()
    if server is not None:
        instrument_mcp_server(server, pipeline)
    return pipeline
