"""FastMCP middleware for instrumentation."""

from typing import Any

import logfire
from fastmcp.server.middleware import Middleware, MiddlewareContext

from . import get_config


class MCPInstrumentationMiddleware(Middleware):
    """Middleware to trace all MCP protocol operations."""

    def __init__(self):
        self.config = get_config()
        self.enabled = self.config.enabled

    async def on_message(self, context: MiddlewareContext, call_next) -> Any:
        """Instrument all MCP messages."""
        if not self.enabled:
            return await call_next(context)

        method = context.method or "unknown"
        operation_type = self._get_operation_type(method)

        with logfire.span(
            f"mcp.{operation_type}.{method}",
            _span_name=f"MCP {method}",
            mcp_method=method,
            mcp_operation_type=operation_type,
            mcp_source=getattr(context, "source", "unknown"),
        ) as span:
            tool_name = getattr(context.message, "name", None)
            if tool_name:
                span.set_attribute("tool.name", tool_name)

            try:
                result = await call_next(context)
            except Exception as e:
                span.set_attribute("mcp.status", "error")
                span.set_attribute("error.type", type(e).__name__)
                span.set_attribute("error.message", str(e)[: self.config.max_attribute_length])
                raise

            span.set_attribute("mcp.status", "success")
            return result

    def _get_operation_type(self, method: str) -> str:
        """Categorize MCP method into operation type."""
        if method.startswith("tools/"):
            return "tool"
        if method.startswith("resources/"):
            return "resource"
        if method.startswith("prompts/"):
            return "prompt"
        return "system"
