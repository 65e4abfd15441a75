"""Tool call routing: namespace resolution and bounded-latency dispatch.

The dispatcher is the only layer that calls tools on live connections.
Every failure (unknown server, missing connection, timeout, transport
error) comes back as an error-flagged :class:`ToolResult` so that an
agentic loop can hand it to the model as a tool failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

from agent_runtime.bridge.catalog import extract_text
from agent_runtime.constants import (
    DEFAULT_MAX_EXECUTION_MS,
    DEFAULT_MAX_OUTPUT_SIZE,
    TOOL_NAME_SEPARATOR,
)
from agent_runtime.runtime.models import ToolCallRequest, ToolResult

logger = logging.getLogger(__name__)


def split_tool_name(name: str) -> Tuple[Optional[str], str]:
    """Split ``server__tool`` on the first separator.

    Returns ``(None, name)`` when *name* is not namespaced.
    """
    server, sep, tool = name.partition(TOOL_NAME_SEPARATOR)
    if not sep:
        return None, name
    return server, tool


def resolve_server_for_tool(name: str, known_servers: Iterable[Any]) -> Optional[str]:
    """Return the server owning a namespaced tool name, or ``None``.

    *known_servers* may hold server definitions or plain server names.
    Only the name syntax and the known identities are consulted, never
    the live connection set.
    """
    prefix, _ = split_tool_name(name)
    if not prefix:
        return None
    known = {s if isinstance(s, str) else getattr(s, "name", None) for s in known_servers}
    return prefix if prefix in known else None


def truncate_output(output: str, max_size: int) -> str:
    if len(output) <= max_size:
        return output
    return output[:max_size] + f"\n... [truncated, exceeded {max_size} character limit]"


class ToolDispatcher:
    """Resolve the owning connection of a tool call and execute it."""

    def __init__(
        self,
        get_connections: Callable[[], Mapping[str, Any]],
        get_known_servers: Callable[[], Iterable[Any]],
        truncate: bool = True,
    ) -> None:
        self._get_connections = get_connections
        self._get_known_servers = get_known_servers
        self._truncate = truncate

    def _resolve(self, request: ToolCallRequest) -> Tuple[Optional[str], str]:
        prefix, bare = split_tool_name(request.name)
        if request.server_name:
            # Tolerate callers that pass both the server and the namespaced name.
            if prefix == request.server_name:
                return request.server_name, bare
            return request.server_name, request.name
        svr_name = resolve_server_for_tool(request.name, self._get_known_servers())
        if svr_name is None:
            return None, request.name
        return svr_name, bare

    async def execute(self, request: ToolCallRequest) -> ToolResult:
        start = time.monotonic()

        def _result(output: str, is_error: bool) -> ToolResult:
            return ToolResult(
                tool_call_id=request.id,
                output=output,
                is_error=is_error,
                duration_ms=(time.monotonic() - start) * 1000.0,
            )

        svr_name, tool_name = self._resolve(request)
        if svr_name is None:
            logger.warning("[%s] Cannot determine server for tool '%s'.", request.id, request.name)
            return _result(
                f'Error: cannot determine server for tool "{request.name}". '
                f'Use namespaced format "serverName{TOOL_NAME_SEPARATOR}toolName" '
                "or provide serverName.",
                True,
            )

        # Snapshot: a concurrent connect/disconnect swaps the mapping, never mutates it.
        conn = self._get_connections().get(svr_name)
        if conn is None:
            logger.warning("[%s] Server '%s' is not connected.", request.id, svr_name)
            return _result(f'Error: server "{svr_name}" is not connected.', True)

        sandbox = getattr(conn.definition, "sandbox", None)
        timeout_ms = getattr(sandbox, "max_execution_ms", DEFAULT_MAX_EXECUTION_MS)
        max_output = getattr(sandbox, "max_output_size", DEFAULT_MAX_OUTPUT_SIZE)

        logger.debug(
            "[%s] Routing %s → %s/%s (timeout %sms)",
            request.id,
            request.name,
            svr_name,
            tool_name,
            timeout_ms,
        )
        try:
            call_result = await asyncio.wait_for(
                conn.call_tool(tool_name, request.input),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "[%s] Timeout: %s → %s after %sms",
                request.id,
                tool_name,
                svr_name,
                timeout_ms,
            )
            return _result(f"Error: Tool execution timed out after {timeout_ms}ms", True)
        except Exception as exc:
            logger.warning(
                "[%s] Tool call %s → %s failed: %s: %s",
                request.id,
                tool_name,
                svr_name,
                type(exc).__name__,
                exc,
            )
            message = str(exc) or type(exc).__name__
            return _result(f"Error: {message}", True)

        output = "\n".join(extract_text(getattr(call_result, "content", None)))
        if self._truncate:
            output = truncate_output(output, max_output)
        is_error = getattr(call_result, "isError", False) is True
        return _result(output, is_error)
