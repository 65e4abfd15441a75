"""Tool discovery, filtering, namespacing and caching."""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from agent_runtime.bridge.filter import build_filter
from agent_runtime.constants import CAP_FETCH_TIMEOUT, TOOL_NAME_SEPARATOR

logger = logging.getLogger(__name__)


def namespace_tool_name(server_name: str, tool_name: str) -> str:
    """Return the external ``server__tool`` name of a tool."""
    return f"{server_name}{TOOL_NAME_SEPARATOR}{tool_name}"


class ToolDescriptor(BaseModel):
    """A tool reported by one server, after filtering."""

    name: str = Field(description="Tool name as reported by the owning server")
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    server_name: str

    @property
    def namespaced_name(self) -> str:
        return namespace_tool_name(self.server_name, self.name)


class ToolCatalog:
    """Aggregated tool list over a set of live connections.

    The first :meth:`get_tools` call queries every connection concurrently;
    the result is cached (the same list object is returned) until
    :meth:`invalidate` is called.
    """

    def __init__(self, cap_fetch_timeout: float = CAP_FETCH_TIMEOUT) -> None:
        self._cap_fetch_timeout = cap_fetch_timeout
        self._cache: Optional[List[ToolDescriptor]] = None
        self._generation = 0

    @property
    def is_cached(self) -> bool:
        return self._cache is not None

    def invalidate(self) -> None:
        """Drop the cached tool list."""
        self._cache = None
        self._generation += 1

    async def get_tools(self, connections: Mapping[str, Any]) -> List[ToolDescriptor]:
        """Return the cached tool list, discovering it first if needed."""
        if self._cache is not None:
            return self._cache

        generation = self._generation
        names = list(connections.keys())
        results = await asyncio.gather(
            *(self._discover_server(name, connections[name]) for name in names)
        )

        tools: List[ToolDescriptor] = []
        for server_tools in results:
            tools.extend(server_tools)

        logger.info(
            "Tool discovery completed: %d tool(s) from %d server(s).",
            len(tools),
            len(names),
        )
        if generation == self._generation:
            self._cache = tools
        else:
            logger.debug("Connections changed during discovery; result not cached.")
        return tools

    async def _discover_server(self, svr_name: str, conn: Any) -> List[ToolDescriptor]:
        """List, filter and wrap one server's tools; never raises."""
        definition = getattr(conn, "definition", None)
        tool_filter = build_filter(definition)
        if tool_filter.is_active:
            logger.debug("[%s] Applying %r.", svr_name, tool_filter)
        try:
            raw_tools = await asyncio.wait_for(conn.list_tools(), timeout=self._cap_fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "[%s] list_tools() timed out (>%ss); server contributes no tools.",
                svr_name,
                self._cap_fetch_timeout,
            )
            return []
        except Exception as exc:
            logger.warning(
                "[%s] Failed to list tools: %s",
                svr_name,
                exc,
            )
            return []

        discovered: List[ToolDescriptor] = []
        seen: set = set()
        for raw in raw_tools or []:
            tool_name = getattr(raw, "name", None)
            if not tool_name:
                logger.warning("[%s] Found unnamed tool, skipped: %r", svr_name, raw)
                continue
            if tool_name in seen:
                logger.warning(
                    "[%s] Duplicate tool provided multiple times: '%s'. "
                    "Only the first instance is registered.",
                    svr_name,
                    tool_name,
                )
                continue
            if not tool_filter.is_allowed(tool_name):
                logger.debug(
                    "[%s] Tool '%s' filtered out by allow/block rules.", svr_name, tool_name
                )
                continue
            seen.add(tool_name)
            discovered.append(
                ToolDescriptor(
                    name=tool_name,
                    description=getattr(raw, "description", None) or "",
                    input_schema=dict(getattr(raw, "inputSchema", None) or {}),
                    server_name=svr_name,
                )
            )

        logger.info("[%s] Registered %d tool(s).", svr_name, len(discovered))
        return discovered


def to_model_tools(tools: List[ToolDescriptor]) -> List[Dict[str, Any]]:
    """Project descriptors into the tool format expected by the model call."""
    return [
        {
            "name": tool.namespaced_name,
            "description": tool.description,
            "input_schema": {
                "type": tool.input_schema.get("type") or "object",
                "properties": tool.input_schema.get("properties") or {},
                "required": tool.input_schema.get("required") or [],
            },
        }
        for tool in tools
    ]


def extract_text(content: Any) -> List[str]:
    """Return the text of every ``text`` block in an MCP/model content list."""
    texts: List[str] = []
    for block in content or []:
        if isinstance(block, dict):
            block_type, text = block.get("type"), block.get("text")
        else:
            block_type, text = getattr(block, "type", None), getattr(block, "text", None)
        if block_type == "text" and isinstance(text, str) and text:
            texts.append(text)
    return texts

