"""Shared fixtures: in-memory tool servers injected through the manager's
``connection_factory``."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

import pytest
from mcp import types as mcp_types

from agent_runtime.bridge.client_manager import McpClientManager
from agent_runtime.bridge.connection import ServerConnection
from agent_runtime.config.schema import StdioServerDefinition

CallHandler = Callable[[str, Dict[str, Any]], Awaitable[mcp_types.CallToolResult]]


def text_result(*texts: str, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=t) for t in texts],
        isError=is_error,
    )


class FakeConnection(ServerConnection):
    """A ServerConnection whose transport is a Python object."""

    transport = "fake"

    def __init__(
        self,
        definition: Any,
        tools: Optional[List[mcp_types.Tool]] = None,
        connect_error: Optional[BaseException] = None,
        list_error: Optional[BaseException] = None,
        close_error: Optional[BaseException] = None,
        call_handler: Optional[CallHandler] = None,
    ) -> None:
        super().__init__(definition)
        self.tools = list(tools or [])
        self.connect_error = connect_error
        self.list_error = list_error
        self.close_error = close_error
        self.call_handler = call_handler
        self.opened = False
        self.connect_calls = 0
        self.list_calls = 0
        self.close_calls = 0
        self.calls: List[tuple] = []

    async def _open_streams(self, stack):  # pragma: no cover - never opened
        raise NotImplementedError

    @property
    def is_open(self) -> bool:
        return self.opened

    async def connect(self, init_timeout: float = 0) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.opened = True

    async def list_tools(self) -> List[mcp_types.Tool]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.tools)

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        if self.call_handler is not None:
            return await self.call_handler(name, arguments)
        return text_result(f"{name} ok")

    async def close(self) -> None:
        self.close_calls += 1
        self.opened = False
        if self.close_error is not None:
            raise self.close_error


class FakeServerFarm:
    """Registry of fake server behaviours, keyed by server name."""

    def __init__(self) -> None:
        self.behaviours: Dict[str, Dict[str, Any]] = {}
        self.connections: Dict[str, FakeConnection] = {}

    def add(self, name: str, tool_names: Optional[List[str]] = None, **behaviour: Any) -> None:
        tools = [
            mcp_types.Tool(
                name=tool_name,
                description=f"{tool_name} tool",
                inputSchema={"type": "object", "properties": {"path": {"type": "string"}}},
            )
            for tool_name in (tool_names or [])
        ]
        self.behaviours[name] = {"tools": tools, **behaviour}

    def factory(self, definition: Any) -> FakeConnection:
        conn = FakeConnection(definition, **self.behaviours.get(definition.name, {}))
        self.connections[definition.name] = conn
        return conn

    def manager(self, **kwargs: Any) -> McpClientManager:
        return McpClientManager(connection_factory=self.factory, **kwargs)


def stdio_def(name: str, **kwargs: Any) -> StdioServerDefinition:
    return StdioServerDefinition(name=name, transport="stdio", command="echo", **kwargs)


@pytest.fixture
def farm() -> FakeServerFarm:
    return FakeServerFarm()


@pytest.fixture
def make_def() -> Callable[..., StdioServerDefinition]:
    return stdio_def


@pytest.fixture
def make_text_result() -> Callable[..., mcp_types.CallToolResult]:
    return text_result
