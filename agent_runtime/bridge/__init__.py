"""Bridge subpackage - manages tool server connections and tool routing."""

from agent_runtime.bridge.catalog import ToolCatalog, ToolDescriptor, namespace_tool_name
from agent_runtime.bridge.client_manager import McpClientManager
from agent_runtime.bridge.connection import ServerConnection, create_connection
from agent_runtime.bridge.filter import ToolFilter, matches_glob
from agent_runtime.bridge.routing import (
    ToolDispatcher,
    resolve_server_for_tool,
    split_tool_name,
)

__all__ = [
    "McpClientManager",
    "ServerConnection",
    "ToolCatalog",
    "ToolDescriptor",
    "ToolDispatcher",
    "ToolFilter",
    "create_connection",
    "matches_glob",
    "namespace_tool_name",
    "resolve_server_for_tool",
    "split_tool_name",
]
