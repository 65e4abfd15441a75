"""Per-server MCP connections.

Each transport is a small subclass of :class:`ServerConnection` that only
knows how to open its streams; session setup, tool listing, tool calls
and shutdown are shared.  :func:`create_connection` picks the subclass
from the definition's ``transport`` tag.

The transport and session context managers of one connection are
entered and exited inside a single owner task.  ``close()`` signals that
task and waits for it, so connections can be closed one by one and from
any task.
"""

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional, Tuple, Type

from mcp import ClientSession, StdioServerParameters
from mcp import types as mcp_types
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from agent_runtime.config.schema import (
    SandboxConfig,
    SseServerDefinition,
    StdioServerDefinition,
    StreamableHttpServerDefinition,
)
from agent_runtime.constants import (
    BLACKHOLE_PROXY,
    CLIENT_NAME_PREFIX,
    CLIENT_VERSION,
    CLOSE_TIMEOUT,
    MCP_INIT_TIMEOUT,
)
from agent_runtime.display.logging_config import secret_redaction_filter
from agent_runtime.errors import BackendServerError, ConfigurationError

logger = logging.getLogger(__name__)


class ServerConnection(ABC):
    """A live client connection to one tool server."""

    transport: str = ""

    def __init__(self, definition: Any) -> None:
        self.definition = definition
        self.name: str = definition.name
        self._session: Optional[ClientSession] = None
        self._owner_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # ── Transport hook ───────────────────────────────────────────────

    @abstractmethod
    async def _open_streams(self, stack: AsyncExitStack) -> Tuple[Any, Any]:
        """Enter the transport context on *stack*; return (read, write) streams."""

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self._session is not None

    async def connect(self, init_timeout: float = MCP_INIT_TIMEOUT) -> None:
        """Open the transport and run the MCP handshake.

        Raises whatever the transport or handshake raised, or
        :class:`asyncio.TimeoutError` after *init_timeout* seconds.
        """
        if self._owner_task is not None:
            raise BackendServerError("Connection already started.", svr_name=self.name)

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._owner_task = asyncio.create_task(
            self._run(ready, stop_event), name=f"mcp_{self.name}"
        )

        try:
            await asyncio.wait_for(asyncio.shield(ready), timeout=init_timeout)
        except BaseException:
            await self._shutdown_owner(force=True)
            raise
        logger.info("[%s] MCP connection initialized (%s).", self.name, self.transport)

    async def _run(self, ready: asyncio.Future, stop_event: asyncio.Event) -> None:
        try:
            async with AsyncExitStack() as stack:
                read_stream, write_stream = await self._open_streams(stack)
                logger.debug("[%s] (%s) transport streams established.", self.name, self.transport)

                session = await stack.enter_async_context(
                    ClientSession(
                        read_stream,
                        write_stream,
                        client_info=mcp_types.Implementation(
                            name=f"{CLIENT_NAME_PREFIX}-{self.name}",
                            version=CLIENT_VERSION,
                        ),
                    )
                )
                await session.initialize()
                self._session = session
                ready.set_result(None)

                await stop_event.wait()
                logger.debug("[%s] Stop requested, closing transport.", self.name)
        except asyncio.CancelledError:
            if not ready.done():
                ready.cancel()
            raise
        except Exception as exc:
            if not ready.done():
                ready.set_exception(exc)
                return
            raise
        finally:
            self._session = None

    async def close(self) -> None:
        """Close the session and transport. Safe to call more than once."""
        await self._shutdown_owner(force=False)
        logger.info("[%s] Connection closed.", self.name)

    async def _shutdown_owner(self, force: bool) -> None:
        task = self._owner_task
        if task is None:
            return
        self._owner_task = None
        if self._stop_event is not None:
            self._stop_event.set()

        if force:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(
                "[%s] Timeout while closing connection, cancelling transport...",
                self.name,
            )
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    # ── MCP operations ───────────────────────────────────────────────

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise BackendServerError("Session is not open.", svr_name=self.name)
        return self._session

    async def list_tools(self) -> List[mcp_types.Tool]:
        """Return the server's raw (unfiltered, unscoped) tool list."""
        result = await self._require_session().list_tools()
        return list(getattr(result, "tools", None) or [])

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> mcp_types.CallToolResult:
        """Invoke *name* on the server with *arguments* unchanged."""
        return await self._require_session().call_tool(name, arguments)

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"{type(self).__name__}(name={self.name!r}, {state})"


# ── Transport variants ───────────────────────────────────────────────────


class StdioConnection(ServerConnection):
    """Tool server launched as a subprocess, spoken to over stdin/stdout."""

    transport = "stdio"

    async def _open_streams(self, stack: AsyncExitStack) -> Tuple[Any, Any]:
        definition: StdioServerDefinition = self.definition
        command = definition.command
        if command.lower() == "python":
            command = sys.executable or "python"

        env = _apply_network_env(self.name, definition.sandbox, definition.env)
        secret_redaction_filter.register_values(definition.env)

        logger.info(
            "[%s] Preparing to start local process: '%s' args: %s",
            self.name,
            command,
            definition.args,
        )
        params = StdioServerParameters(command=command, args=list(definition.args), env=env)
        return await stack.enter_async_context(stdio_client(params))


class SseConnection(ServerConnection):
    """Tool server reached over Server-Sent-Events."""

    transport = "sse"

    async def _open_streams(self, stack: AsyncExitStack) -> Tuple[Any, Any]:
        definition: SseServerDefinition = self.definition
        secret_redaction_filter.register_values(definition.headers)
        logger.debug("[%s] SSE server, url=%s", self.name, definition.url)
        return await stack.enter_async_context(
            sse_client(url=definition.url, headers=definition.headers)
        )


class StreamableHttpConnection(ServerConnection):
    """Tool server reached over streamable HTTP."""

    transport = "streamable-http"

    async def _open_streams(self, stack: AsyncExitStack) -> Tuple[Any, Any]:
        definition: StreamableHttpServerDefinition = self.definition
        secret_redaction_filter.register_values(definition.headers)
        logger.debug("[%s] Streamable-HTTP server, url=%s", self.name, definition.url)
        read_stream, write_stream, _get_session_id = await stack.enter_async_context(
            streamablehttp_client(url=definition.url, headers=definition.headers)
        )
        return read_stream, write_stream


_CONNECTION_TYPES: Dict[str, Type[ServerConnection]] = {
    "stdio": StdioConnection,
    "sse": SseConnection,
    "streamable-http": StreamableHttpConnection,
}


def create_connection(definition: Any) -> ServerConnection:
    """Build the transport-appropriate (not yet connected) connection."""
    transport = getattr(definition, "transport", None)
    conn_cls = _CONNECTION_TYPES.get(transport)  # type: ignore[arg-type]
    if conn_cls is None:
        raise ConfigurationError(
            f"Unsupported transport '{transport}' for server '{definition.name}'."
        )
    return conn_cls(definition)


# ── Module-level helpers ─────────────────────────────────────────────────


def _apply_network_env(
    svr_name: str,
    sandbox: SandboxConfig,
    env: Optional[Dict[str, str]],
) -> Optional[Dict[str, str]]:
    """Return the subprocess env, with proxies blackholed if networking is denied.

    The original *env* mapping is never modified.
    """
    if sandbox.allow_network:
        return env
    isolated: Dict[str, str] = dict(env or {})
    isolated["HTTP_PROXY"] = BLACKHOLE_PROXY
    isolated["HTTPS_PROXY"] = BLACKHOLE_PROXY
    isolated["NO_PROXY"] = ""
    logger.debug("[%s] Network access disabled, proxy variables blackholed.", svr_name)
    return isolated
