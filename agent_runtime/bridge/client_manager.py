"""Tool server connection management."""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from agent_runtime.bridge.catalog import ToolCatalog, ToolDescriptor, to_model_tools
from agent_runtime.bridge.connection import ServerConnection, create_connection
from agent_runtime.bridge.routing import ToolDispatcher
from agent_runtime.config.flags import FeatureFlags
from agent_runtime.constants import CAP_FETCH_TIMEOUT, MCP_INIT_TIMEOUT
from agent_runtime.runtime.models import ToolCallRequest, ToolResult

logger = logging.getLogger(__name__)


class McpClientManager:
    """Owns the live connections to a set of tool servers.

    The live set is a plain dict that is *replaced*, never mutated, when
    connections come and go, so readers holding a reference always see a
    complete before- or after-state.
    """

    def __init__(
        self,
        connection_factory: Callable[[Any], ServerConnection] = create_connection,
        flags: Optional[FeatureFlags] = None,
        init_timeout: float = MCP_INIT_TIMEOUT,
        cap_fetch_timeout: float = CAP_FETCH_TIMEOUT,
    ) -> None:
        self._connection_factory = connection_factory
        self._flags = flags or FeatureFlags()
        self._init_timeout = init_timeout
        self._connections: Dict[str, ServerConnection] = {}
        self._definitions: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._catalog = ToolCatalog(cap_fetch_timeout=cap_fetch_timeout)
        self._dispatcher = ToolDispatcher(
            get_connections=lambda: self._connections,
            get_known_servers=lambda: self._definitions.values(),
            truncate=self._flags.is_enabled("output_truncation"),
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    async def connect(self, definitions: Iterable[Any]) -> None:
        """Connect to every active definition concurrently.

        Per-server failures are logged and skipped; this never raises
        because one server could not be reached.
        """
        async with self._lock:
            pending: Dict[str, ServerConnection] = {}
            known = dict(self._definitions)
            for definition in definitions:
                known[definition.name] = definition
                if not getattr(definition, "is_active", True):
                    logger.debug("[%s] Server is inactive, skipped.", definition.name)
                    continue
                if definition.name in self._connections or definition.name in pending:
                    logger.warning("[%s] Already connected, skipped.", definition.name)
                    continue
                try:
                    pending[definition.name] = self._connection_factory(definition)
                except Exception as exc:
                    logger.warning(
                        "[%s] Failed to connect: %s", definition.name, _failure_reason(exc)
                    )

            names = list(pending.keys())
            results = await asyncio.gather(
                *(pending[name].connect(self._init_timeout) for name in names),
                return_exceptions=True,
            )

            connected = dict(self._connections)
            for name, result in zip(names, results):
                if isinstance(result, BaseException):
                    reason = _failure_reason(result)
                    logger.warning("[%s] Failed to connect: %s", name, reason)
                    continue
                connected[name] = pending[name]

            self._definitions = known
            self._connections = connected
            self._catalog.invalidate()

        logger.info(
            "Tool server connection attempts completed. Connected servers: %d/%d",
            len(self._connections),
            len(names),
        )

    async def disconnect(self) -> None:
        """Close every live connection and clear the live set."""
        async with self._lock:
            closing = self._connections
            self._connections = {}
            self._catalog.invalidate()

            names = list(closing.keys())
            results = await asyncio.gather(
                *(closing[name].close() for name in names),
                return_exceptions=True,
            )
            for name, result in zip(names, results):
                if isinstance(result, BaseException):
                    logger.warning("[%s] Error while closing connection: %s", name, result)

        logger.info("All tool server connections closed (%d).", len(names))

    async def __aenter__(self) -> "McpClientManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # ── Live set reads ───────────────────────────────────────────────

    def is_connected(self, name: str) -> bool:
        return name in self._connections

    @property
    def connected_count(self) -> int:
        return len(self._connections)

    # ── Tools ────────────────────────────────────────────────────────

    async def list_tools(self) -> List[ToolDescriptor]:
        """Return the filtered tool list of every connected server (cached)."""
        if not self._catalog.is_cached:
            logger.debug("Tool list not cached; querying %d server(s).", len(self._connections))
        return await self._catalog.get_tools(self._connections)

    async def to_anthropic_tools(self) -> List[Dict[str, Any]]:
        """Return the tool list in the model's tool-definition format."""
        return to_model_tools(await self.list_tools())

    async def execute_tool(self, request: ToolCallRequest) -> ToolResult:
        """Route one tool call; failures come back as error results."""
        return await self._dispatcher.execute(request)

    def __repr__(self) -> str:
        return f"McpClientManager(connected={sorted(self._connections)!r})"


# ── Module-level helpers ─────────────────────────────────────────────────

_NETWORK_ERRORS = (httpx.TransportError, ConnectionError)


def _leaf_exceptions(exc: BaseException) -> List[BaseException]:
    """Flatten (nested) exception groups raised by the anyio-based transports."""
    if isinstance(exc, BaseExceptionGroup):
        leaves: List[BaseException] = []
        for sub_exc in exc.exceptions:
            leaves.extend(_leaf_exceptions(sub_exc))
        return leaves
    return [exc]


def _failure_reason(exc: BaseException) -> str:
    """Short, log-friendly description of a connection failure.

    Exception groups are unwrapped so the underlying cause (for example an
    ``httpx.ConnectError`` inside an SSE task group) is named, not the
    group summary.
    """
    return "; ".join(_describe_failure(leaf) for leaf in _leaf_exceptions(exc))


def _describe_failure(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "initialization timed out"
    if isinstance(exc, FileNotFoundError):
        return f"command or file not found '{exc.filename}'"
    text = str(exc) or type(exc).__name__
    if isinstance(exc, _NETWORK_ERRORS):
        return f"network error ({type(exc).__name__}): {text}"
    return text
