"""
Agent Runtime - the execution layer for deployed agents.

Agent Runtime enforces per-session guardrails (turn ceilings, escalation)
around the language-model call and manages connections to multiple MCP
tool servers (stdio/SSE/streamable-http), exposing their filtered,
namespaced tools to the model.
"""

from agent_runtime.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION
__app_name__ = APP_NAME

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "__version__",
    "__app_name__",
]
