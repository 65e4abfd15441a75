"""Configuration loading and validation for Agent Runtime."""

from agent_runtime.config.flags import FeatureFlags
from agent_runtime.config.loader import (
    load_agent_config,
    load_runtime_config,
    load_server_definitions,
    parse_server_definitions,
)
from agent_runtime.config.migration import expand_env_vars, normalize_server_entry
from agent_runtime.config.presets import MCP_PRESETS, get_preset, list_presets
from agent_runtime.config.schema import (
    AgentConfig,
    GuardrailsConfig,
    ResourceLimits,
    RuntimeConfig,
    SandboxConfig,
    ServerDefinition,
    SseServerDefinition,
    StdioServerDefinition,
    StreamableHttpServerDefinition,
)

__all__ = [
    "AgentConfig",
    "FeatureFlags",
    "GuardrailsConfig",
    "MCP_PRESETS",
    "ResourceLimits",
    "RuntimeConfig",
    "SandboxConfig",
    "ServerDefinition",
    "SseServerDefinition",
    "StdioServerDefinition",
    "StreamableHttpServerDefinition",
    "expand_env_vars",
    "get_preset",
    "list_presets",
    "load_agent_config",
    "load_runtime_config",
    "load_server_definitions",
    "parse_server_definitions",
]
