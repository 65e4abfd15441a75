"""Pydantic configuration models for Agent Runtime.

Two groups of models live here:

* Tool server definitions (stdio, SSE, streamable-http) with their
  shared sandbox policy sub-model.
* The slice of an agent's configuration the runtime reads (mission,
  identity, capabilities, guardrails).
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from agent_runtime.constants import (
    DEFAULT_MAX_EXECUTION_MS,
    DEFAULT_MAX_OUTPUT_SIZE,
    DEFAULT_MAX_TURNS,
    TOOL_NAME_SEPARATOR,
)

# ── Shared per-server configs ────────────────────────────────────────────


class SandboxConfig(BaseModel):
    """Per-server execution policy. Defaults are used when not specified."""

    model_config = {"frozen": True}

    max_execution_ms: int = Field(
        default=DEFAULT_MAX_EXECUTION_MS,
        gt=0,
        description="Per-call timeout in milliseconds.",
    )
    allow_network: bool = Field(
        default=False,
        description="Whether a locally launched server may reach the network.",
    )
    allowed_paths: List[str] = Field(
        default_factory=list,
        description="Filesystem paths the tool server may access.",
    )
    max_output_size: int = Field(
        default=DEFAULT_MAX_OUTPUT_SIZE,
        gt=0,
        description="Tool output is truncated beyond this many characters.",
    )


class _ServerDefinitionBase(BaseModel):
    model_config = {"frozen": True}

    name: str = Field(..., min_length=1, description="Unique server name")
    allowed_tools: Optional[List[str]] = Field(
        default=None,
        description="Glob patterns for allowed tool names.",
    )
    blocked_tools: Optional[List[str]] = Field(
        default=None,
        description="Glob patterns for blocked tool names.",
    )
    status: Literal["active", "inactive"] = "active"
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("server name must be a non-empty string")
        if TOOL_NAME_SEPARATOR in v:
            raise ValueError(
                f"server name '{v}' must not contain the tool name "
                f"separator '{TOOL_NAME_SEPARATOR}'"
            )
        return v

    @property
    def is_active(self) -> bool:
        return self.status == "active"


def _check_url(v: str) -> str:
    v = v.strip()
    if not v.startswith(("http://", "https://")):
        raise ValueError(f"URL '{v}' must start with http:// or https://")
    return v


# ── Server definitions ───────────────────────────────────────────────────


class StdioServerDefinition(_ServerDefinitionBase):
    """A tool server launched as a local subprocess and spoken to over stdio."""

    transport: Literal["stdio"]
    command: str = Field(..., min_length=1, description="Executable to run")
    args: List[str] = Field(default_factory=list)
    env: Optional[Dict[str, str]] = None

    @field_validator("command")
    @classmethod
    def _strip_command(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("stdio transport requires a non-empty 'command'")
        return v


class SseServerDefinition(_ServerDefinitionBase):
    """A tool server reached over Server-Sent-Events."""

    transport: Literal["sse"]
    url: str = Field(..., min_length=1, description="SSE endpoint URL")
    headers: Optional[Dict[str, str]] = Field(
        default=None,
        description="Extra HTTP headers (e.g. Authorization). Supports ${ENV_VAR}.",
    )

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        return _check_url(v)


class StreamableHttpServerDefinition(_ServerDefinitionBase):
    """A tool server reached over streamable HTTP."""

    transport: Literal["streamable-http"]
    url: str = Field(..., min_length=1, description="Streamable HTTP endpoint URL")
    headers: Optional[Dict[str, str]] = Field(
        default=None,
        description="Extra HTTP headers (e.g. Authorization). Supports ${ENV_VAR}.",
    )

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        return _check_url(v)


# Discriminated union: pick the right model based on "transport" field
ServerDefinition = Annotated[
    Union[StdioServerDefinition, SseServerDefinition, StreamableHttpServerDefinition],
    Field(discriminator="transport"),
]


class RuntimeConfig(BaseModel):
    """Top-level structure of a runtime configuration file."""

    servers: List[ServerDefinition] = Field(default_factory=list)
    feature_flags: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("servers")
    @classmethod
    def _unique_names(cls, v: List[Any]) -> List[Any]:
        seen: set = set()
        for definition in v:
            if definition.name in seen:
                raise ValueError(f"Duplicate server name '{definition.name}'.")
            seen.add(definition.name)
        return v


# ── Agent configuration (runtime slice) ──────────────────────────────────


class MissionConfig(BaseModel):
    description: Optional[str] = None
    tasks: List[str] = Field(default_factory=list)
    exclusions: List[str] = Field(default_factory=list)


class IdentityConfig(BaseModel):
    name: Optional[str] = None
    emoji: Optional[str] = None
    vibe: Optional[str] = None
    tone: Optional[str] = None
    greeting: Optional[str] = None


class Capability(BaseModel):
    name: str
    access: Literal["read-only", "write", "full"] = "read-only"
    description: str = ""


class CapabilitiesConfig(BaseModel):
    tools: List[Capability] = Field(default_factory=list)


class ResourceLimits(BaseModel):
    """Guardrail ceilings enforced by the session state machine."""

    max_turns_per_session: int = Field(default=DEFAULT_MAX_TURNS, ge=0)
    max_response_length: Optional[int] = Field(default=None, gt=0)
    escalation_threshold: Optional[int] = Field(default=None, ge=0)

    @field_validator("max_turns_per_session", mode="before")
    @classmethod
    def _default_when_null(cls, v: Any) -> Any:
        return DEFAULT_MAX_TURNS if v is None else v


class GuardrailsConfig(BaseModel):
    behavioral: List[str] = Field(default_factory=list)
    prompt_injection_defense: Optional[Literal["strict", "moderate", "none"]] = None
    resource_limits: ResourceLimits = Field(default_factory=ResourceLimits)


class AgentConfig(BaseModel):
    """The parts of a deployed agent's configuration read at runtime."""

    model_config = {"extra": "ignore"}

    mission: MissionConfig = Field(default_factory=MissionConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    capabilities: CapabilitiesConfig = Field(default_factory=CapabilitiesConfig)
    guardrails: GuardrailsConfig = Field(default_factory=GuardrailsConfig)

    @field_validator("capabilities", mode="before")
    @classmethod
    def _accept_flat_tool_list(cls, v: Any) -> Any:
        # Template-generated configs store the tool list directly.
        if isinstance(v, list):
            return {"tools": v}
        return v

    @property
    def resource_limits(self) -> ResourceLimits:
        return self.guardrails.resource_limits
