"""Pre-configured tool server definitions for common integrations.

Presets are static data: callers copy one with :func:`get_preset`,
adjust it (fill in credentials, restrict tools) and hand the result to
:class:`~agent_runtime.bridge.client_manager.McpClientManager`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from agent_runtime.config.schema import ServerDefinition, StdioServerDefinition


@dataclass(frozen=True)
class PresetMeta:
    """A preset definition plus its display metadata."""

    definition: ServerDefinition
    label: str
    description: str


_PRESET_REGISTRY: Dict[str, PresetMeta] = {
    "filesystem": PresetMeta(
        label="Filesystem",
        description=(
            "Local filesystem access within /tmp/agent-workspace directory with 10s timeout"
        ),
        definition=StdioServerDefinition(
            name="filesystem",
            transport="stdio",
            command="npx",
            args=["-y", "@modelcontextprotocol/server-filesystem", "/tmp/agent-workspace"],
            sandbox={"max_execution_ms": 10_000, "allow_network": False},
        ),
    ),
    "jiraCloud": PresetMeta(
        label="Jira Cloud",
        description=(
            "Jira Cloud integration for issue tracking, project management, and "
            "workflow automation (requires JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN)"
        ),
        definition=StdioServerDefinition(
            name="jira-cloud",
            transport="stdio",
            command="npx",
            args=["-y", "@anthropic/mcp-server-jira"],
            env={"JIRA_URL": "", "JIRA_EMAIL": "", "JIRA_API_TOKEN": ""},
            sandbox={"max_execution_ms": 15_000, "allow_network": True},
        ),
    ),
    "browser": PresetMeta(
        label="Browser (Puppeteer)",
        description=(
            "Headless browser automation via Puppeteer for web scraping and "
            "interaction with 30s timeout"
        ),
        definition=StdioServerDefinition(
            name="browser",
            transport="stdio",
            command="npx",
            args=["-y", "@anthropic/mcp-server-puppeteer"],
            sandbox={"max_execution_ms": 30_000, "allow_network": True},
        ),
    ),
    "git": PresetMeta(
        label="Git",
        description=(
            "Git repository operations including clone, commit, push, and diff "
            "with 15s timeout"
        ),
        definition=StdioServerDefinition(
            name="git",
            transport="stdio",
            command="npx",
            args=["-y", "@anthropic/mcp-server-git"],
            sandbox={"max_execution_ms": 15_000, "allow_network": False},
        ),
    ),
    "vercel": PresetMeta(
        label="Vercel",
        description=(
            "Vercel platform integration for deployments, domains, and project "
            "management (requires VERCEL_TOKEN)"
        ),
        definition=StdioServerDefinition(
            name="vercel",
            transport="stdio",
            command="npx",
            args=["-y", "@vercel/mcp-adapter"],
            env={"VERCEL_TOKEN": ""},
            sandbox={"max_execution_ms": 30_000, "allow_network": True},
        ),
    ),
}

# Map of preset key to its definition.
MCP_PRESETS: Dict[str, ServerDefinition] = {
    key: meta.definition for key, meta in _PRESET_REGISTRY.items()
}


def get_preset(key: str) -> Optional[ServerDefinition]:
    """Return a deep copy of the preset *key*, or ``None`` if unknown."""
    entry = _PRESET_REGISTRY.get(key)
    if entry is None:
        return None
    return entry.definition.model_copy(deep=True)


def list_presets() -> List[Dict[str, str]]:
    """List ``key``/``name``/``description`` for every preset."""
    return [
        {"key": key, "name": meta.label, "description": meta.description}
        for key, meta in _PRESET_REGISTRY.items()
    ]
