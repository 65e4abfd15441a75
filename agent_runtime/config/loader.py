"""Configuration file loading and validation.

Loads YAML configuration files, expands ``${ENV_VAR}`` placeholders,
normalises builder-style field names, and validates against the
Pydantic models defined in :mod:`schema`.

Two documents are understood:

* a runtime config (``servers`` + ``feature_flags``), see
  :func:`load_runtime_config`;
* an agent config (mission, identity, guardrails, ...), see
  :func:`load_agent_config`.
"""

import logging
import os
from typing import Any, Dict, List

import yaml
from pydantic import TypeAdapter, ValidationError

from agent_runtime.config.migration import expand_env_vars, normalize_server_entry
from agent_runtime.config.schema import AgentConfig, RuntimeConfig, ServerDefinition
from agent_runtime.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Recognised config file extensions.
_YAML_EXTS = frozenset({".yaml", ".yml"})

_SERVER_LIST_ADAPTER: TypeAdapter = TypeAdapter(List[ServerDefinition])


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except Exception as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def _server_entries(raw_servers: Any) -> List[Dict[str, Any]]:
    """Accept either a list of definitions or a ``{name: definition}`` mapping."""
    if raw_servers is None:
        return []
    if isinstance(raw_servers, dict):
        entries = []
        for name, entry in raw_servers.items():
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Server '{name}' must be a mapping.")
            entries.append({"name": name, **entry})
        raw_servers = entries
    if not isinstance(raw_servers, list):
        raise ConfigurationError("'servers' must be a list or a mapping of server definitions.")

    normalized: List[Dict[str, Any]] = []
    for idx, entry in enumerate(raw_servers):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Server entry #{idx} must be a mapping.")
        normalized.append(normalize_server_entry(entry))
    return normalized


# ── Public API ───────────────────────────────────────────────────────────


def parse_server_definitions(raw_servers: Any) -> List[ServerDefinition]:
    """Validate already-parsed server definitions.

    Accepts builder-style dicts (``allowedTools``, ``transport: http``)
    as well as the schema's own field names.

    Raises:
        ConfigurationError: when any definition is invalid (all errors
            are reported at once).
    """
    entries = expand_env_vars(_server_entries(raw_servers))
    try:
        definitions = _SERVER_LIST_ADAPTER.validate_python(entries)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Server definition validation failed ({len(exc.errors())} error(s)):\n"
            f"{error_summary}"
        ) from exc

    seen: set = set()
    for definition in definitions:
        if definition.name in seen:
            raise ConfigurationError(f"Duplicate server name '{definition.name}'.")
        seen.add(definition.name)
    return definitions


def load_runtime_config(cfg_fpath: str) -> RuntimeConfig:
    """Load, expand, validate, and return a :class:`RuntimeConfig`.

    Steps:
        1. Read YAML file
        2. Normalise server entries and expand ``${VAR}`` references
        3. Validate against :class:`RuntimeConfig` (Pydantic)

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures.
    """
    logger.debug("Loading runtime configuration file: %s", cfg_fpath)
    raw_data = _read_config_file(cfg_fpath)

    raw_data = dict(raw_data)
    raw_data["servers"] = _server_entries(raw_data.get("servers"))
    raw_data = expand_env_vars(raw_data)

    try:
        config = RuntimeConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc

    logger.info(
        "Configuration '%s' loaded. %d server definition(s) validated.",
        cfg_fpath,
        len(config.servers),
    )
    return config


def load_server_definitions(cfg_fpath: str) -> List[ServerDefinition]:
    """Shortcut returning only the server definitions of a runtime config."""
    return list(load_runtime_config(cfg_fpath).servers)


def load_agent_config(cfg_fpath: str) -> AgentConfig:
    """Load and validate an agent configuration file."""
    logger.debug("Loading agent configuration file: %s", cfg_fpath)
    raw_data = expand_env_vars(_read_config_file(cfg_fpath))
    try:
        return AgentConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Agent configuration validation failed ({len(exc.errors())} error(s)):\n"
            f"{error_summary}"
        ) from exc
