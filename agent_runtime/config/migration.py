"""Environment variable expansion and legacy field normalisation.

Handles ``${VAR}`` environment variable expansion in string values and
rewrites server definitions written in the camelCase / ``"http"`` form
used by the agent builder into the schema's field names.
"""

from __future__ import annotations

import os
import re
from typing import Any, Dict

# Regex for ${VAR_NAME}, captures the variable name inside ${}
_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_LEGACY_KEYS = {
    "allowedTools": "allowed_tools",
    "blockedTools": "blocked_tools",
    "maxExecutionMs": "max_execution_ms",
    "allowNetwork": "allow_network",
    "allowedPaths": "allowed_paths",
    "maxOutputSize": "max_output_size",
}

_TRANSPORT_ALIASES = {"http": "streamable-http"}


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` references in string values.

    - If the env var is not set, the placeholder is left unchanged.
    - Non-string leaves are returned as-is.
    - Dicts and lists are walked recursively.
    """
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(
            lambda m: os.environ.get(m.group(1), m.group(0)),
            value,
        )
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def normalize_server_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of *entry* using the schema's field names.

    ``allowedTools`` becomes ``allowed_tools`` (and so on, including the
    nested sandbox keys), a missing ``transport`` falls back to the
    ``type`` key, and the ``"http"`` transport alias maps to
    ``"streamable-http"``.
    """
    out: Dict[str, Any] = {}
    for key, value in entry.items():
        out[_LEGACY_KEYS.get(key, key)] = value

    if "transport" not in out and "type" in out:
        out["transport"] = out.pop("type")
    transport = out.get("transport")
    if isinstance(transport, str):
        out["transport"] = _TRANSPORT_ALIASES.get(transport, transport)

    sandbox = out.get("sandbox")
    if isinstance(sandbox, dict):
        out["sandbox"] = {_LEGACY_KEYS.get(k, k): v for k, v in sandbox.items()}
    return out
