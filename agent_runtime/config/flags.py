"""Runtime feature flags.

A simple ``Dict[str, bool]`` registry with sensible defaults.
Flags are passed to the engine and can be queried at runtime via
:meth:`FeatureFlags.is_enabled`.

Usage::

    from agent_runtime.config.flags import FeatureFlags

    flags = FeatureFlags({"mcp_tools": False})
    if flags.is_enabled("mcp_tools"):
        ...
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Default feature-flag values.
_DEFAULTS: Dict[str, bool] = {
    "mcp_tools": True,
    "output_truncation": True,
}


class FeatureFlags:
    """Immutable set of boolean feature flags.

    Parameters
    ----------
    overrides:
        Mapping of ``flag_name → bool`` from user config.  Unknown
        names are accepted; missing names fall back to :data:`_DEFAULTS`.
    """

    def __init__(self, overrides: Optional[Dict[str, bool]] = None) -> None:
        self._flags: Dict[str, bool] = dict(_DEFAULTS)
        if overrides:
            for key, value in overrides.items():
                if not isinstance(value, bool):
                    logger.warning(
                        "Feature flag '%s' has non-boolean value '%s', skipping.",
                        key,
                        value,
                    )
                    continue
                self._flags[key] = value

    def is_enabled(self, name: str) -> bool:
        """Return ``True`` if the named feature is enabled.

        Unknown flag names return ``False``.
        """
        return self._flags.get(name, False)

    def all_flags(self) -> Dict[str, bool]:
        """Return a copy of all flags and their current values."""
        return dict(self._flags)

    def __repr__(self) -> str:
        enabled = [k for k, v in self._flags.items() if v]
        return f"FeatureFlags(enabled={enabled})"
