"""Tool filter engine with glob-pattern allow/deny lists.

Filters are applied **per-server** while the tool catalog is built,
before tools are namespaced and aggregated.

Patterns only understand ``*`` (any run of characters, including none);
every other character, ``?`` and ``[`` included, matches literally.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import List, Optional, Pattern

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> Pattern[str]:
    parts = (re.escape(chunk) for chunk in pattern.split("*"))
    return re.compile(".*".join(parts), re.DOTALL)


def matches_glob(pattern: str, value: str) -> bool:
    """Return True if *value* matches *pattern* in full."""
    return _compile_glob(pattern).fullmatch(value) is not None


class ToolFilter:
    """Evaluate allow/deny glob patterns against tool names.

    Evaluation order (block takes precedence over allow):

    1. If ``allowed`` is non-empty and the name matches none of it → **hidden**.
    2. If ``blocked`` is set and the name matches any pattern → **hidden**.
    3. Otherwise → **visible** (pass-through when nothing is configured).
    """

    def __init__(
        self,
        allowed: Optional[List[str]] = None,
        blocked: Optional[List[str]] = None,
    ) -> None:
        self.allowed = list(allowed or [])
        self.blocked = list(blocked or [])

    @property
    def is_active(self) -> bool:
        """Return True if any filter patterns are configured."""
        return bool(self.allowed or self.blocked)

    def is_allowed(self, name: str) -> bool:
        """Return True if *name* passes the filter."""
        if self.allowed and not any(matches_glob(pat, name) for pat in self.allowed):
            return False
        if self.blocked and any(matches_glob(pat, name) for pat in self.blocked):
            return False
        return True

    def __repr__(self) -> str:
        return f"ToolFilter(allowed={self.allowed!r}, blocked={self.blocked!r})"


def build_filter(definition: object) -> ToolFilter:
    """Create a :class:`ToolFilter` from a server definition's tool lists."""
    return ToolFilter(
        allowed=getattr(definition, "allowed_tools", None),
        blocked=getattr(definition, "blocked_tools", None),
    )
