"""Pydantic models for runtime state.

These models serve dual purpose:
1. Internal state representation for the engine and tool dispatcher
2. Serialisable results handed back to the (external) API layer
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def generate_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:16]}"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Session lifecycle ────────────────────────────────────────────────────


class SessionStatus(str, Enum):
    """Lifecycle states for a conversation session.

    Valid transitions::

        ACTIVE → ENDED
        ACTIVE → ESCALATED

    ``ENDED`` and ``ESCALATED`` are terminal.
    """

    ACTIVE = "active"
    ENDED = "ended"
    ESCALATED = "escalated"


_SESSION_TRANSITIONS: Dict[SessionStatus, frozenset] = {
    SessionStatus.ACTIVE: frozenset(
        {SessionStatus.ACTIVE, SessionStatus.ENDED, SessionStatus.ESCALATED}
    ),
    SessionStatus.ENDED: frozenset({SessionStatus.ENDED}),
    SessionStatus.ESCALATED: frozenset({SessionStatus.ESCALATED}),
}


def is_valid_session_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Check whether a session status transition is allowed."""
    return target in _SESSION_TRANSITIONS.get(current, frozenset())


def transition_session_status(current: SessionStatus, target: SessionStatus) -> SessionStatus:
    """Return *target* if the session may move there from *current*.

    Raises :class:`ValueError` if the transition is invalid.
    """
    if not is_valid_session_transition(current, target):
        raise ValueError(f"Invalid session transition: {current.value} → {target.value}")
    return target


class GuardrailAction(str, Enum):
    BLOCK = "block"
    END_SESSION = "end_session"


class GuardrailCheckResult(BaseModel):
    """Outcome of the pre-message guardrail check."""

    allowed: bool
    reason: Optional[str] = None
    action: Optional[GuardrailAction] = None


class PostMessageCheckResult(BaseModel):
    """Outcome of the post-message escalation check."""

    failed_attempts: int
    should_escalate: bool


# ── Tools ────────────────────────────────────────────────────────────────


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model."""

    id: str = Field(description="Caller-supplied correlation token")
    name: str = Field(description="Namespaced (server__tool) or bare tool name")
    input: Dict[str, Any] = Field(default_factory=dict)
    server_name: Optional[str] = None


class ToolResult(BaseModel):
    """Outcome of one tool call. Errors are results, not exceptions."""

    tool_call_id: str
    output: str
    is_error: bool = False
    duration_ms: float = 0.0


class ToolUseRecord(BaseModel):
    """A tool call as recorded on the assistant message that triggered it."""

    tool_call_id: str
    tool_name: str
    server_name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: str
    is_error: bool = False
    duration_ms: float = 0.0


# ── Messages & turn results ──────────────────────────────────────────────


class RuntimeMessage(BaseModel):
    """One stored conversation turn."""

    id: str = Field(default_factory=generate_message_id)
    role: str = Field(description="'user' or 'assistant'")
    content: str
    timestamp: str = Field(default_factory=_utc_now_iso)
    metadata: Optional[Dict[str, Any]] = None
    tool_uses: Optional[List[ToolUseRecord]] = None


class SessionUpdates(BaseModel):
    """Counters and status to persist after a turn."""

    turn_count: int = Field(ge=0)
    failed_attempts: int = Field(ge=0)
    status: SessionStatus


class ProcessMessageResult(BaseModel):
    """What :func:`~agent_runtime.runtime.engine.process_turn` returns."""

    response: RuntimeMessage
    session_updates: SessionUpdates
    guardrail_notice: Optional[str] = None
    tool_executions: Optional[List[ToolUseRecord]] = None

    @property
    def blocked(self) -> bool:
        return bool((self.response.metadata or {}).get("blocked"))


class SessionState(BaseModel):
    """Stored state of one conversation session.

    The caller loads this before :func:`~agent_runtime.runtime.engine.process_turn`
    and persists the state returned by :meth:`apply` afterwards.
    """

    status: SessionStatus = SessionStatus.ACTIVE
    turn_count: int = Field(default=0, ge=0)
    failed_attempts: int = Field(default=0, ge=0)
    history: List[RuntimeMessage] = Field(default_factory=list)

    def apply(self, user_message: str, result: ProcessMessageResult) -> "SessionState":
        """Return the state after *result*; both turns are appended to history.

        Raises :class:`ValueError` if the result would move the session out
        of a terminal status.
        """
        updates = result.session_updates
        return SessionState(
            status=transition_session_status(self.status, updates.status),
            turn_count=updates.turn_count,
            failed_attempts=updates.failed_attempts,
            history=[
                *self.history,
                RuntimeMessage(role="user", content=user_message),
                result.response,
            ],
        )


class ToolLoopResult(BaseModel):
    """Final text of an agentic tool loop and every tool call it made."""

    response_text: str
    tool_executions: List[ToolUseRecord] = Field(default_factory=list)
