"""Runtime subpackage - session state, guardrails and turn processing.

The turn engine lives in :mod:`agent_runtime.runtime.engine`; it depends
on the bridge, which in turn depends on the models exported here.
"""

from agent_runtime.runtime.guardrails import check_post_message, check_pre_message
from agent_runtime.runtime.models import (
    GuardrailAction,
    GuardrailCheckResult,
    PostMessageCheckResult,
    ProcessMessageResult,
    RuntimeMessage,
    SessionState,
    SessionStatus,
    SessionUpdates,
    ToolCallRequest,
    ToolLoopResult,
    ToolResult,
    ToolUseRecord,
    is_valid_session_transition,
    transition_session_status,
)
from agent_runtime.runtime.prompt import build_runtime_system_prompt

__all__ = [
    "GuardrailAction",
    "GuardrailCheckResult",
    "PostMessageCheckResult",
    "ProcessMessageResult",
    "RuntimeMessage",
    "SessionState",
    "SessionStatus",
    "SessionUpdates",
    "ToolCallRequest",
    "ToolLoopResult",
    "ToolResult",
    "ToolUseRecord",
    "build_runtime_system_prompt",
    "check_post_message",
    "check_pre_message",
    "is_valid_session_transition",
    "transition_session_status",
]
