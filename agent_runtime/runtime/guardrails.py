"""Session guardrail checks.

Both checks are pure functions of the agent's guardrail configuration and
the session counters; the engine decides what to do with the outcome.
"""

from typing import Optional

from agent_runtime.config.schema import GuardrailsConfig, ResourceLimits
from agent_runtime.constants import DEFAULT_ESCALATION_THRESHOLD
from agent_runtime.runtime.models import (
    GuardrailAction,
    GuardrailCheckResult,
    PostMessageCheckResult,
    SessionStatus,
)


def _limits(guardrails: Optional[GuardrailsConfig]) -> ResourceLimits:
    if guardrails is None:
        return ResourceLimits()
    return guardrails.resource_limits


def check_pre_message(
    guardrails: Optional[GuardrailsConfig],
    turn_count: int,
    session_status: SessionStatus,
) -> GuardrailCheckResult:
    """Decide whether a new message may be processed in this session."""
    status = SessionStatus(session_status)
    if status is SessionStatus.ENDED:
        return GuardrailCheckResult(
            allowed=False, reason="Session has ended", action=GuardrailAction.BLOCK
        )
    if status is SessionStatus.ESCALATED:
        return GuardrailCheckResult(
            allowed=False,
            reason="Session has been escalated to a human",
            action=GuardrailAction.BLOCK,
        )

    max_turns = _limits(guardrails).max_turns_per_session
    if turn_count >= max_turns:
        return GuardrailCheckResult(
            allowed=False,
            reason=f"Maximum turns reached ({max_turns})",
            action=GuardrailAction.END_SESSION,
        )
    return GuardrailCheckResult(allowed=True)


def check_post_message(
    guardrails: Optional[GuardrailsConfig],
    failed_attempts: int,
) -> PostMessageCheckResult:
    """Report whether *failed_attempts* reached the escalation threshold."""
    threshold = _limits(guardrails).escalation_threshold
    if threshold is None:
        threshold = DEFAULT_ESCALATION_THRESHOLD
    return PostMessageCheckResult(
        failed_attempts=failed_attempts,
        should_escalate=failed_attempts >= threshold,
    )
