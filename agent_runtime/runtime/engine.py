"""Turn processing for a deployed agent.

:func:`process_turn` runs the session guardrail state machine around a
single model call.  When tool servers are attached it hands the model
call to :func:`run_tool_loop`, which lets the model call MCP tools until
it produces a final text answer.

Both model callables are injected::

    async def chat(system_prompt, messages, options) -> str
    async def chat_with_tools(system_prompt, messages, options) -> dict

``options`` is ``None`` or a dict holding ``max_tokens`` and, for the
tool loop, ``tools``.  ``chat_with_tools`` returns a message with
``content`` blocks and a ``stop_reason``.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from agent_runtime.bridge.catalog import extract_text
from agent_runtime.bridge.client_manager import McpClientManager
from agent_runtime.bridge.routing import split_tool_name
from agent_runtime.config.flags import FeatureFlags
from agent_runtime.config.schema import AgentConfig
from agent_runtime.constants import (
    DEFAULT_MAX_TOOL_ROUNDTRIPS,
    MAX_HISTORY_MESSAGES,
    MAX_TOKENS_CEILING,
)
from agent_runtime.errors import FeatureDisabledError
from agent_runtime.runtime.guardrails import check_post_message, check_pre_message
from agent_runtime.runtime.models import (
    GuardrailAction,
    ProcessMessageResult,
    RuntimeMessage,
    SessionStatus,
    SessionUpdates,
    ToolCallRequest,
    ToolLoopResult,
    ToolUseRecord,
    transition_session_status,
)

logger = logging.getLogger(__name__)

ChatFn = Callable[[str, List[Dict[str, Any]], Optional[Dict[str, Any]]], Awaitable[str]]
ChatWithToolsFn = Callable[[str, List[Dict[str, Any]], Optional[Dict[str, Any]]], Awaitable[Any]]
EscalationHandler = Callable[[int, int], Union[bool, Awaitable[bool]]]


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read *key* from a dict or an attribute-style object."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def build_messages(
    history: Sequence[Any], new_message: str
) -> List[Dict[str, Any]]:
    """Return the last history entries plus the new user message.

    At most ``MAX_HISTORY_MESSAGES`` history entries are kept; the user
    message is appended after trimming.
    """
    capped = list(history)[-MAX_HISTORY_MESSAGES:] if history else []
    messages = [{"role": _field(m, "role"), "content": _field(m, "content")} for m in capped]
    messages.append({"role": "user", "content": new_message})
    return messages


def _max_tokens(config: AgentConfig) -> Optional[int]:
    max_response_length = config.resource_limits.max_response_length
    if not max_response_length:
        return None
    return min(max_response_length, MAX_TOKENS_CEILING)


async def process_turn(
    system_prompt: str,
    config: AgentConfig,
    session_status: SessionStatus,
    turn_count: int,
    failed_attempts: int,
    history: Sequence[Any],
    new_message: str,
    *,
    chat: Optional[ChatFn],
    mcp_servers: Optional[Sequence[Any]] = None,
    chat_with_tools: Optional[ChatWithToolsFn] = None,
    tool_manager_factory: Callable[[], McpClientManager] = McpClientManager,
    escalation_handler: Optional[EscalationHandler] = None,
    flags: Optional[FeatureFlags] = None,
) -> ProcessMessageResult:
    """Process one user message against a deployed agent.

    Rejected turns (ended or escalated session, turn budget exhausted)
    produce a synthetic blocked reply without calling the model.
    Allowed turns make one model call, or run the tool loop when tool
    servers are attached.  Failures of the model call propagate.
    """
    status = SessionStatus(session_status)
    guardrails = config.guardrails
    limits = config.resource_limits

    pre_check = check_pre_message(guardrails, turn_count, status)
    if not pre_check.allowed:
        target = SessionStatus.ENDED if pre_check.action is GuardrailAction.END_SESSION else status
        new_status = transition_session_status(status, target)
        reason = pre_check.reason or "This session is no longer active."
        logger.info("Turn rejected (%s): %s", pre_check.action.value, reason)
        return ProcessMessageResult(
            response=RuntimeMessage(
                role="assistant",
                content=reason,
                metadata={"blocked": True, "action": pre_check.action.value},
            ),
            session_updates=SessionUpdates(
                turn_count=turn_count,
                failed_attempts=failed_attempts,
                status=new_status,
            ),
            guardrail_notice=pre_check.reason,
        )

    max_tokens = _max_tokens(config)
    flags = flags or FeatureFlags()
    tool_executions: Optional[List[ToolUseRecord]] = None

    if mcp_servers and flags.is_enabled("mcp_tools"):
        if chat_with_tools is None:
            raise FeatureDisabledError("mcp_tools", "no tool-capable model handle was provided")
        loop_result = await run_tool_loop(
            system_prompt,
            history,
            new_message,
            mcp_servers,
            chat_with_tools=chat_with_tools,
            max_tokens=max_tokens,
            manager_factory=tool_manager_factory,
        )
        response_text = loop_result.response_text
        tool_executions = loop_result.tool_executions or None
    else:
        if chat is None:
            raise FeatureDisabledError("chat", "no model handle was provided")
        if mcp_servers:
            logger.debug("Tool servers attached but 'mcp_tools' is disabled; plain chat.")
        messages = build_messages(history, new_message)
        response_text = await chat(
            system_prompt,
            messages,
            {"max_tokens": max_tokens} if max_tokens else None,
        )

    next_turn = turn_count + 1
    max_turns = limits.max_turns_per_session
    notice: Optional[str] = None
    if next_turn >= max_turns:
        target = SessionStatus.ENDED
        notice = f"Session ended: maximum {max_turns} turns reached."
    else:
        target = SessionStatus.ACTIVE
        if await _should_escalate(config, failed_attempts, escalation_handler):
            target = SessionStatus.ESCALATED
            notice = f"Session escalated to a human after {failed_attempts} failed attempts"
    new_status = transition_session_status(status, target)

    logger.debug("Turn %d/%d processed, status=%s", next_turn, max_turns, new_status.value)
    return ProcessMessageResult(
        response=RuntimeMessage(
            role="assistant",
            content=response_text,
            tool_uses=tool_executions,
        ),
        session_updates=SessionUpdates(
            turn_count=next_turn,
            failed_attempts=failed_attempts,
            status=new_status,
        ),
        guardrail_notice=notice,
        tool_executions=tool_executions,
    )


async def _should_escalate(
    config: AgentConfig,
    failed_attempts: int,
    escalation_handler: Optional[EscalationHandler],
) -> bool:
    threshold = config.resource_limits.escalation_threshold
    if escalation_handler is None or threshold is None:
        return False
    if not check_post_message(config.guardrails, failed_attempts).should_escalate:
        return False

    decision = escalation_handler(failed_attempts, threshold)
    if inspect.isawaitable(decision):
        decision = await decision
    if decision is True:
        logger.info("Session escalated after %d failed attempts.", failed_attempts)
        return True
    return False


# ── Agentic tool-use loop ────────────────────────────────────────────────


async def run_tool_loop(
    system_prompt: str,
    history: Sequence[Any],
    new_message: str,
    servers: Sequence[Any],
    *,
    chat_with_tools: ChatWithToolsFn,
    max_tokens: Optional[int] = None,
    manager_factory: Callable[[], McpClientManager] = McpClientManager,
    max_roundtrips: int = DEFAULT_MAX_TOOL_ROUNDTRIPS,
) -> ToolLoopResult:
    """Let the model call tools until it answers in text.

    After *max_roundtrips* tool rounds one last call is made without
    tools to force a text answer.  The tool servers are always
    disconnected on the way out.
    """
    manager = manager_factory()
    executions: List[ToolUseRecord] = []
    effective_max_tokens = max_tokens or MAX_TOKENS_CEILING

    try:
        await manager.connect(servers)
        tools = await manager.to_anthropic_tools()
        messages: List[Dict[str, Any]] = build_messages(history, new_message)

        for iteration in range(max_roundtrips):
            response = await chat_with_tools(
                system_prompt,
                messages,
                {"tools": tools, "max_tokens": effective_max_tokens},
            )
            content = list(_field(response, "content") or [])

            if _field(response, "stop_reason") != "tool_use":
                return ToolLoopResult(
                    response_text="".join(extract_text(content)),
                    tool_executions=executions,
                )

            messages.append({"role": "assistant", "content": content})

            tool_results: List[Dict[str, Any]] = []
            for block in content:
                if _field(block, "type") != "tool_use":
                    continue
                call_id = _field(block, "id")
                name = _field(block, "name")
                arguments = dict(_field(block, "input") or {})
                svr_name, tool_name = split_tool_name(name)

                logger.debug("Round %d: model requested tool '%s'.", iteration + 1, name)
                result = await manager.execute_tool(
                    ToolCallRequest(id=call_id, name=name, input=arguments, server_name=svr_name)
                )
                executions.append(
                    ToolUseRecord(
                        tool_call_id=call_id,
                        tool_name=tool_name,
                        server_name=svr_name or "",
                        input=arguments,
                        output=result.output,
                        is_error=result.is_error,
                        duration_ms=result.duration_ms,
                    )
                )
                tool_result: Dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": call_id,
                    "content": result.output,
                }
                if result.is_error:
                    tool_result["is_error"] = True
                tool_results.append(tool_result)

            messages.append({"role": "user", "content": tool_results})

        logger.info(
            "Tool round-trip limit (%d) reached; requesting a final answer without tools.",
            max_roundtrips,
        )
        final = await chat_with_tools(
            system_prompt, messages, {"max_tokens": effective_max_tokens}
        )
        return ToolLoopResult(
            response_text="".join(extract_text(_field(final, "content"))),
            tool_executions=executions,
        )
    finally:
        await manager.disconnect()
