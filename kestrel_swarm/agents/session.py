"""AgentSession: one conversation with a model plus its tools.

A turn sends the history to the transport, executes any requested tool
calls, appends their results, and repeats until the model answers without
tool calls. Turns on one session never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set

from kestrel_swarm.agents.definition import AgentDefinition
from kestrel_swarm.core.errors import SwarmError, TransportError, TurnTimeoutError
from kestrel_swarm.core.events import Events, emit
from kestrel_swarm.core.models import LLMResponse, Message, ToolCall, Usage
from kestrel_swarm.core.settings import Settings, get_settings
from kestrel_swarm.llm.retry import ExponentialBackoff, RetryExecutor, RetryExecutorImpl
from kestrel_swarm.llm.transport import LLMTransport
from kestrel_swarm.skills.state import SkillState
from kestrel_swarm.tools.framework import ToolContext
from kestrel_swarm.tools.registry import UNRESTRICTED, ToolMode, ToolSet

if TYPE_CHECKING:
    from kestrel_swarm.delegation.graph import DelegationGraph

logger = logging.getLogger(__name__)

PRUNED_TOOL_OUTPUT = "[tool output pruned to save context]"


def build_retry_executor(settings: Settings) -> RetryExecutorImpl:
    return RetryExecutorImpl(
        max_attempts=settings.retry_max_attempts,
        backoff=ExponentialBackoff(
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            jitter=settings.retry_jitter,
        ),
    )


class AgentSession:
    """Stateful conversation bound to an AgentDefinition.

    Attributes:
        definition: Agent configuration.
        name: Session name used in events and read tracking. Delegation
            instances are named "<delegate>@<caller>".
        caller: Delegating agent for delegation instances, else None.
        tools: This session's ToolSet.
    """

    def __init__(
        self,
        definition: AgentDefinition,
        transport: LLMTransport,
        *,
        name: Optional[str] = None,
        caller: Optional[str] = None,
        tools: Optional[ToolSet] = None,
        settings: Optional[Settings] = None,
        retry: Optional[RetryExecutor] = None,
        graph: Optional["DelegationGraph"] = None,
    ):
        self.definition = definition
        self.name = name or definition.name
        self.caller = caller
        self.tools = tools if tools is not None else ToolSet()
        self.graph = graph
        self._transport = transport
        self._settings = settings or get_settings()
        self._retry = retry or build_retry_executor(self._settings)
        self._turn_lock = asyncio.Lock()

        self._messages: List[Message] = []
        self._warning_thresholds_hit: Set[int] = set()
        self._compaction_applied = False
        self._active_skill: Optional[SkillState] = None
        self._seed()

    def _seed(self) -> None:
        self._messages = []
        if self.definition.system_prompt:
            self._messages.append(Message(role="system", content=self.definition.system_prompt))

    def __repr__(self) -> str:
        return f"AgentSession({self.name!r}, messages={len(self._messages)})"

    # =========================================================================
    # Conversation
    # =========================================================================

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def busy(self) -> bool:
        return self._turn_lock.locked()

    def replace_messages(self, messages: Iterable[Message]) -> None:
        """Overwrite the conversation history in place."""
        self._messages = list(messages)

    def reset(self) -> None:
        """Return to the freshly created state: seed turn only, empty context state."""
        self._seed()
        self._warning_thresholds_hit.clear()
        self._compaction_applied = False
        self._active_skill = None
        logger.debug(f"Reset session {self.name}")

    async def ask(
        self, prompt: str, *, source: str = "user", timeout: Optional[float] = None
    ) -> Message:
        """Run one turn and return the final assistant message.

        Args:
            prompt: User (or delegating agent) message.
            source: "user", "delegation", or "system"; recorded on the event.
            timeout: Turn timeout in seconds; defaults to
                Settings.turn_timeout_seconds.

        Raises:
            TurnTimeoutError: If the turn, including tool calls, overran.
            NonRetryableTransportError: If the transport failed terminally.
            RetriesExhaustedError: If retryable failures persisted.
        """
        turn_timeout = timeout if timeout is not None else self._settings.turn_timeout_seconds
        async with self._turn_lock:
            if turn_timeout is None:
                return await self._run_turn(prompt, source)
            try:
                return await asyncio.wait_for(self._run_turn(prompt, source), turn_timeout)
            except asyncio.TimeoutError:
                emit(Events.TURN_TIMEOUT, agent=self.name, timeout=turn_timeout)
                raise TurnTimeoutError(
                    f"Agent '{self.name}' turn timed out after {turn_timeout}s",
                    agent=self.name,
                    timeout=turn_timeout,
                ) from None

    async def _run_turn(self, prompt: str, source: str) -> Message:
        self._messages.append(Message(role="user", content=prompt))
        emit(
            Events.USER_PROMPT,
            agent=self.name,
            model=self.definition.model,
            prompt=prompt,
            source=source,
        )

        for _ in range(self._settings.max_tool_iterations):
            response = await self._complete()
            assistant = self._record_response(response)
            usage = self.usage_block(response.usage)

            if not response.tool_calls:
                emit(
                    Events.AGENT_STOP,
                    agent=self.name,
                    model=assistant.model_id,
                    content=response.content,
                    finish_reason="stop",
                    usage=usage,
                )
                self._check_context_warnings()
                return assistant

            emit(
                Events.AGENT_STEP,
                agent=self.name,
                model=assistant.model_id,
                content=response.content,
                tool_calls=[call.model_dump() for call in response.tool_calls],
                finish_reason="tool_calls",
                usage=usage,
            )
            self._check_context_warnings()
            for call in response.tool_calls:
                await self._execute_tool_call(call)

        raise SwarmError(
            f"Agent '{self.name}' exceeded {self._settings.max_tool_iterations} tool iterations"
        )

    async def _complete(self) -> LLMResponse:
        history = list(self._messages)
        schemas = self.tools.schemas(self.tool_mode)
        model_config = self.definition.model_settings()

        def on_retry(attempt: int, max_attempts: int, delay_ms: float, error: TransportError) -> None:
            emit(
                Events.LLM_RETRY_ATTEMPT,
                agent=self.name,
                model=self.definition.model,
                attempt=attempt,
                max_retries=max_attempts,
                retry_delay=delay_ms / 1000.0,
                error_class=type(error).__name__,
                error_message=str(error),
            )

        result = await self._retry.execute(
            lambda: self._transport.send(history, schemas, model_config), on_retry=on_retry
        )
        if result.is_err() and getattr(result, "code", None) == "MAX_RETRIES_EXCEEDED":
            emit(
                Events.LLM_RETRY_EXHAUSTED,
                agent=self.name,
                model=self.definition.model,
                attempts=getattr(self._retry, "max_attempts", None),
            )
        return result.unwrap()

    def _record_response(self, response: LLMResponse) -> Message:
        message = Message(
            role="assistant",
            content=response.content,
            tool_calls=response.tool_calls,
            input_tokens=response.usage.input,
            output_tokens=response.usage.output,
            cached_tokens=response.usage.cached,
            cache_creation_tokens=response.usage.cache_creation,
            model_id=response.model_id or self.definition.model,
        )
        self._messages.append(message)
        return message

    async def _execute_tool_call(self, call: ToolCall) -> None:
        emit(
            Events.TOOL_CALL,
            agent=self.name,
            tool=call.name,
            tool_call_id=call.id,
            arguments=call.arguments,
        )
        ctx = ToolContext(agent_name=self.name, session=self, graph=self.graph, tool_call_id=call.id)
        result = await self.tools.execute(call.name, call.arguments, ctx, self.tool_mode)

        if result.is_ok():
            output = result.unwrap().output
        else:
            output = f"Error: {getattr(result, 'error', 'unknown error')}"

        self._messages.append(Message(role="tool", content=output, tool_call_id=call.id))
        emit(
            Events.TOOL_RESULT,
            agent=self.name,
            tool=call.name,
            tool_call_id=call.id,
            result=output,
            success=result.is_ok(),
        )

    # =========================================================================
    # Token tracking
    # =========================================================================

    def _assistant_messages(self) -> List[Message]:
        return [m for m in self._messages if m.role == "assistant"]

    @property
    def cumulative_input_tokens(self) -> int:
        """Input tokens of the latest request; each request resends the full context."""
        for message in reversed(self._messages):
            if message.role == "assistant" and message.input_tokens is not None:
                return message.input_tokens
        return 0

    @property
    def cumulative_output_tokens(self) -> int:
        return sum(m.output_tokens or 0 for m in self._assistant_messages())

    @property
    def cumulative_cached_tokens(self) -> int:
        return sum(m.cached_tokens or 0 for m in self._assistant_messages())

    @property
    def cumulative_cache_creation_tokens(self) -> int:
        return sum(m.cache_creation_tokens or 0 for m in self._assistant_messages())

    @property
    def cumulative_total_tokens(self) -> int:
        return self.cumulative_input_tokens + self.cumulative_output_tokens

    @property
    def context_limit(self) -> int:
        return self.definition.context_window or self._settings.default_context_window

    @property
    def context_usage_percentage(self) -> float:
        return round(self.cumulative_total_tokens / self.context_limit * 100, 2)

    @property
    def tokens_remaining(self) -> int:
        return max(self.context_limit - self.cumulative_total_tokens, 0)

    def usage_block(self, usage: Usage) -> Dict[str, Any]:
        """Usage fields attached to agent_step / agent_stop events."""
        block: Dict[str, Any] = {
            "input_tokens": usage.input,
            "output_tokens": usage.output,
            "cached_tokens": usage.cached,
            "cache_creation_tokens": usage.cache_creation,
            "total_tokens": usage.input + usage.output,
            "cumulative_input_tokens": self.cumulative_input_tokens,
            "cumulative_output_tokens": self.cumulative_output_tokens,
            "cumulative_cached_tokens": self.cumulative_cached_tokens,
            "cumulative_total_tokens": self.cumulative_total_tokens,
            "context_limit": self.context_limit,
            "tokens_used_percentage": self.context_usage_percentage,
            "tokens_remaining": self.tokens_remaining,
        }
        pricing = self.definition.pricing
        if pricing is not None:
            input_cost = pricing.input_cost(usage.input)
            output_cost = pricing.output_cost(usage.output)
            block.update(
                input_cost=input_cost, output_cost=output_cost, total_cost=input_cost + output_cost
            )
        return block

    def _check_context_warnings(self) -> None:
        percentage = self.context_usage_percentage
        for threshold in self._settings.context_warning_thresholds:
            if percentage < threshold or threshold in self._warning_thresholds_hit:
                continue
            self._warning_thresholds_hit.add(threshold)
            logger.info(f"Agent {self.name} passed {threshold}% of its context window")
            emit(
                Events.CONTEXT_LIMIT_WARNING,
                agent=self.name,
                threshold=f"{threshold}%",
                current_usage=f"{percentage}%",
                tokens_used=self.cumulative_total_tokens,
                tokens_remaining=self.tokens_remaining,
                context_limit=self.context_limit,
            )

    # =========================================================================
    # Compaction
    # =========================================================================

    def compact(self, keep_recent: Optional[int] = None) -> int:
        """Prune tool outputs older than the most recent messages.

        Args:
            keep_recent: Trailing messages left untouched; defaults to
                Settings.compaction_keep_recent_messages.

        Returns:
            Number of tool messages pruned.
        """
        keep = self._settings.compaction_keep_recent_messages if keep_recent is None else keep_recent
        cutoff = max(len(self._messages) - keep, 0)
        pruned = 0
        for index in range(cutoff):
            message = self._messages[index]
            if message.role == "tool" and message.content != PRUNED_TOOL_OUTPUT:
                self._messages[index] = message.model_copy(update={"content": PRUNED_TOOL_OUTPUT})
                pruned += 1

        if pruned:
            self._compaction_applied = True
            emit(Events.COMPRESSION_COMPLETED, agent=self.name, pruned_messages=pruned)
        return pruned

    # =========================================================================
    # Skills
    # =========================================================================

    @property
    def active_skill(self) -> Optional[SkillState]:
        return self._active_skill

    @property
    def tool_mode(self) -> ToolMode:
        if self._active_skill is None:
            return UNRESTRICTED
        return self._active_skill.tool_mode()

    def activate_skill(self, skill: SkillState) -> None:
        self._active_skill = skill
        emit(
            Events.SKILL_ACTIVATED,
            agent=self.name,
            skill=skill.file_path,
            tools=list(skill.tools) if skill.tools else None,
        )

    def deactivate_skill(self) -> None:
        if self._active_skill is None:
            return
        emit(Events.SKILL_DEACTIVATED, agent=self.name, skill=self._active_skill.file_path)
        self._active_skill = None

    # =========================================================================
    # Snapshot support
    # =========================================================================

    def context_state(self) -> Dict[str, Any]:
        skill = self._active_skill
        return {
            "warning_thresholds_hit": sorted(self._warning_thresholds_hit),
            "compaction_applied": self._compaction_applied,
            "active_skill_path": skill.file_path if skill else None,
            "active_skill_tools": list(skill.tools) if skill and skill.tools else None,
            "active_skill_permissions": (
                {tool: dict(perms) for tool, perms in skill.permissions.items()}
                if skill and skill.permissions
                else None
            ),
        }

    def restore_context_state(self, state: Dict[str, Any]) -> None:
        self._warning_thresholds_hit = set(state.get("warning_thresholds_hit") or [])
        self._compaction_applied = bool(state.get("compaction_applied", False))
        skill_path = state.get("active_skill_path")
        self._active_skill = (
            SkillState(
                skill_path,
                tools=state.get("active_skill_tools"),
                permissions=state.get("active_skill_permissions"),
            )
            if skill_path
            else None
        )


__all__ = ["AgentSession", "build_retry_executor", "PRUNED_TOOL_OUTPUT"]
