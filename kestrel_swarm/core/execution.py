"""ExecutionResult: outcome of a run, a delegation, or a workflow node.

Token and cost accessors are derived from the `usage` blocks carried by
agent_step / agent_stop events in the log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kestrel_swarm.core.events import EventRecord
from kestrel_swarm.core.settings import get_settings
from kestrel_swarm.core.transcript import TranscriptBuilder

_LLM_EVENTS = ("agent_step", "agent_stop")


@dataclass
class ExecutionResult:
    """Result of executing an agent, a graph, or a workflow node."""

    content: Optional[str] = None
    agent: Optional[str] = None
    duration: float = 0.0
    logs: List[EventRecord] = field(default_factory=list)
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    skipped: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failure(self) -> bool:
        return not self.success

    @property
    def tokens(self) -> Dict[str, int]:
        """Cumulative input/output tokens of the last usage entry."""
        for entry in reversed(self.logs):
            usage = entry.get("usage") or {}
            if usage.get("cumulative_input_tokens") is not None:
                return {
                    "input": usage.get("cumulative_input_tokens") or 0,
                    "output": usage.get("cumulative_output_tokens") or 0,
                }
        return {}

    @property
    def total_tokens(self) -> int:
        for entry in reversed(self.logs):
            usage = entry.get("usage") or {}
            if usage.get("cumulative_total_tokens") is not None:
                return usage["cumulative_total_tokens"]
        return 0

    @property
    def total_cost(self) -> float:
        """Last input cost plus the sum of all output costs.

        Input cost is computed over the full context on every call, so only the
        most recent one counts.
        """
        priced = [e["usage"] for e in self.logs if (e.get("usage") or {}).get("total_cost") is not None]
        if not priced:
            return 0.0
        last_input_cost = priced[-1].get("input_cost") or 0.0
        return last_input_cost + sum(u.get("output_cost") or 0.0 for u in priced)

    @property
    def agents_involved(self) -> List[str]:
        seen: Dict[str, None] = {}
        for entry in self.logs:
            agent = entry.get("agent")
            if agent:
                seen.setdefault(agent, None)
        return list(seen)

    @property
    def per_agent_usage(self) -> Dict[str, Dict[str, Any]]:
        latest: Dict[str, Dict[str, Any]] = {}
        for entry in self.logs:
            if entry.get("type") in _LLM_EVENTS and entry.get("usage") and entry.get("agent"):
                latest[entry["agent"]] = entry["usage"]

        return {
            agent: {
                "input_tokens": usage.get("cumulative_input_tokens") or 0,
                "output_tokens": usage.get("cumulative_output_tokens") or 0,
                "total_tokens": usage.get("cumulative_total_tokens") or 0,
                "cached_tokens": usage.get("cumulative_cached_tokens") or 0,
                "context_limit": usage.get("context_limit"),
                "usage_percentage": usage.get("tokens_used_percentage"),
                "tokens_remaining": usage.get("tokens_remaining"),
                "input_cost": usage.get("input_cost") or 0.0,
                "output_cost": usage.get("output_cost") or 0.0,
                "total_cost": usage.get("total_cost") or 0.0,
            }
            for agent, usage in latest.items()
        }

    @property
    def llm_requests(self) -> int:
        return sum(1 for entry in self.logs if entry.get("type") in _LLM_EVENTS)

    @property
    def tool_calls_count(self) -> int:
        return sum(1 for entry in self.logs if entry.get("type") == "tool_call")

    def transcript(
        self, *agents: str, include_tool_results: bool = True, include_thinking: bool = False
    ) -> str:
        settings = get_settings()
        return TranscriptBuilder.build(
            self.logs,
            agents=agents or None,
            include_tool_results=include_tool_results,
            include_thinking=include_thinking,
            max_result_length=settings.transcript_max_result_length,
            max_args_length=settings.transcript_max_args_length,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "content": self.content,
            "agent": self.agent,
            "cost": self.total_cost,
            "tokens": self.tokens,
            "duration": self.duration,
            "success": self.success,
            "error": str(self.error) if self.error else None,
            "metadata": self.metadata,
            "skipped": self.skipped or None,
        }
        return {key: value for key, value in data.items() if value is not None}


__all__ = ["ExecutionResult"]
