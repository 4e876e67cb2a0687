"""Human-readable transcripts built from an event log."""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Optional

from kestrel_swarm.core.events import EventRecord

DEFAULT_MAX_RESULT_LENGTH = 500
DEFAULT_MAX_ARGS_LENGTH = 200


def _truncate(text: Any, limit: int) -> str:
    if text is None:
        return ""
    value = str(text)
    if len(value) <= limit:
        return value
    return f"{value[:limit]}..."


class TranscriptBuilder:
    """Render conversation-relevant events as plain text.

    Example:
        transcript = TranscriptBuilder.build(result.logs, agents=["backend"])
    """

    def __init__(
        self,
        logs: Optional[Iterable[EventRecord]],
        agents: Optional[Iterable[str]] = None,
        include_tool_results: bool = True,
        include_thinking: bool = False,
        max_result_length: int = DEFAULT_MAX_RESULT_LENGTH,
        max_args_length: int = DEFAULT_MAX_ARGS_LENGTH,
    ):
        self._logs = list(logs or [])
        agent_filter = list(agents) if agents is not None else []
        self._agents = set(agent_filter) if agent_filter else None
        self._include_tool_results = include_tool_results
        self._include_thinking = include_thinking
        self._max_result_length = max_result_length
        self._max_args_length = max_args_length

    @classmethod
    def build(cls, logs: Optional[Iterable[EventRecord]], **options: Any) -> str:
        return cls(logs, **options).render()

    def render(self) -> str:
        lines: List[str] = []
        for event in self._logs:
            line = self._format(event)
            if line:
                lines.append(line)
        return "\n\n".join(lines)

    def _passes_filter(self, event: EventRecord) -> bool:
        if self._agents is None:
            return True
        agent = event.get("agent")
        # Run-level events carry no agent
        return agent is None or agent in self._agents

    def _format(self, event: EventRecord) -> Optional[str]:
        if not self._passes_filter(event):
            return None

        formatter = {
            "user_prompt": self._user_prompt,
            "agent_step": self._agent_step,
            "agent_stop": self._agent_stop,
            "tool_call": self._tool_call,
            "tool_result": self._tool_result,
            "delegation_start": self._delegation_start,
            "delegation_complete": self._delegation_complete,
        }.get(event.get("type", ""))
        return formatter(event) if formatter else None

    def _user_prompt(self, event: EventRecord) -> Optional[str]:
        prompt = event.get("prompt")
        if prompt is None or not str(prompt).strip():
            return None
        source = str(event.get("source") or "user")
        agent = event.get("agent")
        prefix = {"delegation": "DELEGATION REQUEST", "system": "SYSTEM"}.get(source, "USER")
        if agent and source != "user":
            return f"{prefix} -> [{agent}]: {prompt}"
        return f"{prefix}: {prompt}"

    def _agent_step(self, event: EventRecord) -> Optional[str]:
        if not self._include_thinking:
            return None
        content = event.get("content")
        if content is None or not str(content).strip():
            return None
        return f"AGENT [{event.get('agent')}] (thinking): {content}"

    def _agent_stop(self, event: EventRecord) -> Optional[str]:
        content = event.get("content")
        if content is None or not str(content).strip():
            return None
        return f"AGENT [{event.get('agent')}]: {content}"

    def _tool_call(self, event: EventRecord) -> str:
        arguments = event.get("arguments")
        if arguments is None:
            args = "{}"
        elif isinstance(arguments, str):
            args = arguments
        else:
            args = json.dumps(arguments, default=str)
        args = _truncate(args, self._max_args_length)
        return f"TOOL [{event.get('agent')}] -> {event.get('tool')}({args})"

    def _tool_result(self, event: EventRecord) -> Optional[str]:
        if not self._include_tool_results:
            return None
        status = " [FAILED]" if event.get("success") is False else ""
        result = _truncate(event.get("result"), self._max_result_length)
        return f"RESULT [{event.get('tool')}]{status}: {result}"

    def _delegation_start(self, event: EventRecord) -> Optional[str]:
        to_agent = event.get("to_agent")
        if not to_agent:
            return None
        task = _truncate(event.get("task"), self._max_args_length)
        return f"DELEGATE: {event.get('from_agent')} -> {to_agent}: {task}"

    def _delegation_complete(self, event: EventRecord) -> Optional[str]:
        to_agent = event.get("to_agent")
        if not to_agent:
            return None
        return f"DELEGATE COMPLETE: {to_agent} -> {event.get('from_agent')}"


__all__ = ["TranscriptBuilder", "DEFAULT_MAX_RESULT_LENGTH", "DEFAULT_MAX_ARGS_LENGTH"]
