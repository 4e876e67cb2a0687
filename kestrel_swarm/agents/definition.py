"""Immutable agent configuration."""

from __future__ import annotations

import re
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kestrel_swarm.core.models import ModelPricing
from kestrel_swarm.llm.transport import ModelConfig


def default_delegation_tool_name(agent: str) -> str:
    """DelegateTaskTo<CamelCaseAgent>"""
    parts = re.split(r"[_\-\s]+", agent)
    return "DelegateTaskTo" + "".join(part[:1].upper() + part[1:] for part in parts if part)


class DelegationTarget(BaseModel):
    """A delegation edge declared by an agent"""

    model_config = ConfigDict(frozen=True)

    agent: str = Field(min_length=1)
    tool_name: Optional[str] = None
    preserve_context: bool = True

    @property
    def resolved_tool_name(self) -> str:
        return self.tool_name or default_delegation_tool_name(self.agent)


class AgentDefinition(BaseModel):
    """Agent configuration; referenced, never mutated, by orchestration"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    model: str = "default"
    provider: Optional[str] = None
    description: str = ""
    system_prompt: Optional[str] = None
    tools: Tuple[str, ...] = ()
    delegates_to: Tuple[DelegationTarget, ...] = ()
    context_window: Optional[int] = Field(default=None, gt=0)
    pricing: Optional[ModelPricing] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    shared_across_delegations: bool = False

    @field_validator("delegates_to", mode="before")
    @classmethod
    def _coerce_targets(cls, value: Any) -> Any:
        if value is None:
            return ()
        items: List[Union[DelegationTarget, dict, Any]] = []
        for item in value:
            items.append({"agent": item} if isinstance(item, str) else item)
        return tuple(items)

    @model_validator(mode="after")
    def _check_targets(self) -> "AgentDefinition":
        seen = set()
        for target in self.delegates_to:
            if target.agent == self.name:
                raise ValueError(f"Agent '{self.name}' cannot delegate to itself")
            if target.resolved_tool_name in seen:
                raise ValueError(
                    f"Agent '{self.name}' declares delegation tool "
                    f"'{target.resolved_tool_name}' more than once"
                )
            seen.add(target.resolved_tool_name)
        return self

    @property
    def delegate_names(self) -> List[str]:
        return [target.agent for target in self.delegates_to]

    def delegation_target(self, agent: str) -> Optional[DelegationTarget]:
        return next((t for t in self.delegates_to if t.agent == agent), None)

    def model_settings(self) -> ModelConfig:
        return ModelConfig(
            model=self.model,
            provider=self.provider,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


__all__ = ["AgentDefinition", "DelegationTarget", "default_delegation_tool_name"]
