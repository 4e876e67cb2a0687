"""Data models for workflow nodes.

Models:
- NodeAgentConfig: how one agent participates in a node
- WorkflowNode: a unit of work with agents, dependencies, and transforms
- Transform: callable taking a NodeContext, sync or async
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kestrel_swarm.core.errors import ConfigurationError

Transform = Callable[..., Any]


class NodeAgentConfig(BaseModel):
    """Per-node agent settings.

    delegates_to replaces the agent's own delegation targets inside this
    node. With reset_context=False the agent's session persists across
    nodes (and workflow runs) instead of starting fresh.
    """

    model_config = ConfigDict(frozen=True)

    agent: str = Field(min_length=1)
    delegates_to: Tuple[str, ...] = ()
    reset_context: bool = True
    tools: Optional[Tuple[str, ...]] = None


class WorkflowNode(BaseModel):
    """A node in a workflow graph.

    An agent-less node runs only its transforms, so it needs at least one.
    Agents named in any delegates_to are added to the node automatically.
    The lead defaults to the first agent.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    agents: List[NodeAgentConfig] = Field(default_factory=list)
    lead: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    input_transform: Optional[Transform] = None
    output_transform: Optional[Transform] = None
    description: str = ""

    @field_validator("agents", mode="before")
    @classmethod
    def _coerce_agents(cls, value: Any) -> Any:
        if value is None:
            return []
        return [{"agent": item} if isinstance(item, str) else item for item in value]

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)

    @model_validator(mode="after")
    def _complete_agents(self) -> "WorkflowNode":
        if not self.agents:
            if self.input_transform is None and self.output_transform is None:
                raise ConfigurationError(
                    f"Node '{self.name}' has no agents and must have at least one "
                    f"transformer (input_transform or output_transform)"
                )
            if self.lead is not None:
                raise ConfigurationError(f"Node '{self.name}' has a lead but no agents")
            return self

        configs: List[NodeAgentConfig] = []
        seen = set()
        for config in self.agents:
            if config.agent in seen:
                raise ConfigurationError(
                    f"Node '{self.name}' lists agent '{config.agent}' more than once"
                )
            seen.add(config.agent)
            configs.append(config)
        for config in list(configs):
            for delegate in config.delegates_to:
                if delegate not in seen:
                    seen.add(delegate)
                    configs.append(NodeAgentConfig(agent=delegate))
        self.agents = configs

        if self.lead is None:
            self.lead = configs[0].agent
        elif self.lead not in seen:
            raise ConfigurationError(
                f"Node '{self.name}' lead '{self.lead}' is not one of its agents"
            )
        return self

    @property
    def agent_less(self) -> bool:
        return not self.agents

    @property
    def agent_names(self) -> List[str]:
        return [config.agent for config in self.agents]

    def agent_config(self, agent: str) -> Optional[NodeAgentConfig]:
        return next((c for c in self.agents if c.agent == agent), None)


__all__ = ["NodeAgentConfig", "WorkflowNode", "Transform"]
