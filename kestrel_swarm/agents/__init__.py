"""Agents: definitions, the explicit registry, and conversation sessions."""

from kestrel_swarm.agents.definition import (
    AgentDefinition,
    DelegationTarget,
    default_delegation_tool_name,
)
from kestrel_swarm.agents.registry import AgentRegistry
from kestrel_swarm.agents.session import AgentSession, build_retry_executor

__all__ = [
    "AgentDefinition",
    "DelegationTarget",
    "default_delegation_tool_name",
    "AgentRegistry",
    "AgentSession",
    "build_retry_executor",
]
