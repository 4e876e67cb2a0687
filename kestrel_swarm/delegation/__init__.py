"""Delegation: graphs of agents that hand tasks to each other."""

from kestrel_swarm.delegation.call_stack import CallStack
from kestrel_swarm.delegation.graph import (
    ESCALATED_ERRORS,
    DelegationGraph,
    delegation_instance_name,
)
from kestrel_swarm.delegation.subgraphs import SubgraphRegistry
from kestrel_swarm.delegation.tool import DelegateTool

__all__ = [
    "CallStack",
    "DelegationGraph",
    "ESCALATED_ERRORS",
    "delegation_instance_name",
    "SubgraphRegistry",
    "DelegateTool",
]
