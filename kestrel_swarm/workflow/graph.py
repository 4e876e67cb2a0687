"""WorkflowGraph: validated node graph with a fixed execution order."""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Union

from kestrel_swarm.agents.definition import AgentDefinition
from kestrel_swarm.agents.registry import AgentRegistry
from kestrel_swarm.core.errors import ConfigurationError, GraphCycleError
from kestrel_swarm.workflow.models import WorkflowNode

logger = logging.getLogger(__name__)


class WorkflowGraph:
    """Nodes, their dependencies, and the agents they reference.

    Validation happens in the constructor; an invalid graph is never
    returned. The execution order is a topological order of the nodes that
    starts with the start node and otherwise keeps declaration order.
    """

    def __init__(
        self,
        nodes: Iterable[WorkflowNode],
        start_node: Optional[str],
        agents: Union[AgentRegistry, Iterable[AgentDefinition]],
        name: str = "workflow",
    ):
        self.name = name
        self.start_node = start_node
        self.agents = agents if isinstance(agents, AgentRegistry) else AgentRegistry(agents)
        self.nodes: Dict[str, WorkflowNode] = {}
        for node in nodes:
            if node.name in self.nodes:
                raise ConfigurationError(f"Node '{node.name}' is defined more than once")
            self.nodes[node.name] = node

        self._validate()
        self.execution_order: List[str] = self._topological_order()
        logger.debug(f"Workflow {name} order: {' -> '.join(self.execution_order)}")

    def _validate(self) -> None:
        if not self.start_node:
            raise ConfigurationError("start_node required")
        if self.start_node not in self.nodes:
            raise ConfigurationError(f"start_node '{self.start_node}' not found")

        for node in self.nodes.values():
            for agent in node.agent_names:
                if not self.agents.registered(agent):
                    raise ConfigurationError(
                        f"Node '{node.name}' references undefined agent '{agent}'"
                    )
            for dependency in node.dependencies:
                if dependency not in self.nodes:
                    raise ConfigurationError(
                        f"Node '{node.name}' depends on undefined node '{dependency}'"
                    )

        cycle = self._find_cycle()
        if cycle:
            raise GraphCycleError(
                f"Circular dependency detected: {' -> '.join(cycle)}", cycle=cycle
            )

        if self.nodes[self.start_node].dependencies:
            raise ConfigurationError(
                f"start_node '{self.start_node}' cannot have dependencies"
            )

    def _find_cycle(self) -> Optional[List[str]]:
        visiting: List[str] = []
        done = set()

        def visit(name: str) -> Optional[List[str]]:
            if name in visiting:
                return visiting[visiting.index(name):] + [name]
            if name in done:
                return None
            visiting.append(name)
            for dependency in self.nodes[name].dependencies:
                cycle = visit(dependency)
                if cycle:
                    return cycle
            visiting.pop()
            done.add(name)
            return None

        for name in self.nodes:
            cycle = visit(name)
            if cycle:
                return list(reversed(cycle))
        return None

    def _topological_order(self) -> List[str]:
        remaining = {name: set(node.dependencies) for name, node in self.nodes.items()}
        declared = list(self.nodes)
        order: List[str] = []
        ready = deque([self.start_node])
        ready.extend(n for n in declared if not remaining[n] and n != self.start_node)

        while ready:
            name = ready.popleft()
            order.append(name)
            for candidate in declared:
                deps = remaining[candidate]
                if name in deps:
                    deps.discard(name)
                    if not deps:
                        ready.append(candidate)
        return order

    def dependents(self, name: str) -> List[str]:
        return [n for n, node in self.nodes.items() if name in node.dependencies]

    def node(self, name: str) -> WorkflowNode:
        try:
            return self.nodes[name]
        except KeyError:
            raise ConfigurationError(f"Node '{name}' not found") from None

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __repr__(self) -> str:
        return f"WorkflowGraph({self.name!r}, start={self.start_node!r}, nodes={len(self.nodes)})"


__all__ = ["WorkflowGraph"]
