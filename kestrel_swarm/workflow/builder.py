"""Fluent construction of workflow graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Sequence, Union

from kestrel_swarm.agents.definition import AgentDefinition
from kestrel_swarm.agents.registry import AgentRegistry
from kestrel_swarm.core.settings import Settings
from kestrel_swarm.llm.transport import LLMTransport
from kestrel_swarm.workflow.graph import WorkflowGraph
from kestrel_swarm.workflow.models import NodeAgentConfig, Transform, WorkflowNode

if TYPE_CHECKING:
    from kestrel_swarm.workflow.workflow import Workflow


class WorkflowBuilder:
    """Collects agents and nodes, then validates them in build().

    Example:
        graph = (
            WorkflowBuilder("dev")
            .agent(AgentDefinition(name="planner"))
            .agent(AgentDefinition(name="coder"))
            .node("plan", agents=["planner"])
            .node("implement", agents=["coder"], depends_on=["plan"])
            .start_node("plan")
            .build()
        )
    """

    def __init__(self, name: str = "workflow", agents: Optional[AgentRegistry] = None):
        self.name = name
        self._registry = agents if agents is not None else AgentRegistry()
        self._nodes: List[WorkflowNode] = []
        self._start_node: Optional[str] = None

    def agent(self, definition: AgentDefinition) -> "WorkflowBuilder":
        self._registry.register(definition)
        return self

    def agents(self, definitions: Iterable[AgentDefinition]) -> "WorkflowBuilder":
        self._registry.register_many(definitions)
        return self

    def node(
        self,
        name: str,
        agents: Sequence[Union[str, NodeAgentConfig, dict]] = (),
        *,
        lead: Optional[str] = None,
        depends_on: Union[str, Sequence[str], None] = None,
        input_transform: Optional[Transform] = None,
        output_transform: Optional[Transform] = None,
        description: str = "",
    ) -> "WorkflowBuilder":
        """Add a node.

        Raises:
            ConfigurationError: If the node itself is malformed.
        """
        self._nodes.append(
            WorkflowNode(
                name=name,
                agents=list(agents),
                lead=lead,
                dependencies=depends_on,
                input_transform=input_transform,
                output_transform=output_transform,
                description=description,
            )
        )
        return self

    def add_node(self, node: WorkflowNode) -> "WorkflowBuilder":
        self._nodes.append(node)
        return self

    def start_node(self, name: str) -> "WorkflowBuilder":
        self._start_node = name
        return self

    def build(self) -> WorkflowGraph:
        """Validate and return the graph.

        Raises:
            ConfigurationError: Missing start node, unknown agents or nodes.
            GraphCycleError: Circular node dependencies.
        """
        return WorkflowGraph(self._nodes, self._start_node, self._registry, name=self.name)

    def build_workflow(
        self, transport: LLMTransport, *, settings: Optional[Settings] = None, **kwargs: Any
    ) -> "Workflow":
        from kestrel_swarm.workflow.workflow import Workflow

        return Workflow(self.build(), transport, settings=settings, **kwargs)


__all__ = ["WorkflowBuilder"]
