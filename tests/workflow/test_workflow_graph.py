"""Tests for workflow graph construction and validation."""

import pytest

from kestrel_swarm.agents.definition import AgentDefinition
from kestrel_swarm.core.errors import ConfigurationError, GraphCycleError
from kestrel_swarm.workflow.builder import WorkflowBuilder
from kestrel_swarm.workflow.models import NodeAgentConfig, WorkflowNode


def passthrough(ctx):
    return ctx.content


def builder():
    return WorkflowBuilder("dev").agents(
        [AgentDefinition(name="planner"), AgentDefinition(name="coder"), AgentDefinition(name="qa")]
    )


class TestWorkflowNode:
    """Tests for node-level validation."""

    def test_agent_less_node_needs_a_transform(self):
        with pytest.raises(ConfigurationError, match="must have at least one transformer"):
            WorkflowNode(name="empty")

    def test_agent_less_node_with_transform(self):
        node = WorkflowNode(name="format", output_transform=passthrough)
        assert node.agent_less
        assert node.lead is None

    def test_delegates_are_added_to_node(self):
        node = WorkflowNode(
            name="build",
            agents=[NodeAgentConfig(agent="coder", delegates_to=("qa",))],
        )
        assert node.agent_names == ["coder", "qa"]
        assert node.lead == "coder"
        assert node.agent_config("qa").reset_context is True

    def test_string_agents_and_dependency(self):
        node = WorkflowNode(name="build", agents=["coder"], dependencies="plan")
        assert node.agent_names == ["coder"]
        assert node.dependencies == ["plan"]

    def test_lead_must_be_an_agent(self):
        with pytest.raises(ConfigurationError, match="lead 'qa'"):
            WorkflowNode(name="build", agents=["coder"], lead="qa")

    def test_duplicate_agents_rejected(self):
        with pytest.raises(ConfigurationError, match="more than once"):
            WorkflowNode(name="build", agents=["coder", "coder"])


class TestWorkflowGraphValidation:
    """Tests for graph-level validation."""

    def test_start_node_required(self):
        with pytest.raises(ConfigurationError, match="start_node required"):
            builder().node("plan", ["planner"]).build()

    def test_start_node_must_exist(self):
        with pytest.raises(ConfigurationError, match="start_node 'design' not found"):
            builder().node("plan", ["planner"]).start_node("design").build()

    def test_undefined_agent(self):
        with pytest.raises(ConfigurationError, match="references undefined agent 'designer'"):
            builder().node("plan", ["designer"]).start_node("plan").build()

    def test_undefined_dependency(self):
        with pytest.raises(ConfigurationError, match="undefined node 'design'"):
            (
                builder()
                .node("plan", ["planner"])
                .node("build", ["coder"], depends_on=["design"])
                .start_node("plan")
                .build()
            )

    def test_cycle_rejected_at_build(self):
        with pytest.raises(GraphCycleError, match="Circular dependency") as exc_info:
            (
                builder()
                .node("plan", ["planner"])
                .node("build", ["coder"], depends_on=["test"])
                .node("test", ["qa"], depends_on=["build"])
                .start_node("plan")
                .build()
            )
        assert set(exc_info.value.cycle) == {"build", "test"}

    def test_start_node_cannot_have_dependencies(self):
        with pytest.raises(ConfigurationError, match="cannot have dependencies"):
            (
                builder()
                .node("plan", ["planner"], depends_on=["build"])
                .node("build", ["coder"])
                .start_node("plan")
                .build()
            )

    def test_duplicate_node_rejected(self):
        with pytest.raises(ConfigurationError, match="defined more than once"):
            builder().node("plan", ["planner"]).node("plan", ["coder"]).start_node("plan").build()


class TestExecutionOrder:
    """Tests for the topological execution order."""

    def test_start_first_then_declaration_order(self):
        graph = (
            builder()
            .node("lint", ["qa"])
            .node("review", ["qa"], depends_on=["build"])
            .node("build", ["coder"], depends_on=["plan"])
            .node("plan", ["planner"])
            .start_node("plan")
            .build()
        )
        assert graph.execution_order == ["plan", "lint", "build", "review"]
        assert graph.dependents("build") == ["review"]

    def test_diamond(self):
        graph = (
            builder()
            .node("plan", ["planner"])
            .node("api", ["coder"], depends_on="plan")
            .node("ui", ["coder"], depends_on="plan")
            .node("merge", output_transform=passthrough, depends_on=["api", "ui"])
            .start_node("plan")
            .build()
        )
        order = graph.execution_order
        assert order[0] == "plan"
        assert order[-1] == "merge"
        assert set(order[1:3]) == {"api", "ui"}
