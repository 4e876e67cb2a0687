"""Dependency-ordered workflows of agent nodes."""

from kestrel_swarm.workflow.builder import WorkflowBuilder
from kestrel_swarm.workflow.context import NodeContext
from kestrel_swarm.workflow.directives import Continue, Directive, Goto, Halt, Skip
from kestrel_swarm.workflow.graph import WorkflowGraph
from kestrel_swarm.workflow.models import NodeAgentConfig, WorkflowNode
from kestrel_swarm.workflow.scheduler import WorkflowRun, WorkflowScheduler
from kestrel_swarm.workflow.workflow import Workflow

__all__ = [
    "WorkflowBuilder",
    "NodeContext",
    "Continue",
    "Directive",
    "Goto",
    "Halt",
    "Skip",
    "WorkflowGraph",
    "NodeAgentConfig",
    "WorkflowNode",
    "WorkflowRun",
    "WorkflowScheduler",
    "Workflow",
]
