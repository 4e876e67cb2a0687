"""Kestrel Swarm - multi-agent orchestration for LLM agents"""

__version__ = "0.1.0"

from kestrel_swarm.agents import AgentDefinition, AgentRegistry, AgentSession, DelegationTarget
from kestrel_swarm.core import (
    CircularDependencyError,
    ConfigurationError,
    Events,
    ExecutionResult,
    GraphCycleError,
    StateError,
    SwarmError,
    on_event,
)
from kestrel_swarm.core.logging_config import configure_logging
from kestrel_swarm.core.settings import Settings, get_settings, reload_settings
from kestrel_swarm.delegation import DelegationGraph, SubgraphRegistry
from kestrel_swarm.llm import HttpTransport, LLMTransport
from kestrel_swarm.state import RestoreResult, Snapshot, StateRestorer, StateSnapshot
from kestrel_swarm.storage import ReadTracker, ScratchpadStorage
from kestrel_swarm.tools import Tool, ToolResult, ToolSet
from kestrel_swarm.workflow import (
    NodeAgentConfig,
    NodeContext,
    Workflow,
    WorkflowBuilder,
    WorkflowGraph,
    WorkflowNode,
    WorkflowRun,
    WorkflowScheduler,
)

__all__ = [
    "__version__",
    "AgentDefinition",
    "AgentRegistry",
    "AgentSession",
    "DelegationTarget",
    "CircularDependencyError",
    "ConfigurationError",
    "Events",
    "ExecutionResult",
    "GraphCycleError",
    "StateError",
    "SwarmError",
    "on_event",
    "Settings",
    "configure_logging",
    "reload_settings",
    "get_settings",
    "DelegationGraph",
    "SubgraphRegistry",
    "HttpTransport",
    "LLMTransport",
    "RestoreResult",
    "Snapshot",
    "StateRestorer",
    "StateSnapshot",
    "ReadTracker",
    "ScratchpadStorage",
    "Tool",
    "ToolResult",
    "ToolSet",
    "NodeAgentConfig",
    "NodeContext",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowGraph",
    "WorkflowNode",
    "WorkflowRun",
    "WorkflowScheduler",
]
