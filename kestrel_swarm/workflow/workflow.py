"""Workflow: a WorkflowGraph bound to a transport and shared state.

Each agent node runs as its own DelegationGraph. Sessions of agents whose
NodeAgentConfig sets reset_context=False are kept here between nodes and
between runs; every other session starts fresh in each node.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from kestrel_swarm.agents.definition import AgentDefinition, DelegationTarget
from kestrel_swarm.agents.session import AgentSession, build_retry_executor
from kestrel_swarm.core.errors import ConfigurationError
from kestrel_swarm.core.events import EventCallback
from kestrel_swarm.core.execution import ExecutionResult
from kestrel_swarm.core.settings import Settings, get_settings
from kestrel_swarm.delegation.graph import DelegationGraph, delegation_instance_name
from kestrel_swarm.llm.transport import LLMTransport
from kestrel_swarm.storage.read_tracker import ReadTracker
from kestrel_swarm.storage.scratchpad import ScratchpadStorage
from kestrel_swarm.tools.framework import Tool
from kestrel_swarm.tools.scratchpad import SCRATCHPAD_TOOL_NAMES
from kestrel_swarm.workflow.graph import WorkflowGraph
from kestrel_swarm.workflow.models import WorkflowNode

if TYPE_CHECKING:
    from kestrel_swarm.state.restore import RestoreResult
    from kestrel_swarm.state.snapshot import Snapshot
    from kestrel_swarm.workflow.scheduler import WorkflowRun

logger = logging.getLogger(__name__)


class Workflow:
    """Runnable workflow.

    Example:
        workflow = Workflow(graph, transport)
        run = await workflow.execute("Add a login page")
        print(run["implement"].content)
    """

    def __init__(
        self,
        graph: WorkflowGraph,
        transport: LLMTransport,
        *,
        settings: Optional[Settings] = None,
        tools: Optional[Mapping[str, Tool]] = None,
        scratchpad: Optional[ScratchpadStorage] = None,
        read_tracker: Optional[ReadTracker] = None,
        workflow_id: Optional[str] = None,
    ):
        self.graph = graph
        self.name = graph.name
        self.workflow_id = workflow_id or f"{graph.name}_{uuid.uuid4().hex[:8]}"
        self.transport = transport
        self.settings = settings or get_settings()
        self.tools: Dict[str, Tool] = dict(tools or {})
        self.scratchpad = scratchpad if scratchpad is not None else ScratchpadStorage()
        self.read_tracker = read_tracker if read_tracker is not None else ReadTracker()
        self._sessions: Dict[str, AgentSession] = {}
        self._callbacks: List[EventCallback] = []
        self._validate_tools()

    def _validate_tools(self) -> None:
        for node in self.graph.nodes.values():
            for definition in self.node_definitions(node):
                for tool_name in definition.tools:
                    if tool_name not in self.tools and tool_name not in SCRATCHPAD_TOOL_NAMES:
                        raise ConfigurationError(
                            f"Agent '{definition.name}' in node '{node.name}' "
                            f"references unknown tool '{tool_name}'"
                        )

    def __repr__(self) -> str:
        return f"Workflow({self.workflow_id!r}, nodes={len(self.graph.nodes)})"

    def on_event(self, callback: EventCallback) -> None:
        """Receive events from every run of this workflow."""
        self._callbacks.append(callback)

    @property
    def callbacks(self) -> List[EventCallback]:
        return list(self._callbacks)

    # =========================================================================
    # Persistent sessions
    # =========================================================================

    @property
    def agents(self) -> Dict[str, AgentSession]:
        """Kept top-level sessions by agent name."""
        return {name: s for name, s in self._sessions.items() if s.caller is None}

    @property
    def delegation_instances(self) -> Dict[str, AgentSession]:
        """Kept delegation instances keyed "delegate@caller"."""
        return {name: s for name, s in self._sessions.items() if s.caller is not None}

    def session(self, agent: str, caller: Optional[str] = None) -> AgentSession:
        """Kept session for agent (or for the agent delegated to by caller).

        Created unattached on first access; the next node that runs the agent
        with reset_context=False adopts it.
        """
        key = delegation_instance_name(agent, caller) if caller else agent
        session = self._sessions.get(key)
        if session is None:
            session = AgentSession(
                self.graph.agents.get(agent),
                self.transport,
                name=key,
                caller=caller,
                settings=self.settings,
                retry=build_retry_executor(self.settings),
            )
            self._sessions[key] = session
        return session

    def reset_context(self) -> None:
        """Drop every kept session."""
        self._sessions.clear()

    # =========================================================================
    # Node execution
    # =========================================================================

    def node_definitions(self, node: WorkflowNode) -> List[AgentDefinition]:
        """Agent definitions as configured for node.

        A node's delegates_to replaces the agent's own targets; a declared
        target keeps its tool name and preserve_context setting.
        """
        definitions = []
        for config in node.agents:
            base = self.graph.agents.get(config.agent)
            targets = tuple(
                base.delegation_target(delegate) or DelegationTarget(agent=delegate)
                for delegate in config.delegates_to
            )
            update: Dict[str, Any] = {"delegates_to": targets}
            if config.tools is not None:
                update["tools"] = tuple(config.tools)
            definitions.append(base.model_copy(update=update))
        return definitions

    def build_node_graph(self, node: WorkflowNode) -> DelegationGraph:
        """DelegationGraph for one run of node, with kept sessions adopted."""
        graph = DelegationGraph(
            self.node_definitions(node),
            lead=node.lead,
            transport=self.transport,
            name=node.name,
            swarm_id=f"{self.workflow_id}/{node.name}",
            parent_swarm_id=self.workflow_id,
            settings=self.settings,
            tools=self.tools,
            scratchpad=self.scratchpad,
            read_tracker=self.read_tracker,
        )
        for config in node.agents:
            if config.reset_context:
                continue
            for session in list(self._sessions.values()):
                owner = session.caller if session.caller is not None else session.name
                if owner == config.agent and graph.registry.registered(session.definition.name):
                    graph.adopt_session(session)
        return graph

    def _keep_sessions(self, node: WorkflowNode, graph: DelegationGraph) -> None:
        for config in node.agents:
            if config.reset_context:
                continue
            primary = graph.agents.get(config.agent)
            if primary is not None:
                self._sessions[primary.name] = primary
            for key, session in graph.delegation_instances.items():
                if session.caller == config.agent:
                    self._sessions[key] = session

    async def run_node(
        self, node: WorkflowNode, content: Any, timeout: Optional[float] = None
    ) -> ExecutionResult:
        """Run node's lead agent against content."""
        graph = self.build_node_graph(node)
        prompt = content if isinstance(content, str) else str(content)
        try:
            return await graph.execute(prompt, timeout=timeout)
        finally:
            self._keep_sessions(node, graph)

    async def execute(self, prompt: str, timeout: Optional[float] = None) -> "WorkflowRun":
        """Run every node in dependency order; see WorkflowScheduler.execute."""
        from kestrel_swarm.workflow.scheduler import WorkflowScheduler

        return await WorkflowScheduler(self.settings).execute(self, prompt, timeout=timeout)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> "Snapshot":
        from kestrel_swarm.state.capture import StateSnapshot

        return StateSnapshot(self).capture()

    def restore(self, snapshot: Any) -> "RestoreResult":
        from kestrel_swarm.state.restore import StateRestorer

        return StateRestorer(self, snapshot).restore()


__all__ = ["Workflow"]
