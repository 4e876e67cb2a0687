"""DelegationGraph: agents that delegate to each other as sub-tasks.

This module provides:
- DelegationGraph: owns top-level agent sessions, lazily created delegation
  instances, and registered sub-graphs; resolves delegation targets and
  detects circular delegation at run time
- ESCALATED_ERRORS: errors a delegated call re-raises instead of capturing
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Union

from kestrel_swarm.agents.definition import AgentDefinition
from kestrel_swarm.agents.registry import AgentRegistry
from kestrel_swarm.agents.session import AgentSession, build_retry_executor
from kestrel_swarm.core.errors import (
    CircularDependencyError,
    ConfigurationError,
    ExecutionTimeoutError,
    NonRetryableTransportError,
    UnknownTargetError,
)
from kestrel_swarm.core.events import EventCallback, Events, emit, execution_scope, subscribed
from kestrel_swarm.core.execution import ExecutionResult
from kestrel_swarm.core.settings import Settings, get_settings
from kestrel_swarm.delegation.call_stack import CallStack
from kestrel_swarm.delegation.subgraphs import SubgraphRegistry
from kestrel_swarm.delegation.tool import DelegateTool
from kestrel_swarm.llm.transport import LLMTransport
from kestrel_swarm.storage.read_tracker import ReadTracker
from kestrel_swarm.storage.scratchpad import ScratchpadStorage
from kestrel_swarm.tools.framework import Tool
from kestrel_swarm.tools.registry import ToolSet
from kestrel_swarm.tools.scratchpad import scratchpad_tools

if TYPE_CHECKING:
    from kestrel_swarm.state.restore import RestoreResult
    from kestrel_swarm.state.snapshot import Snapshot

logger = logging.getLogger(__name__)

ESCALATED_ERRORS = (
    CircularDependencyError,
    ConfigurationError,
    ExecutionTimeoutError,
    NonRetryableTransportError,
)

Resolved = Union[AgentSession, "DelegationGraph"]


def delegation_instance_name(delegate: str, caller: str) -> str:
    return f"{delegate}@{caller}"


class DelegationGraph:
    """A lead agent plus the agents and sub-graphs reachable by delegation.

    Delegation target resolution, first match wins:
    1. a local agent shared across delegations -> its top-level session
    2. a local agent -> the "<target>@<caller>" delegation instance
    3. a registered sub-graph -> the lazily loaded nested graph

    Example:
        graph = DelegationGraph(
            [AgentDefinition(name="lead", delegates_to=["backend"]),
             AgentDefinition(name="backend")],
            lead="lead",
            transport=transport,
        )
        result = await graph.execute("Build the API")
    """

    def __init__(
        self,
        agents: Union[AgentRegistry, Iterable[AgentDefinition]],
        lead: str,
        transport: LLMTransport,
        *,
        name: str = "swarm",
        swarm_id: Optional[str] = None,
        parent_swarm_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        subgraphs: Optional[SubgraphRegistry] = None,
        tools: Optional[Mapping[str, Tool]] = None,
        scratchpad: Optional[ScratchpadStorage] = None,
        read_tracker: Optional[ReadTracker] = None,
    ):
        """Initialize and validate the graph.

        Args:
            agents: Agent definitions, or a registry holding them.
            lead: Agent that receives the prompt in execute().
            transport: LLM transport shared by every session.
            name: Human-readable graph name.
            swarm_id: Identity stamped on events (generated if None).
            parent_swarm_id: Identity of the enclosing graph, if nested.
            settings: Settings (global settings if None).
            subgraphs: Sub-graphs available as delegation targets.
            tools: Custom tools by name, referenced from AgentDefinition.tools.
            scratchpad: Shared scratchpad (a new one if None).
            read_tracker: Shared read tracker (a new one if None).

        Raises:
            ConfigurationError: If the lead, a delegation target, or a tool
                name does not resolve.
        """
        self.registry = agents if isinstance(agents, AgentRegistry) else AgentRegistry(agents)
        self.lead_name = lead
        self.name = name
        self.swarm_id = swarm_id or f"{name}_{uuid.uuid4().hex[:8]}"
        self.parent_swarm_id = parent_swarm_id
        self.transport = transport
        self.settings = settings or get_settings()
        self.subgraphs = subgraphs if subgraphs is not None else SubgraphRegistry()
        self.scratchpad = scratchpad if scratchpad is not None else ScratchpadStorage()
        self.read_tracker = read_tracker if read_tracker is not None else ReadTracker()
        self.call_stack = CallStack(f"{self.swarm_id}#{uuid.uuid4().hex[:8]}")

        self._custom_tools: Dict[str, Tool] = dict(tools or {})
        self._builtin_tools: Dict[str, Tool] = {
            tool.name: tool for tool in scratchpad_tools(self.scratchpad, self.read_tracker)
        }
        self._agents: Dict[str, AgentSession] = {}
        self._delegation_instances: Dict[str, AgentSession] = {}
        self._callbacks: List[EventCallback] = []

        self._validate()
        self.subgraphs.bind(self.swarm_id)

    def _validate(self) -> None:
        if not self.registry.registered(self.lead_name):
            raise ConfigurationError(f"Lead agent '{self.lead_name}' is not defined")

        for definition in self.registry.definitions():
            for target in definition.delegates_to:
                if not (
                    self.registry.registered(target.agent)
                    or self.subgraphs.registered(target.agent)
                ):
                    raise ConfigurationError(
                        f"Agent '{definition.name}' delegates to unknown agent '{target.agent}'"
                    )
            for tool_name in definition.tools:
                if tool_name not in self._custom_tools and tool_name not in self._builtin_tools:
                    raise ConfigurationError(
                        f"Agent '{definition.name}' references unknown tool '{tool_name}'"
                    )

    def assign_identity(self, swarm_id: str, parent_swarm_id: Optional[str]) -> None:
        """Set hierarchical identity; used when this graph is loaded as a sub-graph."""
        self.swarm_id = swarm_id
        self.parent_swarm_id = parent_swarm_id
        self.subgraphs.bind(swarm_id)

    def __repr__(self) -> str:
        return f"DelegationGraph({self.swarm_id!r}, lead={self.lead_name!r})"

    # =========================================================================
    # Sessions
    # =========================================================================

    def _build_toolset(self, definition: AgentDefinition) -> ToolSet:
        toolset = ToolSet()
        for tool_name in definition.tools:
            if tool_name in self._custom_tools:
                toolset.register(self._custom_tools[tool_name], source="custom")
            else:
                toolset.register(self._builtin_tools[tool_name], source="builtin")

        for target in definition.delegates_to:
            description = (
                self.registry.get(target.agent).description
                if self.registry.registered(target.agent)
                else None
            )
            toolset.register(
                DelegateTool(target.agent, target.resolved_tool_name, description),
                source="delegation",
                metadata={"target": target.agent, "preserve_context": target.preserve_context},
            )
        return toolset

    def _build_session(
        self, definition: AgentDefinition, name: str, caller: Optional[str] = None
    ) -> AgentSession:
        return AgentSession(
            definition,
            self.transport,
            name=name,
            caller=caller,
            tools=self._build_toolset(definition),
            settings=self.settings,
            retry=build_retry_executor(self.settings),
            graph=self,
        )

    def agent(self, name: str) -> AgentSession:
        """Top-level session for name, created on first access.

        Raises:
            ConfigurationError: If no agent is defined under name.
        """
        session = self._agents.get(name)
        if session is None:
            session = self._build_session(self.registry.get(name), name)
            self._agents[name] = session
            logger.debug(f"Initialized agent {name} in {self.swarm_id}")
        return session

    @property
    def agents(self) -> Dict[str, AgentSession]:
        """Top-level sessions materialized so far."""
        return dict(self._agents)

    @property
    def delegation_instances(self) -> Dict[str, AgentSession]:
        """Delegation instances materialized so far, keyed "delegate@caller"."""
        return dict(self._delegation_instances)

    def delegation_instance(self, delegate: str, caller: str) -> AgentSession:
        """Delegation instance for (delegate, caller), created on first use."""
        key = delegation_instance_name(delegate, caller)
        session = self._delegation_instances.get(key)
        if session is None:
            session = self._build_session(self.registry.get(delegate), key, caller=caller)
            self._delegation_instances[key] = session
            logger.debug(f"Initialized delegation instance {key} in {self.swarm_id}")
        return session

    def adopt_session(self, session: AgentSession) -> None:
        """Take over an existing session, keeping its conversation.

        The session is rebound to this graph's definition, tools, and
        delegation targets. Sessions named "<delegate>@<caller>" become
        delegation instances; all others become top-level agents.

        Raises:
            ConfigurationError: If the session's agent is not defined here.
        """
        definition = self.registry.get(session.definition.name)
        session.definition = definition
        session.tools = self._build_toolset(definition)
        session.graph = self
        if session.caller is not None:
            self._delegation_instances[session.name] = session
        else:
            self._agents[session.name] = session

    # =========================================================================
    # Delegation
    # =========================================================================

    def resolve(self, target: str, caller: str) -> Resolved:
        """Resolve a delegation target for caller.

        Idempotent: the same (target, caller) always yields the same object
        while the graph is unchanged.

        Raises:
            UnknownTargetError: If target is neither an agent nor a sub-graph.
        """
        if self.registry.registered(target):
            if self.registry.get(target).shared_across_delegations:
                return self.agent(target)
            return self.delegation_instance(target, caller)
        if self.subgraphs.registered(target):
            return self.subgraphs.load(target)
        raise UnknownTargetError(target, caller)

    def _preserves_context(self, target: str, caller: str) -> bool:
        if not self.registry.registered(caller):
            return True
        declared = self.registry.get(caller).delegation_target(target)
        return declared.preserve_context if declared is not None else True

    async def invoke(self, target: str, caller: str, message: str) -> ExecutionResult:
        """Run target against message on behalf of caller.

        The target is pushed on this graph's call stack for the duration of
        the call; the pop happens whether the call succeeds or fails.

        Raises:
            CircularDependencyError: If target is already on the call stack.
            UnknownTargetError: If target does not resolve.

        Returns:
            ExecutionResult; failures inside the delegate are captured in
            its error unless they are one of ESCALATED_ERRORS.
        """
        if target in self.call_stack:
            chain = [*self.call_stack.chain, target]
            emit(
                Events.DELEGATION_CIRCULAR_DEPENDENCY,
                agent=caller,
                target=target,
                call_stack=chain,
            )
            logger.warning(f"Rejected circular delegation in {self.swarm_id}: {' -> '.join(chain)}")
            raise CircularDependencyError(chain)

        resolved = self.resolve(target, caller)
        instance = resolved.name if isinstance(resolved, AgentSession) else resolved.swarm_id
        emit(
            Events.DELEGATION_START,
            agent=caller,
            from_agent=caller,
            to_agent=target,
            instance=instance,
            task=message,
        )

        logs: List[Dict[str, Any]] = []
        started = time.monotonic()
        token = self.call_stack.push(target)
        try:
            with subscribed(logs.append):
                if isinstance(resolved, AgentSession):
                    reply = await resolved.ask(message, source="delegation")
                    result = ExecutionResult(content=reply.text, agent=resolved.name)
                else:
                    result = await resolved.execute(message)
        except ESCALATED_ERRORS:
            raise
        except Exception as e:
            logger.error(f"Delegation {caller} -> {target} failed: {e}")
            result = ExecutionResult(agent=instance, error=e)
        finally:
            self.call_stack.pop(token)
            if isinstance(resolved, AgentSession):
                if not self._preserves_context(target, caller):
                    resolved.reset()
            else:
                self.subgraphs.reset_if_needed(target)

        result.duration = time.monotonic() - started
        if not result.logs:
            result.logs = logs
        emit(
            Events.DELEGATION_COMPLETE,
            agent=caller,
            from_agent=caller,
            to_agent=target,
            instance=instance,
            success=result.success,
            duration=result.duration,
        )
        return result

    # =========================================================================
    # Execution
    # =========================================================================

    def on_event(self, callback: EventCallback) -> None:
        """Receive events from every run of this graph."""
        self._callbacks.append(callback)

    async def _run_lead(self, prompt: str) -> ExecutionResult:
        lead = self.agent(self.lead_name)
        with self.call_stack.frame(self.lead_name):
            reply = await lead.ask(prompt)
        return ExecutionResult(content=reply.text, agent=self.lead_name)

    async def execute(self, prompt: str, timeout: Optional[float] = None) -> ExecutionResult:
        """Run the lead agent against prompt.

        Args:
            prompt: Task for the lead agent.
            timeout: Run-level timeout in seconds; defaults to
                Settings.run_timeout_seconds.

        Returns:
            ExecutionResult with the full event log. Runtime failures are
            captured in its error; a timeout also sets metadata["timeout"].

        Raises:
            ConfigurationError: Configuration problems surface immediately.
        """
        run_timeout = timeout if timeout is not None else self.settings.run_timeout_seconds
        logs: List[Dict[str, Any]] = []
        started = time.monotonic()

        with execution_scope(self.swarm_id, self.parent_swarm_id), subscribed(
            logs.append, *self._callbacks
        ):
            emit(Events.SWARM_START, agent=self.lead_name, swarm_name=self.name, prompt=prompt)
            try:
                if run_timeout is None:
                    result = await self._run_lead(prompt)
                else:
                    result = await asyncio.wait_for(self._run_lead(prompt), run_timeout)
            except asyncio.TimeoutError:
                error = ExecutionTimeoutError(
                    f"Execution timed out after {run_timeout}s", timeout=run_timeout
                )
                emit(Events.EXECUTION_TIMEOUT, agent=self.lead_name, timeout=run_timeout)
                logger.warning(f"{self.swarm_id}: {error}")
                result = ExecutionResult(
                    agent=self.lead_name, error=error, metadata={"timeout": True}
                )
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error(f"{self.swarm_id} run failed: {e}")
                result = ExecutionResult(agent=self.lead_name, error=e)
            finally:
                self.subgraphs.reset_all_if_needed()

            result.duration = time.monotonic() - started
            emit(
                Events.SWARM_STOP,
                agent=self.lead_name,
                swarm_name=self.name,
                success=result.success,
                duration=result.duration,
                final_response=result.content,
            )

        result.logs = logs
        return result

    def reset_context(self) -> None:
        """Reset every materialized session and loaded sub-graph."""
        for session in [*self._agents.values(), *self._delegation_instances.values()]:
            session.reset()
        for graph in self.subgraphs.loaded().values():
            graph.reset_context()

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> "Snapshot":
        from kestrel_swarm.state.capture import StateSnapshot

        return StateSnapshot(self).capture()

    def restore(self, snapshot: Any) -> "RestoreResult":
        """Restore a snapshot; call before the graph's agents are used."""
        from kestrel_swarm.state.restore import StateRestorer

        return StateRestorer(self, snapshot).restore()


__all__ = ["DelegationGraph", "ESCALATED_ERRORS", "delegation_instance_name"]
