"""StateRestorer: apply a Snapshot to a live graph or workflow.

Restoration validates first and mutates second. Agents missing from the
live configuration, and delegation instances that can no longer occur, are
skipped with a warning instead of failing the restore.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from kestrel_swarm.agents.registry import AgentRegistry
from kestrel_swarm.agents.session import AgentSession
from kestrel_swarm.core.errors import StateError
from kestrel_swarm.core.models import Message
from kestrel_swarm.delegation.graph import DelegationGraph
from kestrel_swarm.state.snapshot import Snapshot
from kestrel_swarm.workflow.workflow import Workflow

logger = logging.getLogger(__name__)

Orchestration = Union[DelegationGraph, Workflow]


@dataclass
class ValidationResult:
    """Which parts of a snapshot can be restored."""

    restorable_agents: List[str] = field(default_factory=list)
    restorable_delegations: List[str] = field(default_factory=list)
    skipped_agents: List[str] = field(default_factory=list)
    skipped_delegations: List[str] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class RestoreResult:
    """Outcome of a restore."""

    warnings: List[Dict[str, str]] = field(default_factory=list)
    skipped_agents: List[str] = field(default_factory=list)
    skipped_delegations: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.warnings

    @property
    def partial_restore(self) -> bool:
        return bool(self.skipped_agents or self.skipped_delegations)

    @property
    def summary(self) -> str:
        if self.success:
            return "Snapshot restored successfully. All agents restored."
        return (
            f"Snapshot restored with warnings. {len(self.skipped_agents)} agents skipped, "
            f"{len(self.skipped_delegations)} delegation instances skipped."
        )


def _parse(snapshot: Any) -> Snapshot:
    if isinstance(snapshot, Snapshot):
        return snapshot
    if isinstance(snapshot, dict):
        return Snapshot.from_dict(snapshot)
    if isinstance(snapshot, str):
        return Snapshot.from_json(snapshot)
    raise TypeError(f"Expected Snapshot, dict, or JSON string, got {type(snapshot).__name__}")


class StateRestorer:
    """Restores snapshot state into an orchestration of the matching type.

    Raises (in the constructor):
        TypeError: Snapshot is not a Snapshot, dict, or str.
        StateError: Unsupported version, malformed document, or a snapshot
            type that does not match the orchestration.
    """

    def __init__(self, orchestration: Orchestration, snapshot: Any):
        if isinstance(orchestration, DelegationGraph):
            expected = "swarm"
        elif isinstance(orchestration, Workflow):
            expected = "workflow"
        else:
            raise TypeError(
                f"Expected DelegationGraph or Workflow, got {type(orchestration).__name__}"
            )
        self.orchestration = orchestration
        self.snapshot = _parse(snapshot)
        if self.snapshot.type != expected:
            raise StateError(
                f"Snapshot type '{self.snapshot.type}' does not match {expected} orchestration"
            )

    @property
    def _registry(self) -> AgentRegistry:
        if isinstance(self.orchestration, DelegationGraph):
            return self.orchestration.registry
        return self.orchestration.graph.agents

    def _declared_delegates(self, caller: str) -> Set[str]:
        delegates = set(self._registry.get(caller).delegate_names)
        if isinstance(self.orchestration, Workflow):
            for node in self.orchestration.graph.nodes.values():
                config = node.agent_config(caller)
                if config is not None:
                    delegates.update(config.delegates_to)
        return delegates

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        for name in self.snapshot.agents:
            if self._registry.registered(name):
                result.restorable_agents.append(name)
            else:
                result.skipped_agents.append(name)
                result.warnings.append(
                    {
                        "type": "agent_not_found",
                        "agent": name,
                        "message": f"Agent '{name}' is not defined in the current configuration",
                    }
                )

        for instance in self.snapshot.delegation_instances:
            reason = self._delegation_problem(instance)
            if reason is None:
                result.restorable_delegations.append(instance)
            else:
                result.skipped_delegations.append(instance)
                result.warnings.append(
                    {
                        "type": "delegation_instance_not_restorable",
                        "instance": instance,
                        "message": reason,
                    }
                )
        return result

    def _delegation_problem(self, instance: str) -> Optional[str]:
        delegate, sep, caller = instance.partition("@")
        if not sep or not delegate or not caller:
            return f"Delegation instance '{instance}' is not named 'delegate@caller'"
        for name in (delegate, caller):
            if not self._registry.registered(name):
                return f"Agent '{name}' of delegation instance '{instance}' is not defined"
        if delegate not in self._declared_delegates(caller):
            return f"Agent '{caller}' no longer delegates to '{delegate}'"
        return None

    # =========================================================================
    # Mutation
    # =========================================================================

    def _session(self, agent: str, caller: Optional[str] = None) -> AgentSession:
        source = self.orchestration
        if isinstance(source, DelegationGraph):
            if caller is None:
                return source.agent(agent)
            return source.delegation_instance(agent, caller)
        return source.session(agent, caller)

    @staticmethod
    def _apply(session: AgentSession, record: Dict[str, Any]) -> None:
        session.replace_messages(
            Message.from_record(message) for message in record.get("conversation") or []
        )
        session.restore_context_state(record.get("context_state") or {})

    def restore(self) -> RestoreResult:
        validation = self.validate()

        for name in validation.restorable_agents:
            self._apply(self._session(name), self.snapshot.agents[name])
        for instance in validation.restorable_delegations:
            delegate, _, caller = instance.partition("@")
            self._apply(self._session(delegate, caller), self.snapshot.delegation_instances[instance])

        self.orchestration.scratchpad.restore_entries(self.snapshot.scratchpad)

        restorable = set(validation.restorable_agents) | set(validation.restorable_delegations)
        for name, entries in self.snapshot.read_tracking.items():
            if "@" in name:
                known = name in restorable or self._delegation_problem(name) is None
            else:
                known = self._registry.registered(name)
            if known:
                self.orchestration.read_tracker.restore_read_entries(name, entries)

        result = RestoreResult(
            warnings=validation.warnings,
            skipped_agents=validation.skipped_agents,
            skipped_delegations=validation.skipped_delegations,
        )
        if result.success:
            logger.info(result.summary)
        else:
            logger.warning(result.summary)
        return result


__all__ = ["StateRestorer", "RestoreResult", "ValidationResult"]
