"""StateSnapshot: capture a graph or workflow into a Snapshot."""

from __future__ import annotations

import logging
from typing import Any, Dict, Union

from kestrel_swarm.agents.session import AgentSession
from kestrel_swarm.delegation.graph import DelegationGraph
from kestrel_swarm.state.snapshot import Snapshot
from kestrel_swarm.workflow.workflow import Workflow

logger = logging.getLogger(__name__)

Orchestration = Union[DelegationGraph, Workflow]


def session_record(session: AgentSession) -> Dict[str, Any]:
    return {
        "conversation": [message.to_record() for message in session.messages],
        "context_state": session.context_state(),
    }


class StateSnapshot:
    """Reads the current state of an orchestration; never mutates it."""

    def __init__(self, orchestration: Orchestration):
        if not isinstance(orchestration, (DelegationGraph, Workflow)):
            raise TypeError(
                f"Expected DelegationGraph or Workflow, got {type(orchestration).__name__}"
            )
        self.orchestration = orchestration

    def capture(self) -> Snapshot:
        source = self.orchestration
        if isinstance(source, DelegationGraph):
            kind = "swarm"
            metadata = {"swarm": {"id": source.swarm_id, "parent_id": source.parent_swarm_id}}
        else:
            kind = "workflow"
            metadata = {"workflow": {"id": source.workflow_id, "name": source.name}}

        snapshot = Snapshot(
            type=kind,
            agents={name: session_record(s) for name, s in source.agents.items()},
            delegation_instances={
                name: session_record(s) for name, s in source.delegation_instances.items()
            },
            scratchpad={
                path: entry.to_record() for path, entry in source.scratchpad.all_entries().items()
            },
            read_tracking=source.read_tracker.all_entries(),
            metadata=metadata,
        )
        logger.debug(
            f"Captured {kind} snapshot: {len(snapshot.agents)} agents, "
            f"{len(snapshot.delegation_instances)} delegation instances"
        )
        return snapshot


__all__ = ["StateSnapshot", "session_record"]
