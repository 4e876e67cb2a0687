"""Snapshot and restore of graph and workflow state."""

from kestrel_swarm.state.capture import StateSnapshot
from kestrel_swarm.state.restore import RestoreResult, StateRestorer, ValidationResult
from kestrel_swarm.state.snapshot import Snapshot

__all__ = ["Snapshot", "StateSnapshot", "StateRestorer", "RestoreResult", "ValidationResult"]
