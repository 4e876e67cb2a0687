"""Shared storage for agents: scratchpad documents and read tracking."""

from kestrel_swarm.storage.read_tracker import ReadTracker, content_digest
from kestrel_swarm.storage.scratchpad import ScratchpadEntry, ScratchpadStorage

__all__ = ["ReadTracker", "content_digest", "ScratchpadEntry", "ScratchpadStorage"]
