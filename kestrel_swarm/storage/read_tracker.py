"""Read-tracking digests used to detect external modification before edits."""

from __future__ import annotations

import hashlib
import logging
from typing import Dict

from kestrel_swarm.core.errors import StaleReadError

logger = logging.getLogger(__name__)


def content_digest(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class ReadTracker:
    """Per-agent record of {resource path -> digest at last read}."""

    def __init__(self) -> None:
        self._reads: Dict[str, Dict[str, str]] = {}

    def register_read(self, agent: str, path: str, content: str) -> str:
        """Record that agent has read path; returns the digest."""
        digest = content_digest(content)
        self._reads.setdefault(agent, {})[path] = digest
        return digest

    def is_current(self, agent: str, path: str, content: str) -> bool:
        """True if agent read path and it has not changed since."""
        recorded = self._reads.get(agent, {}).get(path)
        return recorded is not None and recorded == content_digest(content)

    def check_edit(self, agent: str, path: str, content: str) -> None:
        """Permit an edit only if the last read digest matches current content.

        Raises:
            StaleReadError: If the agent never read path or it changed since.
        """
        if not self.is_current(agent, path, content):
            logger.info(f"Rejected edit of {path} by {agent}: stale or missing read")
            raise StaleReadError(agent, path)

    def get_read_entries(self, agent: str) -> Dict[str, str]:
        return dict(self._reads.get(agent, {}))

    def all_entries(self) -> Dict[str, Dict[str, str]]:
        """Digests for every agent that has read at least one resource."""
        return {agent: dict(paths) for agent, paths in self._reads.items() if paths}

    def restore_read_entries(self, agent: str, entries: Dict[str, str]) -> None:
        self._reads[agent] = dict(entries)

    def clear(self, agent: str) -> None:
        self._reads.pop(agent, None)

    def clear_all(self) -> None:
        self._reads.clear()


__all__ = ["ReadTracker", "content_digest"]
