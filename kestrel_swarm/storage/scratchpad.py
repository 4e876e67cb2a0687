"""In-memory scratchpad shared by the agents of one graph or workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScratchpadEntry:
    """One scratchpad document."""

    content: str
    title: str
    updated_at: datetime
    size: int

    def to_record(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "title": self.title,
            "updated_at": self.updated_at.isoformat(),
            "size": self.size,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ScratchpadEntry":
        updated_at = record.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)
        content = record["content"]
        return cls(
            content=content,
            title=record.get("title", ""),
            updated_at=updated_at or datetime.now(timezone.utc),
            size=record.get("size", len(content.encode("utf-8"))),
        )


class ScratchpadStorage:
    """Path-addressed scratch documents.

    Paths are normalized by stripping surrounding slashes and whitespace.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ScratchpadEntry] = {}

    @staticmethod
    def normalize(path: str) -> str:
        """Canonical key for path; leading and trailing slashes are ignored."""
        normalized = path.strip().strip("/")
        if not normalized:
            raise ValueError("Scratchpad path must not be empty")
        return normalized

    def write(self, path: str, content: str, title: Optional[str] = None) -> ScratchpadEntry:
        key = self.normalize(path)
        entry = ScratchpadEntry(
            content=content,
            title=title if title is not None else key.rsplit("/", 1)[-1],
            updated_at=datetime.now(timezone.utc),
            size=len(content.encode("utf-8")),
        )
        self._entries[key] = entry
        logger.debug(f"Scratchpad write {key} ({entry.size} bytes)")
        return entry

    def read(self, path: str) -> ScratchpadEntry:
        """Return the entry at path.

        Raises:
            KeyError: If no entry exists at path.
        """
        key = self.normalize(path)
        if key not in self._entries:
            raise KeyError(f"Scratchpad entry not found: {key}")
        return self._entries[key]

    def exists(self, path: str) -> bool:
        return self.normalize(path) in self._entries

    def edit(self, path: str, old_string: str, new_string: str) -> ScratchpadEntry:
        """Replace exactly one occurrence of old_string.

        Raises:
            KeyError: If no entry exists at path.
            ValueError: If old_string is missing or ambiguous.
        """
        entry = self.read(path)
        occurrences = entry.content.count(old_string)
        if occurrences == 0:
            raise ValueError(f"old_string not found in {path}")
        if occurrences > 1:
            raise ValueError(f"old_string appears {occurrences} times in {path}; it must be unique")
        return self.write(path, entry.content.replace(old_string, new_string, 1), entry.title)

    def delete(self, path: str) -> None:
        self._entries.pop(self.normalize(path), None)

    def list(self, prefix: str = "") -> List[str]:
        prefix = prefix.strip().strip("/")
        return sorted(key for key in self._entries if key.startswith(prefix))

    def all_entries(self) -> Dict[str, ScratchpadEntry]:
        return dict(self._entries)

    def restore_entries(self, records: Dict[str, Dict[str, Any]]) -> None:
        """Load serialized entries, keeping their original timestamps."""
        for path, record in records.items():
            self._entries[self.normalize(path)] = ScratchpadEntry.from_record(record)

    def clear(self) -> None:
        self._entries.clear()


__all__ = ["ScratchpadEntry", "ScratchpadStorage"]
