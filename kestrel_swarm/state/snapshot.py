"""Snapshot: serializable state of a graph or workflow.

A snapshot holds conversations and context state of agent sessions, the
shared scratchpad, and read tracking. It never holds configuration; it is
restored into an orchestration built from the same configuration.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Literal, Union

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kestrel_swarm import __version__
from kestrel_swarm.core.errors import StateError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"
SUPPORTED_VERSIONS = frozenset({SNAPSHOT_VERSION})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Snapshot(BaseModel):
    """Versioned snapshot document.

    agents maps agent name to {"conversation": [...], "context_state": {...}};
    delegation_instances uses the same shape keyed "delegate@caller".
    """

    model_config = ConfigDict(frozen=True)

    version: str = SNAPSHOT_VERSION
    type: Literal["swarm", "workflow"]
    snapshot_at: str = Field(default_factory=_now)
    library_version: str = __version__
    agents: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    delegation_instances: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    scratchpad: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    read_tracking: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        for key in ("agents", "delegation_instances", "scratchpad", "read_tracking"):
            if not data[key]:
                del data[key]
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Parse a snapshot dict.

        Raises:
            StateError: Unsupported version or malformed document.
        """
        version = data.get("version")
        if version not in SUPPORTED_VERSIONS:
            raise StateError(
                f"Unsupported snapshot version: {version!r} "
                f"(supported: {', '.join(sorted(SUPPORTED_VERSIONS))})"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise StateError(f"Invalid snapshot: {e}") from e

    @classmethod
    def from_json(cls, text: str) -> "Snapshot":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateError(f"Invalid snapshot JSON: {e}") from e
        if not isinstance(data, dict):
            raise StateError("Invalid snapshot: expected a JSON object")
        return cls.from_dict(data)

    async def write(self, path: Union[str, Path]) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "w", encoding="utf-8") as f:
            await f.write(self.to_json())
        logger.debug(f"Wrote {self.type} snapshot to {target}")

    @classmethod
    async def read(cls, path: Union[str, Path]) -> "Snapshot":
        async with aiofiles.open(Path(path), "r", encoding="utf-8") as f:
            return cls.from_json(await f.read())


__all__ = ["Snapshot", "SNAPSHOT_VERSION", "SUPPORTED_VERSIONS"]
