"""Scratchpad tools.

Reads record a content digest for the reading agent. Edits are refused when
the document changed after that agent last read it.
"""

from __future__ import annotations

from typing import Any, Dict, List

from kestrel_swarm.storage.read_tracker import ReadTracker
from kestrel_swarm.storage.scratchpad import ScratchpadStorage
from kestrel_swarm.tools.framework import Tool, ToolContext, ToolResult


class _ScratchpadTool(Tool):
    def __init__(self, storage: ScratchpadStorage, read_tracker: ReadTracker):
        self._storage = storage
        self._read_tracker = read_tracker


class ScratchpadWriteTool(_ScratchpadTool):
    id = "scratchpad_write"
    description = "Create or overwrite a scratchpad document shared with other agents"

    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string", "description": "Document path"},
                "content": {"type": "string", "description": "Full document content"},
                "title": {"type": "string", "description": "Short title"},
            },
            "required": ["file_path", "content"],
        }

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        key = self._storage.normalize(args["file_path"])
        entry = self._storage.write(key, args["content"], args.get("title"))
        self._read_tracker.register_read(ctx.agent_name, key, entry.content)
        return ToolResult(
            output=f"Stored {args['file_path']} ({entry.size} bytes)",
            title=entry.title,
            metadata={"size": entry.size},
        )


class ScratchpadReadTool(_ScratchpadTool):
    id = "scratchpad_read"
    description = "Read a scratchpad document"

    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {"file_path": {"type": "string", "description": "Document path"}},
            "required": ["file_path"],
        }

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        key = self._storage.normalize(args["file_path"])
        entry = self._storage.read(key)
        digest = self._read_tracker.register_read(ctx.agent_name, key, entry.content)
        return ToolResult(output=entry.content, title=entry.title, metadata={"digest": digest})


class ScratchpadEditTool(_ScratchpadTool):
    id = "scratchpad_edit"
    description = "Replace one unique occurrence of text in a scratchpad document you have read"

    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string"},
                "old_string": {"type": "string"},
                "new_string": {"type": "string"},
            },
            "required": ["file_path", "old_string", "new_string"],
        }

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        path = self._storage.normalize(args["file_path"])
        current = self._storage.read(path)
        self._read_tracker.check_edit(ctx.agent_name, path, current.content)
        entry = self._storage.edit(path, args["old_string"], args["new_string"])
        self._read_tracker.register_read(ctx.agent_name, path, entry.content)
        return ToolResult(output=f"Edited {path}", title=entry.title, metadata={"size": entry.size})


class ScratchpadListTool(_ScratchpadTool):
    id = "scratchpad_list"
    description = "List scratchpad documents"

    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {"prefix": {"type": "string", "description": "Path prefix filter"}},
        }

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        paths = self._storage.list(args.get("prefix", ""))
        if not paths:
            return ToolResult(output="No scratchpad documents", metadata={"count": 0})
        lines = [f"{path}: {self._storage.read(path).title}" for path in paths]
        return ToolResult(output="\n".join(lines), metadata={"count": len(paths)})


def scratchpad_tools(storage: ScratchpadStorage, read_tracker: ReadTracker) -> List[Tool]:
    return [
        ScratchpadWriteTool(storage, read_tracker),
        ScratchpadReadTool(storage, read_tracker),
        ScratchpadEditTool(storage, read_tracker),
        ScratchpadListTool(storage, read_tracker),
    ]


SCRATCHPAD_TOOL_NAMES = frozenset(
    tool.id for tool in (ScratchpadWriteTool, ScratchpadReadTool, ScratchpadEditTool, ScratchpadListTool)
)


__all__ = [
    "ScratchpadWriteTool",
    "ScratchpadReadTool",
    "ScratchpadEditTool",
    "ScratchpadListTool",
    "scratchpad_tools",
    "SCRATCHPAD_TOOL_NAMES",
]
