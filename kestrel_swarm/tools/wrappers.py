"""Wrap-and-forward tool decorator."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from kestrel_swarm.tools.framework import Tool, ToolContext, ToolResult


class RenamedTool(Tool):
    """Expose an existing tool under a different name or with narrowed arguments.

    The wrapper forwards execution to the inner tool unchanged. The registered
    (outer) name is what lookups use.

    Example:
        ask_backend = RenamedTool(DelegateTool("backend"), name="AskBackend")
    """

    def __init__(
        self,
        inner: Tool,
        name: Optional[str] = None,
        description: Optional[str] = None,
        removable: Optional[bool] = None,
        fixed_args: Optional[Dict[str, Any]] = None,
        hidden_args: Optional[Iterable[str]] = None,
    ):
        """Initialize the wrapper.

        Args:
            inner: Tool that does the work.
            name: Registered name (defaults to the inner tool's).
            description: Description override.
            removable: Removability override.
            fixed_args: Arguments always forwarded, overriding the model's.
            hidden_args: Argument names removed from the advertised schema.
        """
        self.inner = inner
        self.id = name or inner.id
        self.description = description if description is not None else inner.description
        self.removable = inner.removable if removable is None else removable
        self._fixed_args = dict(fixed_args or {})
        self._hidden_args = set(hidden_args or []) | set(self._fixed_args)

    def parameters(self) -> Dict[str, Any]:
        schema = dict(self.inner.parameters())
        if not self._hidden_args:
            return schema
        properties = {
            key: value
            for key, value in schema.get("properties", {}).items()
            if key not in self._hidden_args
        }
        required = [key for key in schema.get("required", []) if key not in self._hidden_args]
        schema["properties"] = properties
        schema["required"] = required
        return schema

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        forwarded = {k: v for k, v in args.items() if k not in self._hidden_args}
        forwarded.update(self._fixed_args)
        return await self.inner.execute(forwarded, ctx)

    def __repr__(self) -> str:
        return f"RenamedTool({self.id!r} -> {self.inner.id!r})"


__all__ = ["RenamedTool"]
