"""Tests for ToolSet, tool modes, RenamedTool, and the scratchpad tools."""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict

import pytest

from kestrel_swarm.core.errors import ConfigurationError, StaleReadError
from kestrel_swarm.delegation.tool import DelegateTool
from kestrel_swarm.storage.read_tracker import ReadTracker
from kestrel_swarm.storage.scratchpad import ScratchpadStorage
from kestrel_swarm.tools.framework import Tool, ToolContext, ToolResult
from kestrel_swarm.tools.registry import UNRESTRICTED, Restricted, ToolSet
from kestrel_swarm.tools.scratchpad import SCRATCHPAD_TOOL_NAMES, scratchpad_tools
from kestrel_swarm.tools.wrappers import RenamedTool


class EchoTool(Tool):
    id = "echo"
    description = "Echo the text argument"

    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {"text": {"type": "string"}, "mode": {"type": "string"}},
            "required": ["text", "mode"],
        }

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        return ToolResult(output=f"{args.get('mode', '')}:{args['text']}")


class FailingTool(Tool):
    id = "fail"
    description = "Always fails"

    def __init__(self, error: Exception):
        self.error = error

    async def execute(self, args: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        raise self.error


def ctx(agent: str = "lead") -> ToolContext:
    return ToolContext(agent_name=agent)


class TestToolSetRegistration:
    """Tests for register/unregister and lookups."""

    def test_register_and_lookup(self):
        tools = ToolSet([EchoTool()])
        assert tools.has_tool("echo")
        assert tools.tool_names() == ["echo"]
        assert isinstance(tools.get("echo"), EchoTool)

    def test_duplicate_name_rejected(self):
        tools = ToolSet([EchoTool()])
        with pytest.raises(ValueError, match="already registered"):
            tools.register(EchoTool())

    def test_unregister(self):
        tools = ToolSet([EchoTool()])
        removed = tools.unregister("echo")
        assert removed is not None and removed.tool.name == "echo"
        assert tools.unregister("echo") is None
        assert tools.tool_names() == []

    def test_entry_metadata_and_base_tool(self):
        tools = ToolSet()
        inner = EchoTool()
        tools.register(RenamedTool(inner, name="say"), source="custom", metadata={"k": "v"})
        entry = tools.entry("say")
        assert entry.source == "custom"
        assert entry.metadata == {"k": "v"}
        assert entry.base_tool is inner

    def test_concurrent_registration_from_threads(self):
        tools = ToolSet()
        names = [f"echo_{i}" for i in range(50)]

        def register(name):
            tools.register(RenamedTool(EchoTool(), name=name))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(register, names))

        assert sorted(tools.tool_names()) == sorted(names)

    def test_concurrent_duplicate_registration_admits_one(self):
        tools = ToolSet()

        def register(_):
            try:
                tools.register(EchoTool())
                return True
            except ValueError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(register, range(16)))

        assert outcomes.count(True) == 1
        assert tools.tool_names() == ["echo"]


class TestToolModes:
    """Tests for Unrestricted/Restricted active tool sets."""

    def test_restricted_keeps_non_removable_tools(self):
        """Delegation tools stay active while a restriction is in place."""
        tools = ToolSet([EchoTool(), DelegateTool("backend", "DelegateTaskToBackend")])
        tools.register(FailingTool(RuntimeError("x")))
        assert tools.non_removable_tool_names() == ["DelegateTaskToBackend"]

        active = [t.name for t in tools.active_tools(Restricted({"echo"}))]
        assert active == ["echo", "DelegateTaskToBackend"]
        assert len(tools.active_tools(UNRESTRICTED)) == 3

    def test_empty_restriction_leaves_only_non_removable(self):
        tools = ToolSet([EchoTool(), DelegateTool("backend", "DelegateTaskToBackend")])
        assert [t.name for t in tools.active_tools(Restricted())] == ["DelegateTaskToBackend"]

    def test_schemas_follow_mode(self):
        tools = ToolSet([EchoTool()])
        assert tools.schemas()[0]["name"] == "echo"
        assert tools.schemas(Restricted({"other"})) == []


class TestToolSetExecute:
    """Tests for execute() results."""

    @pytest.mark.asyncio
    async def test_execute_ok(self):
        result = await ToolSet([EchoTool()]).execute("echo", {"text": "hi", "mode": "m"}, ctx())
        assert result.is_ok()
        assert result.unwrap().output == "m:hi"

    @pytest.mark.asyncio
    async def test_unknown_tool_is_err(self):
        result = await ToolSet([EchoTool()]).execute("nope", {}, ctx())
        assert result.is_err()
        assert result.code == "TOOL_NOT_AVAILABLE"
        assert "echo" in result.error

    @pytest.mark.asyncio
    async def test_inactive_tool_is_err(self):
        result = await ToolSet([EchoTool()]).execute(
            "echo", {"text": "hi"}, ctx(), Restricted({"other"})
        )
        assert result.code == "TOOL_NOT_AVAILABLE"

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_err(self):
        error = RuntimeError("disk full")
        result = await ToolSet([FailingTool(error)]).execute("fail", {}, ctx())
        assert result.code == "TOOL_ERROR"
        assert result.error == "disk full"
        assert result.exception is error

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self):
        tools = ToolSet([FailingTool(ConfigurationError("bad config"))])
        with pytest.raises(ConfigurationError):
            await tools.execute("fail", {}, ctx())


class TestRenamedTool:
    """Tests for the wrap-and-forward decorator."""

    @pytest.mark.asyncio
    async def test_forwards_with_fixed_args(self):
        tool = RenamedTool(EchoTool(), name="shout", fixed_args={"mode": "loud"})
        assert tool.name == "shout"
        assert "mode" not in tool.parameters()["properties"]
        assert tool.parameters()["required"] == ["text"]
        result = await tool.execute({"text": "hi", "mode": "quiet"}, ctx())
        assert result.output == "loud:hi"

    def test_inherits_description_and_removability(self):
        inner = DelegateTool("backend", "DelegateTaskToBackend", "Builds APIs")
        tool = RenamedTool(inner, name="AskBackend")
        assert tool.removable is False
        assert tool.description == "Delegate a task to backend: Builds APIs"
        assert RenamedTool(inner, removable=True).removable is True


class TestScratchpadTools:
    """Tests for the builtin scratchpad tools."""

    def build(self):
        storage = ScratchpadStorage()
        tracker = ReadTracker()
        return storage, tracker, ToolSet(scratchpad_tools(storage, tracker))

    def test_tool_names(self):
        _, _, tools = self.build()
        assert set(tools.tool_names()) == SCRATCHPAD_TOOL_NAMES

    @pytest.mark.asyncio
    async def test_write_then_edit_by_same_agent(self):
        storage, _, tools = self.build()
        await tools.execute("scratchpad_write", {"file_path": "plan", "content": "a b"}, ctx())
        result = await tools.execute(
            "scratchpad_edit", {"file_path": "plan", "old_string": "b", "new_string": "c"}, ctx()
        )
        assert result.is_ok()
        assert storage.read("plan").content == "a c"

    @pytest.mark.asyncio
    async def test_edit_without_read_is_stale(self):
        storage, _, tools = self.build()
        storage.write("plan", "a b")
        result = await tools.execute(
            "scratchpad_edit",
            {"file_path": "plan", "old_string": "b", "new_string": "c"},
            ctx("backend@lead"),
        )
        assert result.code == "TOOL_ERROR"
        assert isinstance(result.exception, StaleReadError)
        assert storage.read("plan").content == "a b"

    @pytest.mark.asyncio
    async def test_edit_after_other_agent_wrote_is_stale(self):
        """A write by another agent invalidates an earlier read."""
        storage, _, tools = self.build()
        storage.write("plan", "v1 text")
        await tools.execute("scratchpad_read", {"file_path": "plan"}, ctx("backend@lead"))
        await tools.execute(
            "scratchpad_write", {"file_path": "plan", "content": "v2 text"}, ctx("frontend@lead")
        )
        result = await tools.execute(
            "scratchpad_edit",
            {"file_path": "plan", "old_string": "text", "new_string": "doc"},
            ctx("backend@lead"),
        )
        assert isinstance(result.exception, StaleReadError)

    @pytest.mark.asyncio
    async def test_reread_after_external_change_allows_edit(self):
        storage, tracker, tools = self.build()
        storage.write("plan", "v1 text")
        await tools.execute("scratchpad_read", {"file_path": "plan"}, ctx("backend@lead"))
        storage.write("plan", "v2 text")
        edit = {"file_path": "plan", "old_string": "text", "new_string": "doc"}

        rejected = await tools.execute("scratchpad_edit", edit, ctx("backend@lead"))
        assert isinstance(rejected.exception, StaleReadError)
        assert storage.read("plan").content == "v2 text"

        await tools.execute("scratchpad_read", {"file_path": "plan"}, ctx("backend@lead"))
        accepted = await tools.execute("scratchpad_edit", edit, ctx("backend@lead"))

        assert accepted.is_ok()
        assert storage.read("plan").content == "v2 doc"
        assert tracker.is_current("backend@lead", "plan", "v2 doc")

    @pytest.mark.asyncio
    async def test_path_spellings_share_read_tracking(self):
        """Leading and trailing slashes name the same document."""
        storage, tracker, tools = self.build()
        storage.write("notes", "a b")
        await tools.execute("scratchpad_read", {"file_path": "/notes"}, ctx())
        result = await tools.execute(
            "scratchpad_edit", {"file_path": "notes/", "old_string": "b", "new_string": "c"}, ctx()
        )
        assert result.is_ok()
        assert storage.read("notes").content == "a c"
        assert list(tracker.get_read_entries("lead")) == ["notes"]

    @pytest.mark.asyncio
    async def test_list(self):
        storage, _, tools = self.build()
        assert (await tools.execute("scratchpad_list", {}, ctx())).unwrap().output == (
            "No scratchpad documents"
        )
        storage.write("notes/plan", "x", title="Plan")
        output = (await tools.execute("scratchpad_list", {"prefix": "notes"}, ctx())).unwrap().output
        assert output == "notes/plan: Plan"
