"""Tests for DelegationGraph: resolution, delegation, cycles, sub-graphs."""

import asyncio

import pytest

from kestrel_swarm.agents.definition import AgentDefinition, DelegationTarget
from kestrel_swarm.agents.session import AgentSession
from kestrel_swarm.core.errors import (
    CircularDependencyError,
    ConfigurationError,
    ExecutionTimeoutError,
    NonRetryableTransportError,
    UnknownTargetError,
)
from kestrel_swarm.delegation.graph import DelegationGraph
from kestrel_swarm.delegation.subgraphs import SubgraphRegistry
from fakes import ScriptedTransport, tool_call


def agent(name, **kwargs):
    return AgentDefinition(name=name, model=name, description=f"{name} agent", **kwargs)


def lead_backend_graph(transport, settings, **backend_kwargs):
    return DelegationGraph(
        [agent("lead", delegates_to=["backend"]), agent("backend", **backend_kwargs)],
        lead="lead",
        transport=transport,
        settings=settings,
        name="team",
    )


class TestValidation:
    """Build-time validation."""

    def test_unknown_lead(self, transport, settings):
        with pytest.raises(ConfigurationError, match="Lead agent 'ghost'"):
            DelegationGraph([agent("lead")], lead="ghost", transport=transport, settings=settings)

    def test_unknown_delegation_target(self, transport, settings):
        with pytest.raises(ConfigurationError, match="unknown agent 'backend'"):
            DelegationGraph(
                [agent("lead", delegates_to=["backend"])],
                lead="lead",
                transport=transport,
                settings=settings,
            )

    def test_unknown_tool(self, transport, settings):
        with pytest.raises(ConfigurationError, match="unknown tool 'shell'"):
            DelegationGraph(
                [agent("lead", tools=("shell",))], lead="lead", transport=transport, settings=settings
            )

    def test_builtin_tools_are_known(self, transport, settings):
        graph = DelegationGraph(
            [agent("lead", tools=("scratchpad_read", "scratchpad_write"))],
            lead="lead",
            transport=transport,
            settings=settings,
        )
        assert graph.agent("lead").tools.tool_names() == ["scratchpad_read", "scratchpad_write"]


class TestResolution:
    """Delegation target resolution."""

    def test_delegation_instance_per_caller(self, transport, settings):
        graph = DelegationGraph(
            [
                agent("lead", delegates_to=["backend", "frontend"]),
                agent("frontend", delegates_to=["backend"]),
                agent("backend"),
            ],
            lead="lead",
            transport=transport,
            settings=settings,
        )
        from_lead = graph.resolve("backend", "lead")
        from_frontend = graph.resolve("backend", "frontend")

        assert isinstance(from_lead, AgentSession)
        assert from_lead.name == "backend@lead"
        assert from_lead.caller == "lead"
        assert from_frontend.name == "backend@frontend"
        assert from_lead is not from_frontend
        assert graph.resolve("backend", "lead") is from_lead
        assert sorted(graph.delegation_instances) == ["backend@frontend", "backend@lead"]

    def test_shared_agent_resolves_to_top_level_session(self, transport, settings):
        graph = lead_backend_graph(transport, settings, shared_across_delegations=True)
        resolved = graph.resolve("backend", "lead")
        assert resolved is graph.agent("backend")
        assert graph.delegation_instances == {}

    def test_unknown_target(self, transport, settings):
        graph = lead_backend_graph(transport, settings)
        with pytest.raises(UnknownTargetError, match="ghost"):
            graph.resolve("ghost", "lead")

    def test_delegate_tools_are_registered(self, transport, settings):
        graph = DelegationGraph(
            [
                agent(
                    "lead",
                    delegates_to=[DelegationTarget(agent="backend", tool_name="AskBackend")],
                ),
                agent("backend"),
            ],
            lead="lead",
            transport=transport,
            settings=settings,
        )
        tools = graph.agent("lead").tools
        assert tools.tool_names() == ["AskBackend"]
        assert tools.entry("AskBackend").metadata == {"target": "backend", "preserve_context": True}
        assert "backend agent" in tools.get("AskBackend").description


class TestDelegation:
    """End-to-end delegation through DelegateTool."""

    @pytest.mark.asyncio
    async def test_lead_delegates_to_backend(self, transport, settings):
        transport.add("lead", tool_call("DelegateTaskToBackend", task="Build the API"), "Lead done")
        transport.add("backend", "API built")
        graph = lead_backend_graph(transport, settings)

        result = await graph.execute("Ship it")

        assert result.success
        assert result.content == "Lead done"
        assert result.agent == "lead"
        assert transport.requests_for("backend")[0].last_text == "Build the API"
        assert transport.requests_for("lead")[1].last_text == "API built"

        types = [e["type"] for e in result.logs]
        assert types[0] == "swarm_start"
        assert types[-1] == "swarm_stop"
        assert types.index("delegation_start") < types.index("delegation_complete")
        start = next(e for e in result.logs if e["type"] == "delegation_start")
        assert start["from_agent"] == "lead"
        assert start["to_agent"] == "backend"
        assert start["instance"] == "backend@lead"
        assert len({e["execution_id"] for e in result.logs}) == 1
        assert all(e["swarm_id"] == graph.swarm_id for e in result.logs)
        assert "backend@lead" in result.agents_involved
        assert "DELEGATE: lead -> backend: Build the API" in result.transcript()

    @pytest.mark.asyncio
    async def test_invoke_returns_delegate_result(self, transport, settings):
        transport.add("backend", "done")
        graph = lead_backend_graph(transport, settings)

        result = await graph.invoke("backend", "lead", "task")

        assert result.content == "done"
        assert result.agent == "backend@lead"
        assert result.duration >= 0
        assert [e["type"] for e in result.logs] == ["user_prompt", "agent_stop"]
        assert graph.call_stack.chain == ()

    @pytest.mark.asyncio
    async def test_preserved_context_accumulates(self, transport, settings):
        transport.add("backend", "first", "second")
        graph = lead_backend_graph(transport, settings)
        await graph.invoke("backend", "lead", "one")
        await graph.invoke("backend", "lead", "two")
        assert [m.text for m in transport.requests_for("backend")[1].messages] == [
            "one",
            "first",
            "two",
        ]

    @pytest.mark.asyncio
    async def test_non_preserved_context_resets(self, transport, settings):
        transport.add("qa", "first", "second")
        graph = DelegationGraph(
            [
                agent("lead", delegates_to=[DelegationTarget(agent="qa", preserve_context=False)]),
                agent("qa", system_prompt="You test."),
            ],
            lead="lead",
            transport=transport,
            settings=settings,
        )
        await graph.invoke("qa", "lead", "one")
        await graph.invoke("qa", "lead", "two")
        assert [m.text for m in transport.requests_for("qa")[1].messages] == ["You test.", "two"]

    @pytest.mark.asyncio
    async def test_parallel_delegations(self, settings):
        transport = ScriptedTransport(delay=0.01)
        transport.add("backend", "api")
        transport.add("frontend", "ui")
        graph = DelegationGraph(
            [agent("lead", delegates_to=["backend", "frontend"]), agent("backend"), agent("frontend")],
            lead="lead",
            transport=transport,
            settings=settings,
        )
        with graph.call_stack.frame("lead"):
            backend, frontend = await asyncio.gather(
                graph.invoke("backend", "lead", "build api"),
                graph.invoke("frontend", "lead", "build ui"),
            )
        assert (backend.content, frontend.content) == ("api", "ui")
        assert graph.call_stack.chain == ()


class TestCircularDelegation:
    """Cycle detection on the call stack."""

    @pytest.mark.asyncio
    async def test_lead_backend_lead_is_rejected_and_reported(self, transport, settings):
        transport.add("lead", tool_call("DelegateTaskToBackend", task="Build it"), "Final")
        transport.add("backend", tool_call("DelegateTaskToLead", task="Clarify?"), "Built anyway")
        graph = DelegationGraph(
            [agent("lead", delegates_to=["backend"]), agent("backend", delegates_to=["lead"])],
            lead="lead",
            transport=transport,
            settings=settings,
        )

        result = await graph.execute("Start")

        assert result.success
        assert result.content == "Final"
        tool_output = transport.requests_for("backend")[1].last_text
        assert tool_output == "Error: Circular delegation detected: lead -> backend -> lead"
        circular = next(e for e in result.logs if e["type"] == "delegation_circular_dependency")
        assert circular["call_stack"] == ["lead", "backend", "lead"]
        assert "lead@backend" not in graph.delegation_instances

    @pytest.mark.asyncio
    async def test_invoke_raises_for_active_target(self, transport, settings):
        graph = lead_backend_graph(transport, settings)
        with graph.call_stack.frame("lead"), graph.call_stack.frame("backend"):
            with pytest.raises(CircularDependencyError) as exc_info:
                await graph.invoke("backend", "lead", "again")
        assert exc_info.value.chain == ["lead", "backend", "backend"]
        assert transport.requests == []


class TestFailures:
    """Error capture and escalation."""

    @pytest.mark.asyncio
    async def test_delegate_failure_is_reported_to_caller(self, transport, settings):
        settings = settings.model_copy(update={"retry_max_attempts": 1})
        transport.add("lead", tool_call("DelegateTaskToBackend", task="x"), "Handled")
        transport.add("backend", RuntimeError("model crashed"))
        graph = lead_backend_graph(transport, settings)

        result = await graph.execute("go")

        assert result.success
        assert result.content == "Handled"
        assert "Delegation to 'backend' failed" in transport.requests_for("lead")[1].last_text
        complete = next(e for e in result.logs if e["type"] == "delegation_complete")
        assert complete["success"] is False

    @pytest.mark.asyncio
    async def test_non_retryable_error_escalates(self, transport, settings):
        transport.add("lead", tool_call("DelegateTaskToBackend", task="x"))
        transport.add("backend", NonRetryableTransportError("unauthorized", status_code=401))
        graph = lead_backend_graph(transport, settings)

        result = await graph.execute("go")

        assert result.failure
        assert isinstance(result.error, NonRetryableTransportError)
        assert len(transport.requests_for("lead")) == 1

    @pytest.mark.asyncio
    async def test_run_timeout(self, settings):
        transport = ScriptedTransport(default="late", delay=1.0)
        graph = DelegationGraph([agent("lead")], lead="lead", transport=transport, settings=settings)

        result = await graph.execute("go", timeout=0.05)

        assert isinstance(result.error, ExecutionTimeoutError)
        assert result.metadata["timeout"] is True
        assert "execution_timeout" in [e["type"] for e in result.logs]
        assert result.logs[-1]["type"] == "swarm_stop"

    @pytest.mark.asyncio
    async def test_graph_callbacks_receive_events(self, transport, settings):
        transport.add("lead", "hi")
        graph = DelegationGraph([agent("lead")], lead="lead", transport=transport, settings=settings)
        seen = []
        graph.on_event(seen.append)
        await graph.execute("go")
        assert [e["type"] for e in seen] == ["swarm_start", "user_prompt", "agent_stop", "swarm_stop"]


class TestSubgraphs:
    """Nested graphs as delegation targets."""

    def build(self, transport, settings, keep_context=True):
        def review_team():
            return DelegationGraph(
                [agent("reviewer")], lead="reviewer", transport=transport, settings=settings
            )

        subgraphs = SubgraphRegistry()
        subgraphs.register("review_team", review_team, keep_context=keep_context)
        return DelegationGraph(
            [agent("lead", delegates_to=["review_team"])],
            lead="lead",
            transport=transport,
            settings=settings,
            subgraphs=subgraphs,
            swarm_id="root",
        )

    @pytest.mark.asyncio
    async def test_delegation_to_subgraph(self, transport, settings):
        transport.add("lead", tool_call("DelegateTaskToReviewTeam", task="Review PR"), "Merged")
        transport.add("reviewer", "LGTM")
        graph = self.build(transport, settings)

        result = await graph.execute("Handle the PR")

        assert result.content == "Merged"
        assert transport.requests_for("lead")[1].last_text == "LGTM"
        nested = graph.subgraphs.loaded()["review_team"]
        assert nested.swarm_id == "root/review_team"
        assert nested.parent_swarm_id == "root"
        reviewer_stop = next(
            e for e in result.logs if e["type"] == "agent_stop" and e["agent"] == "reviewer"
        )
        assert reviewer_stop["swarm_id"] == "root/review_team"
        assert reviewer_stop["parent_swarm_id"] == "root"
        assert reviewer_stop["execution_id"] == result.logs[0]["execution_id"]

    @pytest.mark.asyncio
    async def test_subgraph_is_cached_and_context_kept(self, transport, settings):
        transport.add("reviewer", "one", "two")
        graph = self.build(transport, settings)
        await graph.invoke("review_team", "lead", "first")
        await graph.invoke("review_team", "lead", "second")
        assert len(transport.requests_for("reviewer")[1].messages) == 3

    @pytest.mark.asyncio
    async def test_subgraph_without_kept_context_resets(self, transport, settings):
        transport.add("reviewer", "one", "two")
        graph = self.build(transport, settings, keep_context=False)
        await graph.invoke("review_team", "lead", "first")
        await graph.invoke("review_team", "lead", "second")
        assert [m.text for m in transport.requests_for("reviewer")[1].messages] == ["second"]

    @pytest.mark.asyncio
    async def test_same_agent_name_inside_subgraph_is_not_circular(self, transport, settings):
        """A nested graph has its own call stack; an outer "lead" does not block an inner one."""

        def team():
            return DelegationGraph(
                [
                    AgentDefinition(name="lead", model="team_lead", delegates_to=["backend"]),
                    agent("backend"),
                ],
                lead="lead",
                transport=transport,
                settings=settings,
            )

        subgraphs = SubgraphRegistry()
        subgraphs.register("team", team)
        graph = DelegationGraph(
            [agent("lead", delegates_to=["team"])],
            lead="lead",
            transport=transport,
            settings=settings,
            subgraphs=subgraphs,
            swarm_id="root",
        )
        transport.add("lead", tool_call("DelegateTaskToTeam", task="Build it"), "All done")
        transport.add("team_lead", tool_call("DelegateTaskToBackend", task="Write the API"), "Team done")
        transport.add("backend", "API written")

        result = await graph.execute("Ship it")

        assert result.success
        assert result.content == "All done"
        assert transport.requests_for("lead")[1].last_text == "Team done"
        assert transport.requests_for("team_lead")[1].last_text == "API written"
        types = [e["type"] for e in result.logs]
        assert "delegation_circular_dependency" not in types
        inner_start = next(
            e for e in result.logs if e["type"] == "delegation_start" and e["to_agent"] == "backend"
        )
        assert inner_start["from_agent"] == "lead"
        assert inner_start["swarm_id"] == "root/team"

    def test_duplicate_registration(self):
        subgraphs = SubgraphRegistry()
        subgraphs.register("team", lambda: None)
        with pytest.raises(ConfigurationError):
            subgraphs.register("team", lambda: None)

    def test_load_unknown(self):
        with pytest.raises(ConfigurationError):
            SubgraphRegistry().load("missing")

    def test_shutdown_drops_instances(self, transport, settings):
        graph = self.build(transport, settings)
        first = graph.subgraphs.load("review_team")
        graph.subgraphs.shutdown_all()
        assert graph.subgraphs.loaded() == {}
        assert graph.subgraphs.load("review_team") is not first
