"""Tests for the event sink.

Covers record shape, subscriber scoping, execution scopes, and isolation of
failing subscribers.
"""

import asyncio

import pytest

from kestrel_swarm.core.events import (
    Events,
    current_scope,
    emit,
    execution_scope,
    on_event,
    subscribed,
)


class TestEmit:
    """Tests for emit()."""

    def test_record_has_type_and_timestamp(self):
        """Every record carries its type and an ISO timestamp."""
        record = emit(Events.USER_PROMPT, agent="lead", prompt="hi")
        assert record["type"] == "user_prompt"
        assert "T" in record["timestamp"]
        assert record["agent"] == "lead"

    def test_none_fields_are_dropped(self):
        """Fields whose value is None are omitted."""
        record = emit("custom_event", agent="lead", model=None)
        assert "model" not in record
        assert record["type"] == "custom_event"

    def test_subscribers_receive_records(self):
        """A subscribed callback sees the emitted record."""
        seen = []
        with subscribed(seen.append):
            emit(Events.AGENT_STOP, agent="lead", content="done")
        emit(Events.AGENT_STOP, agent="lead", content="after")
        assert [e["content"] for e in seen] == ["done"]

    def test_failing_subscriber_does_not_block_others(self):
        """A raising subscriber is logged and later subscribers still run."""
        seen = []

        def broken(record):
            raise RuntimeError("boom")

        with subscribed(broken, seen.append):
            emit(Events.TOOL_CALL, agent="lead", tool="scratchpad_read")
        assert len(seen) == 1

    def test_on_event_returns_unsubscribe(self):
        """on_event registers a callback until the returned function is called."""
        seen = []
        unsubscribe = on_event(seen.append)
        try:
            emit(Events.SWARM_START, agent="lead")
        finally:
            unsubscribe()
        emit(Events.SWARM_STOP, agent="lead")
        assert [e["type"] for e in seen] == ["swarm_start"]


class TestExecutionScope:
    """Tests for execution_scope()."""

    def test_scope_stamps_identity(self):
        """Events inside a scope carry execution and swarm ids."""
        with execution_scope("team", "parent") as scope:
            record = emit(Events.SWARM_START)
        assert record["execution_id"] == scope.execution_id
        assert record["swarm_id"] == "team"
        assert record["parent_swarm_id"] == "parent"
        assert current_scope() is None

    def test_nested_scope_inherits_execution_id(self):
        """A nested scope keeps the enclosing execution id."""
        with execution_scope("outer") as outer:
            with execution_scope("outer/inner", "outer") as inner:
                record = emit(Events.SWARM_START)
        assert inner.execution_id == outer.execution_id
        assert record["swarm_id"] == "outer/inner"

    def test_separate_scopes_get_distinct_ids(self):
        """Unrelated top-level scopes get their own execution ids."""
        with execution_scope("a") as first:
            pass
        with execution_scope("b") as second:
            pass
        assert first.execution_id != second.execution_id


class TestSubscriberIsolation:
    """Subscribers registered inside a task are not visible to its siblings."""

    @pytest.mark.asyncio
    async def test_parallel_tasks_do_not_see_each_other(self):
        async def run(name):
            seen = []
            with subscribed(seen.append):
                await asyncio.sleep(0)
                emit(Events.AGENT_STOP, agent=name)
                await asyncio.sleep(0)
            return seen

        first, second = await asyncio.gather(run("a"), run("b"))
        assert [e["agent"] for e in first] == ["a"]
        assert [e["agent"] for e in second] == ["b"]
