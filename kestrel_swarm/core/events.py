"""Event sink for orchestration lifecycle events.

Subscribers live in task-local storage (a ContextVar), so:
- callbacks registered inside a run only see that run's events
- child tasks (delegations, parallel nodes) inherit their parent's subscribers
- unrelated top-level runs never observe each other's events

Every event is a plain dict:
    {"type", "timestamp", "execution_id"?, "swarm_id"?, "parent_swarm_id"?, ...}
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

EventRecord = Dict[str, Any]
EventCallback = Callable[[EventRecord], None]


class Events(str, Enum):
    """Event types emitted by the orchestration layer"""

    SWARM_START = "swarm_start"
    SWARM_STOP = "swarm_stop"
    WORKFLOW_START = "workflow_start"
    WORKFLOW_STOP = "workflow_stop"
    NODE_START = "node_start"
    NODE_STOP = "node_stop"
    DELEGATION_START = "delegation_start"
    DELEGATION_COMPLETE = "delegation_complete"
    DELEGATION_CIRCULAR_DEPENDENCY = "delegation_circular_dependency"
    USER_PROMPT = "user_prompt"
    AGENT_STEP = "agent_step"
    AGENT_STOP = "agent_stop"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    CONTEXT_LIMIT_WARNING = "context_limit_warning"
    COMPRESSION_COMPLETED = "compression_completed"
    SKILL_ACTIVATED = "skill_activated"
    SKILL_DEACTIVATED = "skill_deactivated"
    LLM_RETRY_ATTEMPT = "llm_retry_attempt"
    LLM_RETRY_EXHAUSTED = "llm_retry_exhausted"
    EXECUTION_TIMEOUT = "execution_timeout"
    TURN_TIMEOUT = "turn_timeout"


@dataclass(frozen=True)
class ExecutionScope:
    """Identity of the run currently executing in this task"""

    execution_id: str
    swarm_id: Optional[str] = None
    parent_swarm_id: Optional[str] = None


_subscribers: ContextVar[Tuple[EventCallback, ...]] = ContextVar(
    "kestrel_swarm_event_subscribers", default=()
)
_scope: ContextVar[Optional[ExecutionScope]] = ContextVar(
    "kestrel_swarm_execution_scope", default=None
)


def on_event(callback: EventCallback) -> Callable[[], None]:
    """Register a subscriber in the current task context.

    Args:
        callback: Called synchronously with each event dict.

    Returns:
        A function that removes the subscriber from the current context.
    """
    _subscribers.set(_subscribers.get() + (callback,))

    def unsubscribe() -> None:
        _subscribers.set(tuple(cb for cb in _subscribers.get() if cb is not callback))

    return unsubscribe


@contextmanager
def subscribed(*callbacks: EventCallback) -> Iterator[None]:
    """Scope one or more subscribers to a block."""
    token = _subscribers.set(_subscribers.get() + callbacks)
    try:
        yield
    finally:
        _subscribers.reset(token)


@contextmanager
def execution_scope(
    swarm_id: Optional[str] = None,
    parent_swarm_id: Optional[str] = None,
    execution_id: Optional[str] = None,
) -> Iterator[ExecutionScope]:
    """Stamp events emitted inside the block with run identity.

    A nested scope inherits the enclosing execution_id unless one is given.
    """
    enclosing = _scope.get()
    if execution_id is None:
        execution_id = enclosing.execution_id if enclosing else f"exec_{uuid.uuid4().hex[:16]}"
    scope = ExecutionScope(
        execution_id=execution_id, swarm_id=swarm_id, parent_swarm_id=parent_swarm_id
    )
    token = _scope.set(scope)
    try:
        yield scope
    finally:
        _scope.reset(token)


def current_scope() -> Optional[ExecutionScope]:
    return _scope.get()


def emit(event_type: Events | str, **fields: Any) -> EventRecord:
    """Build an event record and deliver it to the visible subscribers.

    Fields whose value is None are dropped. A failing subscriber is logged and
    does not prevent delivery to the remaining ones.

    Returns:
        The delivered event dict.
    """
    record: EventRecord = {
        "type": event_type.value if isinstance(event_type, Events) else event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    scope = _scope.get()
    if scope is not None:
        record["execution_id"] = scope.execution_id
        if scope.swarm_id is not None:
            record["swarm_id"] = scope.swarm_id
        if scope.parent_swarm_id is not None:
            record["parent_swarm_id"] = scope.parent_swarm_id
    record.update({key: value for key, value in fields.items() if value is not None})

    for callback in _subscribers.get():
        try:
            callback(record)
        except Exception:
            logger.exception(f"Event subscriber failed on {record['type']}")
    return record


__all__ = [
    "Events",
    "EventRecord",
    "EventCallback",
    "ExecutionScope",
    "on_event",
    "subscribed",
    "execution_scope",
    "current_scope",
    "emit",
]
