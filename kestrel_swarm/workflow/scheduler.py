"""WorkflowScheduler: runs a Workflow's nodes in dependency order.

For each node:
1. the input transform may rewrite the input or return a directive
2. the lead agent runs (agent-less nodes pass their input through)
3. the output transform may rewrite the content or return a directive

Skip records the given content as the node result without running it, Halt
ends the run, and Goto resumes at another node with the given input. A node
whose dependency failed or did not run is not run either.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
from typing import Any, Dict, Iterator, List, Mapping, Optional

from kestrel_swarm.core.errors import (
    ConfigurationError,
    ExecutionTimeoutError,
    NonRetryableTransportError,
    SwarmError,
)
from kestrel_swarm.core.events import EventRecord, Events, emit, execution_scope, subscribed
from kestrel_swarm.core.execution import ExecutionResult
from kestrel_swarm.core.settings import Settings, get_settings
from kestrel_swarm.core.transcript import TranscriptBuilder
from kestrel_swarm.workflow.context import NodeContext
from kestrel_swarm.workflow.directives import (
    Continue,
    Directive,
    Goto,
    Halt,
    Skip,
    directive_from_value,
)
from kestrel_swarm.workflow.models import Transform, WorkflowNode
from kestrel_swarm.workflow.workflow import Workflow

logger = logging.getLogger(__name__)

_NO_OVERRIDE = object()


class WorkflowRun(Mapping[str, ExecutionResult]):
    """Per-node results of a workflow run plus the run's final result.

    Indexing by node name returns that node's (output-transformed) result.
    """

    def __init__(
        self,
        results: Dict[str, ExecutionResult],
        final: ExecutionResult,
        *,
        halted: bool = False,
        not_run: Optional[List[str]] = None,
        logs: Optional[List[EventRecord]] = None,
    ):
        self._results = dict(results)
        self.final = final
        self.halted = halted
        self.not_run = list(not_run or [])
        self.logs: List[EventRecord] = list(logs or [])

    def __getitem__(self, node: str) -> ExecutionResult:
        return self._results[node]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    @property
    def results(self) -> Dict[str, ExecutionResult]:
        return dict(self._results)

    @property
    def content(self) -> Any:
        return self.final.content

    @property
    def error(self) -> Optional[BaseException]:
        return self.final.error

    @property
    def success(self) -> bool:
        return self.final.success

    @property
    def duration(self) -> float:
        return self.final.duration

    def transcript(self, *agents: str, **options: Any) -> str:
        return TranscriptBuilder.build(self.logs, agents=agents or None, **options)

    def __repr__(self) -> str:
        return f"WorkflowRun(nodes={list(self._results)}, success={self.success})"


@dataclasses.dataclass
class _RunState:
    prompt: str
    results: Dict[str, ExecutionResult] = dataclasses.field(default_factory=dict)
    completed: List[str] = dataclasses.field(default_factory=list)
    not_run: List[str] = dataclasses.field(default_factory=list)
    halted: Optional[ExecutionResult] = None
    error: Optional[BaseException] = None

    def record(self, node: str, result: ExecutionResult) -> None:
        self.results[node] = result
        if node in self.completed:
            self.completed.remove(node)
        self.completed.append(node)

    def latest(self, names: List[str]) -> Optional[ExecutionResult]:
        for name in reversed(self.completed):
            if name in names:
                return self.results[name]
        return None


async def _call_transform(transform: Transform, context: NodeContext) -> Any:
    value = transform(context)
    if inspect.isawaitable(value):
        value = await value
    return value


class WorkflowScheduler:
    """Executes workflows; holds no per-run state itself."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def execute(
        self, workflow: Workflow, prompt: str, timeout: Optional[float] = None
    ) -> WorkflowRun:
        """Run workflow against prompt.

        Args:
            workflow: Workflow to run.
            prompt: Input of the start node (and of any other root node).
            timeout: Whole-run timeout in seconds; defaults to
                Settings.run_timeout_seconds.

        Returns:
            WorkflowRun. Node failures are captured in the node results and
            in the final result's error.

        Raises:
            ConfigurationError: A directive without content, or a goto to an
                unknown node.
        """
        run_timeout = timeout if timeout is not None else self.settings.run_timeout_seconds
        state = _RunState(prompt=prompt)
        logs: List[EventRecord] = []
        graph = workflow.graph
        started = time.monotonic()

        with execution_scope(workflow.workflow_id), subscribed(logs.append, *workflow.callbacks):
            emit(
                Events.WORKFLOW_START,
                workflow=workflow.name,
                start_node=graph.start_node,
                nodes=list(graph.execution_order),
                prompt=prompt,
            )
            try:
                if run_timeout is None:
                    await self._run(workflow, state)
                else:
                    await asyncio.wait_for(self._run(workflow, state), run_timeout)
            except asyncio.TimeoutError:
                state.error = ExecutionTimeoutError(
                    f"Workflow timed out after {run_timeout}s", timeout=run_timeout
                )
                emit(Events.EXECUTION_TIMEOUT, workflow=workflow.name, timeout=run_timeout)
                logger.warning(f"{workflow.workflow_id}: {state.error}")

            final = self._final_result(state)
            final.duration = time.monotonic() - started
            emit(
                Events.WORKFLOW_STOP,
                workflow=workflow.name,
                success=final.success,
                halted=state.halted is not None,
                duration=final.duration,
                final_response=final.content,
            )

        final.logs = logs
        return WorkflowRun(
            state.results,
            final,
            halted=state.halted is not None,
            not_run=state.not_run,
            logs=logs,
        )

    async def _run(self, workflow: Workflow, state: _RunState) -> None:
        graph = workflow.graph
        order = graph.execution_order
        pending: Dict[str, Any] = {}
        index = 0
        transitions = 0

        while index < len(order):
            transitions += 1
            if transitions > self.settings.workflow_max_transitions:
                state.error = SwarmError(
                    f"Workflow exceeded {self.settings.workflow_max_transitions} node transitions"
                )
                logger.error(f"{workflow.workflow_id}: {state.error}")
                return

            node = graph.nodes[order[index]]
            override = pending.pop(node.name, _NO_OVERRIDE)
            if override is _NO_OVERRIDE and not self._dependencies_met(node, state):
                logger.info(f"Not running node {node.name}: a dependency failed or did not run")
                state.not_run.append(node.name)
                index += 1
                continue

            directive = await self._run_node(workflow, node, state, override)
            if isinstance(directive, Halt):
                logger.info(f"Workflow {workflow.name} halted at node {node.name}")
                return
            if isinstance(directive, Goto):
                if directive.node not in graph:
                    raise ConfigurationError(
                        f"Node '{node.name}' goto_node target '{directive.node}' not found"
                    )
                pending[directive.node] = directive.content
                index = order.index(directive.node)
                continue

            result = state.results.get(node.name)
            if result is not None and isinstance(result.error, NonRetryableTransportError):
                state.error = result.error
                logger.error(f"Workflow {workflow.name} stopped at node {node.name}: {result.error}")
                return
            index += 1

    @staticmethod
    def _dependencies_met(node: WorkflowNode, state: _RunState) -> bool:
        for dependency in node.dependencies:
            result = state.results.get(dependency)
            if result is None or result.failure:
                return False
        return True

    @staticmethod
    def _default_input(node: WorkflowNode, state: _RunState) -> Any:
        if not node.dependencies:
            return state.prompt
        if len(node.dependencies) == 1:
            return state.results[node.dependencies[0]].content
        return "\n\n".join(
            f"[{dependency}]\n{state.results[dependency].content}"
            for dependency in node.dependencies
        )

    async def _run_node(
        self, workflow: Workflow, node: WorkflowNode, state: _RunState, override: Any
    ) -> Optional[Directive]:
        started = time.monotonic()
        emit(
            Events.NODE_START,
            node=node.name,
            agent=node.lead,
            agent_less=node.agent_less,
            agents=node.agent_names,
            dependencies=list(node.dependencies),
        )

        def finish(result: Optional[ExecutionResult], **fields: Any) -> None:
            duration = time.monotonic() - started
            if result is not None:
                result.duration = result.duration or duration
                state.record(node.name, result)
            emit(
                Events.NODE_STOP,
                node=node.name,
                agent=node.lead,
                agent_less=node.agent_less,
                agents=node.agent_names,
                dependencies=list(node.dependencies),
                success=result.success if result is not None else True,
                duration=duration,
                **fields,
            )

        content = self._default_input(node, state) if override is _NO_OVERRIDE else override
        try:
            directive: Directive = Continue(content)
            if node.input_transform is not None:
                context = NodeContext.for_input(
                    node.name,
                    state.prompt,
                    state.results,
                    node.dependencies,
                    state.latest(node.dependencies),
                    content,
                )
                value = await _call_transform(node.input_transform, context)
                directive = directive_from_value(value, node.name)

            if isinstance(directive, Skip):
                finish(
                    ExecutionResult(content=directive.content, agent=node.lead, skipped=True),
                    skipped=True,
                )
                return None
            if isinstance(directive, Halt):
                result = ExecutionResult(
                    content=directive.content, agent=node.lead, metadata={"halted": True}
                )
                state.halted = result
                finish(result, halted=True, skipped=True)
                return directive
            if isinstance(directive, Goto):
                finish(None, goto=directive.node, skipped=True)
                return directive

            if node.agent_less:
                result = ExecutionResult(content=directive.content)
            else:
                result = await workflow.run_node(node, directive.content)

            if node.output_transform is not None:
                context = NodeContext.for_output(
                    node.name, state.prompt, state.results, node.dependencies, result
                )
                value = await _call_transform(node.output_transform, context)
                outcome = directive_from_value(value, node.name)
                result = dataclasses.replace(
                    result,
                    content=outcome.content,
                    metadata={**result.metadata, "raw_content": result.content},
                )
                if isinstance(outcome, Halt):
                    result.metadata["halted"] = True
                    state.halted = result
                    finish(result, halted=True)
                    return outcome
                if isinstance(outcome, Goto):
                    finish(result, goto=outcome.node)
                    return outcome
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Node {node.name} failed: {e}")
            result = ExecutionResult(agent=node.lead, error=e)

        finish(result, skipped=False)
        return None

    @staticmethod
    def _final_result(state: _RunState) -> ExecutionResult:
        if state.halted is not None:
            final = dataclasses.replace(state.halted, logs=[])
        elif state.completed:
            last = state.completed[-1]
            final = dataclasses.replace(state.results[last], logs=[])
            final.metadata = {**final.metadata, "node": last}
        else:
            final = ExecutionResult()

        failed = [name for name in state.completed if state.results[name].failure]
        if failed:
            final.metadata = {**final.metadata, "failed_nodes": failed}
        if state.error is not None:
            final.error = state.error
            if isinstance(state.error, ExecutionTimeoutError):
                final.metadata = {**final.metadata, "timeout": True}
        elif final.error is None and failed:
            final.error = state.results[failed[0]].error
        if state.not_run:
            final.metadata = {**final.metadata, "not_run": list(state.not_run)}
        return final


__all__ = ["WorkflowScheduler", "WorkflowRun"]
