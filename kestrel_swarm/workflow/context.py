"""NodeContext: what node transforms see."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from kestrel_swarm.core.events import EventRecord
from kestrel_swarm.core.execution import ExecutionResult
from kestrel_swarm.workflow.directives import Goto, Halt, Skip, require_content


class NodeContext:
    """Context passed to input and output transforms.

    In an input transform, `content` is the node's default input and
    `previous_result` is the most recent dependency result. In an output
    transform, `result` is the node's raw result and `content` is its content.

    Example:
        def check_cache(ctx):
            cached = cache.get(ctx.content)
            if cached is not None:
                return ctx.skip_execution(cached)
            return ctx.content
    """

    def __init__(
        self,
        node_name: str,
        original_prompt: str,
        all_results: Dict[str, ExecutionResult],
        dependencies: List[str],
        previous_result: Optional[ExecutionResult] = None,
        content: Any = None,
        result: Optional[ExecutionResult] = None,
    ):
        self.node_name = node_name
        self.original_prompt = original_prompt
        self.all_results = dict(all_results)
        self.dependencies = list(dependencies)
        self.previous_result = previous_result
        self.result = result
        self._content = content

    @classmethod
    def for_input(
        cls,
        node_name: str,
        original_prompt: str,
        all_results: Dict[str, ExecutionResult],
        dependencies: List[str],
        previous_result: Optional[ExecutionResult],
        content: Any,
    ) -> "NodeContext":
        return cls(
            node_name,
            original_prompt,
            all_results,
            dependencies,
            previous_result=previous_result,
            content=content,
        )

    @classmethod
    def for_output(
        cls,
        node_name: str,
        original_prompt: str,
        all_results: Dict[str, ExecutionResult],
        dependencies: List[str],
        result: ExecutionResult,
    ) -> "NodeContext":
        return cls(node_name, original_prompt, all_results, dependencies, result=result)

    @property
    def stage(self) -> str:
        return "output" if self.result is not None else "input"

    @property
    def _subject(self) -> Optional[ExecutionResult]:
        return self.result if self.result is not None else self.previous_result

    @property
    def content(self) -> Any:
        if self.result is not None:
            return self.result.content
        return self._content

    @property
    def agent(self) -> Optional[str]:
        subject = self._subject
        return subject.agent if subject else None

    @property
    def logs(self) -> List[EventRecord]:
        subject = self._subject
        return subject.logs if subject else []

    @property
    def duration(self) -> Optional[float]:
        subject = self._subject
        return subject.duration if subject else None

    @property
    def error(self) -> Optional[BaseException]:
        subject = self._subject
        return subject.error if subject else None

    @property
    def success(self) -> Optional[bool]:
        subject = self._subject
        return subject.success if subject else None

    # Control flow helpers; each raises when content is None

    def skip_execution(self, content: Any) -> Skip:
        require_content("skip_execution", self.node_name, content)
        return Skip(content)

    def halt_workflow(self, content: Any) -> Halt:
        require_content("halt_workflow", self.node_name, content)
        return Halt(content)

    def goto_node(self, node: str, content: Any) -> Goto:
        require_content("goto_node", self.node_name, content)
        return Goto(node, content)

    def __repr__(self) -> str:
        return f"NodeContext({self.node_name!r}, stage={self.stage!r})"


__all__ = ["NodeContext"]
