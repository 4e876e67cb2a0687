"""Control directives returned by node transforms.

A transform returns one of:
- Continue(content): run normally with content
- Skip(content): bypass the node body; content becomes its result
- Halt(content): stop the workflow; content is the final output
- Goto(node, content): jump to node with content as its input

Plain values are treated as Continue. Dicts using the control keys
"skip_execution", "halt_workflow", or "goto_node" (plus "content") are
accepted as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from kestrel_swarm.core.errors import ConfigurationError


@dataclass(frozen=True)
class Continue:
    content: Any


@dataclass(frozen=True)
class Skip:
    content: Any


@dataclass(frozen=True)
class Halt:
    content: Any


@dataclass(frozen=True)
class Goto:
    node: str
    content: Any


Directive = Union[Continue, Skip, Halt, Goto]

_DIRECTIVE_NAMES = {Skip: "skip_execution", Halt: "halt_workflow", Goto: "goto_node"}


def require_content(directive_name: str, node: str, content: Any) -> None:
    """Raise if a control directive carries no content.

    Raises:
        ConfigurationError: Naming the directive and the node.
    """
    if content is None:
        raise ConfigurationError(f"{directive_name} requires content (node '{node}')")


def _from_mapping(value: Mapping[str, Any], node: str) -> Directive:
    content = value.get("content")
    if value.get("skip_execution"):
        require_content("skip_execution", node, content)
        return Skip(content)
    if value.get("halt_workflow"):
        require_content("halt_workflow", node, content)
        return Halt(content)
    target = value.get("goto_node")
    require_content("goto_node", node, content)
    return Goto(str(target), content)


def is_control_mapping(value: Any) -> bool:
    return isinstance(value, Mapping) and any(
        value.get(key) for key in ("skip_execution", "halt_workflow", "goto_node")
    )


def directive_from_value(value: Any, node: str) -> Directive:
    """Interpret a transform's return value for node.

    Raises:
        ConfigurationError: If a directive has no content.
    """
    if isinstance(value, Continue):
        return value
    if isinstance(value, (Skip, Halt, Goto)):
        require_content(_DIRECTIVE_NAMES[type(value)], node, value.content)
        return value
    if is_control_mapping(value):
        return _from_mapping(value, node)
    return Continue(value)


__all__ = [
    "Continue",
    "Skip",
    "Halt",
    "Goto",
    "Directive",
    "directive_from_value",
    "is_control_mapping",
    "require_content",
]
