"""Per-scope delegation call stack used for cycle detection."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from types import MappingProxyType
from typing import Iterator, Mapping, Tuple

from kestrel_swarm.core.errors import CircularDependencyError

# scope id -> chain of active agent names; replaced, never mutated
_chains: ContextVar[Mapping[str, Tuple[str, ...]]] = ContextVar(
    "kestrel_swarm_call_chains", default=MappingProxyType({})
)


class CallStack:
    """Agent names active on the delegation chain of one graph scope.

    Chains are stored in task-local context, so awaited callees see their
    caller's chain while sibling tasks started in parallel each get their own
    copy. Two CallStack objects never share entries, which is what keeps a
    nested sub-graph's names from colliding with its parent's.
    """

    def __init__(self, scope_id: str):
        self.scope_id = scope_id

    @property
    def chain(self) -> Tuple[str, ...]:
        return _chains.get().get(self.scope_id, ())

    def __contains__(self, name: object) -> bool:
        return name in self.chain

    def push(self, name: str) -> Token:
        """Add name to the chain.

        Raises:
            CircularDependencyError: If name is already on the chain.
        """
        chain = self.chain
        if name in chain:
            raise CircularDependencyError([*chain, name])
        chains = dict(_chains.get())
        chains[self.scope_id] = chain + (name,)
        return _chains.set(MappingProxyType(chains))

    def pop(self, token: Token) -> None:
        _chains.reset(token)

    @contextmanager
    def frame(self, name: str) -> Iterator[None]:
        token = self.push(name)
        try:
            yield
        finally:
            self.pop(token)


__all__ = ["CallStack"]
