"""Registry of nested delegation graphs (composable swarms)."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Union

from kestrel_swarm.core.errors import ConfigurationError

if TYPE_CHECKING:
    from kestrel_swarm.delegation.graph import DelegationGraph

logger = logging.getLogger(__name__)

SubgraphSource = Union["DelegationGraph", Callable[[], "DelegationGraph"]]


@dataclass
class SubgraphRegistration:
    name: str
    source: SubgraphSource
    keep_context: bool = True


class SubgraphRegistry:
    """Sub-graphs a parent graph can delegate to by name.

    Each sub-graph is built on first use, cached, and given the hierarchical
    id "<parent-id>/<name>". With keep_context=False its sessions are reset
    after every invocation from the parent.

    Example:
        subgraphs = SubgraphRegistry()
        subgraphs.register("code_review", build_review_graph, keep_context=False)
        graph = DelegationGraph(agents, "lead", transport, subgraphs=subgraphs)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registrations: Dict[str, SubgraphRegistration] = {}
        self._instances: Dict[str, "DelegationGraph"] = {}
        self._parent_id: Optional[str] = None

    def bind(self, parent_id: str) -> None:
        """Attach to the parent graph; ids of loaded sub-graphs derive from it."""
        self._parent_id = parent_id
        for name, graph in self._instances.items():
            graph.assign_identity(f"{parent_id}/{name}", parent_id)

    def register(self, name: str, source: SubgraphSource, keep_context: bool = True) -> None:
        """
        Register a sub-graph under name.

        Args:
            name: Delegation target name.
            source: A DelegationGraph, or a zero-argument factory returning one.
            keep_context: Keep the sub-graph's conversations between invocations.

        Raises:
            ConfigurationError: If name is already registered.
        """
        with self._lock:
            if name in self._registrations:
                raise ConfigurationError(f"Sub-graph '{name}' is already registered")
            self._registrations[name] = SubgraphRegistration(name, source, keep_context)

    def registered(self, name: str) -> bool:
        return name in self._registrations

    def names(self) -> List[str]:
        return list(self._registrations)

    def loaded(self) -> Dict[str, "DelegationGraph"]:
        return dict(self._instances)

    def load(self, name: str) -> "DelegationGraph":
        """
        Return the cached sub-graph, building it on first use.

        Raises:
            ConfigurationError: If name is not registered.
        """
        cached = self._instances.get(name)
        if cached is not None:
            return cached

        registration = self._registrations.get(name)
        if registration is None:
            raise ConfigurationError(f"Sub-graph '{name}' is not registered")

        with self._lock:
            if name in self._instances:
                return self._instances[name]
            from kestrel_swarm.delegation.graph import DelegationGraph

            source = registration.source
            graph = source if isinstance(source, DelegationGraph) else source()
            parent_id = self._parent_id or "root"
            graph.assign_identity(f"{parent_id}/{name}", parent_id)
            self._instances[name] = graph

        logger.debug(f"Loaded sub-graph {graph.swarm_id}")
        return graph

    def reset_if_needed(self, name: str) -> None:
        registration = self._registrations.get(name)
        graph = self._instances.get(name)
        if registration is None or graph is None or registration.keep_context:
            return
        graph.reset_context()

    def reset_all_if_needed(self) -> None:
        for name in list(self._instances):
            self.reset_if_needed(name)

    def shutdown_all(self) -> None:
        """Drop every loaded sub-graph; later delegations rebuild them."""
        with self._lock:
            instances = list(self._instances.values())
            self._instances.clear()
        for graph in instances:
            graph.subgraphs.shutdown_all()


__all__ = ["SubgraphRegistry", "SubgraphRegistration", "SubgraphSource"]
