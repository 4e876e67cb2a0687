"""
Agent Registry

Explicitly constructed registry of agent definitions: register once,
reference by name.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from kestrel_swarm.agents.definition import AgentDefinition
from kestrel_swarm.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class AgentRegistry:
    """
    Registry for agent definitions.

    One registry is constructed per process or per test and passed to the
    graphs and workflows that use it; clear() resets it explicitly.
    """

    def __init__(self, definitions: Optional[Iterable[AgentDefinition]] = None):
        self._lock = threading.Lock()
        self._agents: Dict[str, AgentDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: AgentDefinition) -> AgentDefinition:
        """
        Register an agent definition.

        Raises:
            ConfigurationError: If an agent with the same name is registered.
        """
        with self._lock:
            if definition.name in self._agents:
                raise ConfigurationError(f"Agent '{definition.name}' is already registered")
            self._agents[definition.name] = definition
        logger.debug(f"Registered agent: {definition.name}")
        return definition

    def register_many(self, definitions: Iterable[AgentDefinition]) -> None:
        for definition in definitions:
            self.register(definition)

    def get(self, name: str) -> AgentDefinition:
        """
        Get an agent definition by name.

        Raises:
            ConfigurationError: If no agent with that name is registered.
        """
        definition = self._agents.get(name)
        if definition is None:
            known = ", ".join(sorted(self._agents)) or "none"
            raise ConfigurationError(f"Agent '{name}' not found. Registered agents: {known}")
        return definition

    def registered(self, name: str) -> bool:
        return name in self._agents

    def names(self) -> List[str]:
        return list(self._agents)

    def definitions(self) -> List[AgentDefinition]:
        return list(self._agents.values())

    def clear(self) -> None:
        with self._lock:
            self._agents.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)


__all__ = ["AgentRegistry"]
