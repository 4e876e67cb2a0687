"""LLM transport interface consumed by agent sessions."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict

from kestrel_swarm.core.models import LLMResponse, Message


class ModelConfig(BaseModel):
    """Model selection forwarded to the transport with every call"""

    model_config = ConfigDict(frozen=True)

    model: str
    provider: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@runtime_checkable
class LLMTransport(Protocol):
    """Sends a conversation to a model and returns its response.

    Implementations raise on failure; AgentSession classifies the exception
    as retryable or terminal.
    """

    async def send(
        self,
        messages: Sequence[Message],
        tool_schemas: List[Dict[str, Any]],
        model_config: ModelConfig,
    ) -> LLMResponse:
        ...


__all__ = ["LLMTransport", "ModelConfig"]
