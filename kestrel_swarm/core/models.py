"""Conversation models shared by agents, transports, and snapshots.

Defines:
- ToolCall: a tool invocation requested by the model
- MessageContent: structured content with attachments
- Message: one entry in an agent's conversation history
- Usage: token counts reported by the transport for one response
- LLMResponse: what an LLMTransport returns
- ModelPricing: per-million-token prices used for cost accounting
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    """Tool invocation requested by the model"""

    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class MessageContent(BaseModel):
    """Message content with attachment payloads (images, documents, ...)"""

    text: str = ""
    attachments: List[Dict[str, Any]] = Field(default_factory=list)

    def __str__(self) -> str:
        return self.text


class Message(BaseModel):
    """Single conversation entry"""

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: Union[str, MessageContent, None] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    cached_tokens: Optional[int] = None
    cache_creation_tokens: Optional[int] = None
    model_id: Optional[str] = None

    @property
    def text(self) -> str:
        """Content as plain text."""
        if self.content is None:
            return ""
        return str(self.content)

    def to_record(self) -> Dict[str, Any]:
        """Serialize for snapshots, dropping unset fields."""
        record = self.model_dump(mode="json", exclude_none=True)
        if not self.tool_calls:
            record.pop("tool_calls", None)
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        return cls.model_validate(record)


class Usage(BaseModel):
    """Token usage for one LLM response"""

    input: int = 0
    output: int = 0
    cached: int = 0
    cache_creation: int = 0


class LLMResponse(BaseModel):
    """Response returned by an LLMTransport"""

    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    model_id: Optional[str] = None


class ModelPricing(BaseModel):
    """Prices in dollars per million tokens"""

    model_config = ConfigDict(frozen=True)

    input_per_million: float = Field(default=0.0, ge=0)
    output_per_million: float = Field(default=0.0, ge=0)

    def input_cost(self, tokens: int) -> float:
        return tokens * self.input_per_million / 1_000_000

    def output_cost(self, tokens: int) -> float:
        return tokens * self.output_per_million / 1_000_000


__all__ = [
    "Role",
    "ToolCall",
    "MessageContent",
    "Message",
    "Usage",
    "LLMResponse",
    "ModelPricing",
]
