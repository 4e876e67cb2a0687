"""LLMTransport over an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from kestrel_swarm.core.models import LLMResponse, Message, ToolCall, Usage
from kestrel_swarm.llm.transport import ModelConfig

logger = logging.getLogger(__name__)


class HttpTransport:
    """Non-streaming chat completions client.

    HTTP errors are raised as httpx.HTTPStatusError and network failures as
    httpx transport exceptions; classify_error maps both.

    Example:
        transport = HttpTransport("https://api.openai.com/v1", api_key=key)
        response = await transport.send(messages, schemas, ModelConfig(model="gpt-5"))
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 600.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @staticmethod
    def _encode_message(message: Message) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role, "content": message.text}
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        return payload

    def _build_payload(
        self,
        messages: Sequence[Message],
        tool_schemas: List[Dict[str, Any]],
        model_config: ModelConfig,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model_config.model,
            "messages": [self._encode_message(m) for m in messages],
        }
        if tool_schemas:
            payload["tools"] = [{"type": "function", "function": schema} for schema in tool_schemas]
        if model_config.temperature is not None:
            payload["temperature"] = model_config.temperature
        if model_config.max_tokens is not None:
            payload["max_tokens"] = model_config.max_tokens
        return payload

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise ValueError("Response contained no choices")
        message = choices[0].get("message", {})

        tool_calls = []
        for call in message.get("tool_calls") or []:
            function = call.get("function", {})
            raw_args = function.get("arguments") or "{}"
            try:
                arguments = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
            except json.JSONDecodeError:
                logger.warning(f"Unparseable tool arguments for {function.get('name')}: {raw_args}")
                arguments = {"_raw": raw_args}
            tool_calls.append(ToolCall(id=call["id"], name=function["name"], arguments=arguments))

        usage = data.get("usage") or {}
        details = usage.get("prompt_tokens_details") or {}
        return LLMResponse(
            content=message.get("content"),
            tool_calls=tool_calls,
            usage=Usage(
                input=usage.get("prompt_tokens", 0),
                output=usage.get("completion_tokens", 0),
                cached=details.get("cached_tokens", 0),
            ),
            model_id=data.get("model"),
        )

    async def send(
        self,
        messages: Sequence[Message],
        tool_schemas: List[Dict[str, Any]],
        model_config: ModelConfig,
    ) -> LLMResponse:
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, tool_schemas, model_config)

        if self._client is not None:
            response = await self._client.post(url, json=payload, headers=self._headers())
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload, headers=self._headers())

        response.raise_for_status()
        return self._parse_response(response.json())


__all__ = ["HttpTransport"]
