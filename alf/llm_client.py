"""OpenAI chat-completions client factory with small completion/stream adapters."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from alf.config import settings


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str


@dataclass
class Completion:
    text: str
    usage: Usage
    tool_calls: list[ToolCall] = field(default_factory=list)

    def assistant_message(self) -> dict[str, Any]:
        """Message dict to append to the conversation before sending tool results."""
        message: dict[str, Any] = {"role": "assistant", "content": self.text or None}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments},
                }
                for tc in self.tool_calls
            ]
        return message


def _usage_from(raw: Any) -> Usage:
    return Usage(
        input_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        output_tokens=getattr(raw, "completion_tokens", 0) or 0,
    )


class ChatStream:
    """Async context manager over a streaming chat completion."""

    def __init__(self, stream_coro: Any):
        self._stream_coro = stream_coro
        self._stream: Any | None = None
        self.usage = Usage()

    async def __aenter__(self) -> "ChatStream":
        self._stream = await self._stream_coro
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stream is not None:
            await self._stream.close()

    async def _iter_text(self) -> AsyncIterator[str]:
        if self._stream is None:
            return
        async for chunk in self._stream:
            usage = getattr(chunk, "usage", None)
            if usage:
                self.usage = _usage_from(usage)

            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            if not delta:
                continue
            text = getattr(delta, "content", None)
            if text:
                yield text

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._iter_text()


class LLMClient:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _temperature_for_model(model: str, requested: float | None) -> float:
        # Reasoning-style models reject any temperature but the default.
        lowered = (model or "").lower()
        if lowered.startswith(("o1", "o3", "o4")) or "gpt-5" in lowered:
            return 1
        return 0 if requested is None else requested

    @staticmethod
    def build_messages(system: str | None, user: str) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})
        return messages

    async def create(
        self,
        *,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Completion:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self._temperature_for_model(model, temperature),
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self._client.chat.completions.create(**kwargs)
        choice = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=getattr(tc.function, "arguments", "") or "{}",
            )
            for tc in (getattr(choice, "tool_calls", None) or [])
        ]
        return Completion(
            text=getattr(choice, "content", None) or "",
            usage=_usage_from(getattr(response, "usage", None)),
            tool_calls=tool_calls,
        )

    def stream(
        self,
        *,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> ChatStream:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        return ChatStream(self._client.chat.completions.create(**kwargs))


def get_client() -> LLMClient:
    """Build an LLM client over the OpenAI SDK."""
    from openai import AsyncOpenAI

    base_url = settings.openai_base_url.strip() or "https://api.openai.com/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=base_url,
    )
    return LLMClient(openai_client)


_client: LLMClient | None = None


def client() -> LLMClient:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
