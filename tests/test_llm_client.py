"""Tests for the OpenAI-backed LLM client adapters."""
import sys
import types
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from alf.llm_client import Completion, LLMClient, ToolCall, Usage, get_client


def _chunk(text=None, usage=None):
    choices = [SimpleNamespace(delta=SimpleNamespace(content=text))] if text is not None else []
    return SimpleNamespace(choices=choices, usage=usage)


class FakeRawStream:
    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for chunk in self.chunks:
            yield chunk

    async def close(self):
        self.closed = True


def _openai(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


class TestGetClient:
    def test_get_client_uses_openai_settings(self):
        with patch("alf.llm_client.settings") as mock_settings:
            mock_settings.openai_api_key = "sk-test"
            mock_settings.openai_base_url = "https://gateway.example/v1"

            openai_module = types.ModuleType("openai")
            mock_openai = MagicMock()
            openai_module.AsyncOpenAI = mock_openai

            with patch.dict(sys.modules, {"openai": openai_module}):
                client = get_client()

            mock_openai.assert_called_once_with(
                api_key="sk-test",
                base_url="https://gateway.example/v1",
            )
            assert isinstance(client, LLMClient)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_maps_text_usage_and_tool_calls(self):
        message = SimpleNamespace(
            content=None,
            tool_calls=[
                SimpleNamespace(id="call_1", function=SimpleNamespace(name="search_web", arguments='{"query": "x"}'))
            ],
        )
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=message)],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        )
        create = AsyncMock(return_value=response)
        tools = [{"type": "function", "function": {"name": "search_web"}}]

        completion = await LLMClient(_openai(create)).create(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "hi"}],
            tools=tools,
        )

        assert completion.text == ""
        assert completion.usage.total == 15
        assert completion.tool_calls == [ToolCall(id="call_1", name="search_web", arguments='{"query": "x"}')]
        kwargs = create.await_args.kwargs
        assert kwargs["tools"] == tools
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["temperature"] == 0

    @pytest.mark.asyncio
    async def test_reasoning_models_use_default_temperature(self):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="ok", tool_calls=None))],
            usage=None,
        )
        create = AsyncMock(return_value=response)
        await LLMClient(_openai(create)).create(model="o3-mini", messages=[], temperature=0)
        assert create.await_args.kwargs["temperature"] == 1

    def test_assistant_message_includes_tool_calls(self):
        completion = Completion(text="", usage=Usage(), tool_calls=[ToolCall("c1", "rerank", "{}")])
        message = completion.assistant_message()
        assert message["content"] is None
        assert message["tool_calls"][0]["function"] == {"name": "rerank", "arguments": "{}"}

    def test_build_messages_skips_empty_system(self):
        assert LLMClient.build_messages("", "hi") == [{"role": "user", "content": "hi"}]


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_yields_text_and_records_usage(self):
        raw = FakeRawStream([
            _chunk("Hel"),
            _chunk(""),
            _chunk("lo"),
            _chunk(usage=SimpleNamespace(prompt_tokens=7, completion_tokens=2)),
        ])
        create = AsyncMock(return_value=raw)

        async with LLMClient(_openai(create)).stream(model="m", messages=[], max_tokens=100) as stream:
            parts = [delta async for delta in stream.text_stream]

        assert parts == ["Hel", "lo"]
        assert stream.usage.total == 9
        assert raw.closed
        kwargs = create.await_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["max_tokens"] == 100
