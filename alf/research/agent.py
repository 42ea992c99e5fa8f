from __future__ import annotations

import json
import time
from typing import Any, AsyncGenerator

from alf.llm_client import LLMClient, Usage
from alf.models.events import StreamEvent
from alf.services import logger as log_service
from alf.services import streaming
from alf.services.prompt_store import render_prompt
from alf.tools.registry import ToolRegistry


class ResearchAgent:
    """Tool-calling research agent bounded by a step budget.

    `run` is an async generator yielding StreamEvents: tool call/output events
    while the model works, then the final answer as a single `text` event.
    """

    name: str = "researcher"

    def __init__(
        self,
        llm: LLMClient,
        registry: ToolRegistry,
        *,
        model: str,
        system_prompt: str,
        step_budget: int = 8,
        max_tokens: int | None = None,
    ):
        self.llm = llm
        self.registry = registry
        self.model = model
        self.system_prompt = system_prompt
        self.step_budget = max(int(step_budget), 1)
        self.max_tokens = max_tokens
        self.usage = Usage()
        self.steps_taken = 0

    async def _create(self, messages: list[dict[str, Any]], *, with_tools: bool):
        t0 = time.monotonic()
        completion = await self.llm.create(
            model=self.model,
            messages=messages,
            tools=self.registry.to_openai_tools() if with_tools else None,
            max_tokens=self.max_tokens,
        )
        self.usage.input_tokens += completion.usage.input_tokens
        self.usage.output_tokens += completion.usage.output_tokens
        log_service.log_llm_call(
            model=self.model,
            caller=f"agent.{self.name}",
            input_tokens=completion.usage.input_tokens,
            output_tokens=completion.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return completion

    async def run(self, user_message: str) -> AsyncGenerator[StreamEvent, None]:
        messages: list[dict[str, Any]] = self.llm.build_messages(self.system_prompt, user_message)
        yield streaming.agent_switch(self.name)

        for _ in range(self.step_budget):
            self.steps_taken += 1
            completion = await self._create(messages, with_tools=True)

            if not completion.tool_calls:
                if completion.text:
                    yield streaming.text(completion.text)
                return

            messages.append(completion.assistant_message())
            for call in completion.tool_calls:
                yield streaming.tool_call(call.name, call.arguments)
                try:
                    result = await self.registry.call(call.name, call.arguments)
                    content = result if isinstance(result, str) else json.dumps(result, default=str)
                except Exception as e:
                    content = f"ERROR: {e}"
                yield streaming.tool_output(call.name, content)
                messages.append({"role": "tool", "tool_call_id": call.id, "content": content})

        # Budget exhausted: one last turn without tools so the run always ends with an answer.
        messages.append({"role": "user", "content": render_prompt("agent.final_turn_prompt")})
        completion = await self._create(messages, with_tools=False)
        if completion.text:
            yield streaming.text(completion.text)
