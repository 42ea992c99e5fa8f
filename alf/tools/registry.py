"""Per-request tool registry for tool-calling agents.

A registry is built for each request and handed to the agent that uses it;
there is no module-level tool table.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel, ValidationError


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    input_model: type[BaseModel]
    execute: Callable[[BaseModel], Awaitable[Any]]

    def to_openai(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


class ToolArgumentsError(ValueError):
    pass


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        # OpenAI function names cannot contain dots.
        if "." in tool.name:
            alias = tool.name.replace(".", "_")
            self._tools.setdefault(alias, replace(tool, name=alias))

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def to_openai_tools(self) -> list[dict[str, Any]]:
        return [t.to_openai() for t in self._tools.values() if "." not in t.name]

    async def call(self, name: str, raw_args: str | dict[str, Any] | None) -> Any:
        tool = self.get(name)
        if tool is None:
            raise KeyError(f"Unknown tool: {name}")
        if isinstance(raw_args, str):
            try:
                raw_args = json.loads(raw_args or "{}")
            except json.JSONDecodeError as exc:
                raise ToolArgumentsError(f"Arguments for {name} are not valid JSON") from exc
        try:
            args = tool.input_model.model_validate(raw_args or {})
        except ValidationError as exc:
            raise ToolArgumentsError(f"Invalid arguments for {name}: {exc}") from exc
        return await tool.execute(args)
