from __future__ import annotations

import json
from typing import Any

from alf.config import settings
from alf.models.events import EventType, StreamEvent


def _clip(value: Any, budget: int | None) -> str:
    limit = settings.tool_output_char_budget if budget is None else budget
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text[: max(limit, 0)]


def status(message: str, **kwargs: Any) -> StreamEvent:
    return StreamEvent(event=EventType.STATUS, data={"message": message, **kwargs})


def stage(name: str, **kwargs: Any) -> StreamEvent:
    return status("stage", stage=name, **kwargs)


def agent_switch(name: str) -> StreamEvent:
    return status("agent", name=name)


def text(delta: str) -> StreamEvent:
    return StreamEvent(event=EventType.TEXT, data={"delta": delta})


def tool_call(name: str, args: Any = None, *, budget: int | None = None) -> StreamEvent:
    data: dict[str, Any] = {"phase": "call", "name": name}
    if args is not None:
        data["args"] = _clip(args, budget)
    return StreamEvent(event=EventType.TOOL, data=data)


def tool_output(name: str, output: Any = None, *, budget: int | None = None) -> StreamEvent:
    data: dict[str, Any] = {"phase": "output", "name": name}
    if output is not None:
        data["output"] = _clip(output, budget)
    return StreamEvent(event=EventType.TOOL, data=data)


def error(message: str, stage: str | None = None) -> StreamEvent:
    data: dict[str, Any] = {"message": message}
    if stage:
        data["stage"] = stage
    return StreamEvent(event=EventType.ERROR, data=data)


def done(**stats: Any) -> StreamEvent:
    return StreamEvent(event=EventType.DONE, data=dict(stats))
