"""Relay a research event stream to an HTTP response.

The relay announces liveness before the first upstream event, forwards events
one at a time, turns upstream exceptions and an expired deadline into a
terminal `error` event, and closes the upstream exactly once on every exit
path (completion, upstream error, or the client going away).
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import AsyncIterator, Awaitable, Callable

from alf.models.events import EventType, StreamEvent
from alf.services import streaming

logger = logging.getLogger(__name__)

DEADLINE_MESSAGE = "Research deadline exceeded"

CloseCallback = Callable[[], Awaitable[None] | None]


class StreamRelay:
    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        *,
        deadline_seconds: float | None = None,
        on_close: CloseCallback | None = None,
    ):
        self._events = events
        self._deadline_seconds = deadline_seconds if deadline_seconds and deadline_seconds > 0 else None
        self._on_close = on_close
        self._closed = False
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release the upstream stream; repeated calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        aclose = getattr(self._events, "aclose", None)
        try:
            if aclose is not None:
                await aclose()
        except Exception as exc:
            logger.warning("Upstream stream raised while closing: %s", exc)
        finally:
            if self._on_close is not None:
                result = self._on_close()
                if inspect.isawaitable(result):
                    await result

    async def _next(self, deadline: float | None) -> StreamEvent:
        if deadline is None:
            return await self._events.__anext__()
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise asyncio.TimeoutError
        return await asyncio.wait_for(self._events.__anext__(), timeout=remaining)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Relayed events: `status started` first, `done` or `error` last."""
        deadline = (
            time.monotonic() + self._deadline_seconds if self._deadline_seconds is not None else None
        )
        try:
            yield streaming.status("started")
            while True:
                try:
                    event = await self._next(deadline)
                except StopAsyncIteration:
                    return
                except asyncio.TimeoutError:
                    yield streaming.error(DEADLINE_MESSAGE)
                    return
                except Exception as exc:
                    logger.error("Upstream research stream failed: %s", exc)
                    yield streaming.error(str(exc) or exc.__class__.__name__)
                    return
                yield event
                if event.is_terminal:
                    return
        finally:
            await self.close()

    async def sse_messages(self) -> AsyncIterator[dict[str, str]]:
        """Messages for sse_starlette's EventSourceResponse."""
        async for event in self.events():
            yield event.to_message()

    async def text_chunks(self) -> AsyncIterator[str]:
        """Raw text deltas only; an error is rendered inline."""
        async for event in self.events():
            if event.event == EventType.TEXT:
                delta = event.data.get("delta", "")
                if delta:
                    yield delta
            elif event.event == EventType.ERROR:
                yield f"[Error: {event.data.get('message', 'unknown error')}]"
