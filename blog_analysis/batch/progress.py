"""Progress reporting: typed events fanned out to caller-supplied sinks."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Protocol

from blog_analysis.models import CostInfo, ProgressEvent, ProgressStatus

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    """Receives every status transition, synchronously."""

    def __call__(self, event: ProgressEvent) -> None: ...


LegacyCallback = Callable[[str, str, "str | None", "CostInfo | None"], None]


class ProgressReporter:
    """Builds :class:`ProgressEvent` values and hands them to each sink.

    Keeps track of which targets already reached a terminal status so a
    second terminal event for the same target is refused.
    """

    def __init__(self, *sinks: ProgressSink):
        self._sinks = [s for s in sinks if s is not None]
        self._terminal: dict[str, str] = {}

    def add_sink(self, sink: ProgressSink) -> None:
        self._sinks.append(sink)

    def emit(
        self,
        target_id: str,
        status: ProgressStatus,
        message: str | None = None,
        cost_info: CostInfo | None = None,
    ) -> ProgressEvent:
        if target_id in self._terminal:
            raise RuntimeError(
                f"Target {target_id} already finished with status {self._terminal[target_id]!r}"
            )
        event = ProgressEvent(
            target_id=target_id, status=status, message=message, cost_info=cost_info,
        )
        if event.is_terminal:
            self._terminal[target_id] = status
        for sink in self._sinks:
            sink(event)
        return event

    def pending(self, target_id: str) -> ProgressEvent:
        return self.emit(target_id, "pending")

    def running(self, target_id: str, message: str) -> ProgressEvent:
        return self.emit(target_id, "running", message)

    @property
    def terminal_statuses(self) -> dict[str, str]:
        return dict(self._terminal)


def callback_sink(callback: LegacyCallback) -> ProgressSink:
    """Adapt a ``(target_id, status, message, cost_info)`` callable to a sink."""

    def sink(event: ProgressEvent) -> None:
        callback(event.target_id, event.status, event.message, event.cost_info)

    return sink


class ProgressStream:
    """Sink that queues events for async consumers (SSE, websockets).

    Iterate with ``async for``; iteration ends after :meth:`close`.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def __call__(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class LoggingSink:
    """Writes every event to a logger."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO):
        self._log = log or logger
        self._level = level

    def __call__(self, event: ProgressEvent) -> None:
        level = logging.WARNING if event.status == "error" else self._level
        self._log.log(
            level, "%s: %s%s",
            event.target_id, event.status,
            f" ({event.message})" if event.message else "",
        )
