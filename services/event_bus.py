"""In-process event bus that hands listing events to background services."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type, TypeVar

from loguru import logger
from prometheus_client import Counter

EventT = TypeVar("EventT")
EventHandler = Callable[[EventT], Awaitable[None]]

EVENTS_DISPATCHED = Counter(
    "store_events_dispatched_total",
    "Count of events handed to subscribers",
    labelnames=["event_type"],
)


class EventBus:
    """Asynchronous event bus with a single dispatcher task."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._subscribers: Dict[Type[object], List[EventHandler]] = defaultdict(list)
        self._dispatcher: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    def subscribe(self, event_type: Type[EventT], handler: EventHandler[EventT]) -> None:
        """Register an asynchronous handler for the given event type."""

        self._subscribers[event_type].append(handler)  # type: ignore[arg-type]

    async def start(self) -> None:
        if self.running:
            return
        self._dispatcher = asyncio.create_task(self._dispatch_loop())

    async def stop(self) -> None:
        """Deliver queued events, then stop the dispatcher."""

        if self._dispatcher is None:
            return

        await self._queue.put(None)
        try:
            await self._dispatcher
        except asyncio.CancelledError:
            pass
        finally:
            self._dispatcher = None

    async def publish(self, event: object) -> None:
        """Queue an event; without a running dispatcher it is delivered inline."""

        if not self.running:
            await self._deliver(event)
            return
        await self._queue.put(event)

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""

        if self.running:
            await self._queue.join()

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                self._queue.task_done()
                break
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: object) -> None:
        event_type = type(event).__name__
        handlers = list(self._subscribers.get(type(event), []))
        if not handlers:
            logger.debug("No subscribers for event", event_type=event_type)
            return

        EVENTS_DISPATCHED.labels(event_type=event_type).inc()
        await asyncio.gather(*(self._invoke_handler(handler, event) for handler in handlers))

    async def _invoke_handler(self, handler: EventHandler, event: object) -> None:
        try:
            await handler(event)  # type: ignore[arg-type]
        except Exception:
            logger.exception(
                "Event handler failed",
                handler=getattr(handler, "__name__", repr(handler)),
                event_type=type(event).__name__,
            )
