"""Event bus - EventBusProtocol and InMemoryEventBus."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from mailpipe_sdk.logging import get_logger

from .events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations."""

    async def publish(self, event: Event) -> None:
        """Publish an event.

        Args:
            event: Event to publish
        """
        ...

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event name.

        Args:
            event_name: Event name to subscribe to, "*" for every event
            handler: Async handler function
        """
        ...


class InMemoryEventBus(EventBusProtocol):
    """In-memory event bus implementation.

    Handlers run as background tasks, so a slow subscriber never holds up
    the pipeline level that published the event. Handler errors are logged
    and never reach the publisher. Call drain() to wait for dispatched
    handlers, e.g. before shutdown.
    """

    WILDCARD = "*"

    def __init__(self) -> None:
        """Initialize in-memory event bus."""
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pending: set[asyncio.Task[None]] = set()
        self._logger = get_logger("orchestration.event_bus")

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event name.

        Args:
            event_name: Event name to subscribe to, "*" for every event
            handler: Async handler function
        """
        self._handlers.setdefault(event_name, []).append(handler)

    async def publish(self, event: Event) -> None:
        """Dispatch an event to all subscribed handlers without awaiting them.

        Args:
            event: Event to publish
        """
        handlers = self._handlers.get(event.name, []) + self._handlers.get(self.WILDCARD, [])
        if not handlers:
            return

        self._logger.debug(
            "Publishing %s (run %s) to %d handler(s)",
            event.name,
            event.metadata.run_id,
            len(handlers),
        )

        for handler in handlers:
            task = asyncio.create_task(self._dispatch(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every dispatched handler has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _dispatch(self, handler: EventHandler, event: Event) -> None:
        try:
            await handler(event)
        except Exception as exc:
            self._logger.error(
                "Event handler %r failed for %s: %s",
                handler,
                event.name,
                exc,
                exc_info=True,
            )
