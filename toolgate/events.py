"""In-process notification channel.

Callbacks may be plain functions or coroutine functions. Coroutines are
scheduled on the running event loop instead of being awaited, so a slow
subscriber never holds up the producer. A failing subscriber is logged
and skipped.
"""

import asyncio
import inspect
import logging
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class EventBus:
    """Named-event fan-out with unsubscribe handles."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()

    def on(self, event: str, callback: Callable[..., Any]) -> Unsubscribe:
        """Register a callback for an event. Returns an unsubscribe handle."""
        with self._lock:
            self._handlers[event].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event)
                if handlers and callback in handlers:
                    handlers.remove(callback)

        return unsubscribe

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event, ()))

    def emit(self, event: str, *args: Any) -> int:
        """Deliver an event to every subscriber. Returns how many were called."""
        with self._lock:
            handlers = list(self._handlers.get(event, ()))

        delivered = 0
        for callback in handlers:
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    self._schedule(result)
                delivered += 1
            except Exception as e:
                logger.error(f"Subscriber for '{event}' failed: {e}", exc_info=True)
        return delivered

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Async subscriber dropped: no running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async subscriber failed: {exc}")
