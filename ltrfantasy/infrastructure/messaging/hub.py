"""Publish/subscribe registry for live data updates.

Subscribers are plain callables keyed by event type. Registering the same
callback twice has no effect, a failing subscriber never stops the others,
and coroutine subscribers are scheduled on the running event loop (dropped
with a warning when no loop is running).
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Set, Union

from ltrfantasy.domain.events.live_events import EventType, payload_type_for

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Any]
EventName = Union[EventType, str]


def _event_key(event_type: EventName) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


class NotificationHub:
    """In-process event fan-out with set semantics per event type."""

    def __init__(self):
        # dict keys keep insertion order, so subscribers run in registration order
        self._subscribers: Dict[str, Dict[Subscriber, None]] = {}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event_type: EventName, callback: Subscriber) -> Callable[[], None]:
        """Registers ``callback`` for ``event_type``.

        Returns:
            A function that removes this subscription when called.
        """
        if not callable(callback):
            raise TypeError("callback must be callable")
        key = _event_key(event_type)
        self._subscribers.setdefault(key, {})[callback] = None
        logger.debug(f"Subscribed {getattr(callback, '__name__', callback)!r} to '{key}'")

        def unsubscribe() -> None:
            self.unsubscribe(key, callback)

        return unsubscribe

    def unsubscribe(self, event_type: EventName, callback: Subscriber) -> bool:
        key = _event_key(event_type)
        callbacks = self._subscribers.get(key)
        if not callbacks or callback not in callbacks:
            return False
        del callbacks[callback]
        if not callbacks:
            del self._subscribers[key]
        return True

    def subscriber_count(self, event_type: EventName) -> int:
        return len(self._subscribers.get(_event_key(event_type), {}))

    def notify(self, event_type: EventName, payload: Any) -> int:
        """Delivers ``payload`` to every subscriber of ``event_type``.

        Exceptions raised by a subscriber are logged and swallowed.

        Returns:
            The number of subscribers that accepted the payload.
        """
        key = _event_key(event_type)
        expected = payload_type_for(key)
        if expected is not None and not isinstance(payload, expected):
            logger.warning(
                f"Payload for '{key}' is {type(payload).__name__}, expected {expected.__name__}"
            )

        delivered = 0
        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self._subscribers.get(key, {})):
            try:
                result = callback(payload)
                if inspect.isawaitable(result) and not self._schedule(key, result):
                    continue
                delivered += 1
            except Exception as e:
                logger.error(f"Error in '{key}' subscriber {getattr(callback, '__name__', callback)!r}: {e}", exc_info=True)
        return delivered

    def _schedule(self, key: str, awaitable: Any) -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop for async '{key}' subscriber, dropping the update")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return False
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_task_done(key, t))
        return True

    def _on_task_done(self, key: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in async '{key}' subscriber: {error}")

    async def drain(self) -> None:
        """Waits for scheduled async subscribers to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
