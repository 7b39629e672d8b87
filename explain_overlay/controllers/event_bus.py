"""
EventBus Module

Asynchronous publish/subscribe used to decouple the capture engine from the
presentation layer. Capture, overlay and shortcut changes are announced here;
the overlay window and any settings surface subscribe to what they need.
"""

import asyncio
import inspect
import logging
import time
import traceback
import weakref
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass
class EventData:
    """Container for event information."""
    event_type: str
    data: Any = None
    timestamp: float = field(default_factory=time.time)
    source: Optional[str] = None


@dataclass
class EventSubscription:
    """Represents an event subscription."""
    subscription_id: str
    event_type: str
    handler: Callable
    priority: int = 0
    once: bool = False
    weak_ref: bool = False


class EventBusError(Exception):
    """Base exception for EventBus related errors."""
    pass


class EventBus:
    """
    Asynchronous event distribution system.

    Handlers are called in priority order (highest first). Both coroutine
    functions and plain callables are accepted. A failing handler is logged
    and reported through "error.occurred" without stopping the others.
    """

    def __init__(self, max_queue_size: int = 1000):
        """
        Initialize EventBus.

        Args:
            max_queue_size: Maximum number of queued events
        """
        self._subscribers: Dict[str, List[EventSubscription]] = defaultdict(list)
        self._event_queue: deque = deque()
        self._max_queue_size = max_queue_size
        self._processing_queue = False
        self._shutdown_requested = False

        # Event history for debugging (limited size)
        self._event_history: deque = deque(maxlen=100)

        self._lock = asyncio.Lock()

        logger.debug("EventBus initialized with max_queue_size=%d", max_queue_size)

    async def subscribe(
        self,
        event_type: str,
        handler: Callable,
        priority: int = 0,
        once: bool = False,
        weak_ref: bool = False
    ) -> str:
        """
        Subscribe to an event type.

        Args:
            event_type: Type of event to subscribe to
            handler: Callable receiving an EventData
            priority: Handler priority (higher = called first)
            once: If True, unsubscribe after first call
            weak_ref: If True, hold the handler through a weak reference

        Returns:
            Subscription ID for later unsubscription

        Raises:
            EventBusError: If handler is not callable
        """
        if not callable(handler):
            raise EventBusError(f"Handler must be callable, got {type(handler)}")

        stored: Callable = handler
        if weak_ref:
            try:
                if inspect.ismethod(handler):
                    stored = weakref.WeakMethod(handler)
                else:
                    stored = weakref.ref(handler)
            except TypeError:
                # Builtins and some callables cannot be weakly referenced
                weak_ref = False

        subscription = EventSubscription(
            subscription_id=str(uuid4()),
            event_type=event_type,
            handler=stored,
            priority=priority,
            once=once,
            weak_ref=weak_ref
        )

        async with self._lock:
            subscriptions = self._subscribers[event_type]
            subscriptions.append(subscription)
            subscriptions.sort(key=lambda s: s.priority, reverse=True)

        logger.debug("Subscribed to '%s' with priority %d", event_type, priority)
        return subscription.subscription_id

    async def unsubscribe(self, subscription_id: str) -> bool:
        """
        Unsubscribe from events.

        Args:
            subscription_id: ID returned from subscribe()

        Returns:
            True if subscription was found and removed
        """
        async with self._lock:
            for subscriptions in self._subscribers.values():
                for index, subscription in enumerate(subscriptions):
                    if subscription.subscription_id == subscription_id:
                        del subscriptions[index]
                        return True

        logger.warning("Subscription ID not found: %s", subscription_id)
        return False

    async def emit(self, event_type: str, data: Any = None, source: Optional[str] = None) -> None:
        """
        Queue an event for asynchronous delivery.

        Args:
            event_type: Type of event to emit
            data: Event payload
            source: Source identifier for debugging
        """
        if self._shutdown_requested:
            logger.debug("Ignoring event emission during shutdown: %s", event_type)
            return

        if len(self._event_queue) >= self._max_queue_size:
            logger.warning("Event queue overflow, dropping event: %s", event_type)
            return

        self._event_queue.append(EventData(event_type=event_type, data=data, source=source))

        if not self._processing_queue:
            asyncio.create_task(self._process_event_queue())

        logger.debug("Emitted event: %s", event_type)

    async def emit_and_wait(
        self,
        event_type: str,
        data: Any = None,
        source: Optional[str] = None,
        timeout: float = 5.0
    ) -> List[Any]:
        """
        Emit an event and wait for all handlers to complete.

        Returns:
            List of return values from handlers

        Raises:
            asyncio.TimeoutError: If handlers don't complete within timeout
        """
        event_data = EventData(event_type=event_type, data=data, source=source)
        return await asyncio.wait_for(self._dispatch(event_data), timeout=timeout)

    async def _process_event_queue(self) -> None:
        """Drain queued events in order."""
        if self._processing_queue:
            return

        self._processing_queue = True
        try:
            while self._event_queue and not self._shutdown_requested:
                event_data = self._event_queue.popleft()
                await self._dispatch(event_data)
                self._event_history.append(event_data)
                await asyncio.sleep(0)
        except Exception as e:
            logger.error("Error processing event queue: %s", e)
        finally:
            self._processing_queue = False

    async def _dispatch(self, event_data: EventData) -> List[Any]:
        """Call every subscriber of an event and collect return values."""
        results = []
        to_remove = []

        async with self._lock:
            subscriptions = list(self._subscribers.get(event_data.event_type, []))

        for subscription in subscriptions:
            handler = subscription.handler
            if subscription.weak_ref:
                handler = handler()
                if handler is None:
                    to_remove.append(subscription.subscription_id)
                    continue

            try:
                result = handler(event_data)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as e:
                logger.error("Error in event handler for '%s': %s", event_data.event_type, e)
                if event_data.event_type != "error.occurred":
                    await self.emit(
                        "error.occurred",
                        {
                            'error': str(e),
                            'original_event': event_data.event_type,
                            'traceback': traceback.format_exc()
                        },
                        source="EventBus"
                    )

            if subscription.once:
                to_remove.append(subscription.subscription_id)

        for subscription_id in to_remove:
            await self.unsubscribe(subscription_id)

        return results

    async def get_event_history(self, limit: int = 50) -> List[EventData]:
        """Return the most recently delivered events."""
        return list(self._event_history)[-limit:]

    async def shutdown(self, timeout: float = 5.0) -> None:
        """
        Shutdown the event bus, letting queued events drain first.

        Args:
            timeout: Maximum time to wait for queue processing
        """
        deadline = time.time() + timeout
        while self._event_queue and time.time() < deadline:
            await asyncio.sleep(0.05)

        self._shutdown_requested = True

        async with self._lock:
            self._subscribers.clear()
            self._event_queue.clear()
            self._event_history.clear()

        logger.debug("EventBus shutdown complete")

    def is_shutdown(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def __len__(self) -> int:
        """Return number of queued events."""
        return len(self._event_queue)


# Global event bus instance
_global_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the global EventBus instance, creating it on first use."""
    global _global_event_bus
    if _global_event_bus is None:
        _global_event_bus = EventBus()
    return _global_event_bus


def set_event_bus(event_bus: EventBus) -> None:
    """Replace the global EventBus instance."""
    global _global_event_bus
    _global_event_bus = event_bus
