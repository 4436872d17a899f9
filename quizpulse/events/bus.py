"""
Event Transport Module

The transport carries lifecycle events from the publisher to the live
monitors. Delivery is best effort: nothing is retried, and an event sent
while nobody listens to its assessment is simply gone.

InMemoryEventBus is the in-process transport. Subscribers are grouped per
assessment and each subscription owns a bounded queue, so a slow consumer
loses its own events without holding up anyone else.
"""

import abc
import asyncio
import threading
import uuid
from typing import Dict, Optional, Set

from quizpulse.common.logger import app_logger
from quizpulse.common.metrics import get_metrics_service
from quizpulse.config import settings
from quizpulse.events.models import LifecycleEvent

# Module logger
logger = app_logger.getChild("events.bus")


class EventSubscription(abc.ABC):
    """
    A stream of events for one assessment.

    Iterate with ``async for``; iteration ends once the subscription is
    closed.
    """

    assessment_id: str

    @abc.abstractmethod
    async def get(self) -> Optional[LifecycleEvent]:
        """
        Wait for the next event.

        Returns:
            The next event, or None once the subscription is closed
        """
        pass

    @abc.abstractmethod
    def close(self) -> None:
        """Stop receiving events. Closing twice is a no-op."""
        pass

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        pass

    def __aiter__(self):
        return self

    async def __anext__(self) -> LifecycleEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventTransport(abc.ABC):
    """Contract for moving lifecycle events to their subscribers."""

    @abc.abstractmethod
    async def send(self, event: LifecycleEvent) -> None:
        """
        Deliver an event to the subscribers of its assessment.

        Raises:
            PublishError: If the transport cannot accept the event
        """
        pass

    @abc.abstractmethod
    def subscribe(self, assessment_id: str) -> EventSubscription:
        """
        Subscribe to the events of one assessment.

        Args:
            assessment_id: The assessment to listen to

        Returns:
            A new subscription
        """
        pass


# Queue item that wakes a waiting consumer when its subscription closes
_CLOSED = object()


class QueueSubscription(EventSubscription):
    """Subscription backed by a bounded asyncio queue."""

    def __init__(self, bus: "InMemoryEventBus", assessment_id: str, maxsize: int):
        self.subscription_id = str(uuid.uuid4())
        self.assessment_id = assessment_id
        self._bus = bus
        self._maxsize = maxsize
        self._queue: Optional[asyncio.Queue] = None
        self._closed = False

    @property
    def queue(self) -> asyncio.Queue:
        # Created lazily so the queue belongs to the loop that consumes it
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._maxsize)
        return self._queue

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, event: LifecycleEvent) -> bool:
        """
        Enqueue an event without waiting.

        Returns:
            False if the subscription is closed or its queue is full
        """
        if self._closed:
            return False
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            logger.warning(
                f"Subscription {self.subscription_id} for assessment {self.assessment_id} "
                f"is full, dropping {event.event_type} event {event.event_id}"
            )
            get_metrics_service().counter("events.dropped", labels={"reason": "queue_full"})
            return False

    async def get(self) -> Optional[LifecycleEvent]:
        if self._closed and (self._queue is None or self._queue.empty()):
            return None
        item = await self.queue.get()
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.unsubscribe(self)
        if self._queue is not None:
            # Discard anything pending and wake the consumer
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)


class InMemoryEventBus(EventTransport):
    """
    In-process publish/subscribe transport.

    Attributes:
        queue_size: Capacity of each subscription's queue
    """

    def __init__(self, queue_size: Optional[int] = None):
        """
        Initialize the bus.

        Args:
            queue_size: Per-subscription queue capacity, defaults to EVENT_QUEUE_SIZE
        """
        self.queue_size = queue_size if queue_size is not None else settings.EVENT_QUEUE_SIZE
        self._groups: Dict[str, Set[QueueSubscription]] = {}
        self._lock = threading.RLock()

    def subscribe(self, assessment_id: str) -> QueueSubscription:
        subscription = QueueSubscription(self, str(assessment_id), self.queue_size)
        with self._lock:
            self._groups.setdefault(subscription.assessment_id, set()).add(subscription)
        logger.debug(
            f"Subscription {subscription.subscription_id} added for assessment {assessment_id}"
        )
        return subscription

    def unsubscribe(self, subscription: QueueSubscription) -> None:
        with self._lock:
            group = self._groups.get(subscription.assessment_id)
            if group is None or subscription not in group:
                return
            group.discard(subscription)

            # Clean up empty groups
            if not group:
                del self._groups[subscription.assessment_id]

        logger.debug(
            f"Subscription {subscription.subscription_id} removed "
            f"for assessment {subscription.assessment_id}"
        )

    def subscriber_count(self, assessment_id: str) -> int:
        with self._lock:
            return len(self._groups.get(str(assessment_id), ()))

    async def send(self, event: LifecycleEvent) -> None:
        with self._lock:
            subscribers = list(self._groups.get(event.assessment_id, ()))

        if not subscribers:
            logger.debug(
                f"No subscribers for assessment {event.assessment_id}, "
                f"{event.event_type} event {event.event_id} not delivered"
            )
            return

        for subscription in subscribers:
            subscription.offer(event)
