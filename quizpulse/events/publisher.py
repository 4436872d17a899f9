"""
Event Publisher

Fire-and-forget publication of lifecycle events. ``publish`` returns
immediately; delivery runs as a separate asyncio task and its failures are
logged and counted, never raised to the caller. There is no retry and no
ordering guarantee between events.
"""

import abc
import asyncio
from typing import Iterable, Optional, Set

from quizpulse.common.logger import app_logger
from quizpulse.common.metrics import get_metrics_service
from quizpulse.events.bus import EventTransport
from quizpulse.events.models import LifecycleEvent
from quizpulse.events.sinks import EventSink, get_configured_sinks

# Module logger
logger = app_logger.getChild("events.publisher")


class EventPublisher(abc.ABC):
    """Contract for announcing lifecycle events."""

    @abc.abstractmethod
    def publish(self, event: LifecycleEvent) -> None:
        """
        Schedule delivery of an event without waiting for it.

        Never raises because of a delivery problem.
        """
        pass

    async def flush(self) -> None:
        """Wait for every delivery scheduled so far."""
        pass


class AsyncEventPublisher(EventPublisher):
    """
    Publisher that delivers each event on its own asyncio task.

    Attributes:
        transport: Where events are sent first
        sinks: Extra destinations written after the transport
    """

    def __init__(self, transport: EventTransport, sinks: Optional[Iterable[EventSink]] = None):
        self.transport = transport
        self.sinks = list(sinks or [])
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        """Number of deliveries that have not finished yet."""
        return sum(1 for task in self._pending if not task.done())

    def publish(self, event: LifecycleEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"No running event loop, dropping {event.event_type} event {event.event_id}"
            )
            get_metrics_service().counter("events.dropped", labels={"reason": "no_loop"})
            return

        task = loop.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, event: LifecycleEvent) -> None:
        metrics = get_metrics_service()
        labels = {"event_type": event.event_type}

        try:
            await self.transport.send(event)
            metrics.counter("events.published", labels=labels)
        except Exception as e:
            logger.error(
                f"Failed to publish {event.event_type} event {event.event_id} "
                f"for assessment {event.assessment_id}: {e}",
                exc_info=True
            )
            metrics.counter("events.publish_failures", labels=labels)

        for sink in self.sinks:
            try:
                await sink.write(event)
            except Exception as e:
                logger.error(
                    f"Event sink {type(sink).__name__} failed for "
                    f"{event.event_type} event {event.event_id}: {e}",
                    exc_info=True
                )
                metrics.counter("events.publish_failures", labels={**labels, "sink": type(sink).__name__})


def create_event_publisher(
    transport: EventTransport,
    extra_sinks: Optional[Iterable[EventSink]] = None
) -> AsyncEventPublisher:
    """
    Build a publisher with the sinks enabled in the settings.

    Args:
        transport: The event transport
        extra_sinks: Additional sinks, written after the configured ones

    Returns:
        The publisher
    """
    sinks = get_configured_sinks() + list(extra_sinks or [])
    logger.info(f"Event publisher created with {len(sinks)} sink(s)")
    return AsyncEventPublisher(transport, sinks)
