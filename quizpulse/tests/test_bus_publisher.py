"""
Tests for the in-process event bus, the publisher and the event sinks.

This module covers:
1. Per-assessment delivery and subscription teardown
2. Bounded queues dropping events when full
3. Fire-and-forget publishing and failure isolation
4. The JSON file event log layout
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from quizpulse.common.exceptions import PublishError
from quizpulse.common.metrics import InMemoryMetricsBackend, LoggingMetricsBackend, set_metrics_backend
from quizpulse.events.bus import InMemoryEventBus
from quizpulse.events.models import QuizStartEvent, QuizSubmitEvent
from quizpulse.events.publisher import AsyncEventPublisher, create_event_publisher
from quizpulse.events.sinks import JsonFileEventSink, LoggingEventSink


@pytest.fixture
def metrics():
    backend = InMemoryMetricsBackend()
    set_metrics_backend(backend)
    yield backend
    set_metrics_backend(LoggingMetricsBackend())


def start_event(assessment_id="a1", student_id="s1", course_id="c1"):
    return QuizStartEvent(assessment_id=assessment_id, student_id=student_id, course_id=course_id)


@pytest.mark.asyncio
async def test_bus_delivers_only_to_matching_assessment():
    bus = InMemoryEventBus()
    sub_a = bus.subscribe("a1")
    sub_b = bus.subscribe("b1")

    event = start_event("a1")
    await bus.send(event)

    assert await asyncio.wait_for(sub_a.get(), timeout=1) is event
    assert sub_b.queue.empty()


@pytest.mark.asyncio
async def test_bus_fans_out_to_every_subscriber():
    bus = InMemoryEventBus()
    first = bus.subscribe("a1")
    second = bus.subscribe("a1")

    await bus.send(start_event("a1"))

    assert first.queue.qsize() == 1
    assert second.queue.qsize() == 1
    assert bus.subscriber_count("a1") == 2


@pytest.mark.asyncio
async def test_send_without_subscribers_is_a_no_op():
    bus = InMemoryEventBus()
    await bus.send(start_event("nobody-listens"))
    assert bus.subscriber_count("nobody-listens") == 0


@pytest.mark.asyncio
async def test_full_queue_drops_events(metrics):
    bus = InMemoryEventBus(queue_size=2)
    subscription = bus.subscribe("a1")

    for _ in range(5):
        await bus.send(start_event("a1"))

    assert subscription.queue.qsize() == 2
    assert metrics.get_counter("events.dropped", {"reason": "queue_full"}) == 3


@pytest.mark.asyncio
async def test_closed_subscription_stops_iteration_and_unsubscribes():
    bus = InMemoryEventBus()
    subscription = bus.subscribe("a1")
    received = []

    async def consume():
        async for event in subscription:
            received.append(event)

    task = asyncio.create_task(consume())
    await bus.send(start_event("a1"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    subscription.close()
    await asyncio.wait_for(task, timeout=1)

    assert len(received) == 1
    assert subscription.closed
    assert bus.subscriber_count("a1") == 0

    # Events after close are not delivered anywhere
    await bus.send(start_event("a1"))
    assert await subscription.get() is None

    # Closing twice is harmless
    subscription.close()


@pytest.mark.asyncio
async def test_publish_returns_before_delivery(metrics):
    transport = MagicMock()
    delivered = asyncio.Event()

    async def slow_send(event):
        await delivered.wait()

    transport.send = slow_send
    publisher = AsyncEventPublisher(transport)

    publisher.publish(start_event())
    assert publisher.pending_count == 1

    delivered.set()
    await publisher.flush()

    assert publisher.pending_count == 0
    assert metrics.get_counter("events.published", {"event_type": "QuizStart"}) == 1


@pytest.mark.asyncio
async def test_publish_failure_is_logged_and_counted(metrics):
    transport = AsyncMock()
    transport.send.side_effect = PublishError("broker unavailable")
    publisher = AsyncEventPublisher(transport)

    publisher.publish(start_event())
    await publisher.flush()

    transport.send.assert_awaited_once()
    assert metrics.get_counter("events.publish_failures", {"event_type": "QuizStart"}) == 1
    assert metrics.get_counter("events.published", {"event_type": "QuizStart"}) == 0


@pytest.mark.asyncio
async def test_failing_sink_does_not_block_other_sinks(metrics):
    transport = AsyncMock()
    broken = AsyncMock()
    broken.write.side_effect = OSError("disk full")
    working = AsyncMock()
    publisher = AsyncEventPublisher(transport, sinks=[broken, working])

    publisher.publish(start_event())
    await publisher.flush()

    working.write.assert_awaited_once()
    assert metrics.get_counter("events.published", {"event_type": "QuizStart"}) == 1


def test_publish_without_running_loop_drops_the_event(metrics):
    transport = AsyncMock()
    publisher = AsyncEventPublisher(transport)

    publisher.publish(start_event())

    transport.send.assert_not_called()
    assert metrics.get_counter("events.dropped", {"reason": "no_loop"}) == 1


@pytest.mark.asyncio
async def test_publisher_delivers_through_the_bus():
    bus = InMemoryEventBus()
    subscription = bus.subscribe("a1")
    publisher = AsyncEventPublisher(bus)

    event = start_event("a1")
    publisher.publish(event)
    await publisher.flush()

    assert await asyncio.wait_for(subscription.get(), timeout=1) is event


@pytest.mark.asyncio
async def test_json_file_sink_layout(tmp_path):
    sink = JsonFileEventSink(tmp_path)
    event = QuizSubmitEvent(
        assessment_id="a1",
        course_id="c1",
        student_id="s1",
        score=7,
        max_score=10,
    )

    await sink.write(event)

    files = list((tmp_path / "QuizSubmit" / "c1").glob("*_s1_a1.json"))
    assert len(files) == 1
    document = json.loads(files[0].read_text(encoding="utf-8"))
    assert document["eventType"] == "QuizSubmit"
    assert document["score"] == 7


@pytest.mark.asyncio
async def test_json_file_sink_files_events_without_course_under_unknown(tmp_path):
    sink = JsonFileEventSink(tmp_path)

    await sink.write(start_event(course_id=None))

    assert len(list((tmp_path / "QuizStart" / "unknown").iterdir())) == 1


@pytest.mark.asyncio
async def test_json_file_sink_keeps_ids_inside_the_root(tmp_path):
    root = tmp_path / "events"
    sink = JsonFileEventSink(root)

    await sink.write(start_event(course_id="../../outside", student_id="../s1", assessment_id="a/1"))

    written = list(tmp_path.rglob("*.json"))
    assert len(written) == 1
    assert root in written[0].parents
    assert written[0].parent == root / "QuizStart" / "______outside"
    assert written[0].name.endswith("____s1_a_1.json")


@pytest.mark.asyncio
async def test_json_file_sink_never_overwrites_within_the_same_millisecond(tmp_path):
    sink = JsonFileEventSink(tmp_path)
    first = start_event()
    second = start_event()
    fixed = datetime(2024, 5, 1, 9, 0, 0, 123000, tzinfo=timezone.utc)

    with patch("quizpulse.events.sinks.utc_now", return_value=fixed):
        await sink.write(first)
        await sink.write(second)

    files = sorted((tmp_path / "QuizStart" / "c1").iterdir())
    assert len(files) == 2
    assert {json.loads(path.read_text(encoding="utf-8"))["eventId"] for path in files} == {
        first.event_id, second.event_id
    }
    assert (tmp_path / "QuizStart" / "c1" / "20240501_090000_123_s1_a1.json").exists()


@pytest.mark.asyncio
async def test_json_file_sink_raises_publish_error(tmp_path):
    blocker = tmp_path / "QuizStart"
    blocker.write_text("a file where a directory should be")
    sink = JsonFileEventSink(tmp_path)

    with pytest.raises(PublishError):
        await sink.write(start_event())


@pytest.mark.asyncio
async def test_logging_sink_writes_structured_record():
    logger = MagicMock()
    sink = LoggingEventSink(logger=logger)

    await sink.write(start_event())

    logger.log.assert_called_once()
    assert logger.log.call_args.kwargs["extra"]["data"]["eventType"] == "QuizStart"


def test_create_event_publisher_adds_extra_sinks():
    extra = AsyncMock()
    publisher = create_event_publisher(InMemoryEventBus(), [extra])
    assert publisher.sinks[-1] is extra
