"""
Lifecycle events: models, publisher, transport and sinks.
"""

from quizpulse.events.models import (
    AnyLifecycleEvent,
    EventType,
    LifecycleEvent,
    QuizAnswerEvent,
    QuizStartEvent,
    QuizSubmitEvent,
    parse_event,
)
from quizpulse.events.bus import EventSubscription, EventTransport, InMemoryEventBus
from quizpulse.events.sinks import EventSink, JsonFileEventSink, LoggingEventSink
from quizpulse.events.publisher import AsyncEventPublisher, EventPublisher, create_event_publisher

__all__ = [
    'AnyLifecycleEvent',
    'EventType',
    'LifecycleEvent',
    'QuizAnswerEvent',
    'QuizStartEvent',
    'QuizSubmitEvent',
    'parse_event',
    'EventSubscription',
    'EventTransport',
    'InMemoryEventBus',
    'EventSink',
    'JsonFileEventSink',
    'LoggingEventSink',
    'AsyncEventPublisher',
    'EventPublisher',
    'create_event_publisher',
]
