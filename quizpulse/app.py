"""
Application Wiring

Builds the scoring and monitoring pipeline from its parts and manages its
lifetime. The in-memory repositories and the in-process bus are used unless
the caller supplies its own implementations.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional

from quizpulse.common.logger import app_logger
from quizpulse.config import settings
from quizpulse.domain.assessments import AssessmentRepository, MemoryAssessmentRepository
from quizpulse.domain.attempts import AttemptRepository, MemoryAttemptRepository
from quizpulse.domain.roster import MemoryRoster, RosterProvider, StudentRepository
from quizpulse.events.bus import EventTransport, InMemoryEventBus
from quizpulse.events.publisher import AsyncEventPublisher, create_event_publisher
from quizpulse.events.sinks import EventSink
from quizpulse.monitor.registry import MonitorRegistry
from quizpulse.submissions.service import SubmissionService

# Module logger
logger = app_logger.getChild("app")


@dataclass
class QuizPulseApp:
    """The assembled pipeline."""
    assessments: AssessmentRepository
    attempts: AttemptRepository
    students: StudentRepository
    roster: RosterProvider
    transport: EventTransport
    publisher: AsyncEventPublisher
    monitors: MonitorRegistry
    submissions: SubmissionService

    async def shutdown(self) -> None:
        """Close every live monitor and wait for pending event deliveries."""
        logger.info("Shutdown sequence initiated")
        await self.monitors.close_all()
        await self.publisher.flush()
        logger.info("Shutdown sequence complete")


def create_app(
    assessments: Optional[AssessmentRepository] = None,
    attempts: Optional[AttemptRepository] = None,
    roster: Optional[MemoryRoster] = None,
    transport: Optional[EventTransport] = None,
    sinks: Optional[Iterable[EventSink]] = None
) -> QuizPulseApp:
    """
    Create and wire a pipeline instance.

    Args:
        assessments: Assessment storage
        attempts: Attempt storage
        roster: Student and enrollment storage
        transport: Event transport
        sinks: Extra event sinks besides the configured ones

    Returns:
        The assembled application
    """
    assessments = assessments or MemoryAssessmentRepository()
    attempts = attempts or MemoryAttemptRepository()
    roster = roster or MemoryRoster()
    transport = transport or InMemoryEventBus()
    publisher = create_event_publisher(transport, sinks)

    app = QuizPulseApp(
        assessments=assessments,
        attempts=attempts,
        students=roster,
        roster=roster,
        transport=transport,
        publisher=publisher,
        monitors=MonitorRegistry(transport, roster),
        submissions=SubmissionService(assessments, attempts, roster, publisher),
    )
    logger.info(f"{settings.PROJECT_NAME} pipeline created")
    return app


@asynccontextmanager
async def lifespan(app: QuizPulseApp) -> AsyncIterator[QuizPulseApp]:
    """
    Run the application and shut it down cleanly afterwards.

    Usage:
        async with lifespan(create_app()) as app:
            ...
    """
    logger.info("Application startup sequence complete")
    try:
        yield app
    finally:
        await app.shutdown()
