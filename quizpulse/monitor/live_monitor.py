"""
Live Monitor

Aggregates the lifecycle events of one assessment into a live view of who
started, how far everybody got, how they scored and which questions are
hard.

Events arrive through a best-effort transport, so the monitor is built to
tolerate anything the stream throws at it:
- a student's state only moves forward: NotStarted -> InProgress -> Completed
- a completed student stays completed whatever arrives afterwards
- events already applied (same event id) are ignored
- students missing from the roster are tracked like everyone else
- malformed events and events for other assessments are logged, counted and
  skipped; nothing raised by one event stops the stream

All state sits behind one lock per monitor and ``snapshot`` copies it out,
so readers never see a half-applied event.
"""

import threading
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

from quizpulse.aggregation import score_distribution
from quizpulse.common.exceptions import EventValidationError
from quizpulse.common.logger import LoggerAdapter, app_logger
from quizpulse.common.metrics import get_metrics_service
from quizpulse.common.utils import mean, percentage, utc_now
from quizpulse.config import settings
from quizpulse.domain.roster import Student
from quizpulse.events.bus import EventSubscription
from quizpulse.events.models import (
    LifecycleEvent,
    QuizAnswerEvent,
    QuizStartEvent,
    QuizSubmitEvent,
    parse_event,
)
from quizpulse.monitor.progress import (
    MonitorSnapshot,
    QuestionStats,
    StudentProgress,
    StudentScore,
)

# Module logger
logger = app_logger.getChild("monitor.live_monitor")


def _capped_rate(count: int, total: int) -> float:
    return min(100.0, percentage(count, total))


class LiveMonitor:
    """
    Live, in-memory view of one assessment.

    Attributes:
        assessment_id: The monitored assessment
        course_id: The assessment's course, if known
        closed: Whether the monitor has been torn down
    """

    def __init__(
        self,
        assessment_id: str,
        course_id: Optional[str] = None,
        roster: Optional[Iterable[Student]] = None,
        dedup_window: Optional[int] = None
    ):
        """
        Initialize the monitor.

        Args:
            assessment_id: The assessment to monitor
            course_id: The assessment's course
            roster: Students expected to take the assessment
            dedup_window: How many recent event ids are remembered for
                duplicate suppression, defaults to MONITOR_DEDUP_WINDOW
        """
        self.assessment_id = str(assessment_id)
        self.course_id = course_id
        self.closed = False
        self.dedup_window = dedup_window if dedup_window is not None else settings.MONITOR_DEDUP_WINDOW

        self._lock = threading.RLock()
        self._roster: List[Student] = list(roster or [])
        self._progress: Dict[str, StudentProgress] = {}
        self._submitted_at: Dict[str, datetime] = {}
        self._questions: Dict[int, QuestionStats] = {}
        self._seen_ids: Set[str] = set()
        self._seen_order: Deque[str] = deque()
        self._events_applied = 0
        self._events_rejected = 0

        self.logger = LoggerAdapter(logger, {"assessment_id": self.assessment_id})

    def set_roster(self, students: Iterable[Student]) -> None:
        """Replace the roster used for rates and NotStarted rows."""
        with self._lock:
            self._roster = list(students)
        self.logger.debug(f"Roster updated to {len(self._roster)} student(s)")

    @property
    def roster_size(self) -> int:
        with self._lock:
            return len(self._roster)

    def apply(self, event: LifecycleEvent) -> bool:
        """
        Apply one lifecycle event.

        Args:
            event: The event

        Returns:
            True if the event changed the monitor's state
        """
        with self._lock:
            if self.closed:
                return False

            if event.assessment_id != self.assessment_id:
                self._reject(
                    f"{event.event_type} event {event.event_id} belongs to "
                    f"assessment {event.assessment_id}",
                    reason="wrong_assessment"
                )
                return False

            if event.event_id in self._seen_ids:
                self.logger.debug(f"Ignoring duplicate {event.event_type} event {event.event_id}")
                get_metrics_service().counter("monitor.events_rejected", labels={"reason": "duplicate"})
                return False

            if isinstance(event, QuizStartEvent):
                self._apply_start(event)
            elif isinstance(event, QuizAnswerEvent):
                self._apply_answer(event)
            elif isinstance(event, QuizSubmitEvent):
                self._apply_submit(event)
            else:
                self._reject(f"Unsupported event {type(event).__name__}", reason="unsupported")
                return False

            self._remember(event.event_id)
            self._events_applied += 1

        get_metrics_service().counter("monitor.events_applied", labels={"event_type": event.event_type})
        return True

    def handle_raw(self, payload: Any) -> bool:
        """
        Parse and apply a raw event payload.

        Malformed payloads are logged and counted as rejected; this method
        never raises for bad input.

        Returns:
            True if the event changed the monitor's state
        """
        try:
            event = parse_event(payload)
        except EventValidationError as e:
            with self._lock:
                if self.closed:
                    return False
                self._reject(f"Malformed event skipped: {e.message}", reason="malformed")
            return False
        return self.apply(event)

    async def consume(self, subscription: EventSubscription) -> None:
        """
        Apply events from a subscription until it closes or the task is cancelled.

        Args:
            subscription: The transport subscription for this assessment
        """
        self.logger.info("Live monitor consuming events")
        try:
            async for item in subscription:
                try:
                    self.handle_raw(item)
                except Exception as e:
                    self.logger.error(f"Error applying event: {e}", exc_info=True)
                    with self._lock:
                        self._events_rejected += 1
                    get_metrics_service().counter("monitor.events_rejected", labels={"reason": "error"})
        finally:
            subscription.close()
            self.logger.info("Live monitor stopped consuming events")

    def snapshot(self) -> MonitorSnapshot:
        """
        Copy the current state and derive the live metrics.

        Returns:
            An immutable snapshot
        """
        with self._lock:
            progress = dict(self._progress)
            roster = list(self._roster)
            questions = [self._questions[index] for index in sorted(self._questions)]
            events_applied = self._events_applied
            events_rejected = self._events_rejected
            closed = self.closed

        rows: List[StudentProgress] = []
        listed = set()
        for student in roster:
            if student.student_id in listed:
                continue
            listed.add(student.student_id)
            rows.append(progress.get(
                student.student_id,
                StudentProgress(student_id=student.student_id, name=student.name)
            ))
        for student_id in sorted(progress):
            if student_id not in listed:
                rows.append(progress[student_id])

        started = sum(1 for entry in progress.values() if entry.has_started)
        completed = [entry for entry in progress.values() if entry.has_completed]
        scores = [entry.score for entry in completed if entry.score is not None]
        percentages = [score.percentage for score in scores]
        roster_size = len(listed)

        return MonitorSnapshot(
            assessment_id=self.assessment_id,
            course_id=self.course_id,
            roster_size=roster_size,
            students=tuple(rows),
            started_count=started,
            completed_count=len(completed),
            participation_rate=_capped_rate(started, roster_size),
            completion_rate=_capped_rate(len(completed), roster_size),
            average_score_percent=mean(percentages),
            average_time_seconds=mean(score.time_taken_seconds for score in scores),
            question_stats=tuple(questions),
            score_distribution=score_distribution(percentages),
            events_applied=events_applied,
            events_rejected=events_rejected,
            taken_at=utc_now(),
            closed=closed,
        )

    def get_progress(self, student_id: str) -> Optional[StudentProgress]:
        with self._lock:
            return self._progress.get(student_id)

    def close(self) -> None:
        """Stop accepting events and release the monitor's state."""
        with self._lock:
            if self.closed:
                return
            self.closed = True
            self._progress.clear()
            self._submitted_at.clear()
            self._questions.clear()
            self._seen_ids.clear()
            self._seen_order.clear()
        self.logger.info("Live monitor closed")

    def _current(self, event: LifecycleEvent) -> StudentProgress:
        current = self._progress.get(event.student_id)
        if current is None:
            current = StudentProgress(student_id=event.student_id, name=self._name_for(event))
            if not any(student.student_id == event.student_id for student in self._roster):
                self.logger.debug(f"Tracking student {event.student_id} who is not on the roster")
        elif current.name == "Unknown" and event.student_name != "Unknown":
            current = replace(current, name=event.student_name)
        return current

    def _name_for(self, event: LifecycleEvent) -> str:
        if event.student_name and event.student_name != "Unknown":
            return event.student_name
        for student in self._roster:
            if student.student_id == event.student_id:
                return student.name
        return "Unknown"

    @staticmethod
    def _touch(current: StudentProgress, timestamp: datetime) -> Optional[datetime]:
        if current.last_activity is None or timestamp > current.last_activity:
            return timestamp
        return current.last_activity

    def _apply_start(self, event: QuizStartEvent) -> None:
        current = self._current(event)
        self._progress[event.student_id] = replace(
            current,
            has_started=True,
            last_activity=self._touch(current, event.timestamp),
        )

    def _apply_answer(self, event: QuizAnswerEvent) -> None:
        stats = self._questions.get(event.question_index, QuestionStats(event.question_index))
        self._questions[event.question_index] = replace(
            stats,
            attempts=stats.attempts + 1,
            correct=stats.correct + (1 if event.is_correct else 0),
        )

        current = self._current(event)
        if current.has_completed:
            # Late answer: the submission already fixed the counts
            self._progress[event.student_id] = replace(
                current, last_activity=self._touch(current, event.timestamp)
            )
            return

        self._progress[event.student_id] = replace(
            current,
            has_started=True,
            questions_answered=current.questions_answered + 1,
            correct_answers=current.correct_answers + (1 if event.is_correct else 0),
            last_activity=self._touch(current, event.timestamp),
        )

    def _apply_submit(self, event: QuizSubmitEvent) -> None:
        current = self._current(event)
        answered = max(event.total_questions, 0)
        correct = min(max(event.correct_answers, 0), answered)
        score = StudentScore(
            score=event.score,
            max_score=event.max_score,
            time_taken_seconds=event.total_time_seconds,
        )

        previous = self._submitted_at.get(event.student_id)
        if previous is not None and event.timestamp < previous:
            # An older submission arriving late keeps the newer result
            self._progress[event.student_id] = replace(
                current, last_activity=self._touch(current, event.timestamp)
            )
            return

        self._submitted_at[event.student_id] = event.timestamp
        self._progress[event.student_id] = replace(
            current,
            has_started=True,
            has_completed=True,
            questions_answered=answered,
            correct_answers=correct,
            score=score,
            last_activity=self._touch(current, event.timestamp),
        )

    def _remember(self, event_id: str) -> None:
        if self.dedup_window <= 0:
            return
        if len(self._seen_order) >= self.dedup_window:
            self._seen_ids.discard(self._seen_order.popleft())
        self._seen_order.append(event_id)
        self._seen_ids.add(event_id)

    def _reject(self, message: str, reason: str) -> None:
        self._events_rejected += 1
        self.logger.warning(message)
        get_metrics_service().counter("monitor.events_rejected", labels={"reason": reason})
