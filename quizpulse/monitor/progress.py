"""
Live Progress Models

Value types describing what a live monitor knows about an assessment in
progress. All of them are immutable: the monitor replaces a student's
progress on every update, and snapshots share those values safely.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from quizpulse.common.utils import format_duration, percentage


class StudentStatus(str, enum.Enum):
    """Where a student is in the quiz lifecycle."""
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class StudentScore:
    """Final result reported by a student's submission."""
    score: int
    max_score: int
    time_taken_seconds: int = 0

    @property
    def percentage(self) -> float:
        return percentage(self.score, self.max_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "percentage": round(self.percentage, 2),
            "time_taken_seconds": self.time_taken_seconds,
            "time_taken": format_duration(self.time_taken_seconds),
        }


@dataclass(frozen=True)
class StudentProgress:
    """
    Live state of one student.

    Attributes:
        student_id: The student
        name: Display name taken from the events
        questions_answered: Answers seen, or the submitted total once completed
        correct_answers: Correct answers, never more than questions_answered
        has_started: Whether any event was seen for the student
        has_completed: Whether a submission was seen; never reverts
        last_activity: Latest event timestamp seen
        score: Final result, set on submission
    """
    student_id: str
    name: str = "Unknown"
    questions_answered: int = 0
    correct_answers: int = 0
    has_started: bool = False
    has_completed: bool = False
    last_activity: Optional[datetime] = None
    score: Optional[StudentScore] = None

    @property
    def status(self) -> StudentStatus:
        if self.has_completed:
            return StudentStatus.COMPLETED
        if self.has_started:
            return StudentStatus.IN_PROGRESS
        return StudentStatus.NOT_STARTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "name": self.name,
            "status": self.status.value,
            "questions_answered": self.questions_answered,
            "correct_answers": self.correct_answers,
            "has_started": self.has_started,
            "has_completed": self.has_completed,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "score": self.score.to_dict() if self.score else None,
        }


@dataclass(frozen=True)
class QuestionStats:
    """How often one question was answered, and how often correctly."""
    question_index: int
    attempts: int = 0
    correct: int = 0

    @property
    def success_rate(self) -> float:
        return percentage(self.correct, self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_index": self.question_index,
            "attempts": self.attempts,
            "correct": self.correct,
            "success_rate": round(self.success_rate, 2),
        }


@dataclass(frozen=True)
class MonitorSnapshot:
    """
    Point-in-time copy of a live monitor with its derived metrics.

    Rates are percentages of the roster size, capped at 100 and 0 for an
    empty roster. ``average_score_percent`` and ``average_time_seconds``
    are None until someone completes.
    """
    assessment_id: str
    course_id: Optional[str]
    roster_size: int
    students: Tuple[StudentProgress, ...]
    started_count: int
    completed_count: int
    participation_rate: float
    completion_rate: float
    average_score_percent: Optional[float]
    average_time_seconds: Optional[float]
    question_stats: Tuple[QuestionStats, ...]
    score_distribution: Dict[str, int]
    events_applied: int
    events_rejected: int
    taken_at: datetime
    closed: bool = False

    def get_student(self, student_id: str) -> Optional[StudentProgress]:
        for progress in self.students:
            if progress.student_id == student_id:
                return progress
        return None

    def get_question(self, question_index: int) -> Optional[QuestionStats]:
        for stats in self.question_stats:
            if stats.question_index == question_index:
                return stats
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Dashboard representation of the snapshot."""
        return {
            "assessment_id": self.assessment_id,
            "course_id": self.course_id,
            "roster_size": self.roster_size,
            "started_count": self.started_count,
            "completed_count": self.completed_count,
            "participation_rate": round(self.participation_rate, 2),
            "completion_rate": round(self.completion_rate, 2),
            "average_score_percent": (
                round(self.average_score_percent, 2)
                if self.average_score_percent is not None else None
            ),
            "average_time": (
                format_duration(self.average_time_seconds)
                if self.average_time_seconds is not None else None
            ),
            "students": [progress.to_dict() for progress in self.students],
            "question_stats": [stats.to_dict() for stats in self.question_stats],
            "score_distribution": dict(self.score_distribution),
            "events_applied": self.events_applied,
            "events_rejected": self.events_rejected,
            "taken_at": self.taken_at.isoformat(),
            "closed": self.closed,
        }
