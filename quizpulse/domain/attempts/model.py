"""
Attempt Domain Model Module

An Attempt is one scored submission of answers by a student. Attempts are
append-only: every submission creates a new Attempt and nothing ever
updates one.
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from quizpulse.common.utils import percentage, utc_now


@dataclass(frozen=True)
class SubmittedAnswer:
    """An answer given by a student to the question with ``question_id``."""
    question_id: int
    answer_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"question_id": self.question_id, "answer_text": self.answer_text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubmittedAnswer':
        """
        Build an answer from a client payload.

        Accepts ``question_id``/``answer_text`` as well as the client's
        ``questionNumber``/``answer`` and the stored ``Id``/``UserAnswer``
        spellings. Values are taken as given; the scoring engine decides
        what counts as malformed.
        """
        values = {str(key).replace("_", "").lower(): value for key, value in data.items()}
        question_id = next(
            (values[key] for key in ("questionid", "questionnumber", "id") if key in values),
            None
        )
        answer_text = next(
            (values[key] for key in ("answertext", "answer", "useranswer") if key in values),
            ""
        )
        return cls(question_id=question_id, answer_text=answer_text)


@dataclass(frozen=True)
class Attempt:
    """
    A persisted, scored submission.

    Attributes:
        attempt_id: Unique identifier of the attempt
        assessment_id: Assessment that was taken
        student_id: Student who submitted
        score: Points earned
        max_score: Maximum points of the assessment at submission time
        submitted_answers: The answers exactly as submitted
        attempt_timestamp: When the attempt was recorded (UTC)
        time_taken_seconds: Optional time the student spent on the attempt
        course_id: Course the assessment belongs to, kept for course-level queries
    """
    assessment_id: str
    student_id: str
    score: int
    max_score: int
    submitted_answers: Tuple[SubmittedAnswer, ...] = ()
    attempt_timestamp: datetime.datetime = field(default_factory=utc_now)
    time_taken_seconds: Optional[int] = None
    course_id: Optional[str] = None
    attempt_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        object.__setattr__(self, "submitted_answers", tuple(self.submitted_answers))

    @property
    def score_percentage(self) -> float:
        """Score as a percentage of this attempt's own max score."""
        return percentage(self.score, self.max_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "assessment_id": self.assessment_id,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "score": self.score,
            "max_score": self.max_score,
            "score_percentage": self.score_percentage,
            "submitted_answers": [answer.to_dict() for answer in self.submitted_answers],
            "attempt_timestamp": self.attempt_timestamp.isoformat(),
            "time_taken_seconds": self.time_taken_seconds,
        }


@dataclass(frozen=True)
class AttemptResult:
    """
    Read view of an attempt joined with assessment, course and student names.
    """
    attempt_id: str
    assessment_id: str
    assessment_title: str
    course_id: str
    student_id: str
    student_name: str
    score: int
    max_score: int
    attempt_timestamp: datetime.datetime
    time_taken_seconds: Optional[int] = None

    @property
    def score_percentage(self) -> float:
        return percentage(self.score, self.max_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "assessment_id": self.assessment_id,
            "assessment_title": self.assessment_title,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "score": self.score,
            "max_score": self.max_score,
            "score_percentage": self.score_percentage,
            "attempt_timestamp": self.attempt_timestamp.isoformat(),
            "time_taken_seconds": self.time_taken_seconds,
        }
