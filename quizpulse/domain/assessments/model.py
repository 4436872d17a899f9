"""
Assessment Domain Model Module
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from quizpulse.common.exceptions import ValidationError
from quizpulse.common.utils import utc_now
from quizpulse.domain.questions import QuestionBank


@dataclass(frozen=True)
class Assessment:
    """
    An assessment of a course together with its question bank.

    ``max_score`` is declared by the instructor and stored independently of
    the questions; when it is not given it defaults to the sum of the
    question points. A declared maximum below that sum is rejected.
    """
    course_id: str
    title: str
    question_bank: QuestionBank = field(default_factory=QuestionBank)
    max_score: Optional[int] = None
    time_limit_minutes: Optional[int] = None
    created_at: datetime.datetime = field(default_factory=utc_now)
    assessment_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        bank_max = self.question_bank.max_score
        if self.max_score is None:
            object.__setattr__(self, "max_score", bank_max)
        elif isinstance(self.max_score, bool) or not isinstance(self.max_score, int):
            raise ValidationError(
                "max_score must be an integer",
                errors={"max_score": self.max_score}
            )
        elif self.max_score < bank_max:
            # Also covers negative values, the bank total is never below 0
            raise ValidationError(
                f"max_score {self.max_score} is below the question bank total of {bank_max}",
                errors={"max_score": self.max_score, "question_bank_max_score": bank_max}
            )

    @property
    def question_count(self) -> int:
        return len(self.question_bank)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "course_id": self.course_id,
            "title": self.title,
            "questions": self.question_bank.to_list(),
            "max_score": self.max_score,
            "time_limit_minutes": self.time_limit_minutes,
            "created_at": self.created_at.isoformat(),
        }
