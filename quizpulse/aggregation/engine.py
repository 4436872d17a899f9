"""
Aggregation Engine

Summary statistics over a collection of attempts. The engine does not care
whether the attempts belong to one assessment or to a whole course; callers
choose the scope by choosing the attempts.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from quizpulse.common.utils import mean
from quizpulse.domain.attempts import Attempt

# Score distribution buckets shown on the analytics dashboard, as
# (label, inclusive upper bound in percent)
SCORE_BUCKETS = (
    ("0-50", 50.0),
    ("51-60", 60.0),
    ("61-70", 70.0),
    ("71-80", 80.0),
    ("81-90", 90.0),
    ("91-100", float("inf")),
)


@dataclass(frozen=True)
class AssessmentSummary:
    """
    Statistics derived from a set of attempts.

    ``average_percentage`` is the mean of the per-attempt percentages, each
    taken against the attempt's own max score. ``assessment_id`` is None
    when the attempts span several assessments.
    """
    assessment_id: Optional[str]
    average_score: float
    average_percentage: float
    total_attempts: int
    highest_score: int
    lowest_score: int
    max_possible_score: int
    assessment_title: Optional[str] = None
    course_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "assessment_title": self.assessment_title,
            "course_id": self.course_id,
            "average_score": self.average_score,
            "average_percentage": self.average_percentage,
            "total_attempts": self.total_attempts,
            "highest_score": self.highest_score,
            "lowest_score": self.lowest_score,
            "max_possible_score": self.max_possible_score,
        }


def summarize(attempts: Iterable[Attempt]) -> Optional[AssessmentSummary]:
    """
    Summarize a collection of attempts.

    Args:
        attempts: The attempts to aggregate

    Returns:
        The summary, or None when there are no attempts
    """
    attempts = list(attempts)
    if not attempts:
        return None

    scores = [attempt.score for attempt in attempts]
    assessment_ids = {attempt.assessment_id for attempt in attempts}
    course_ids = {attempt.course_id for attempt in attempts}

    return AssessmentSummary(
        assessment_id=next(iter(assessment_ids)) if len(assessment_ids) == 1 else None,
        average_score=mean(scores),
        average_percentage=mean(attempt.score_percentage for attempt in attempts),
        total_attempts=len(attempts),
        highest_score=max(scores),
        lowest_score=min(scores),
        max_possible_score=max(attempt.max_score for attempt in attempts),
        course_id=next(iter(course_ids)) if len(course_ids) == 1 else None,
    )


def score_distribution(percentages: Iterable[float]) -> "OrderedDict[str, int]":
    """
    Count percentages per dashboard bucket.

    Every bucket is present in the result, in display order.
    """
    counts = OrderedDict((label, 0) for label, _ in SCORE_BUCKETS)
    for value in percentages:
        for label, upper in SCORE_BUCKETS:
            if value <= upper:
                counts[label] += 1
                break
    return counts


def best_attempts(attempts: Iterable[Attempt]) -> List[Attempt]:
    """
    Keep the highest scoring attempt of each student.

    Ties go to the earliest attempt. The result is ordered by student id.
    """
    best: Dict[str, Attempt] = {}
    for attempt in attempts:
        current = best.get(attempt.student_id)
        if current is None:
            best[attempt.student_id] = attempt
        elif attempt.score > current.score or (
            attempt.score == current.score
            and attempt.attempt_timestamp < current.attempt_timestamp
        ):
            best[attempt.student_id] = attempt
    return [best[student_id] for student_id in sorted(best)]
