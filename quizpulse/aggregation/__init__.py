"""
Statistics over persisted attempts.
"""

from quizpulse.aggregation.engine import (
    AssessmentSummary, SCORE_BUCKETS, summarize, score_distribution, best_attempts
)

__all__ = [
    'AssessmentSummary',
    'SCORE_BUCKETS',
    'summarize',
    'score_distribution',
    'best_attempts',
]
