"""
Scoring of submitted answers against a question bank.
"""

from quizpulse.scoring.engine import (
    AnswerOutcome, ScoreBreakdown, ScoringEngine, score, get_scoring_engine
)

__all__ = [
    'AnswerOutcome',
    'ScoreBreakdown',
    'ScoringEngine',
    'score',
    'get_scoring_engine',
]
