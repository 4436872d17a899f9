"""
Question domain module for QuizPulse.

Question banks are owned by their assessment and never change after the
assessment is created.
"""

from .model import Question, QuestionBank

__all__ = [
    'Question',
    'QuestionBank',
]
