"""
Attempt domain module for QuizPulse.

Attempts are the persisted, scored submissions of an assessment.
"""

from .model import SubmittedAnswer, Attempt, AttemptResult
from .repository import AttemptRepository
from .memory_repository import MemoryAttemptRepository

__all__ = [
    'SubmittedAnswer',
    'Attempt',
    'AttemptResult',
    'AttemptRepository',
    'MemoryAttemptRepository',
]
