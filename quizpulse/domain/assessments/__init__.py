"""
Assessment domain module for QuizPulse.
"""

from .model import Assessment
from .repository import AssessmentRepository, MemoryAssessmentRepository

__all__ = [
    'Assessment',
    'AssessmentRepository',
    'MemoryAssessmentRepository',
]
