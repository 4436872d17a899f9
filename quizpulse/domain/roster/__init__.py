"""
Student and enrollment module for QuizPulse.
"""

from .roster import Student, StudentRepository, RosterProvider, MemoryRoster

__all__ = [
    'Student',
    'StudentRepository',
    'RosterProvider',
    'MemoryRoster',
]
