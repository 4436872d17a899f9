"""
Taking assessments: start, answer, submit, and result queries.
"""

from quizpulse.submissions.service import SubmissionService

__all__ = ['SubmissionService']
