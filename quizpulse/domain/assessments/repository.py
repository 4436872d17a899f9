"""
Assessment Repository Module

This module defines the read contract the scoring pipeline needs from
assessment storage, plus an in-memory implementation for development and
testing.
"""

import abc
import logging
import threading
from typing import Dict, Iterable, List, Optional

from quizpulse.domain.questions import QuestionBank
from .model import Assessment

# Setup logging
logger = logging.getLogger(__name__)


class AssessmentRepository(abc.ABC):
    """
    Abstract base class for assessment repositories.
    """

    @abc.abstractmethod
    async def get_by_id(self, assessment_id: str) -> Optional[Assessment]:
        """
        Get an assessment by its ID.

        Args:
            assessment_id: The ID of the assessment to retrieve

        Returns:
            The Assessment if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def list_by_course(self, course_id: str) -> List[Assessment]:
        """All assessments of a course, newest first."""
        pass

    @abc.abstractmethod
    async def save(self, assessment: Assessment) -> Assessment:
        """
        Store an assessment, replacing any previous version with the same ID.

        Returns:
            The stored assessment
        """
        pass

    @abc.abstractmethod
    async def delete(self, assessment_id: str) -> bool:
        """
        Delete an assessment by its ID. Its attempts are not touched here.

        Returns:
            True if the assessment was deleted, False otherwise
        """
        pass

    async def get_question_bank(self, assessment_id: str) -> Optional[QuestionBank]:
        """
        Get the question bank of an assessment.

        Returns:
            The QuestionBank, or None when the assessment does not exist
        """
        assessment = await self.get_by_id(assessment_id)
        return assessment.question_bank if assessment else None


class MemoryAssessmentRepository(AssessmentRepository):
    """
    In-memory implementation of the AssessmentRepository.
    """

    def __init__(self, initial_data: Optional[Iterable[Assessment]] = None):
        self._assessments: Dict[str, Assessment] = {}
        self._lock = threading.RLock()

        if initial_data:
            for assessment in initial_data:
                self._assessments[assessment.assessment_id] = assessment

    async def get_by_id(self, assessment_id: str) -> Optional[Assessment]:
        return self._assessments.get(assessment_id)

    async def list_by_course(self, course_id: str) -> List[Assessment]:
        with self._lock:
            matches = [a for a in self._assessments.values() if a.course_id == course_id]
        return sorted(matches, key=lambda a: a.created_at, reverse=True)

    async def save(self, assessment: Assessment) -> Assessment:
        """
        Store an assessment, replacing any previous version with the same ID.
        """
        with self._lock:
            self._assessments[assessment.assessment_id] = assessment
        logger.debug(f"Saved assessment {assessment.assessment_id} ({assessment.title})")
        return assessment

    async def delete(self, assessment_id: str) -> bool:
        """
        Delete an assessment by its ID.

        Returns:
            True if the assessment was deleted, False otherwise
        """
        with self._lock:
            return self._assessments.pop(assessment_id, None) is not None
