"""
Attempt Repository Module

This module defines the persistence contract for attempts. Implementations
must treat ``append`` as atomic and durable once it returns, and must never
update or replace an existing attempt.
"""

import abc
from typing import List, Optional

from .model import Attempt


class AttemptRepository(abc.ABC):
    """
    Abstract base class for attempt repositories.
    """

    @abc.abstractmethod
    async def append(self, attempt: Attempt) -> Attempt:
        """
        Persist a new attempt.

        Args:
            attempt: The attempt to store

        Returns:
            The stored attempt
        """
        pass

    @abc.abstractmethod
    async def get_by_id(self, attempt_id: str) -> Optional[Attempt]:
        """
        Get an attempt by its ID.

        Args:
            attempt_id: The ID of the attempt to retrieve

        Returns:
            The Attempt if found, None otherwise
        """
        pass

    @abc.abstractmethod
    async def list_by_assessment(self, assessment_id: str) -> List[Attempt]:
        """All attempts for one assessment, newest first."""
        pass

    @abc.abstractmethod
    async def list_by_course(self, course_id: str) -> List[Attempt]:
        """All attempts for any assessment of one course, newest first."""
        pass

    @abc.abstractmethod
    async def list_by_student(self, student_id: str, course_id: Optional[str] = None) -> List[Attempt]:
        """
        All attempts made by one student, newest first.

        Args:
            student_id: The student
            course_id: Optional course filter
        """
        pass

    @abc.abstractmethod
    async def delete_by_assessment(self, assessment_id: str) -> int:
        """
        Remove every attempt of an assessment.

        This is the cascade of deleting the assessment itself; attempts are
        never removed individually.

        Returns:
            Number of attempts removed
        """
        pass
