"""
Roster Module

Students and course enrollments as seen by the scoring pipeline. The
submission service only needs to know whether a student exists; the live
monitor only needs the enrolled students of a course to compute its
participation and completion rates.
"""

import abc
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

# Setup logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Student:
    """A student known to the system."""
    student_id: str
    name: str


class StudentRepository(abc.ABC):
    """Read access to students."""

    @abc.abstractmethod
    async def get_by_id(self, student_id: str) -> Optional[Student]:
        """
        Get a student by ID.

        Returns:
            The Student if found, None otherwise
        """
        pass


class RosterProvider(abc.ABC):
    """Read access to course enrollments."""

    @abc.abstractmethod
    async def get_enrolled(self, course_id: str) -> List[Student]:
        """
        The students currently enrolled in a course.

        Args:
            course_id: The course

        Returns:
            Enrolled students; empty when the course has no enrollments
        """
        pass


class MemoryRoster(StudentRepository, RosterProvider):
    """
    In-memory students and enrollments for development and testing.
    """

    def __init__(self, students: Optional[Iterable[Student]] = None):
        self._students: Dict[str, Student] = {}
        self._enrollments: Dict[str, List[str]] = {}
        self._lock = threading.RLock()

        for student in students or ():
            self._students[student.student_id] = student

    def add_student(self, student: Student) -> Student:
        with self._lock:
            self._students[student.student_id] = student
        return student

    def enroll(self, course_id: str, student_id: str) -> None:
        """
        Enroll a known student in a course. Enrolling twice is a no-op.

        Raises:
            KeyError: If the student is unknown
        """
        with self._lock:
            if student_id not in self._students:
                raise KeyError(student_id)
            enrolled = self._enrollments.setdefault(course_id, [])
            if student_id not in enrolled:
                enrolled.append(student_id)
        logger.debug(f"Enrolled student {student_id} in course {course_id}")

    def unenroll(self, course_id: str, student_id: str) -> bool:
        with self._lock:
            enrolled = self._enrollments.get(course_id, [])
            if student_id in enrolled:
                enrolled.remove(student_id)
                return True
        return False

    async def get_by_id(self, student_id: str) -> Optional[Student]:
        return self._students.get(student_id)

    async def get_enrolled(self, course_id: str) -> List[Student]:
        with self._lock:
            return [self._students[sid] for sid in self._enrollments.get(course_id, [])]
