"""
Memory Attempt Repository Module

In-memory implementation of the AttemptRepository for development and
testing purposes.
"""

import threading
import logging
from typing import Callable, Iterable, List, Optional

from quizpulse.common.exceptions import ValidationError
from .model import Attempt
from .repository import AttemptRepository

# Setup logging
logger = logging.getLogger(__name__)


class MemoryAttemptRepository(AttemptRepository):
    """
    In-memory, append-only attempt store.

    Attempts are kept in insertion order; listings return them newest first.
    """

    def __init__(self, initial_data: Optional[Iterable[Attempt]] = None):
        self._attempts: List[Attempt] = []
        self._ids = set()
        self._lock = threading.RLock()

        if initial_data:
            for attempt in initial_data:
                self._attempts.append(attempt)
                self._ids.add(attempt.attempt_id)

    async def append(self, attempt: Attempt) -> Attempt:
        with self._lock:
            if attempt.attempt_id in self._ids:
                raise ValidationError(
                    f"attempt {attempt.attempt_id} already exists",
                    errors={"attempt_id": "duplicate"}
                )
            self._attempts.append(attempt)
            self._ids.add(attempt.attempt_id)
        logger.debug(
            f"Stored attempt {attempt.attempt_id} for student {attempt.student_id} "
            f"on assessment {attempt.assessment_id}"
        )
        return attempt

    async def get_by_id(self, attempt_id: str) -> Optional[Attempt]:
        for attempt in self._attempts:
            if attempt.attempt_id == attempt_id:
                return attempt
        return None

    async def list_by_assessment(self, assessment_id: str) -> List[Attempt]:
        return self._select(lambda attempt: attempt.assessment_id == assessment_id)

    async def list_by_course(self, course_id: str) -> List[Attempt]:
        return self._select(lambda attempt: attempt.course_id == course_id)

    async def list_by_student(self, student_id: str, course_id: Optional[str] = None) -> List[Attempt]:
        return self._select(
            lambda attempt: attempt.student_id == student_id
            and (course_id is None or attempt.course_id == course_id)
        )

    async def delete_by_assessment(self, assessment_id: str) -> int:
        with self._lock:
            kept = [a for a in self._attempts if a.assessment_id != assessment_id]
            removed = len(self._attempts) - len(kept)
            self._attempts = kept
            self._ids = {a.attempt_id for a in kept}
        return removed

    def _select(self, predicate: Callable[[Attempt], bool]) -> List[Attempt]:
        with self._lock:
            selected = [
                (position, attempt)
                for position, attempt in enumerate(self._attempts)
                if predicate(attempt)
            ]
        # Equal timestamps fall back to insertion order, latest first
        selected.sort(key=lambda item: (item[1].attempt_timestamp, item[0]), reverse=True)
        return [attempt for _, attempt in selected]

    def __len__(self) -> int:
        return len(self._attempts)
