"""
Submission Service

Orchestrates quiz taking: starting an assessment, answering single
questions and submitting the full set of answers, plus the result queries
built on the stored attempts.

A submission is scored, persisted and only then announced. Persisting is
awaited, so a returned Attempt is durable; the QuizSubmit event is handed
to the publisher without waiting for delivery, and a delivery problem never
fails the submission.
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from quizpulse.aggregation import AssessmentSummary, best_attempts, score_distribution, summarize
from quizpulse.common.exceptions import NotFoundError, ValidationError
from quizpulse.common.logger import app_logger, log_execution_time, with_context
from quizpulse.common.metrics import get_metrics_service
from quizpulse.domain.assessments import Assessment, AssessmentRepository
from quizpulse.domain.attempts import Attempt, AttemptRepository, AttemptResult, SubmittedAnswer
from quizpulse.domain.roster import Student, StudentRepository
from quizpulse.events.models import LifecycleEvent, QuizAnswerEvent, QuizStartEvent, QuizSubmitEvent
from quizpulse.events.publisher import EventPublisher
from quizpulse.scoring import ScoringEngine, get_scoring_engine

# Module logger
logger = app_logger.getChild("submissions.service")


def _stored_answers(submitted_answers: Iterable[Any]) -> tuple:
    # Keep what the client sent in a uniform shape; entries that are not
    # answers at all cannot be stored
    stored = []
    for entry in submitted_answers or ():
        if isinstance(entry, SubmittedAnswer):
            stored.append(entry)
        elif isinstance(entry, dict):
            stored.append(SubmittedAnswer.from_dict(entry))
    return tuple(stored)


class SubmissionService:
    """
    Service for taking assessments and reading their results.

    Attributes:
        assessments: Assessment storage
        attempts: Attempt storage
        students: Student lookup
        publisher: Lifecycle event publisher
        scoring_engine: Engine used to score submissions
    """

    def __init__(
        self,
        assessments: AssessmentRepository,
        attempts: AttemptRepository,
        students: StudentRepository,
        publisher: EventPublisher,
        scoring_engine: Optional[ScoringEngine] = None
    ):
        self.assessments = assessments
        self.attempts = attempts
        self.students = students
        self.publisher = publisher
        self.scoring_engine = scoring_engine or get_scoring_engine()

    async def start(self, assessment_id: str, student_id: str) -> Assessment:
        """
        Announce that a student started an assessment.

        Args:
            assessment_id: The assessment
            student_id: The student

        Returns:
            The assessment, so the caller can present its questions

        Raises:
            NotFoundError: If the assessment or the student does not exist
        """
        assessment = await self._get_assessment(assessment_id)
        student = await self._get_student(student_id)

        self._publish(QuizStartEvent(
            assessment_id=assessment.assessment_id,
            course_id=assessment.course_id,
            student_id=student.student_id,
            student_name=student.name,
            assessment_title=assessment.title,
        ))
        return assessment

    async def answer(
        self,
        assessment_id: str,
        student_id: str,
        question_index: int,
        answer_text: Any,
        time_taken_seconds: int = 0
    ) -> bool:
        """
        Check a single answer and announce it. Nothing is persisted.

        Args:
            assessment_id: The assessment
            student_id: The student
            question_index: Zero-based position of the question in the bank
            answer_text: The student's answer
            time_taken_seconds: Time spent on the question

        Returns:
            Whether the answer is correct

        Raises:
            NotFoundError: If the assessment or the student does not exist
            ValidationError: If the question index is out of range or the time is negative
        """
        assessment = await self._get_assessment(assessment_id)
        student = await self._get_student(student_id)

        question = assessment.question_bank.at_index(question_index)
        if question is None:
            raise ValidationError(
                f"Question index {question_index} is out of range",
                errors={"question_index": question_index, "question_count": assessment.question_count}
            )
        if time_taken_seconds < 0:
            raise ValidationError(
                "Time taken cannot be negative",
                errors={"time_taken_seconds": time_taken_seconds}
            )

        is_correct = question.is_correct(answer_text)
        self._publish(QuizAnswerEvent(
            assessment_id=assessment.assessment_id,
            course_id=assessment.course_id,
            student_id=student.student_id,
            student_name=student.name,
            question_index=question_index,
            is_correct=is_correct,
            time_taken_seconds=time_taken_seconds,
        ))
        return is_correct

    @log_execution_time(logger)
    async def submit(
        self,
        assessment_id: str,
        student_id: str,
        submitted_answers: Iterable[Any],
        time_taken_seconds: Optional[int] = None
    ) -> Attempt:
        """
        Score, persist and announce a submission.

        Every call creates a new Attempt; earlier attempts are kept.

        Args:
            assessment_id: The assessment
            student_id: The student
            submitted_answers: SubmittedAnswer objects or answer dictionaries
            time_taken_seconds: Optional time the student spent

        Returns:
            The stored attempt

        Raises:
            NotFoundError: If the assessment or the student does not exist
            ValidationError: If the time taken is negative
        """
        assessment = await self._get_assessment(assessment_id)
        student = await self._get_student(student_id)
        if time_taken_seconds is not None and time_taken_seconds < 0:
            raise ValidationError(
                "Time taken cannot be negative",
                errors={"time_taken_seconds": time_taken_seconds}
            )

        submitted_answers = list(submitted_answers or ())
        metrics = get_metrics_service()
        with metrics.timer_context("scoring.duration"):
            breakdown = self.scoring_engine.evaluate(assessment.question_bank, submitted_answers)

        attempt = await self.attempts.append(Attempt(
            assessment_id=assessment.assessment_id,
            course_id=assessment.course_id,
            student_id=student.student_id,
            score=breakdown.score,
            max_score=assessment.max_score,
            submitted_answers=_stored_answers(submitted_answers),
            time_taken_seconds=time_taken_seconds,
        ))
        metrics.counter("submissions.created")

        log = with_context(
            logger.name,
            assessment_id=assessment.assessment_id,
            student_id=student.student_id,
            attempt_id=attempt.attempt_id
        )
        log.info(f"Recorded attempt with score {attempt.score}/{attempt.max_score}")

        self._publish(QuizSubmitEvent(
            assessment_id=assessment.assessment_id,
            course_id=assessment.course_id,
            student_id=student.student_id,
            student_name=student.name,
            timestamp=attempt.attempt_timestamp,
            score=attempt.score,
            max_score=attempt.max_score,
            total_questions=breakdown.answered,
            correct_answers=breakdown.correct_answers,
            total_time_seconds=time_taken_seconds or 0,
        ))
        return attempt

    async def get_student_results(
        self,
        student_id: str,
        course_id: Optional[str] = None
    ) -> List[AttemptResult]:
        """
        All attempts of a student, newest first.

        Args:
            student_id: The student
            course_id: Optionally restrict to one course
        """
        attempts = await self.attempts.list_by_student(student_id, course_id)
        return await self._to_results(attempts)

    async def get_course_results(self, course_id: str) -> List[AttemptResult]:
        """All attempts made in a course, newest first."""
        attempts = await self.attempts.list_by_course(course_id)
        return await self._to_results(attempts)

    async def get_assessment_summary(self, assessment_id: str) -> Optional[AssessmentSummary]:
        """
        Statistics over every attempt of an assessment.

        Returns:
            The summary, or None when nobody has submitted yet

        Raises:
            NotFoundError: If the assessment does not exist
        """
        assessment = await self._get_assessment(assessment_id)
        summary = summarize(await self.attempts.list_by_assessment(assessment.assessment_id))
        if summary is None:
            return None
        return replace(summary, assessment_title=assessment.title, course_id=assessment.course_id)

    async def get_course_summary(self, course_id: str) -> Optional[AssessmentSummary]:
        """Statistics over every attempt in a course, or None without attempts."""
        return summarize(await self.attempts.list_by_course(course_id))

    async def get_best_results(self, assessment_id: str) -> List[AttemptResult]:
        """
        Each student's best attempt at an assessment, ordered by student id.

        Raises:
            NotFoundError: If the assessment does not exist
        """
        assessment = await self._get_assessment(assessment_id)
        attempts = await self.attempts.list_by_assessment(assessment.assessment_id)
        return await self._to_results(best_attempts(attempts))

    async def get_score_distribution(self, assessment_id: str) -> Dict[str, int]:
        """
        How many students' best attempts fall into each score bucket.

        Raises:
            NotFoundError: If the assessment does not exist
        """
        assessment = await self._get_assessment(assessment_id)
        attempts = best_attempts(await self.attempts.list_by_assessment(assessment.assessment_id))
        return dict(score_distribution(attempt.score_percentage for attempt in attempts))

    async def delete_assessment(self, assessment_id: str) -> int:
        """
        Delete an assessment together with every attempt made at it.

        Returns:
            The number of attempts removed

        Raises:
            NotFoundError: If the assessment does not exist
        """
        assessment = await self._get_assessment(assessment_id)
        await self.assessments.delete(assessment.assessment_id)
        removed = await self.attempts.delete_by_assessment(assessment.assessment_id)
        logger.info(f"Deleted assessment {assessment.assessment_id} and {removed} attempt(s)")
        return removed

    async def _get_assessment(self, assessment_id: str) -> Assessment:
        assessment = await self.assessments.get_by_id(assessment_id)
        if assessment is None:
            raise NotFoundError("Assessment", assessment_id)
        return assessment

    async def _get_student(self, student_id: str) -> Student:
        student = await self.students.get_by_id(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    async def _to_results(self, attempts: Iterable[Attempt]) -> List[AttemptResult]:
        assessments: Dict[str, Optional[Assessment]] = {}
        students: Dict[str, Optional[Student]] = {}
        results = []

        for attempt in attempts:
            if attempt.assessment_id not in assessments:
                assessments[attempt.assessment_id] = await self.assessments.get_by_id(attempt.assessment_id)
            if attempt.student_id not in students:
                students[attempt.student_id] = await self.students.get_by_id(attempt.student_id)
            assessment = assessments[attempt.assessment_id]
            student = students[attempt.student_id]

            results.append(AttemptResult(
                attempt_id=attempt.attempt_id,
                assessment_id=attempt.assessment_id,
                assessment_title=assessment.title if assessment else "Unknown",
                course_id=attempt.course_id or (assessment.course_id if assessment else ""),
                student_id=attempt.student_id,
                student_name=student.name if student else "Unknown",
                score=attempt.score,
                max_score=attempt.max_score,
                attempt_timestamp=attempt.attempt_timestamp,
                time_taken_seconds=attempt.time_taken_seconds,
            ))
        return results

    def _publish(self, event: LifecycleEvent) -> None:
        try:
            self.publisher.publish(event)
        except Exception as e:
            logger.error(
                f"Failed to publish {event.event_type} event for assessment {event.assessment_id}: {e}",
                exc_info=True
            )
            get_metrics_service().counter("events.publish_failures", labels={"event_type": event.event_type})
