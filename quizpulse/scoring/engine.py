"""
Scoring Engine

Turns a question bank and a student's submitted answers into a score.

Scoring is deterministic and free of side effects apart from logging:
- each submitted answer is matched to the first question with the same id
- a question's points are awarded when the answer text equals the correct
  answer exactly (no trimming, no case folding, no partial credit)
- unknown question ids, empty answers, non-string answers and repeated
  answers to an already answered question contribute nothing
- a payload that cannot be processed at all is logged and scores 0, so a
  submission is never lost because of bad data
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from quizpulse.common.exceptions import QuestionBankError
from quizpulse.common.logger import app_logger
from quizpulse.common.metrics import get_metrics_service
from quizpulse.domain.attempts import SubmittedAnswer
from quizpulse.domain.questions import QuestionBank

# Module logger
logger = app_logger.getChild("scoring.engine")


@dataclass(frozen=True)
class AnswerOutcome:
    """How a single submitted answer was scored."""
    question_id: Any
    correct: bool
    points_awarded: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Full result of scoring one submission.

    Attributes:
        score: Total points awarded
        max_score: Sum of the points of every question in the bank
        correct_answers: Number of answers that earned points or matched a zero-point question
        answered: Number of distinct known questions that received a non-empty answer
        outcomes: One outcome per submitted answer, in submission order
    """
    score: int = 0
    max_score: int = 0
    correct_answers: int = 0
    answered: int = 0
    outcomes: Tuple[AnswerOutcome, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "correct_answers": self.correct_answers,
            "answered": self.answered,
            "outcomes": [
                {
                    "question_id": outcome.question_id,
                    "correct": outcome.correct,
                    "points_awarded": outcome.points_awarded,
                    "reason": outcome.reason,
                }
                for outcome in self.outcomes
            ],
        }


def _coerce_answer(entry: Any) -> Optional[SubmittedAnswer]:
    if isinstance(entry, SubmittedAnswer):
        return entry
    if isinstance(entry, dict):
        return SubmittedAnswer.from_dict(entry)
    return None


class ScoringEngine:
    """
    Pure scoring of submissions against a question bank.

    Instances hold no state, so one engine can be shared by any number of
    concurrent submissions.
    """

    def evaluate(
        self,
        question_bank: QuestionBank,
        submitted_answers: Iterable[Any]
    ) -> ScoreBreakdown:
        """
        Score a submission and explain every answer.

        Args:
            question_bank: The assessment's questions
            submitted_answers: SubmittedAnswer objects or answer dictionaries

        Returns:
            The score breakdown; an empty breakdown if the input is unusable
        """
        try:
            return self._evaluate(question_bank, submitted_answers)
        except Exception as e:
            logger.error(f"Error calculating score: {e}", exc_info=True)
            get_metrics_service().counter("scoring.failures")
            return ScoreBreakdown()

    def score(self, question_bank: QuestionBank, submitted_answers: Iterable[Any]) -> int:
        """
        Total points for a submission.

        Never raises; malformed input scores 0.
        """
        return self.evaluate(question_bank, submitted_answers).score

    def score_raw(self, questions_json: str, answers: Any) -> int:
        """
        Score the JSON storage form of a question bank.

        Args:
            questions_json: The stored question bank JSON
            answers: Answer dictionaries or SubmittedAnswer objects

        Returns:
            Total points, or 0 if the bank cannot be parsed
        """
        try:
            question_bank = QuestionBank.from_json(questions_json)
        except QuestionBankError as e:
            logger.error(f"Error calculating score: {e.message}", exc_info=True)
            get_metrics_service().counter("scoring.failures")
            return 0
        return self.score(question_bank, answers)

    def is_correct(self, question_bank: QuestionBank, question_id: Any, answer_text: Any) -> bool:
        """Whether ``answer_text`` is the correct answer to ``question_id``."""
        if isinstance(question_id, bool) or not isinstance(question_id, int):
            return False
        question = question_bank.get(question_id)
        return question is not None and question.is_correct(answer_text)

    def _evaluate(self, question_bank: QuestionBank, submitted_answers: Iterable[Any]) -> ScoreBreakdown:
        if not isinstance(question_bank, QuestionBank):
            raise TypeError(f"Expected a QuestionBank, got {type(question_bank).__name__}")
        if submitted_answers is None:
            submitted_answers = ()

        outcomes: List[AnswerOutcome] = []
        seen = set()
        score = 0
        correct_answers = 0

        for entry in submitted_answers:
            answer = _coerce_answer(entry)
            if answer is None:
                outcomes.append(AnswerOutcome(None, False, 0, "malformed"))
                continue

            question_id = answer.question_id
            if isinstance(question_id, bool) or not isinstance(question_id, int):
                outcomes.append(AnswerOutcome(question_id, False, 0, "malformed"))
                continue

            question = question_bank.get(question_id)
            if question is None:
                outcomes.append(AnswerOutcome(question_id, False, 0, "unknown_question"))
                continue

            if not isinstance(answer.answer_text, str) or answer.answer_text == "":
                outcomes.append(AnswerOutcome(question_id, False, 0, "empty"))
                continue

            if question_id in seen:
                # Only the first answer to a question counts
                outcomes.append(AnswerOutcome(question_id, False, 0, "duplicate"))
                continue
            seen.add(question_id)

            if question.is_correct(answer.answer_text):
                score += question.points
                correct_answers += 1
                outcomes.append(AnswerOutcome(question_id, True, question.points))
            else:
                outcomes.append(AnswerOutcome(question_id, False, 0, "incorrect"))

        skipped = sum(1 for outcome in outcomes if outcome.reason not in (None, "incorrect"))
        if skipped:
            logger.debug(f"Scored submission with {skipped} answer(s) contributing nothing")

        return ScoreBreakdown(
            score=score,
            max_score=question_bank.max_score,
            correct_answers=correct_answers,
            answered=len(seen),
            outcomes=tuple(outcomes),
        )


# Default engine used by the module-level helpers
_default_engine = ScoringEngine()


def score(question_bank: QuestionBank, submitted_answers: Iterable[Any]) -> int:
    """Score a submission with the default engine."""
    return _default_engine.score(question_bank, submitted_answers)


def get_scoring_engine() -> ScoringEngine:
    """Get the default scoring engine."""
    return _default_engine
