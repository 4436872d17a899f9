"""
Question Domain Model Module

This module defines the question bank of an assessment. Question banks are
immutable once an assessment is created; they are stored by the surrounding
application as a JSON array and parsed back with ``QuestionBank.from_json``.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from quizpulse.common.exceptions import QuestionBankError
from quizpulse.config import get_settings


def _normalise_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    # "CorrectAnswer", "correctAnswer" and "correct_answer" all map to "correctanswer"
    return {str(key).replace("_", "").lower(): value for key, value in data.items()}


@dataclass(frozen=True)
class Question:
    """
    A single question of an assessment.

    Attributes:
        id: Identifier used by submitted answers to refer to this question
        text: The question text
        options: Ordered answer options shown to the student
        correct_answer: The option text that earns the points
        points: Points awarded for a correct answer
    """
    id: int
    text: str
    options: Tuple[str, ...] = ()
    correct_answer: str = ""
    points: int = 1

    def __post_init__(self):
        if isinstance(self.id, bool) or not isinstance(self.id, int):
            raise QuestionBankError(f"Question id must be an integer, got {self.id!r}")
        if isinstance(self.points, bool) or not isinstance(self.points, int) or self.points < 0:
            raise QuestionBankError(
                f"Question {self.id} points must be a non-negative integer, got {self.points!r}"
            )
        if not isinstance(self.correct_answer, str):
            raise QuestionBankError(f"Question {self.id} correct answer must be a string")
        # Accept any iterable of options but store a tuple
        object.__setattr__(self, "options", tuple(self.options))

    def is_correct(self, answer_text: Any) -> bool:
        """Exact, case-sensitive comparison against the correct answer."""
        return isinstance(answer_text, str) and answer_text == self.correct_answer

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "points": self.points,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Question':
        """
        Create a Question from a stored dictionary.

        Both the camel/pascal-case storage keys (``Id``, ``CorrectAnswer``)
        and snake_case keys are accepted. ``points`` defaults to the
        configured default when absent.

        Raises:
            QuestionBankError: If the dictionary is not a valid question
        """
        if not isinstance(data, dict):
            raise QuestionBankError(f"Question entry must be an object, got {type(data).__name__}")

        values = _normalise_keys(data)
        if "id" not in values:
            raise QuestionBankError("Question entry is missing its id")

        options = values.get("options") or []
        if not isinstance(options, (list, tuple)):
            raise QuestionBankError(f"Question {values['id']!r} options must be a list")

        correct_answer = values.get("correctanswer")
        return cls(
            id=values["id"],
            text=str(values.get("text") or ""),
            options=tuple(str(option) for option in options),
            correct_answer="" if correct_answer is None else correct_answer,
            points=values.get("points", get_settings().DEFAULT_QUESTION_POINTS),
        )


@dataclass(frozen=True)
class QuestionBank:
    """
    Ordered, immutable collection of the questions of one assessment.
    """
    questions: Tuple[Question, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "questions", tuple(self.questions))

    def __iter__(self) -> Iterator[Question]:
        return iter(self.questions)

    def __len__(self) -> int:
        return len(self.questions)

    @property
    def max_score(self) -> int:
        """Sum of the points of every question."""
        return sum(question.points for question in self.questions)

    def get(self, question_id: int) -> Optional[Question]:
        """Return the first question with the given id, or None."""
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def at_index(self, index: int) -> Optional[Question]:
        """Return the question at a zero-based position, or None."""
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        return [question.to_dict() for question in self.questions]

    def to_json(self) -> str:
        return json.dumps(self.to_list())

    @classmethod
    def from_list(cls, entries: Iterable[Dict[str, Any]]) -> 'QuestionBank':
        """
        Build a bank from a list of question dictionaries.

        Raises:
            QuestionBankError: If the payload or any entry is invalid
        """
        if isinstance(entries, (str, bytes, dict)) or entries is None:
            raise QuestionBankError("Question bank must be a list of questions")
        try:
            return cls(tuple(Question.from_dict(entry) for entry in entries))
        except TypeError as e:
            raise QuestionBankError("Question bank must be a list of questions", cause=e)

    @classmethod
    def from_json(cls, payload: str) -> 'QuestionBank':
        """
        Parse the JSON storage form of a question bank.

        An empty string or ``null`` yields an empty bank.

        Raises:
            QuestionBankError: If the JSON is malformed or not a list of questions
        """
        if not payload:
            return cls()
        try:
            entries = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise QuestionBankError("Question bank is not valid JSON", cause=e)
        if entries is None:
            return cls()
        return cls.from_list(entries)
