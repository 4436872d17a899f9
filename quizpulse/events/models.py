"""
Quiz Lifecycle Events

Immutable messages announcing quiz-taking milestones: a student started an
assessment, answered a question, or submitted. Events travel through a
best-effort transport, so consumers must expect them to be lost,
duplicated or reordered.

On the wire events use camelCase keys (``eventType``, ``assessmentId``...);
snake_case and PascalCase keys are accepted when parsing.
"""

import enum
import json
import uuid
from datetime import datetime
from typing import Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, validator

from quizpulse.common.exceptions import EventValidationError
from quizpulse.common.utils import ensure_utc, percentage, utc_now


class EventType(str, enum.Enum):
    """Discriminator values of the lifecycle events."""
    START = "QuizStart"
    ANSWER = "QuizAnswer"
    SUBMIT = "QuizSubmit"


def to_camel(name: str) -> str:
    first, *rest = name.split("_")
    return first + "".join(word.capitalize() for word in rest)


class LifecycleEvent(BaseModel):
    """
    Fields shared by every lifecycle event.
    """
    event_type: str
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    assessment_id: str
    course_id: Optional[str] = None
    student_id: str
    student_name: str = "Unknown"
    timestamp: datetime = Field(default_factory=utc_now)

    class Config:
        allow_mutation = False
        alias_generator = to_camel
        allow_population_by_field_name = True
        extra = "ignore"

    @validator("event_id", "assessment_id", "course_id", "student_id", pre=True)
    def ids_as_strings(cls, v):
        # UUIDs and integer ids from other services are kept as their string form
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (uuid.UUID, int)) and not isinstance(v, bool):
            return str(v)
        return v

    @validator("timestamp")
    def timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-compatible dictionary with camelCase keys."""
        return json.loads(self.json(by_alias=True))

    def to_json(self) -> str:
        return self.json(by_alias=True)


class QuizStartEvent(LifecycleEvent):
    """A student started an assessment."""
    event_type: Literal["QuizStart"] = EventType.START.value
    assessment_title: str = ""


class QuizAnswerEvent(LifecycleEvent):
    """A student answered one question."""
    event_type: Literal["QuizAnswer"] = EventType.ANSWER.value
    question_index: int = Field(..., ge=0)
    is_correct: bool
    time_taken_seconds: int = Field(0, ge=0)


class QuizSubmitEvent(LifecycleEvent):
    """
    A student submitted an assessment.

    ``total_questions`` and ``correct_answers`` are computed once at
    submission time and are authoritative for the student's final progress.
    """
    event_type: Literal["QuizSubmit"] = EventType.SUBMIT.value
    score: int = Field(..., ge=0)
    max_score: int = Field(..., ge=0)
    total_questions: int = Field(0, ge=0)
    correct_answers: int = Field(0, ge=0)
    total_time_seconds: int = Field(0, ge=0)

    @property
    def score_percentage(self) -> float:
        return percentage(self.score, self.max_score)


AnyLifecycleEvent = Union[QuizStartEvent, QuizAnswerEvent, QuizSubmitEvent]

EVENT_TYPES: Dict[str, Type[LifecycleEvent]] = {
    EventType.START.value: QuizStartEvent,
    EventType.ANSWER.value: QuizAnswerEvent,
    EventType.SUBMIT.value: QuizSubmitEvent,
}


def _normalise_key(key: str) -> str:
    # PascalCase "AssessmentId" -> camelCase "assessmentId"
    return key[:1].lower() + key[1:] if key and "_" not in key else key


def parse_event(payload: Union[AnyLifecycleEvent, Dict[str, Any], str, bytes]) -> AnyLifecycleEvent:
    """
    Deserialize a payload into the matching lifecycle event variant.

    Args:
        payload: An event, a dictionary, or a JSON document

    Returns:
        The parsed event

    Raises:
        EventValidationError: If the payload is not a valid lifecycle event
    """
    if isinstance(payload, LifecycleEvent):
        return payload

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise EventValidationError("Event payload is not valid JSON", cause=e)

    if not isinstance(payload, dict):
        raise EventValidationError(
            f"Event payload must be an object, got {type(payload).__name__}"
        )

    data = {_normalise_key(str(key)): value for key, value in payload.items()}
    event_type = data.get("eventType", data.get("event_type"))
    event_class = EVENT_TYPES.get(event_type) if isinstance(event_type, str) else None
    if event_class is None:
        raise EventValidationError(
            f"Unknown event type: {event_type!r}",
            details={"event_type": str(event_type)}
        )

    try:
        return event_class.parse_obj(data)
    except PydanticValidationError as e:
        raise EventValidationError(
            f"Invalid {event_type} event",
            details={"errors": e.errors()},
            cause=e
        )
