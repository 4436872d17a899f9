"""
Tests for the submission service.

This module covers:
1. Scoring, persisting and announcing submissions
2. Validation of assessments and students
3. Isolation of submissions from event delivery failures
4. Result queries and summaries
5. The full pipeline from submission to live monitor
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from quizpulse.app import create_app, lifespan
from quizpulse.common.exceptions import ErrorCode, NotFoundError, PublishError, ValidationError
from quizpulse.common.metrics import InMemoryMetricsBackend, LoggingMetricsBackend, set_metrics_backend
from quizpulse.domain.assessments import Assessment, MemoryAssessmentRepository
from quizpulse.domain.attempts import MemoryAttemptRepository, SubmittedAnswer
from quizpulse.domain.questions import Question, QuestionBank
from quizpulse.domain.roster import MemoryRoster, Student
from quizpulse.events.models import QuizAnswerEvent, QuizStartEvent, QuizSubmitEvent
from quizpulse.events.publisher import AsyncEventPublisher
from quizpulse.submissions import SubmissionService


@pytest.fixture
def metrics():
    backend = InMemoryMetricsBackend()
    set_metrics_backend(backend)
    yield backend
    set_metrics_backend(LoggingMetricsBackend())


@pytest.fixture
def assessment():
    bank = QuestionBank((
        Question(id=1, text="Q1", options=("A", "B"), correct_answer="B", points=2),
        Question(id=2, text="Q2", options=("A", "C"), correct_answer="A", points=3),
    ))
    return Assessment(course_id="c1", title="Midterm", question_bank=bank, assessment_id="a1")


@pytest.fixture
def roster():
    roster = MemoryRoster([Student("s1", "Ada"), Student("s2", "Ben")])
    roster.enroll("c1", "s1")
    roster.enroll("c1", "s2")
    return roster


@pytest.fixture
def publisher():
    return MagicMock()


@pytest.fixture
def service(assessment, roster, publisher):
    return SubmissionService(
        assessments=MemoryAssessmentRepository([assessment]),
        attempts=MemoryAttemptRepository(),
        students=roster,
        publisher=publisher,
    )


def published_events(publisher):
    return [call.args[0] for call in publisher.publish.call_args_list]


@pytest.mark.asyncio
async def test_submit_scores_persists_and_announces(service, publisher, metrics):
    attempt = await service.submit(
        "a1", "s1",
        [{"questionId": 1, "answerText": "B"}, {"questionId": 2, "answerText": "C"}],
        time_taken_seconds=120,
    )

    assert attempt.score == 2
    assert attempt.max_score == 5
    assert attempt.course_id == "c1"
    assert attempt.submitted_answers == (SubmittedAnswer(1, "B"), SubmittedAnswer(2, "C"))
    assert await service.attempts.get_by_id(attempt.attempt_id) == attempt
    assert metrics.get_counter("submissions.created") == 1

    (event,) = published_events(publisher)
    assert isinstance(event, QuizSubmitEvent)
    assert event.score == 2
    assert event.max_score == 5
    assert event.total_questions == 2
    assert event.correct_answers == 1
    assert event.total_time_seconds == 120
    assert event.student_name == "Ada"
    assert event.course_id == "c1"


@pytest.mark.asyncio
async def test_resubmission_creates_a_second_attempt(service):
    first = await service.submit("a1", "s1", [SubmittedAnswer(1, "A")])
    second = await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])

    assert first.attempt_id != second.attempt_id
    attempts = await service.attempts.list_by_assessment("a1")
    assert {a.attempt_id for a in attempts} == {first.attempt_id, second.attempt_id}


@pytest.mark.asyncio
async def test_attempt_uses_declared_max_score(roster, publisher):
    bank = QuestionBank((Question(id=1, text="Q", correct_answer="A", points=1),))
    declared = Assessment(course_id="c1", title="Quiz", question_bank=bank, max_score=20, assessment_id="a2")
    service = SubmissionService(
        MemoryAssessmentRepository([declared]), MemoryAttemptRepository(), roster, publisher
    )

    attempt = await service.submit("a2", "s1", [SubmittedAnswer(1, "A")])

    assert attempt.max_score == 20
    assert published_events(publisher)[0].max_score == 20


@pytest.mark.asyncio
async def test_score_stays_within_max_score(roster, publisher):
    bank = QuestionBank((Question(id=1, text="Q", correct_answer="A", points=10),))
    with pytest.raises(ValidationError):
        Assessment(course_id="c1", title="Quiz", question_bank=bank, max_score=5)

    full = Assessment(course_id="c1", title="Quiz", question_bank=bank, assessment_id="a3")
    service = SubmissionService(
        MemoryAssessmentRepository([full]), MemoryAttemptRepository(), roster, publisher
    )

    attempt = await service.submit("a3", "s1", [SubmittedAnswer(1, "A")])
    summary = await service.get_assessment_summary("a3")

    assert 0 <= attempt.score <= attempt.max_score
    assert attempt.score_percentage == pytest.approx(100.0)
    assert summary.average_percentage == pytest.approx(100.0)
    assert published_events(publisher)[0].score_percentage == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_scoring_is_timed(service, metrics):
    await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])

    assert len(metrics.get_timer_values("scoring.duration")) == 1


@pytest.mark.asyncio
async def test_delete_assessment_removes_its_attempts(assessment, roster, publisher):
    other = Assessment(course_id="c1", title="Quiz 2", question_bank=assessment.question_bank, assessment_id="a2")
    service = SubmissionService(
        MemoryAssessmentRepository([assessment, other]), MemoryAttemptRepository(), roster, publisher
    )
    await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])
    await service.submit("a1", "s2", [SubmittedAnswer(1, "A")])
    kept = await service.submit("a2", "s1", [SubmittedAnswer(2, "A")])

    removed = await service.delete_assessment("a1")

    assert removed == 2
    assert await service.assessments.get_by_id("a1") is None
    assert await service.attempts.list_by_assessment("a1") == []
    results = await service.get_course_results("c1")
    assert [result.attempt_id for result in results] == [kept.attempt_id]
    assert all(result.assessment_title != "Unknown" for result in results)


@pytest.mark.asyncio
async def test_delete_unknown_assessment_is_rejected(service):
    await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])

    with pytest.raises(NotFoundError):
        await service.delete_assessment("missing")

    assert len(service.attempts) == 1


@pytest.mark.asyncio
async def test_unknown_assessment_is_rejected(service, publisher):
    with pytest.raises(NotFoundError) as exc_info:
        await service.submit("missing", "s1", [])

    assert exc_info.value.code == ErrorCode.ASSESSMENT_NOT_FOUND
    assert len(service.attempts) == 0
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_student_is_rejected(service, publisher):
    with pytest.raises(NotFoundError) as exc_info:
        await service.submit("a1", "nobody", [])

    assert exc_info.value.code == ErrorCode.STUDENT_NOT_FOUND
    assert len(service.attempts) == 0
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_negative_time_is_rejected(service):
    with pytest.raises(ValidationError):
        await service.submit("a1", "s1", [], time_taken_seconds=-5)


@pytest.mark.asyncio
async def test_malformed_answers_still_produce_an_attempt(service):
    attempt = await service.submit("a1", "s1", ["garbage", {"questionId": "x"}, SubmittedAnswer(2, "A")])

    assert attempt.score == 3
    assert len(attempt.submitted_answers) == 2


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_submission(service, publisher, metrics):
    publisher.publish.side_effect = PublishError("transport down")

    attempt = await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])

    assert attempt.score == 2
    assert len(service.attempts) == 1
    assert metrics.get_counter("events.publish_failures", {"event_type": "QuizSubmit"}) == 1


@pytest.mark.asyncio
async def test_failed_delivery_does_not_fail_submission(assessment, roster, metrics):
    transport = AsyncMock()
    transport.send.side_effect = PublishError("transport down")
    publisher = AsyncEventPublisher(transport)
    service = SubmissionService(
        MemoryAssessmentRepository([assessment]), MemoryAttemptRepository(), roster, publisher
    )

    attempt = await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])
    await publisher.flush()

    assert attempt.score == 2
    transport.send.assert_awaited_once()
    assert metrics.get_counter("events.publish_failures", {"event_type": "QuizSubmit"}) == 1


@pytest.mark.asyncio
async def test_start_announces_and_returns_assessment(service, publisher, assessment):
    result = await service.start("a1", "s2")

    assert result == assessment
    (event,) = published_events(publisher)
    assert isinstance(event, QuizStartEvent)
    assert event.assessment_title == "Midterm"
    assert event.student_name == "Ben"


@pytest.mark.asyncio
async def test_start_validates_inputs(service, publisher):
    with pytest.raises(NotFoundError):
        await service.start("missing", "s1")
    with pytest.raises(NotFoundError):
        await service.start("a1", "missing")
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_answer_checks_by_position(service, publisher):
    assert await service.answer("a1", "s1", 0, "B", time_taken_seconds=15) is True
    assert await service.answer("a1", "s1", 1, "C") is False

    first, second = published_events(publisher)
    assert isinstance(first, QuizAnswerEvent)
    assert first.question_index == 0 and first.is_correct
    assert first.time_taken_seconds == 15
    assert not second.is_correct
    assert len(service.attempts) == 0


@pytest.mark.asyncio
async def test_answer_rejects_out_of_range_index(service):
    with pytest.raises(ValidationError):
        await service.answer("a1", "s1", 5, "B")


@pytest.mark.asyncio
async def test_student_results_newest_first(service):
    first = await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])
    second = await service.submit("a1", "s1", [SubmittedAnswer(2, "A")])
    await service.submit("a1", "s2", [])

    results = await service.get_student_results("s1")

    assert [r.attempt_id for r in results] == [second.attempt_id, first.attempt_id]
    assert results[0].assessment_title == "Midterm"
    assert results[0].student_name == "Ada"
    assert results[0].score_percentage == pytest.approx(60.0)
    assert await service.get_student_results("s1", course_id="other") == []


@pytest.mark.asyncio
async def test_course_results(service):
    await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])
    await service.submit("a1", "s2", [SubmittedAnswer(2, "A")])

    results = await service.get_course_results("c1")

    assert {r.student_name for r in results} == {"Ada", "Ben"}
    assert await service.get_course_results("c2") == []


@pytest.mark.asyncio
async def test_assessment_summary(service):
    assert await service.get_assessment_summary("a1") is None

    await service.submit("a1", "s1", [SubmittedAnswer(1, "B"), SubmittedAnswer(2, "A")])
    await service.submit("a1", "s2", [SubmittedAnswer(1, "B")])

    summary = await service.get_assessment_summary("a1")

    assert summary.assessment_title == "Midterm"
    assert summary.course_id == "c1"
    assert summary.total_attempts == 2
    assert summary.highest_score == 5
    assert summary.lowest_score == 2
    assert summary.average_percentage == pytest.approx(70.0)


@pytest.mark.asyncio
async def test_assessment_summary_for_unknown_assessment(service):
    with pytest.raises(NotFoundError):
        await service.get_assessment_summary("missing")


@pytest.mark.asyncio
async def test_course_summary(service):
    assert await service.get_course_summary("c1") is None

    await service.submit("a1", "s1", [SubmittedAnswer(2, "A")])

    summary = await service.get_course_summary("c1")
    assert summary.assessment_id == "a1"
    assert summary.average_score == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_best_results_and_distribution(service):
    await service.submit("a1", "s1", [SubmittedAnswer(1, "B")])
    await service.submit("a1", "s1", [SubmittedAnswer(1, "B"), SubmittedAnswer(2, "A")])
    await service.submit("a1", "s2", [])

    best = await service.get_best_results("a1")
    distribution = await service.get_score_distribution("a1")

    assert [(r.student_id, r.score) for r in best] == [("s1", 5), ("s2", 0)]
    assert distribution["91-100"] == 1
    assert distribution["0-50"] == 1


@pytest.mark.asyncio
async def test_pipeline_feeds_live_monitor(assessment):
    roster = MemoryRoster([Student("s1", "Ada"), Student("s2", "Ben"), Student("s3", "Cy")])
    for student_id in ("s1", "s2", "s3"):
        roster.enroll("c1", student_id)
    app = create_app(assessments=MemoryAssessmentRepository([assessment]), roster=roster)

    async with lifespan(app):
        monitor = await app.monitors.open("a1", course_id="c1")

        await app.submissions.start("a1", "s1")
        await app.submissions.answer("a1", "s1", 0, "B")
        await app.submissions.submit("a1", "s1", [SubmittedAnswer(1, "B"), SubmittedAnswer(2, "A")])
        await app.submissions.start("a1", "s2")
        await app.publisher.flush()
        for _ in range(5):
            await asyncio.sleep(0)

        snapshot = monitor.snapshot()
        assert snapshot.participation_rate == pytest.approx(66.67, abs=0.01)
        assert snapshot.completion_rate == pytest.approx(33.33, abs=0.01)
        assert snapshot.average_score_percent == pytest.approx(100.0)
        assert snapshot.get_student("s1").correct_answers == 2
        assert snapshot.get_question(0).success_rate == pytest.approx(100.0)

    assert len(app.monitors) == 0
    assert monitor.closed
