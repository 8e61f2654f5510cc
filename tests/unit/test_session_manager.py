"""
Unit tests for the session lifecycle manager.

All collaborators are in-memory fakes; every question in the bank has
"<id> option 1" as its correct option.
"""

import pytest

from practice_engine.errors import (
    ConcurrentUpdate,
    InsufficientQuestions,
    InvalidState,
    NotFound,
    UpstreamUnavailable,
    ValidationError,
)
from practice_engine.models import (
    PresentationType,
    QuestionRecord,
    QuestionSource,
    QuestionType,
    SessionConfig,
    SessionStatus,
    SessionType,
)
from practice_engine.services.session_manager import SessionLifecycleManager
from tests.conftest import make_bank
from tests.fakes import InMemoryQuestionStore

OWNER = "learner-1"


def correct_letter(question):
    return next(o.letter for o in question.options if o.text.endswith("option 1"))


def wrong_letter(question):
    return next(o.letter for o in question.options if not o.text.endswith("option 1"))


async def start(manager, session_type=SessionType.PYQ_ONLY, count=10, **config):
    return await manager.start(OWNER, session_type, SessionConfig(count=count, **config))


class TestStart:
    @pytest.mark.asyncio
    async def test_exact_count_and_frozen_questions(self, manager, session_store):
        started = await start(manager)

        assert started.total_count == 10
        assert len(started.questions) == 10
        assert [q.index for q in started.questions] == list(range(10))
        assert started.time_budget_seconds == 10 * 72

        stored = session_store.sessions[started.session_id]
        assert stored.status == SessionStatus.ACTIVE
        assert [q.question_id for q in stored.questions] == [q.id for q in started.questions]
        assert all(sorted(q.permutation) == [0, 1, 2, 3] for q in stored.questions)

    @pytest.mark.asyncio
    async def test_presented_questions_carry_no_answer_key(self, manager):
        started = await start(manager)

        payload = started.model_dump()
        for question in payload["questions"]:
            assert set(question["options"][0]) == {"letter", "text"}
            assert "correct_answer" not in question
            assert "explanation" not in question

    @pytest.mark.asyncio
    async def test_mixed_session(self, manager):
        started = await start(manager, SessionType.MIXED)

        sources = [q.source for q in started.questions]
        assert sources.count(QuestionSource.PYQ) == 5
        assert sources.count(QuestionSource.GENERATED) == 5

    @pytest.mark.asyncio
    async def test_session_type_accepts_string(self, manager):
        started = await manager.start(OWNER, "generated_only", SessionConfig(count=10))
        assert all(q.source == QuestionSource.GENERATED for q in started.questions)
        assert started.config.source.value == "generated"

    @pytest.mark.asyncio
    async def test_unknown_session_type(self, manager):
        with pytest.raises(ValidationError):
            await manager.start(OWNER, "adaptive", SessionConfig(count=10))

    @pytest.mark.asyncio
    async def test_count_must_be_allowed_size(self, manager):
        with pytest.raises(ValidationError):
            await start(manager, count=15)

    @pytest.mark.asyncio
    async def test_source_must_agree_with_session_type(self, manager):
        with pytest.raises(ValidationError):
            await start(manager, SessionType.PYQ_ONLY, source="generated")

    @pytest.mark.asyncio
    async def test_insufficient_questions_creates_nothing(self, manager, session_store):
        with pytest.raises(InsufficientQuestions) as exc_info:
            await start(manager, count=20)

        assert exc_info.value.requested == 20
        assert exc_info.value.found == 12
        assert session_store.sessions == {}

    @pytest.mark.asyncio
    async def test_mains_questions_have_no_options(self, session_store, attempt_log, rng):
        mains = [
            QuestionRecord(
                id=f"mains-{n}",
                source=QuestionSource.PYQ,
                text="Discuss.",
                question_type=QuestionType.MAINS_150,
                correct_answer="model answer",
            )
            for n in range(10)
        ]
        manager = SessionLifecycleManager(InMemoryQuestionStore(mains), session_store, attempt_log, rng=rng)

        started = await start(manager)

        assert all(q.type == PresentationType.MAINS and q.options is None for q in started.questions)
        assert started.time_budget_seconds == 10 * 450


class TestProgress:
    @pytest.mark.asyncio
    async def test_save_merges_answers(self, manager):
        started = await start(manager)
        sid = started.session_id

        await manager.save_progress(sid, OWNER, answers={0: "A"}, question_times={0: 10.0})
        session = await manager.save_progress(
            sid, OWNER, current_index=2, answers={1: "B"}, question_times={1: 5.0}
        )

        assert session.answers == {0: "A", 1: "B"}
        assert session.question_times == {0: 10.0, 1: 5.0}
        assert session.current_index == 2

    @pytest.mark.asyncio
    async def test_save_is_idempotent(self, manager):
        started = await start(manager)
        sid = started.session_id
        payload = dict(current_index=3, answers={0: "C", 2: "D"}, question_times={0: 4.0, 2: 9.5})

        first = await manager.save_progress(sid, OWNER, **payload)
        second = await manager.save_progress(sid, OWNER, **payload)

        assert second.answers == first.answers
        assert second.question_times == first.question_times
        assert second.current_index == first.current_index

    @pytest.mark.asyncio
    async def test_later_answer_overwrites_earlier(self, manager):
        started = await start(manager)
        await manager.save_progress(started.session_id, OWNER, answers={0: "A"})
        session = await manager.save_progress(started.session_id, OWNER, answers={0: "D"})
        assert session.answers == {0: "D"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"answers": {10: "A"}},
        {"question_times": {-1: 3.0}},
        {"current_index": 10},
        {"question_times": {0: -2.0}},
    ])
    async def test_out_of_range_rejected(self, manager, kwargs):
        started = await start(manager)
        with pytest.raises(ValidationError):
            await manager.save_progress(started.session_id, OWNER, **kwargs)

    @pytest.mark.asyncio
    async def test_foreign_owner_not_found(self, manager):
        started = await start(manager)
        with pytest.raises(NotFound):
            await manager.save_progress(started.session_id, "someone-else", answers={0: "A"})

    @pytest.mark.asyncio
    async def test_unknown_session_not_found(self, manager):
        with pytest.raises(NotFound):
            await manager.save_progress("missing", OWNER, answers={0: "A"})

    @pytest.mark.asyncio
    async def test_concurrent_update_after_retries(self, manager, session_store):
        started = await start(manager)
        session_store.conflicts = 10

        with pytest.raises(ConcurrentUpdate) as exc_info:
            await manager.save_progress(started.session_id, OWNER, answers={0: "A"})
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_transient_conflict_is_retried(self, manager, session_store):
        started = await start(manager)
        session_store.conflicts = 2

        session = await manager.save_progress(started.session_id, OWNER, answers={0: "A"})
        assert session.answers == {0: "A"}


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_round_trip(self, manager):
        started = await start(manager)
        sid = started.session_id
        answers = {0: "B", 3: "A"}
        times = {0: 20.0, 1: 12.5, 3: 30.0}

        paused = await manager.pause(sid, OWNER, current_index=4, answers=answers, question_times=times)
        assert paused.status == SessionStatus.PAUSED
        assert paused.elapsed_seconds == 62.5
        assert paused.paused_at is not None

        resumed = await manager.resume(sid, OWNER)

        assert resumed.questions == started.questions
        assert resumed.answers == answers
        assert resumed.question_times == times
        assert resumed.current_index == 4
        assert resumed.elapsed_seconds == 62.5
        assert resumed.config == started.config
        assert resumed.remaining_seconds == started.time_budget_seconds - 62.5

        session = await manager.get_session(sid, OWNER)
        assert session.status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_paused_session_rejects_progress(self, manager):
        started = await start(manager)
        await manager.pause(started.session_id, OWNER)

        with pytest.raises(InvalidState):
            await manager.save_progress(started.session_id, OWNER, answers={0: "A"})
        with pytest.raises(InvalidState):
            await manager.pause(started.session_id, OWNER)

    @pytest.mark.asyncio
    async def test_resume_requires_paused(self, manager):
        started = await start(manager)
        with pytest.raises(NotFound):
            await manager.resume(started.session_id, OWNER)

    @pytest.mark.asyncio
    async def test_resume_keeps_session_paused_when_store_fails(self, manager, question_store):
        started = await start(manager)
        await manager.pause(started.session_id, OWNER)
        question_store.fail = True

        with pytest.raises(UpstreamUnavailable):
            await manager.resume(started.session_id, OWNER)

        session = await manager.get_session(started.session_id, OWNER)
        assert session.status == SessionStatus.PAUSED

    @pytest.mark.asyncio
    async def test_list_paused(self, manager):
        first = await start(manager)
        await start(manager)
        await manager.pause(first.session_id, OWNER, answers={0: "A"})

        paused = await manager.list_paused(OWNER)

        assert [s.id for s in paused] == [first.session_id]
        assert paused[0].answered_count == 1
        assert await manager.list_paused("someone-else") == []

    @pytest.mark.asyncio
    async def test_latest_active(self, manager):
        first = await start(manager)
        second = await start(manager)
        await manager.pause(second.session_id, OWNER)

        active = await manager.latest_active(OWNER)

        assert active.id == first.session_id
        assert active.status == SessionStatus.ACTIVE
        assert await manager.latest_active("someone-else") is None

        await manager.pause(first.session_id, OWNER)
        assert await manager.latest_active(OWNER) is None


class TestComplete:
    @pytest.mark.asyncio
    async def test_seven_of_ten(self, manager, attempt_log):
        started = await start(manager)
        answers = {
            q.index: correct_letter(q) if q.index < 7 else wrong_letter(q)
            for q in started.questions
        }

        result = await manager.complete(started.session_id, OWNER, answers=answers, total_time=600)

        assert result.score == 7
        assert result.total == 10
        assert result.accuracy == 70.0
        assert result.time_taken == 600
        assert result.attempts_recorded
        assert len(attempt_log.attempts) == 10
        assert result.recommendation is not None

    @pytest.mark.asyncio
    async def test_merges_saved_and_final_answers(self, manager):
        started = await start(manager)
        questions = started.questions
        await manager.save_progress(
            started.session_id, OWNER, answers={0: correct_letter(questions[0])}
        )

        result = await manager.complete(
            started.session_id, OWNER, answers={1: correct_letter(questions[1])}
        )

        assert result.score == 2
        assert [r.answered for r in result.results[:3]] == [True, True, False]

    @pytest.mark.asyncio
    async def test_only_answered_questions_recorded(self, manager, attempt_log):
        started = await start(manager)
        answers = {q.index: correct_letter(q) for q in started.questions[:4]}

        await manager.complete(started.session_id, OWNER, answers=answers)

        assert sorted(a.question_index for a in attempt_log.attempts) == [0, 1, 2, 3]
        assert all(a.session_id == started.session_id for a in attempt_log.attempts)
        assert all(a.is_correct for a in attempt_log.attempts)

    @pytest.mark.asyncio
    async def test_can_complete_from_paused(self, manager):
        started = await start(manager)
        await manager.pause(started.session_id, OWNER)

        result = await manager.complete(started.session_id, OWNER)

        assert result.score == 0
        session = await manager.get_session(started.session_id, OWNER)
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_completed_is_final(self, manager):
        started = await start(manager)
        await manager.complete(started.session_id, OWNER)

        with pytest.raises(InvalidState):
            await manager.complete(started.session_id, OWNER)
        with pytest.raises(InvalidState):
            await manager.save_progress(started.session_id, OWNER, answers={0: "A"})
        with pytest.raises(InvalidState):
            await manager.pause(started.session_id, OWNER)
        with pytest.raises(NotFound):
            await manager.resume(started.session_id, OWNER)

    @pytest.mark.asyncio
    async def test_weak_topics_reported(self, manager):
        started = await start(manager)
        answers = {
            q.index: wrong_letter(q) if q.topic == "Polity" else correct_letter(q)
            for q in started.questions
        }

        result = await manager.complete(started.session_id, OWNER, answers=answers)

        assert "Polity" in result.weak_topics
        assert "Polity" not in result.strong_topics

    @pytest.mark.asyncio
    async def test_attempt_failures_do_not_fail_completion(self, manager, attempt_log):
        started = await start(manager)
        answers = {q.index: correct_letter(q) for q in started.questions}
        attempt_log.failures_remaining = 1000

        result = await manager.complete(started.session_id, OWNER, answers=answers)

        assert result.score == 10
        assert not result.attempts_recorded
        session = await manager.get_session(started.session_id, OWNER)
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_single_failure_is_retried(self, manager, attempt_log):
        started = await start(manager)
        attempt_log.failures_remaining = 1

        result = await manager.complete(
            started.session_id, OWNER, answers={0: correct_letter(started.questions[0])}
        )

        assert result.attempts_recorded
        assert len(attempt_log.attempts) == 1


class TestAfterCompletion:
    @pytest.mark.asyncio
    async def test_review_requires_completion(self, manager):
        started = await start(manager)
        with pytest.raises(InvalidState):
            await manager.review(started.session_id, OWNER)

    @pytest.mark.asyncio
    async def test_review_reveals_answers(self, manager):
        started = await start(manager)
        first = started.questions[0]
        await manager.complete(started.session_id, OWNER, answers={0: wrong_letter(first)})

        results = await manager.review(started.session_id, OWNER)

        assert len(results) == 10
        assert results[0].correct_answer == correct_letter(first)
        assert results[0].explanation == f"Because of {first.id}."
        assert not results[0].is_correct

    @pytest.mark.asyncio
    async def test_retry_attempt_recording_never_duplicates(self, manager, attempt_log):
        started = await start(manager)
        answers = {q.index: correct_letter(q) for q in started.questions[:6]}
        attempt_log.failures_remaining = 1000
        await manager.complete(started.session_id, OWNER, answers=answers)
        assert attempt_log.attempts == []

        attempt_log.failures_remaining = 0
        status = await manager.retry_attempt_recording(started.session_id, OWNER)
        assert status.recorded == 6
        assert status.pending == 0

        again = await manager.retry_attempt_recording(started.session_id, OWNER)
        assert again.pending == 0
        assert len(attempt_log.attempts) == 6

    @pytest.mark.asyncio
    async def test_retry_requires_completion(self, manager):
        started = await start(manager)
        with pytest.raises(InvalidState):
            await manager.retry_attempt_recording(started.session_id, OWNER)

    @pytest.mark.asyncio
    async def test_history_lists_completed(self, manager):
        done = await start(manager)
        await start(manager)
        await manager.complete(done.session_id, OWNER)

        history = await manager.history(OWNER)

        assert [s.id for s in history] == [done.session_id]
        assert history[0].status == SessionStatus.COMPLETED
        assert history[0].score == 0


def test_bank_fixture_answers():
    record = make_bank(pyq=1, generated=0)[0]
    assert record.options[record.correct_index()].endswith("option 1")
