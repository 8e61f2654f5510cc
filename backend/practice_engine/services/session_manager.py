"""Practice session lifecycle: start, save, pause, resume, complete.

State machine::

    active --pause--> paused --resume--> active
    active|paused --complete--> completed   (final)

The manager keeps no state between calls. Every mutation is a pure function
of the stored session handed to ``SessionStore.write``, which applies it
atomically per session.
"""

import logging
import random
from datetime import datetime

from practice_engine.config import settings
from practice_engine.errors import (
    InvalidState,
    NotFound,
    UpstreamUnavailable,
    ValidationError,
)
from practice_engine.models import (
    OPTION_LETTERS,
    AttemptRecordingStatus,
    DifficultyRecommendation,
    OptionView,
    PracticeSession,
    PresentedQuestion,
    QuestionAttempt,
    QuestionRecord,
    QuestionResult,
    SessionConfig,
    SessionQuestion,
    SessionResult,
    SessionResume,
    SessionStart,
    SessionStatus,
    SessionSummary,
    SessionType,
    SourceSelection,
)
from practice_engine.models.session import SESSION_TYPE_SOURCES

from .ports import AttemptLog, QuestionStore, SessionStore
from .question_selector import QuestionSelector
from .recommender import AdaptiveRecommender
from .scoring import MarkingPolicy, ScoringAggregator, ScoringItem
from .shuffle import apply_permutation, shuffle_options

logger = logging.getLogger(__name__)


def _require_status(session: PracticeSession, allowed: set[SessionStatus], action: str) -> None:
    if session.status not in allowed:
        raise InvalidState(f"Cannot {action} a {session.status.value} session")


class SessionLifecycleManager:
    """Orchestrates practice sessions against the injected collaborators."""

    def __init__(
        self,
        questions: QuestionStore,
        sessions: SessionStore,
        attempts: AttemptLog,
        rng: random.Random | None = None,
        scoring: ScoringAggregator | None = None,
        recommender: AdaptiveRecommender | None = None,
        allowed_sizes: list[int] | None = None,
    ):
        self.questions = questions
        self.sessions = sessions
        self.attempts = attempts
        self.rng = rng or random.Random()
        self.selector = QuestionSelector(questions, self.rng)
        self.scoring = scoring or ScoringAggregator(
            weak_threshold=settings.weak_topic_threshold,
            strong_threshold=settings.strong_topic_threshold,
            min_topic_attempts=settings.min_topic_attempts,
            policy=MarkingPolicy(
                negative_mark_per_wrong=settings.negative_mark_per_wrong,
                unanswered_penalty=settings.unanswered_penalty,
            ),
        )
        self.recommender = recommender or AdaptiveRecommender(
            attempts, window_size=settings.recommendation_window
        )
        self.allowed_sizes = allowed_sizes or settings.allowed_session_sizes
        self.attempt_record_retries = settings.attempt_record_retries

    # ==================== Session Lifecycle ====================

    async def start(
        self,
        owner: str,
        session_type: SessionType | str,
        config: SessionConfig,
    ) -> SessionStart:
        """Start a new session with a frozen question order and option shuffles.

        Raises:
            ValidationError: bad session type, size or source
            InsufficientQuestions: the pool cannot fill the session
        """
        session_type = self._resolve_session_type(session_type)
        source = self._resolve_source(session_type, config)
        if config.count not in self.allowed_sizes:
            raise ValidationError(
                f"count must be one of {sorted(self.allowed_sizes)}, got {config.count}"
            )

        records = await self.selector.select(config, source)

        frozen = []
        presented = []
        for index, record in enumerate(records):
            permutation = None
            if record.is_mcq:
                shuffled = shuffle_options(record.options, record.correct_index(), self.rng)
                permutation = list(shuffled.permutation)
            frozen.append(SessionQuestion(
                question_id=record.id,
                source=record.source,
                permutation=permutation,
            ))
            presented.append(self._present(index, record, permutation))

        session = await self.sessions.create(PracticeSession(
            user_id=owner,
            session_type=session_type,
            config=config.model_copy(update={"source": source}),
            questions=frozen,
        ))
        logger.info(
            f"Started {session_type.value} session {session.id} for user {owner} "
            f"with {len(frozen)} questions"
        )

        return SessionStart(
            session_id=session.id,
            session_type=session_type,
            questions=presented,
            config=session.config,
            total_count=len(presented),
            time_budget_seconds=self.time_budget(records),
        )

    async def save_progress(
        self,
        session_id: str,
        owner: str,
        current_index: int | None = None,
        answers: dict[int, str] | None = None,
        question_times: dict[int, float] | None = None,
    ) -> PracticeSession:
        """Merge answers and per-question times into an active session."""

        def mutate(session: PracticeSession) -> PracticeSession:
            _require_status(session, {SessionStatus.ACTIVE}, "save progress on")
            return self._merge(session, current_index, answers, question_times)

        return await self.sessions.write(session_id, owner, mutate)

    async def pause(
        self,
        session_id: str,
        owner: str,
        current_index: int | None = None,
        answers: dict[int, str] | None = None,
        question_times: dict[int, float] | None = None,
    ) -> PracticeSession:
        """Save progress and move the session to ``paused``.

        The consumed time budget is recorded; the deadline itself is enforced
        by the caller.
        """

        def mutate(session: PracticeSession) -> PracticeSession:
            _require_status(session, {SessionStatus.ACTIVE}, "pause")
            merged = self._merge(session, current_index, answers, question_times)
            return merged.model_copy(update={
                "status": SessionStatus.PAUSED,
                "paused_at": merged.updated_at,
                "elapsed_seconds": sum(merged.question_times.values()),
            })

        session = await self.sessions.write(session_id, owner, mutate)
        logger.info(f"Paused session {session_id} at question {session.current_index}")
        return session

    async def resume(self, session_id: str, owner: str) -> SessionResume:
        """Reactivate a paused session, replaying its frozen shuffles."""
        session = await self.sessions.read(session_id, owner)
        if session.status != SessionStatus.PAUSED:
            raise NotFound(f"No paused session {session_id}")

        # Fetch before transitioning so a store failure leaves it paused
        records = await self._load_records(session)

        def mutate(current: PracticeSession) -> PracticeSession:
            _require_status(current, {SessionStatus.PAUSED}, "resume")
            return current.model_copy(update={
                "status": SessionStatus.ACTIVE,
                "paused_at": None,
                "updated_at": datetime.utcnow(),
            })

        session = await self.sessions.write(session_id, owner, mutate)
        logger.info(f"Resumed session {session_id}")

        budget = self.time_budget(records)
        return SessionResume(
            session_id=session.id,
            session_type=session.session_type,
            questions=[
                self._present(index, record, frozen.permutation)
                for index, (frozen, record) in enumerate(zip(session.questions, records))
            ],
            answers=session.answers,
            question_times=session.question_times,
            current_index=session.current_index,
            elapsed_seconds=session.elapsed_seconds,
            config=session.config,
            time_budget_seconds=budget,
            remaining_seconds=max(0.0, budget - session.elapsed_seconds),
        )

    async def complete(
        self,
        session_id: str,
        owner: str,
        answers: dict[int, str] | None = None,
        question_times: dict[int, float] | None = None,
        total_time: float | None = None,
    ) -> SessionResult:
        """Score the session, mark it completed, record attempts.

        The completed session is persisted before attempts are recorded.
        Attempt recording and the recommendation refresh are best-effort and
        never fail the completion.
        """
        session = await self.sessions.read(session_id, owner)
        _require_status(session, {SessionStatus.ACTIVE, SessionStatus.PAUSED}, "complete")

        # Answer key comes from the store, never from the client
        records = await self._load_records(session)
        items = self._scoring_items(session, records)

        def mutate(current: PracticeSession) -> PracticeSession:
            _require_status(current, {SessionStatus.ACTIVE, SessionStatus.PAUSED}, "complete")
            merged = self._merge(current, None, answers, question_times)
            report = self.scoring.score(items, merged.answers, merged.question_times)
            return merged.model_copy(update={
                "status": SessionStatus.COMPLETED,
                "score": report.correct_count,
                "accuracy": report.accuracy,
                "net_score": report.net_score,
                "weak_topics": report.weak_topics,
                "strong_topics": report.strong_topics,
                "results": report.results,
                "time_taken_seconds": (
                    total_time if total_time is not None else sum(merged.question_times.values())
                ),
                "completed_at": merged.updated_at,
            })

        completed = await self.sessions.write(session_id, owner, mutate)
        report = self.scoring.score(items, completed.answers, completed.question_times)
        logger.info(
            f"Completed session {session_id}: {report.correct_count}/{report.total} "
            f"({report.accuracy}%)"
        )

        pending = await self._record_attempts(completed, skip=set())
        recommendation = await self._refresh_recommendation(owner)

        return SessionResult(
            session_id=completed.id,
            score=report.correct_count,
            total=report.total,
            accuracy=report.accuracy,
            net_score=report.net_score,
            time_taken=completed.time_taken_seconds or 0,
            results=report.results,
            weak_topics=report.weak_topics,
            strong_topics=report.strong_topics,
            topic_performance=report.topic_performance,
            difficulty_breakdown=report.difficulty_breakdown,
            attempts_recorded=pending == 0,
            recommendation=recommendation,
        )

    # ==================== Queries ====================

    async def get_session(self, session_id: str, owner: str) -> PracticeSession:
        return await self.sessions.read(session_id, owner)

    async def list_paused(self, owner: str) -> list[SessionSummary]:
        sessions = await self.sessions.list_for_owner(owner, SessionStatus.PAUSED)
        return [self._summarize(s) for s in sessions]

    async def latest_active(self, owner: str) -> SessionSummary | None:
        """The owner's most recently touched active session, if any."""
        sessions = await self.sessions.list_for_owner(owner, SessionStatus.ACTIVE, 1)
        return self._summarize(sessions[0]) if sessions else None

    async def history(self, owner: str, limit: int = 20) -> list[SessionSummary]:
        sessions = await self.sessions.list_for_owner(owner, SessionStatus.COMPLETED, limit)
        return [self._summarize(s) for s in sessions]

    async def review(self, session_id: str, owner: str) -> list[QuestionResult]:
        """Per-question results with answers; only once the session is completed."""
        session = await self.sessions.read(session_id, owner)
        _require_status(session, {SessionStatus.COMPLETED}, "review")
        return session.results

    async def retry_attempt_recording(self, session_id: str, owner: str) -> AttemptRecordingStatus:
        """Record any attempts a completion failed to persist."""
        session = await self.sessions.read(session_id, owner)
        _require_status(session, {SessionStatus.COMPLETED}, "record attempts for")
        done = await self.attempts.recorded_indices(session_id)
        pending = await self._record_attempts(session, skip=done)
        expected = sum(1 for r in session.results if r.answered)
        return AttemptRecordingStatus(
            session_id=session_id,
            recorded=expected - pending,
            pending=pending,
        )

    # ==================== Helpers ====================

    def time_budget(self, records: list[QuestionRecord]) -> int:
        return sum(
            settings.mcq_seconds_per_question if r.is_mcq else settings.mains_seconds_per_question
            for r in records
        )

    def _resolve_session_type(self, session_type: SessionType | str) -> SessionType:
        try:
            return SessionType(session_type)
        except ValueError:
            allowed = ", ".join(t.value for t in SessionType)
            raise ValidationError(f"session_type must be one of {allowed}, got {session_type!r}")

    def _resolve_source(self, session_type: SessionType, config: SessionConfig) -> SourceSelection:
        source = SESSION_TYPE_SOURCES[session_type]
        if config.source is not None and config.source != source:
            raise ValidationError(
                f"source {config.source.value!r} conflicts with session_type {session_type.value!r}"
            )
        return source

    def _merge(
        self,
        session: PracticeSession,
        current_index: int | None,
        answers: dict[int, str] | None,
        question_times: dict[int, float] | None,
    ) -> PracticeSession:
        """Merge (never replace) client progress into a session."""
        answers = answers or {}
        question_times = question_times or {}
        total = session.total_questions

        bad = sorted(k for k in [*answers, *question_times] if not 0 <= k < total)
        if bad:
            raise ValidationError(f"Question indices out of range [0, {total}): {bad}")
        if current_index is not None and not 0 <= current_index < total:
            raise ValidationError(f"current_index out of range [0, {total}): {current_index}")
        negative = sorted(k for k, v in question_times.items() if v < 0)
        if negative:
            raise ValidationError(f"Negative question times at indices {negative}")

        return session.model_copy(update={
            "answers": {**session.answers, **answers},
            "question_times": {**session.question_times, **question_times},
            "current_index": session.current_index if current_index is None else current_index,
            "updated_at": datetime.utcnow(),
        })

    async def _load_records(self, session: PracticeSession) -> list[QuestionRecord]:
        """Question records in the session's frozen order."""
        ids = [q.question_id for q in session.questions]
        try:
            records = await self.questions.get_by_ids(ids)
        except Exception as e:
            logger.error(f"Question store lookup failed for session {session.id}: {e}")
            raise UpstreamUnavailable(f"Question store unavailable: {e}") from e

        by_id = {r.id: r for r in records}
        missing = [qid for qid in ids if qid not in by_id]
        if missing:
            raise NotFound(f"Questions no longer available: {missing}")
        return [by_id[qid] for qid in ids]

    def _present(
        self,
        index: int,
        record: QuestionRecord,
        permutation: list[int] | None,
    ) -> PresentedQuestion:
        options = None
        if record.is_mcq:
            texts = record.options
            if permutation is not None:
                texts = apply_permutation(record.options, record.correct_index(), permutation).options
            options = [
                OptionView(letter=OPTION_LETTERS[i], text=text) for i, text in enumerate(texts)
            ]
        return PresentedQuestion(
            index=index,
            id=record.id,
            text=record.text,
            type=record.presentation_type,
            difficulty=record.difficulty,
            topic=record.topic,
            source=record.source,
            options=options,
        )

    def _scoring_items(
        self,
        session: PracticeSession,
        records: list[QuestionRecord],
    ) -> list[ScoringItem]:
        items = []
        for index, (frozen, record) in enumerate(zip(session.questions, records)):
            correct = record.correct_answer
            correct_index = record.correct_index() if record.is_mcq else None
            if correct_index is not None:
                if frozen.permutation is not None:
                    correct = apply_permutation(
                        record.options, correct_index, frozen.permutation
                    ).correct_letter
                else:
                    correct = OPTION_LETTERS[correct_index]
            items.append(ScoringItem(
                index=index,
                question_id=record.id,
                source=record.source,
                correct_answer=correct,
                is_mcq=record.is_mcq,
                question_text=record.text,
                topic=record.topic,
                difficulty=record.difficulty,
                explanation=record.explanation,
            ))
        return items

    def _attempts_for(self, session: PracticeSession) -> list[QuestionAttempt]:
        attempts = []
        for result in session.results:
            if not result.answered:
                continue
            is_mcq = session.questions[result.index].permutation is not None
            attempts.append(QuestionAttempt(
                user_id=session.user_id,
                question_id=result.question_id,
                question_type=result.source,
                is_correct=result.is_correct,
                difficulty_at_attempt=result.difficulty,
                time_taken_seconds=result.time_taken,
                session_id=session.id,
                question_index=result.index,
                selected_option=result.user_answer if is_mcq else None,
            ))
        return attempts

    async def _record_attempts(self, session: PracticeSession, skip: set[int]) -> int:
        """Append the session's attempts; returns how many are still pending."""
        pending = 0
        for attempt in self._attempts_for(session):
            if attempt.question_index in skip:
                continue
            for try_number in range(1 + self.attempt_record_retries):
                try:
                    await self.attempts.append_attempt(attempt)
                    break
                except Exception:
                    logger.exception(
                        f"Recording attempt for session {session.id} question "
                        f"{attempt.question_index} failed (try {try_number + 1})"
                    )
            else:
                pending += 1
        if pending:
            logger.warning(f"Session {session.id} has {pending} unrecorded attempts")
        return pending

    async def _refresh_recommendation(self, owner: str) -> DifficultyRecommendation | None:
        try:
            return await self.recommender.get_recommendation(owner)
        except Exception:
            logger.exception(f"Recommendation refresh failed for user {owner}")
            return None

    def _summarize(self, session: PracticeSession) -> SessionSummary:
        return SessionSummary(
            id=session.id,
            session_type=session.session_type,
            status=session.status,
            config=session.config,
            total_questions=session.total_questions,
            answered_count=len(session.answers),
            current_index=session.current_index,
            elapsed_seconds=session.elapsed_seconds,
            score=session.score,
            accuracy=session.accuracy,
            weak_topics=session.weak_topics,
            created_at=session.created_at,
            updated_at=session.updated_at,
            completed_at=session.completed_at,
        )
