"""SQLAlchemy implementations of the engine's collaborator ports."""

import logging
from datetime import datetime

from sqlalchemy import Float, cast, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_engine.config import settings
from practice_engine.errors import ConcurrentUpdate, NotFound
from practice_engine.models import (
    DistractorOption,
    PracticeSession,
    QuestionAttempt,
    QuestionFilter,
    QuestionRecord,
    QuestionSource,
    SessionStatus,
)
from practice_engine.services.ports import (
    AttemptLog,
    OptionStore,
    QuestionStore,
    SessionMutator,
    SessionStore,
)

from .models import PracticeSessionDB, QuestionAttemptDB, QuestionDB, QuestionOptionDB

logger = logging.getLogger(__name__)


def _like_pattern(text: str) -> str:
    """Substring LIKE pattern with the wildcards in ``text`` escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlQuestionStore(QuestionStore):
    """Question Store over the ``questions`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, question_filter: QuestionFilter) -> list[QuestionRecord]:
        query = select(QuestionDB).where(QuestionDB.source == question_filter.source.value)
        if question_filter.topic:
            query = query.where(QuestionDB.topic.ilike(_like_pattern(question_filter.topic), escape="\\"))
        if question_filter.difficulty:
            query = query.where(QuestionDB.difficulty == question_filter.difficulty.value)
        if question_filter.question_type:
            query = query.where(QuestionDB.question_type == question_filter.question_type.value)

        result = await self.db.execute(query)
        return [self._to_model(q) for q in result.scalars().all()]

    async def get_by_ids(self, ids: list[str]) -> list[QuestionRecord]:
        if not ids:
            return []
        result = await self.db.execute(select(QuestionDB).where(QuestionDB.id.in_(ids)))
        return [self._to_model(q) for q in result.scalars().all()]

    def _to_model(self, db_question: QuestionDB) -> QuestionRecord:
        return QuestionRecord(
            id=db_question.id,
            source=db_question.source,
            text=db_question.text,
            question_type=db_question.question_type,
            difficulty=db_question.difficulty,
            topic=db_question.topic,
            options=db_question.options or [],
            correct_answer=db_question.correct_answer,
            explanation=db_question.explanation or "",
            year=db_question.year,
        )


class SqlSessionRepository(SessionStore):
    """Session storage with optimistic compare-and-swap on ``version``."""

    def __init__(self, db: AsyncSession, max_retries: int | None = None):
        self.db = db
        self.max_retries = settings.persistence_max_retries if max_retries is None else max_retries

    async def create(self, session: PracticeSession) -> PracticeSession:
        db_session = PracticeSessionDB(
            id=session.id,
            user_id=session.user_id,
            session_type=session.session_type.value,
            **self._columns(session),
        )
        self.db.add(db_session)
        await self.db.commit()
        return session

    async def read(self, session_id: str, owner: str) -> PracticeSession:
        result = await self.db.execute(
            select(PracticeSessionDB)
            .where(PracticeSessionDB.id == session_id, PracticeSessionDB.user_id == owner)
            .execution_options(populate_existing=True)
        )
        db_session = result.scalar_one_or_none()
        if not db_session:
            raise NotFound(f"Session {session_id} not found")
        return self._to_model(db_session)

    async def write(self, session_id: str, owner: str, mutator: SessionMutator) -> PracticeSession:
        for attempt in range(1 + self.max_retries):
            current = await self.read(session_id, owner)
            updated = mutator(current).model_copy(update={"version": current.version + 1})

            result = await self.db.execute(
                update(PracticeSessionDB)
                .where(
                    PracticeSessionDB.id == session_id,
                    PracticeSessionDB.user_id == owner,
                    PracticeSessionDB.version == current.version,
                )
                .values(**self._columns(updated))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await self.db.commit()
                return updated

            await self.db.rollback()
            logger.warning(
                f"Concurrent update on session {session_id} (version {current.version}, try {attempt + 1})"
            )

        raise ConcurrentUpdate(f"Session {session_id} kept changing; retry the request")

    async def list_for_owner(
        self,
        owner: str,
        status: SessionStatus,
        limit: int = 20,
    ) -> list[PracticeSession]:
        result = await self.db.execute(
            select(PracticeSessionDB)
            .where(PracticeSessionDB.user_id == owner, PracticeSessionDB.status == status.value)
            .order_by(PracticeSessionDB.updated_at.desc())
            .limit(limit)
        )
        return [self._to_model(s) for s in result.scalars().all()]

    def _columns(self, session: PracticeSession) -> dict:
        return {
            "status": session.status.value,
            "version": session.version,
            "data": session.model_dump(mode="json", exclude={"version"}),
            "score": session.score,
            "accuracy": session.accuracy,
            "created_at": session.created_at,
            "updated_at": session.updated_at,
            "completed_at": session.completed_at,
        }

    def _to_model(self, db_session: PracticeSessionDB) -> PracticeSession:
        return PracticeSession.model_validate({**db_session.data, "version": db_session.version})


class SqlAttemptLog(AttemptLog):
    """Attempt log over ``question_attempts``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append_attempt(self, attempt: QuestionAttempt) -> QuestionAttempt:
        db_attempt = QuestionAttemptDB(
            user_id=attempt.user_id,
            question_id=attempt.question_id,
            question_type=attempt.question_type.value,
            is_correct=attempt.is_correct,
            difficulty_at_attempt=attempt.difficulty_at_attempt.value,
            time_taken_seconds=attempt.time_taken_seconds,
            session_id=attempt.session_id,
            question_index=attempt.question_index,
            selected_option=attempt.selected_option,
            created_at=attempt.created_at,
        )
        self.db.add(db_attempt)
        try:
            await self.db.commit()
        except IntegrityError:
            # Already recorded for this session position
            await self.db.rollback()
            existing = await self._find_session_attempt(attempt.session_id, attempt.question_index)
            if existing is None:
                raise
            return existing
        except Exception:
            await self.db.rollback()
            raise
        return self._to_model(db_attempt)

    async def recent(self, owner: str, limit: int) -> list[QuestionAttempt]:
        result = await self.db.execute(
            select(QuestionAttemptDB)
            .where(QuestionAttemptDB.user_id == owner)
            .order_by(QuestionAttemptDB.id.desc())
            .limit(limit)
        )
        return [self._to_model(a) for a in result.scalars().all()]

    async def since(self, owner: str, start: datetime) -> list[QuestionAttempt]:
        result = await self.db.execute(
            select(QuestionAttemptDB)
            .where(QuestionAttemptDB.user_id == owner, QuestionAttemptDB.created_at >= start)
            .order_by(QuestionAttemptDB.id)
        )
        return [self._to_model(a) for a in result.scalars().all()]

    async def recorded_indices(self, session_id: str) -> set[int]:
        result = await self.db.execute(
            select(QuestionAttemptDB.question_index).where(QuestionAttemptDB.session_id == session_id)
        )
        return {index for index in result.scalars().all() if index is not None}

    async def _find_session_attempt(
        self,
        session_id: str | None,
        question_index: int | None,
    ) -> QuestionAttempt | None:
        if session_id is None or question_index is None:
            return None
        result = await self.db.execute(
            select(QuestionAttemptDB).where(
                QuestionAttemptDB.session_id == session_id,
                QuestionAttemptDB.question_index == question_index,
            )
        )
        db_attempt = result.scalar_one_or_none()
        return self._to_model(db_attempt) if db_attempt else None

    def _to_model(self, db_attempt: QuestionAttemptDB) -> QuestionAttempt:
        return QuestionAttempt(
            id=db_attempt.id,
            user_id=db_attempt.user_id,
            question_id=db_attempt.question_id,
            question_type=db_attempt.question_type,
            is_correct=db_attempt.is_correct,
            difficulty_at_attempt=db_attempt.difficulty_at_attempt,
            time_taken_seconds=db_attempt.time_taken_seconds,
            session_id=db_attempt.session_id,
            question_index=db_attempt.question_index,
            selected_option=db_attempt.selected_option,
            created_at=db_attempt.created_at,
        )


class SqlOptionStore(OptionStore):
    """Stored option sets over ``question_options``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_options(self, question_id: str, source: QuestionSource) -> list[DistractorOption]:
        result = await self.db.execute(
            select(QuestionOptionDB)
            .where(
                QuestionOptionDB.question_id == question_id,
                QuestionOptionDB.question_source == source.value,
            )
            .order_by(QuestionOptionDB.option_letter)
            .execution_options(populate_existing=True)
        )
        return [self._to_model(o) for o in result.scalars().all()]

    async def replace_options(
        self,
        question_id: str,
        source: QuestionSource,
        options: list[DistractorOption],
        metadata: dict | None = None,
    ) -> None:
        await self.db.execute(
            delete(QuestionOptionDB).where(
                QuestionOptionDB.question_id == question_id,
                QuestionOptionDB.question_source == source.value,
            )
        )
        for option in options:
            self.db.add(QuestionOptionDB(
                question_id=question_id,
                question_source=source.value,
                option_letter=option.option_letter,
                option_text=option.option_text,
                is_correct=option.is_correct,
                explanation=option.explanation,
                distractor_type=option.distractor_type.value if option.distractor_type else None,
                generation_metadata=metadata,
            ))
        await self.db.commit()

    async def record_selection(
        self,
        question_id: str,
        source: QuestionSource,
        selected_letter: str,
    ) -> list[DistractorOption]:
        same_question = (
            QuestionOptionDB.question_id == question_id,
            QuestionOptionDB.question_source == source.value,
        )
        # Counter updates run in SQL so concurrent selections are not lost
        await self.db.execute(
            update(QuestionOptionDB)
            .where(*same_question)
            .values(times_shown=QuestionOptionDB.times_shown + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(QuestionOptionDB)
            .where(*same_question, QuestionOptionDB.option_letter == selected_letter)
            .values(times_selected=QuestionOptionDB.times_selected + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(QuestionOptionDB)
            .where(*same_question, QuestionOptionDB.is_correct.is_(False))
            .values(
                quality_score=cast(QuestionOptionDB.times_selected, Float)
                / QuestionOptionDB.times_shown
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return await self.get_options(question_id, source)

    def _to_model(self, db_option: QuestionOptionDB) -> DistractorOption:
        return DistractorOption(
            question_id=db_option.question_id,
            question_source=db_option.question_source,
            option_letter=db_option.option_letter,
            option_text=db_option.option_text,
            is_correct=db_option.is_correct,
            explanation=db_option.explanation or "",
            distractor_type=db_option.distractor_type,
            quality_score=db_option.quality_score,
            times_shown=db_option.times_shown,
            times_selected=db_option.times_selected,
        )
