"""Collaborator interfaces consumed by the engine.

The engine never touches storage or AI providers directly; it is handed
implementations of these interfaces. SQLAlchemy implementations live in
``practice_engine.db.repositories``, the LLM implementation in
``practice_engine.services.llm_generator``.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

from practice_engine.models import (
    DistractorCandidate,
    DistractorOption,
    PracticeSession,
    QuestionAttempt,
    QuestionFilter,
    QuestionRecord,
    QuestionSource,
    SessionStatus,
)

SessionMutator = Callable[[PracticeSession], PracticeSession]


class QuestionStore(ABC):
    """Read access to the question bank."""

    @abstractmethod
    async def find(self, question_filter: QuestionFilter) -> list[QuestionRecord]:
        """All records matching the filter, in no particular order."""

    @abstractmethod
    async def get_by_ids(self, ids: list[str]) -> list[QuestionRecord]:
        """Records for the given ids; unknown ids are skipped."""


class SessionStore(ABC):
    """Durable session storage with per-session compare-and-swap."""

    @abstractmethod
    async def create(self, session: PracticeSession) -> PracticeSession:
        pass

    @abstractmethod
    async def read(self, session_id: str, owner: str) -> PracticeSession:
        """The owner's session, or NotFound."""

    @abstractmethod
    async def write(self, session_id: str, owner: str, mutator: SessionMutator) -> PracticeSession:
        """Apply ``mutator`` to the current state and store it atomically.

        The mutator may be called more than once if a concurrent writer wins
        the race; it must be a pure function of the session it receives.
        """

    @abstractmethod
    async def list_for_owner(
        self,
        owner: str,
        status: SessionStatus,
        limit: int = 20,
    ) -> list[PracticeSession]:
        """The owner's sessions in a status, newest first."""


class AttemptLog(ABC):
    """Append-only log of question attempts."""

    @abstractmethod
    async def append_attempt(self, attempt: QuestionAttempt) -> QuestionAttempt:
        pass

    @abstractmethod
    async def recent(self, owner: str, limit: int) -> list[QuestionAttempt]:
        """The owner's most recent attempts, newest first."""

    @abstractmethod
    async def since(self, owner: str, start: datetime) -> list[QuestionAttempt]:
        """The owner's attempts created at or after ``start``, oldest first."""

    @abstractmethod
    async def recorded_indices(self, session_id: str) -> set[int]:
        """Question indices of a session that already have an attempt."""


class OptionStore(ABC):
    """Persisted multiple-choice option sets."""

    @abstractmethod
    async def get_options(self, question_id: str, source: QuestionSource) -> list[DistractorOption]:
        """Options ordered by letter; empty if none are stored."""

    @abstractmethod
    async def replace_options(
        self,
        question_id: str,
        source: QuestionSource,
        options: list[DistractorOption],
        metadata: dict | None = None,
    ) -> None:
        pass

    @abstractmethod
    async def record_selection(
        self,
        question_id: str,
        source: QuestionSource,
        selected_letter: str,
    ) -> list[DistractorOption]:
        """Count one showing of every option and one selection; return updated options."""


class GenerationService(ABC):
    """Proposes distractor text. Output is untrusted."""

    @abstractmethod
    async def propose_distractors(
        self,
        question_text: str,
        correct_answer: str,
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> list[DistractorCandidate]:
        pass
