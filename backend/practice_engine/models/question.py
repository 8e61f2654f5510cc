"""Question-related Pydantic models."""

from enum import Enum

from pydantic import BaseModel, Field

OPTION_LETTERS = "ABCD"


class Difficulty(str, Enum):
    """Question difficulty levels, ordered easiest first."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


DIFFICULTY_ORDER = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]


class QuestionSource(str, Enum):
    """Where a question record comes from."""

    PYQ = "pyq"
    GENERATED = "generated"


class QuestionType(str, Enum):
    """Question types stored in the question bank."""

    MCQ = "mcq"
    MAINS_150 = "mains_150"
    MAINS_250 = "mains_250"
    ESSAY = "essay"


class PresentationType(str, Enum):
    """How a question is presented: choose an option or write an answer."""

    MCQ = "mcq"
    MAINS = "mains"


class DistractorType(str, Enum):
    PARTIAL_TRUTH = "partial_truth"
    RELATED_CONCEPT = "related_concept"
    COMMON_MISTAKE = "common_mistake"
    FACTUAL_ERROR = "factual_error"


class QuestionFilter(BaseModel):
    """Filter passed to the Question Store.

    ``None`` disables a filter. ``topic`` is a case-insensitive substring
    match, the other fields are exact.
    """

    source: QuestionSource
    topic: str | None = None
    difficulty: Difficulty | None = None
    question_type: QuestionType | None = None


class QuestionRecord(BaseModel):
    """A question as returned by the Question Store, answer key included.

    Never sent to a client before the owning session is completed.
    """

    id: str
    source: QuestionSource
    text: str
    question_type: QuestionType = QuestionType.MCQ
    difficulty: Difficulty = Difficulty.MEDIUM
    topic: str | None = None
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    explanation: str = ""
    year: int | None = None

    @property
    def is_mcq(self) -> bool:
        return self.question_type == QuestionType.MCQ

    @property
    def presentation_type(self) -> PresentationType:
        return PresentationType.MCQ if self.is_mcq else PresentationType.MAINS

    def correct_index(self) -> int | None:
        """Index of the correct option, or None if it cannot be resolved.

        The stored answer is either an option letter or the option text.
        """
        if len(self.options) != len(OPTION_LETTERS):
            return None
        answer = self.correct_answer.strip()
        if len(answer) == 1 and answer.upper() in OPTION_LETTERS:
            return OPTION_LETTERS.index(answer.upper())
        normalized = answer.lower()
        for idx, option in enumerate(self.options):
            if option.strip().lower() == normalized:
                return idx
        return None


class OptionView(BaseModel):
    """An option as shown to a learner: no correctness flag."""

    letter: str
    text: str


class PresentedQuestion(BaseModel):
    """A question inside a session response. Carries no answer key."""

    index: int
    id: str
    text: str
    type: PresentationType
    difficulty: Difficulty
    topic: str | None = None
    source: QuestionSource
    options: list[OptionView] | None = None


class DistractorCandidate(BaseModel):
    """A proposed wrong answer, not yet validated."""

    text: str
    distractor_type: DistractorType = DistractorType.RELATED_CONCEPT
    explanation: str = ""


class DistractorOption(BaseModel):
    """One of the four persisted options of a multiple-choice question."""

    question_id: str | None = None
    question_source: QuestionSource = QuestionSource.GENERATED
    option_letter: str
    option_text: str
    is_correct: bool = False
    explanation: str = ""
    distractor_type: DistractorType | None = None
    quality_score: float | None = None
    times_shown: int = 0
    times_selected: int = 0


class GeneratedOptionSet(BaseModel):
    """Result of a distractor generation pass."""

    question_id: str | None = None
    question_source: QuestionSource
    options: list[DistractorOption]
    correct_answer: str
    permutation: list[int]
    rejected: list[dict] = Field(default_factory=list)


class ShuffledOptions(BaseModel):
    """Stored options in a fresh order, without the answer key."""

    question_id: str
    question_source: QuestionSource
    options: list[OptionView]
    permutation: list[int] | None = None


class OptionFeedback(BaseModel):
    letter: str
    text: str
    is_correct: bool
    explanation: str = ""
    distractor_type: DistractorType | None = None
    quality_score: float | None = None
