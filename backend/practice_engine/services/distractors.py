"""Distractor generation, shuffled option retrieval and attempt feedback."""

import logging
import random
from datetime import datetime

from practice_engine.config import settings
from practice_engine.errors import NotFound, PracticeError, UpstreamUnavailable, ValidationError
from practice_engine.models import (
    OPTION_LETTERS,
    AttemptFeedback,
    Difficulty,
    DistractorOption,
    GeneratedOptionSet,
    OptionFeedback,
    OptionView,
    QuestionAttempt,
    QuestionSource,
    ShuffledOptions,
)

from .distractor_validator import DistractorValidator
from .ports import GenerationService, OptionStore, QuestionStore
from .recommender import AdaptiveRecommender
from .shuffle import apply_permutation, fisher_yates, shuffle_options, to_original_letter

logger = logging.getLogger(__name__)


def _correct_index(options: list[DistractorOption]) -> int:
    flagged = [i for i, o in enumerate(options) if o.is_correct]
    if len(options) != len(OPTION_LETTERS) or len(flagged) != 1:
        raise NotFound("Stored option set is incomplete")
    return flagged[0]


def _reletter(options: list[DistractorOption], permutation: list[int]) -> list[DistractorOption]:
    """Stored options in display order, lettered by display position."""
    return [
        options[original].model_copy(update={"option_letter": OPTION_LETTERS[position]})
        for position, original in enumerate(permutation)
    ]


class DistractorService:
    """Builds and serves four-option sets for multiple-choice questions."""

    def __init__(
        self,
        options: OptionStore,
        generator: GenerationService,
        recommender: AdaptiveRecommender,
        questions: QuestionStore | None = None,
        validator: DistractorValidator | None = None,
        rng: random.Random | None = None,
    ):
        self.options = options
        self.generator = generator
        self.recommender = recommender
        self.questions = questions
        self.validator = validator or DistractorValidator(
            min_length=settings.distractor_min_length,
            max_length=settings.distractor_max_length,
        )
        self.rng = rng or random.Random()

    async def generate_distractors(
        self,
        question_text: str,
        correct_answer: str,
        topic: str | None = None,
        difficulty: str | None = None,
        question_id: str | None = None,
        question_source: QuestionSource = QuestionSource.GENERATED,
    ) -> GeneratedOptionSet:
        """Run one generation pass and, if ``question_id`` is given, store the result.

        Raises:
            ValidationError: empty question text or answer
            UpstreamUnavailable: the Generation Service failed
            InsufficientDistractors: fewer than three candidates passed validation
        """
        if not question_text.strip() or not correct_answer.strip():
            raise ValidationError("question_text and correct_answer are required")

        try:
            candidates = await self.generator.propose_distractors(
                question_text, correct_answer, topic, difficulty
            )
        except PracticeError:
            raise
        except Exception as e:
            logger.error(f"Generation Service failed: {e}")
            raise UpstreamUnavailable(f"Distractor generation failed: {e}") from e

        accepted, rejected = self.validator.build_option_set(correct_answer, candidates)

        # Correct answer first, then distractors in proposal order
        unshuffled = [
            DistractorOption(
                question_id=question_id,
                question_source=question_source,
                option_letter=OPTION_LETTERS[0],
                option_text=correct_answer.strip(),
                is_correct=True,
                explanation="This is the correct answer.",
            )
        ]
        for letter, candidate in zip(OPTION_LETTERS[1:], accepted):
            unshuffled.append(DistractorOption(
                question_id=question_id,
                question_source=question_source,
                option_letter=letter,
                option_text=candidate.text,
                explanation=candidate.explanation,
                distractor_type=candidate.distractor_type,
            ))

        shuffled = shuffle_options([o.option_text for o in unshuffled], 0, self.rng)
        options = _reletter(unshuffled, list(shuffled.permutation))

        if question_id:
            await self.options.replace_options(
                question_id,
                question_source,
                options,
                metadata={
                    "model": getattr(self.generator, "model_name", None),
                    "generated_at": datetime.utcnow().isoformat(),
                    "rejected": len(rejected),
                },
            )
            logger.info(f"Stored new option set for {question_source.value} question {question_id}")

        return GeneratedOptionSet(
            question_id=question_id,
            question_source=question_source,
            options=options,
            correct_answer=shuffled.correct_letter,
            permutation=list(shuffled.permutation),
            rejected=rejected,
        )

    async def get_shuffled_options(
        self,
        question_id: str,
        question_source: QuestionSource = QuestionSource.GENERATED,
        shuffle: bool = True,
    ) -> ShuffledOptions:
        """Stored options in a fresh order, with no correctness flag.

        The returned permutation must be sent back with the learner's answer.
        """
        stored = await self.options.get_options(question_id, question_source)
        if not stored:
            raise NotFound(f"No options found for question {question_id}")

        permutation = None
        texts = [o.option_text for o in stored]
        if shuffle:
            permutation = fisher_yates(len(OPTION_LETTERS), self.rng)
            texts = list(apply_permutation(texts, _correct_index(stored), permutation).options)

        return ShuffledOptions(
            question_id=question_id,
            question_source=question_source,
            options=[OptionView(letter=OPTION_LETTERS[i], text=t) for i, t in enumerate(texts)],
            permutation=permutation,
        )

    async def record_attempt_feedback(
        self,
        owner: str,
        question_id: str,
        selected_option: str,
        question_source: QuestionSource = QuestionSource.GENERATED,
        time_taken_seconds: float | None = None,
        permutation: list[int] | None = None,
    ) -> AttemptFeedback:
        """Judge a selection server-side, log the attempt, update option statistics.

        With a ``permutation`` the selected letter and the whole feedback are in
        the learner's display order; without one they are in stored order.
        """
        selected = selected_option.strip().upper()
        if len(selected) != 1 or selected not in OPTION_LETTERS:
            raise ValidationError(f"selected_option must be one of {', '.join(OPTION_LETTERS)}")

        stored = await self.options.get_options(question_id, question_source)
        if not stored:
            raise NotFound(f"No options found for question {question_id}")
        correct_index = _correct_index(stored)

        if permutation is not None:
            apply_permutation([o.option_text for o in stored], correct_index, permutation)
            stored_letter = to_original_letter(selected, permutation)
        else:
            stored_letter = selected
        is_correct = stored_letter == stored[correct_index].option_letter

        recommendation = None
        try:
            recorded = await self.recommender.record_attempt(QuestionAttempt(
                user_id=owner,
                question_id=question_id,
                question_type=question_source,
                is_correct=is_correct,
                difficulty_at_attempt=await self._difficulty_of(question_id),
                time_taken_seconds=time_taken_seconds,
                selected_option=stored_letter,
            ))
            recommendation = recorded.next_recommendation
        except Exception:
            logger.exception(f"Recording attempt on question {question_id} for user {owner} failed")

        updated = await self.options.record_selection(question_id, question_source, stored_letter)
        shown = _reletter(updated, permutation) if permutation is not None else updated
        correct = next(o for o in shown if o.is_correct)

        return AttemptFeedback(
            question_id=question_id,
            question_source=question_source,
            selected_option=selected,
            is_correct=is_correct,
            correct_answer=correct.option_letter,
            correct_text=correct.option_text,
            explanation=correct.explanation,
            all_options=[
                OptionFeedback(
                    letter=o.option_letter,
                    text=o.option_text,
                    is_correct=o.is_correct,
                    explanation=o.explanation,
                    distractor_type=o.distractor_type,
                    quality_score=o.quality_score,
                )
                for o in shown
            ],
            next_recommendation=recommendation,
        )

    async def _difficulty_of(self, question_id: str) -> Difficulty:
        if self.questions is None:
            return Difficulty.MEDIUM
        try:
            records = await self.questions.get_by_ids([question_id])
        except Exception as e:
            logger.warning(f"Difficulty lookup for question {question_id} failed: {e}")
            return Difficulty.MEDIUM
        return records[0].difficulty if records else Difficulty.MEDIUM
