"""Question selection for practice sessions."""

import logging
import math
import random

from practice_engine.errors import InsufficientQuestions, UpstreamUnavailable
from practice_engine.models import (
    QuestionFilter,
    QuestionRecord,
    QuestionSource,
    SessionConfig,
    SourceSelection,
)

from .ports import QuestionStore

logger = logging.getLogger(__name__)


def split_mixed_count(count: int) -> dict[QuestionSource, int]:
    """Split a mixed session between the pools.

    PYQ always takes the ceiling half and generated the floor half.
    """
    return {
        QuestionSource.PYQ: math.ceil(count / 2),
        QuestionSource.GENERATED: count // 2,
    }


class QuestionSelector:
    """Draws a random, filtered question set from the Question Store."""

    def __init__(self, store: QuestionStore, rng: random.Random | None = None):
        self.store = store
        self.rng = rng or random.Random()

    def quotas(self, source: SourceSelection, count: int) -> dict[QuestionSource, int]:
        if source == SourceSelection.MIXED:
            return split_mixed_count(count)
        return {QuestionSource(source.value): count}

    async def _candidates(self, question_filter: QuestionFilter) -> list[QuestionRecord]:
        try:
            records = await self.store.find(question_filter)
        except UpstreamUnavailable:
            raise
        except Exception as e:
            logger.error(f"Question store lookup failed for {question_filter}: {e}")
            raise UpstreamUnavailable(f"Question store unavailable: {e}") from e

        usable = []
        for record in records:
            if record.is_mcq and record.correct_index() is None:
                logger.warning(f"Skipping malformed MCQ {record.id}: needs 4 options and a resolvable answer")
                continue
            usable.append(record)
        return usable

    async def select(self, config: SessionConfig, source: SourceSelection) -> list[QuestionRecord]:
        """Select exactly ``config.count`` questions in random order.

        Raises:
            InsufficientQuestions: if any pool has fewer matches than its quota
        """
        selected: list[QuestionRecord] = []
        found = 0
        short = False

        for pool, quota in self.quotas(source, config.count).items():
            if quota == 0:
                continue
            candidates = await self._candidates(
                QuestionFilter(
                    source=pool,
                    topic=config.topic,
                    difficulty=config.difficulty,
                    question_type=config.question_type,
                )
            )
            self.rng.shuffle(candidates)
            picked = candidates[:quota]
            found += len(picked)
            if len(picked) < quota:
                logger.info(f"Pool {pool.value} has {len(picked)} of {quota} requested questions")
                short = True
            selected.extend(picked)

        if short:
            raise InsufficientQuestions(requested=config.count, found=found)

        self.rng.shuffle(selected)
        return selected[: config.count]
