"""Rule checks for candidate wrong answers."""

import logging
import re

from practice_engine.errors import InsufficientDistractors
from practice_engine.models.question import DistractorCandidate

logger = logging.getLogger(__name__)

DISTRACTORS_PER_QUESTION = 3

# Options that are obviously wrong in an exam setting
INVALID_PATTERNS = [
    re.compile(r"\d{5,}"),  # garbled long numbers
    re.compile(r"^(none|all|both|neither)$", re.IGNORECASE),  # generic standalone answers
    re.compile(r"\b(impossible|never|always)\b", re.IGNORECASE),  # absolute qualifiers
]


def _normalize(text: str) -> str:
    return text.strip().lower()


class DistractorValidator:
    """Validates distractors before they join a question's option set.

    The checks are pure: the same candidate, correct answer and accepted
    options always give the same verdict.
    """

    MIN_LENGTH = 5
    MAX_LENGTH = 500

    def __init__(self, min_length: int | None = None, max_length: int | None = None):
        self.min_length = self.MIN_LENGTH if min_length is None else min_length
        self.max_length = self.MAX_LENGTH if max_length is None else max_length

    def validate_distractor(
        self,
        candidate: str,
        correct_answer: str,
        accepted: list[str] | None = None,
    ) -> list[str]:
        """Validate a single candidate.

        Args:
            candidate: Proposed wrong answer
            correct_answer: The question's correct answer
            accepted: Options already accepted for this question

        Returns:
            List of issues; empty when the candidate is acceptable
        """
        issues = []
        text = candidate.strip()

        if any(pattern.search(text) for pattern in INVALID_PATTERNS):
            issues.append("Contains obviously wrong pattern")

        if _normalize(text) == _normalize(correct_answer):
            issues.append("Matches correct answer")

        if any(_normalize(text) == _normalize(other) for other in accepted or []):
            issues.append("Duplicate option")

        if len(text) < self.min_length:
            issues.append("Too short")
        if len(text) > self.max_length:
            issues.append("Too long")

        return issues

    def is_valid(self, candidate: str, correct_answer: str, accepted: list[str] | None = None) -> bool:
        return not self.validate_distractor(candidate, correct_answer, accepted)

    def select_distractors(
        self,
        correct_answer: str,
        candidates: list[DistractorCandidate],
    ) -> tuple[list[DistractorCandidate], list[dict]]:
        """Keep valid candidates in proposal order.

        Returns:
            Tuple of (accepted_candidates, rejected) where each rejected entry
            is ``{"text": ..., "issues": [...]}``
        """
        accepted: list[DistractorCandidate] = []
        rejected: list[dict] = []

        for candidate in candidates:
            if len(accepted) == DISTRACTORS_PER_QUESTION:
                break
            issues = self.validate_distractor(
                candidate.text, correct_answer, [c.text for c in accepted]
            )
            if issues:
                logger.warning(f"Rejected distractor {candidate.text!r}: {', '.join(issues)}")
                rejected.append({"text": candidate.text, "issues": issues})
            else:
                accepted.append(candidate.model_copy(update={"text": candidate.text.strip()}))

        return accepted, rejected

    def build_option_set(
        self,
        correct_answer: str,
        candidates: list[DistractorCandidate],
    ) -> tuple[list[DistractorCandidate], list[dict]]:
        """Exactly three validated distractors, or InsufficientDistractors.

        No filler options are ever fabricated.
        """
        accepted, rejected = self.select_distractors(correct_answer, candidates)
        if len(accepted) < DISTRACTORS_PER_QUESTION:
            raise InsufficientDistractors(required=DISTRACTORS_PER_QUESTION, found=len(accepted))
        return accepted, rejected
