"""Option shuffling with answer remapping.

A shuffle is fully described by its permutation: ``permutation[i]`` is the
original index of the option displayed at position ``i``. Sessions persist
the permutation and replay it with :func:`apply_permutation`, so a shuffle is
rolled once and never re-rolled.
"""

import random
from dataclasses import dataclass

from practice_engine.errors import ValidationError
from practice_engine.models.question import OPTION_LETTERS


@dataclass(frozen=True)
class ShuffleResult:
    permutation: tuple[int, ...]
    options: tuple[str, ...]
    correct_letter: str
    letter_mapping: dict[str, str]  # original letter -> shuffled letter


def fisher_yates(size: int, rng: random.Random | None = None) -> list[int]:
    """Uniform random permutation of ``range(size)``."""
    rng = rng or random
    indices = list(range(size))
    for i in range(size - 1, 0, -1):
        j = rng.randint(0, i)
        indices[i], indices[j] = indices[j], indices[i]
    return indices


def validate_permutation(permutation: list[int] | tuple[int, ...]) -> None:
    if sorted(permutation) != list(range(len(OPTION_LETTERS))):
        raise ValidationError(f"Invalid option permutation: {list(permutation)}")


def letter_mapping(permutation: list[int] | tuple[int, ...]) -> dict[str, str]:
    """Map each original letter to the letter it is displayed under."""
    return {
        OPTION_LETTERS[original]: OPTION_LETTERS[position]
        for position, original in enumerate(permutation)
    }


def to_shuffled_letter(original_letter: str, permutation: list[int] | tuple[int, ...]) -> str:
    return letter_mapping(permutation)[original_letter.upper()]


def to_original_letter(shown_letter: str, permutation: list[int] | tuple[int, ...]) -> str:
    position = OPTION_LETTERS.index(shown_letter.upper())
    return OPTION_LETTERS[permutation[position]]


def apply_permutation(
    options: list[str] | tuple[str, ...],
    correct_index: int,
    permutation: list[int] | tuple[int, ...],
) -> ShuffleResult:
    """Replay a persisted permutation over an option tuple."""
    if len(options) != len(OPTION_LETTERS):
        raise ValidationError(f"Expected {len(OPTION_LETTERS)} options, got {len(options)}")
    if not 0 <= correct_index < len(OPTION_LETTERS):
        raise ValidationError(f"Correct option index out of range: {correct_index}")
    validate_permutation(permutation)

    permutation = tuple(permutation)
    return ShuffleResult(
        permutation=permutation,
        options=tuple(options[i] for i in permutation),
        correct_letter=OPTION_LETTERS[permutation.index(correct_index)],
        letter_mapping=letter_mapping(permutation),
    )


def shuffle_options(
    options: list[str] | tuple[str, ...],
    correct_index: int,
    rng: random.Random | None = None,
) -> ShuffleResult:
    """Shuffle four options uniformly and track where the answer went."""
    return apply_permutation(options, correct_index, fisher_yates(len(OPTION_LETTERS), rng))
