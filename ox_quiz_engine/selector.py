from __future__ import annotations

import random
from typing import Iterable

from .types import QuizItem, QuizSet


def flatten_questions(quiz_sets: Iterable[QuizSet]) -> list[QuizItem]:
    return [QuizItem(question=q, quiz_set_id=qs.id) for qs in quiz_sets for q in qs.questions]


def shuffled(items: Iterable[QuizItem], rng: random.Random | None = None) -> list[QuizItem]:
    """Uniformly shuffled copy (Fisher-Yates via Random.shuffle)."""
    out = list(items)
    (rng or random).shuffle(out)
    return out


def get_random_questions(
    quiz_sets: Iterable[QuizSet],
    count: int | None = None,
    rng: random.Random | None = None,
) -> list[QuizItem]:
    """Stage a practice sequence across all sets.

    count=None (or 0) returns every question; otherwise the first `count` of
    the shuffled sequence. The input sets are not modified.
    """
    if count is not None and count < 0:
        raise ValueError(f"count must be >= 0, got {count}")

    items = flatten_questions(quiz_sets)
    if not items:
        return []

    out = shuffled(items, rng)
    return out[:count] if count else out
