from __future__ import annotations

from collections import Counter

from .types import OverallStats, QuestionStats, StorageDocument


def _accuracy(correct: int, total: int) -> float:
    return (correct / total) * 100 if total > 0 else 0.0


def calculate_stats(doc: StorageDocument) -> OverallStats:
    """Per-question and overall accuracy for a document.

    question_stats is sorted ascending by accuracy (stable, so ties keep the
    set/question order). Never-attempted questions have accuracy 0 and land at
    the front; callers wanting only attempted questions filter on
    total_attempts > 0 (see weakest_questions).

    Overall totals count every stored result. Deletions always cascade to
    results, so this equals summing over existing questions.
    """
    attempts: Counter[str] = Counter()
    correct: Counter[str] = Counter()
    for r in doc.results:
        attempts[r.question_id] += 1
        if r.is_correct:
            correct[r.question_id] += 1

    question_stats: list[QuestionStats] = []
    for qs in doc.quiz_sets:
        for q in qs.questions:
            total = attempts[q.id]
            ok = correct[q.id]
            question_stats.append(
                QuestionStats(
                    question_id=q.id,
                    quiz_set_id=qs.id,
                    question=q.text,
                    total_attempts=total,
                    correct_count=ok,
                    incorrect_count=total - ok,
                    accuracy=_accuracy(ok, total),
                )
            )

    question_stats.sort(key=lambda s: s.accuracy)

    total_attempts = len(doc.results)
    total_correct = sum(1 for r in doc.results if r.is_correct)

    return OverallStats(
        total_questions=len(question_stats),
        total_attempts=total_attempts,
        total_correct=total_correct,
        total_incorrect=total_attempts - total_correct,
        overall_accuracy=_accuracy(total_correct, total_attempts),
        question_stats=question_stats,
    )


def weakest_questions(stats: OverallStats, limit: int = 5) -> list[QuestionStats]:
    """Lowest-accuracy questions that have at least one attempt."""
    attempted = [s for s in stats.question_stats if s.total_attempts > 0]
    return attempted[: max(0, limit)]
