from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from .types import StorageDocument


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    empty_sets: int = 0
    duplicate_ids: int = 0
    dangling_results: int = 0
    mismatched_results: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def _duplicates(ids: list[str]) -> list[str]:
    return sorted(i for i, n in Counter(ids).items() if n > 1)


def validate_document(doc: StorageDocument) -> ValidationReport:
    """Check the referential invariants the repository is supposed to keep.

    Errors:
    - quiz sets with zero questions
    - duplicate set / question / result ids
    - results pointing at a missing question or set
    - results whose quizSetId is not the set that owns the question

    Warnings:
    - isCorrect disagreeing with userAnswer vs the current answer
      (the answer may have been edited after the attempt)
    """
    report = ValidationReport()

    owner_of: dict[str, str] = {}
    answer_of: dict[str, bool] = {}
    question_ids: list[str] = []
    for qs in doc.quiz_sets:
        if not qs.questions:
            report.errors.append(f"empty quiz set: id={qs.id} title={qs.title}")
            report.empty_sets += 1
        for q in qs.questions:
            question_ids.append(q.id)
            owner_of.setdefault(q.id, qs.id)
            answer_of.setdefault(q.id, q.answer)

    for kind, ids in (
        ("quiz set", [qs.id for qs in doc.quiz_sets]),
        ("question", question_ids),
        ("result", [r.id for r in doc.results]),
    ):
        for dup in _duplicates(ids):
            report.errors.append(f"duplicate {kind} id: {dup}")
            report.duplicate_ids += 1

    set_ids = {qs.id for qs in doc.quiz_sets}
    for r in doc.results:
        if r.question_id not in owner_of or r.quiz_set_id not in set_ids:
            report.errors.append(
                f"dangling result: id={r.id} question_id={r.question_id} quiz_set_id={r.quiz_set_id}"
            )
            report.dangling_results += 1
            continue
        if owner_of[r.question_id] != r.quiz_set_id:
            report.errors.append(
                f"result set mismatch: id={r.id} quiz_set_id={r.quiz_set_id} owner={owner_of[r.question_id]}"
            )
            report.mismatched_results += 1
        if (r.user_answer == answer_of[r.question_id]) != r.is_correct:
            report.warnings.append(f"result correctness differs from current answer: id={r.id}")

    return report
