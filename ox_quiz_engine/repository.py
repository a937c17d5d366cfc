from __future__ import annotations

import logging
import random
import threading
from contextlib import contextmanager
from typing import Iterator

from .selector import get_random_questions
from .stats import calculate_stats
from .store import DocumentStore
from .types import OverallStats, Question, QuizItem, QuizResult, QuizSet, StorageDocument
from .utils import generate_id, now_ms

logger = logging.getLogger(__name__)


class QuizRepository:
    """CRUD over quiz sets, questions and results on top of a DocumentStore.

    Every mutation is read -> transform in memory -> write of the whole
    document, serialized by one in-process lock. Mutations that can target a
    missing id return False and leave storage untouched; they never raise for
    not-found.

    Invariants kept by every deletion path:
    - no result references a deleted question or set
    - no quiz set is left with zero questions after a question deletion
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._lock = threading.RLock()

    @contextmanager
    def _mutate(self) -> Iterator[StorageDocument]:
        # Unconditional write; an exception inside the block skips it.
        with self._lock:
            doc = self.store.read_document()
            yield doc
            self.store.write_document(doc)

    # ------------------------------------------------------------------
    # quiz sets
    # ------------------------------------------------------------------
    def save_quiz_set(self, quiz_set: QuizSet) -> None:
        with self._mutate() as doc:
            doc.quiz_sets.append(quiz_set)

    def update_quiz_set(self, quiz_set: QuizSet) -> bool:
        with self._lock:
            doc = self.store.read_document()
            for i, qs in enumerate(doc.quiz_sets):
                if qs.id == quiz_set.id:
                    doc.quiz_sets[i] = quiz_set
                    self.store.write_document(doc)
                    return True
        logger.debug("update_quiz_set: no quiz set %s", quiz_set.id)
        return False

    def delete_quiz_set(self, quiz_set_id: str) -> bool:
        with self._lock:
            doc = self.store.read_document()
            before_sets = len(doc.quiz_sets)
            before_results = len(doc.results)
            doc.quiz_sets = [qs for qs in doc.quiz_sets if qs.id != quiz_set_id]
            doc.results = [r for r in doc.results if r.quiz_set_id != quiz_set_id]
            if len(doc.quiz_sets) == before_sets and len(doc.results) == before_results:
                logger.debug("delete_quiz_set: no quiz set %s", quiz_set_id)
                return False
            self.store.write_document(doc)
            return True

    def get_all_quiz_sets(self) -> list[QuizSet]:
        return self.store.read_document().quiz_sets

    def get_quiz_set(self, quiz_set_id: str) -> QuizSet | None:
        return self.store.read_document().find_quiz_set(quiz_set_id)

    # ------------------------------------------------------------------
    # questions
    # ------------------------------------------------------------------
    def delete_question(self, quiz_set_id: str, question_id: str) -> bool:
        """Remove a question, prune its set if now empty, drop its results."""
        with self._lock:
            doc = self.store.read_document()
            quiz_set = doc.find_quiz_set(quiz_set_id)
            if quiz_set is None or quiz_set.find_question(question_id) is None:
                logger.debug("delete_question: no question %s in set %s", question_id, quiz_set_id)
                return False

            quiz_set.questions = [q for q in quiz_set.questions if q.id != question_id]
            if not quiz_set.questions:
                doc.quiz_sets = [qs for qs in doc.quiz_sets if qs.id != quiz_set_id]
                # Deleting a set deletes its results; a pruned set is no exception.
                doc.results = [r for r in doc.results if r.quiz_set_id != quiz_set_id]
            doc.results = [r for r in doc.results if r.question_id != question_id]
            self.store.write_document(doc)
            return True

    def update_question(
        self,
        quiz_set_id: str,
        question_id: str,
        *,
        text: str | None = None,
        answer: bool | None = None,
        explanation: str | None = None,
    ) -> bool:
        """Apply only the fields that are not None."""
        with self._lock:
            doc = self.store.read_document()
            quiz_set = doc.find_quiz_set(quiz_set_id)
            question = quiz_set.find_question(question_id) if quiz_set is not None else None
            if question is None:
                logger.debug("update_question: no question %s in set %s", question_id, quiz_set_id)
                return False

            if text is not None:
                question.text = text
            if answer is not None:
                question.answer = answer
            if explanation is not None:
                question.explanation = explanation
            self.store.write_document(doc)
            return True

    def add_question(
        self,
        quiz_set_id: str,
        text: str,
        answer: bool,
        explanation: str | None = None,
    ) -> Question | None:
        """Append a new question to a set. Returns it, or None if the set is missing."""
        with self._lock:
            doc = self.store.read_document()
            quiz_set = doc.find_quiz_set(quiz_set_id)
            if quiz_set is None:
                logger.debug("add_question: no quiz set %s", quiz_set_id)
                return None

            question = Question(
                id=generate_id(),
                text=text,
                answer=answer,
                explanation=explanation,
                created_at=now_ms(),
            )
            quiz_set.questions.append(question)
            self.store.write_document(doc)
            return question

    # ------------------------------------------------------------------
    # results
    # ------------------------------------------------------------------
    def save_result(self, result: QuizResult) -> None:
        with self._mutate() as doc:
            doc.results.append(result)

    def get_all_results(self) -> list[QuizResult]:
        return self.store.read_document().results

    # ------------------------------------------------------------------
    # derived views
    # ------------------------------------------------------------------
    def calculate_stats(self) -> OverallStats:
        return calculate_stats(self.store.read_document())

    def get_random_questions(
        self,
        count: int | None = None,
        rng: random.Random | None = None,
    ) -> list[QuizItem]:
        return get_random_questions(self.get_all_quiz_sets(), count=count, rng=rng)

    def clear_all_data(self) -> None:
        with self._lock:
            self.store.clear()
