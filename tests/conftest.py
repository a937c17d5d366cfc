from __future__ import annotations

from typing import Callable

import pytest

from ox_quiz_engine.repository import QuizRepository
from ox_quiz_engine.store import DocumentStore, MemoryBackend
from ox_quiz_engine.types import Question, QuizResult, QuizSet


def _question(qid: str, text: str | None = None, answer: bool = True, explanation: str | None = None) -> Question:
    return Question(id=qid, text=text or f"statement {qid}", answer=answer, explanation=explanation, created_at=1_700_000_000_000)


def _quiz_set(set_id: str, *question_ids: str, title: str | None = None) -> QuizSet:
    return QuizSet(
        id=set_id,
        title=title or f"set {set_id}",
        created_at=1_700_000_000_000,
        questions=[_question(qid) for qid in question_ids],
    )


def _result(rid: str, question_id: str, quiz_set_id: str, correct: bool, user_answer: bool | None = None) -> QuizResult:
    return QuizResult(
        id=rid,
        question_id=question_id,
        quiz_set_id=quiz_set_id,
        user_answer=correct if user_answer is None else user_answer,
        is_correct=correct,
        answered_at=1_700_000_100_000,
    )


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> DocumentStore:
    return DocumentStore(backend)


@pytest.fixture
def repo(store: DocumentStore) -> QuizRepository:
    return QuizRepository(store)


@pytest.fixture
def make_question() -> Callable[..., Question]:
    return _question


@pytest.fixture
def make_set() -> Callable[..., QuizSet]:
    return _quiz_set


@pytest.fixture
def make_result() -> Callable[..., QuizResult]:
    return _result
