from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _require_bool(data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a bool, got {type(value).__name__}")
    return value


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _ms(data: dict[str, Any], key: str) -> int:
    """Epoch-ms timestamp; an absent value reads as 0."""
    value = data.get(key)
    if value is None:
        return 0
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be epoch milliseconds, got {value!r}")
    return int(value)


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


@dataclass
class Question:
    id: str
    text: str
    answer: bool  # True = O, False = X
    created_at: int  # epoch ms
    explanation: str | None = None
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "question": self.text, "answer": self.answer}
        if self.explanation is not None:
            out["explanation"] = self.explanation
        out["createdAt"] = self.created_at
        if self.category is not None:
            out["category"] = self.category
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Question":
        return cls(
            id=_require_str(data, "id"),
            text=_require_str(data, "question"),
            answer=_require_bool(data, "answer"),
            created_at=_ms(data, "createdAt"),
            explanation=_optional_str(data, "explanation"),
            category=_optional_str(data, "category"),
        )


@dataclass
class QuizSet:
    id: str
    title: str
    created_at: int
    questions: list[Question] = field(default_factory=list)
    source_image_uri: str | None = None

    def find_question(self, question_id: str) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "questions": [q.to_dict() for q in self.questions],
            "createdAt": self.created_at,
        }
        if self.source_image_uri is not None:
            out["sourceImageUri"] = self.source_image_uri
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizSet":
        questions = data.get("questions", [])
        if not isinstance(questions, list):
            raise ValueError("questions must be a list")
        return cls(
            id=_require_str(data, "id"),
            title=_require_str(data, "title"),
            created_at=_ms(data, "createdAt"),
            questions=[Question.from_dict(q) for q in questions],
            source_image_uri=_optional_str(data, "sourceImageUri"),
        )


@dataclass(frozen=True)
class QuizResult:
    """One recorded attempt at one question. Never updated after creation."""

    id: str
    question_id: str
    quiz_set_id: str
    user_answer: bool
    is_correct: bool
    answered_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "questionId": self.question_id,
            "quizSetId": self.quiz_set_id,
            "isCorrect": self.is_correct,
            "answeredAt": self.answered_at,
            "userAnswer": self.user_answer,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizResult":
        return cls(
            id=_require_str(data, "id"),
            question_id=_require_str(data, "questionId"),
            quiz_set_id=_require_str(data, "quizSetId"),
            user_answer=_require_bool(data, "userAnswer"),
            is_correct=_require_bool(data, "isCorrect"),
            answered_at=_ms(data, "answeredAt"),
        )


@dataclass
class StorageDocument:
    quiz_sets: list[QuizSet] = field(default_factory=list)
    results: list[QuizResult] = field(default_factory=list)

    def find_quiz_set(self, quiz_set_id: str) -> QuizSet | None:
        for qs in self.quiz_sets:
            if qs.id == quiz_set_id:
                return qs
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "quizSets": [qs.to_dict() for qs in self.quiz_sets],
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StorageDocument":
        if not isinstance(data, dict):
            raise ValueError("document must be a JSON object")
        quiz_sets = data.get("quizSets", [])
        results = data.get("results", [])
        if not isinstance(quiz_sets, list) or not isinstance(results, list):
            raise ValueError("quizSets and results must be lists")
        return cls(
            quiz_sets=[QuizSet.from_dict(qs) for qs in quiz_sets],
            results=[QuizResult.from_dict(r) for r in results],
        )


@dataclass(frozen=True)
class QuizItem:
    """A question staged for practice, paired with the id of its owning set."""

    question: Question
    quiz_set_id: str


@dataclass(frozen=True)
class QuestionStats:
    question_id: str
    quiz_set_id: str
    question: str
    total_attempts: int
    correct_count: int
    incorrect_count: int
    accuracy: float  # 0..100

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "quizSetId": self.quiz_set_id,
            "question": self.question,
            "totalAttempts": self.total_attempts,
            "correctCount": self.correct_count,
            "incorrectCount": self.incorrect_count,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class OverallStats:
    total_questions: int
    total_attempts: int
    total_correct: int
    total_incorrect: int
    overall_accuracy: float
    question_stats: list[QuestionStats]  # ascending accuracy, weakest first

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalQuestions": self.total_questions,
            "totalAttempts": self.total_attempts,
            "totalCorrect": self.total_correct,
            "totalIncorrect": self.total_incorrect,
            "overallAccuracy": self.overall_accuracy,
            "questionStats": [s.to_dict() for s in self.question_stats],
        }


@dataclass(frozen=True)
class ExtractedQuestion:
    """Draft question as returned by the vision model, before ids are assigned."""

    question: str
    answer: bool
    explanation: str | None = None


@dataclass(frozen=True)
class ExtractionResponse:
    questions: list[ExtractedQuestion]
    provider: str = ""
