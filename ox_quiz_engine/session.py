"""Practice session state machine.

    idle -> playing -> answered -> playing (next) | finished

Each playing -> answered transition records exactly one result. restart()
returns to idle; the next start() stages a fresh sequence from the selector.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidSessionState
from .repository import QuizRepository
from .selector import shuffled
from .types import QuizItem, QuizResult
from .utils import generate_id, now_ms


class SessionState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    ANSWERED = "answered"
    FINISHED = "finished"


@dataclass
class SessionSummary:
    answered: int = 0
    correct: int = 0
    total: int = 0

    @property
    def incorrect(self) -> int:
        return self.answered - self.correct

    @property
    def accuracy(self) -> float:
        return (self.correct / self.answered) * 100 if self.answered else 0.0


@dataclass
class QuizSession:
    repository: QuizRepository
    count: int | None = None
    rng: random.Random | None = None
    state: SessionState = SessionState.IDLE
    items: list[QuizItem] = field(default_factory=list)
    index: int = 0
    results: list[QuizResult] = field(default_factory=list)

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = "|".join(s.value for s in states)
            raise InvalidSessionState(f"expected state {allowed}, got {self.state.value}")

    @property
    def current(self) -> QuizItem | None:
        if self.state in (SessionState.PLAYING, SessionState.ANSWERED):
            return self.items[self.index]
        return None

    @property
    def last_result(self) -> QuizResult | None:
        return self.results[-1] if self.results else None

    def start(self) -> bool:
        """Stage questions and begin. Returns False (staying idle) if there are none."""
        self._require(SessionState.IDLE)
        staged = self.repository.get_random_questions(self.count, rng=self.rng)
        if not staged:
            return False
        self.items = shuffled(staged, self.rng)
        self.index = 0
        self.results = []
        self.state = SessionState.PLAYING
        return True

    def answer(self, user_answer: bool) -> QuizResult:
        self._require(SessionState.PLAYING)
        item = self.items[self.index]
        result = QuizResult(
            id=generate_id(),
            question_id=item.question.id,
            quiz_set_id=item.quiz_set_id,
            user_answer=user_answer,
            is_correct=user_answer == item.question.answer,
            answered_at=now_ms(),
        )
        self.repository.save_result(result)
        self.results.append(result)
        self.state = SessionState.ANSWERED
        return result

    def next(self) -> SessionState:
        self._require(SessionState.ANSWERED)
        if self.index + 1 >= len(self.items):
            self.state = SessionState.FINISHED
        else:
            self.index += 1
            self.state = SessionState.PLAYING
        return self.state

    def restart(self) -> None:
        self.items = []
        self.index = 0
        self.results = []
        self.state = SessionState.IDLE

    def summary(self) -> SessionSummary:
        return SessionSummary(
            answered=len(self.results),
            correct=sum(1 for r in self.results if r.is_correct),
            total=len(self.items),
        )
