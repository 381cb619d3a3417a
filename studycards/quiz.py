"""Rapid fire quiz: a timed, scored free-text quiz over a shuffled card snapshot.

The session is an immutable ``QuizState`` advanced by ``reduce(state, event)``.
Events are ``Tick`` (one per second of wall time), ``Submit`` and ``Restart``.
"""
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

QUESTION_SECONDS = 30
REVEAL_SECONDS = 2


class QuizPhase(str, Enum):
    EMPTY = "empty"  # nothing to quiz
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass(frozen=True)
class QuizCard:
    id: str
    front: str
    back: str


@dataclass(frozen=True)
class QuizResult:
    correct: int
    total: int
    elapsed: int
    accuracy: int


@dataclass(frozen=True)
class QuizState:
    phase: QuizPhase
    cards: Tuple[QuizCard, ...]
    started_at: datetime
    index: int = 0
    score: int = 0
    time_left: int = QUESTION_SECONDS
    answer: str = ""
    revealed: bool = False
    is_correct: Optional[bool] = None
    pause_left: int = 0
    result: Optional[QuizResult] = None
    question_seconds: int = QUESTION_SECONDS
    reveal_seconds: int = REVEAL_SECONDS
    lenient: bool = True

    @property
    def current(self) -> Optional[QuizCard]:
        if self.phase is not QuizPhase.PLAYING:
            return None
        return self.cards[self.index]


@dataclass(frozen=True)
class Tick:
    now: datetime


@dataclass(frozen=True)
class Submit:
    answer: str


@dataclass(frozen=True)
class Restart:
    now: datetime
    rng: random.Random


QuizEvent = Union[Tick, Submit, Restart]


def grade_answer(expected: str, answer: str, lenient: bool = True) -> bool:
    """
    Grades a free-text answer, ignoring case and surrounding whitespace.

    Lenient grading also accepts an answer that is contained in the expected
    text or that contains it, so "pari" and "paris, france" both match
    "Paris". Strict grading requires equality.
    """
    expected = expected.strip().lower()
    answer = answer.strip().lower()
    if not answer:
        return False
    if expected == answer:
        return True
    return lenient and (answer in expected or expected in answer)


def shuffled(cards: Iterable, rng: random.Random) -> Tuple:
    deck = list(cards)
    rng.shuffle(deck)
    return tuple(deck)


def start_quiz(cards, now: datetime, rng: Optional[random.Random] = None,
               question_seconds: int = QUESTION_SECONDS, reveal_seconds: int = REVEAL_SECONDS,
               lenient: bool = True) -> QuizState:
    """
    Snapshots ``cards`` and starts a session.

    An empty card set yields an ``EMPTY`` state that never enters ``PLAYING``.
    """
    rng = rng or random.Random()
    snapshot = tuple(QuizCard(c.id, c.front, c.back) for c in cards)
    if not snapshot:
        return QuizState(QuizPhase.EMPTY, (), now, time_left=0, question_seconds=question_seconds,
                         reveal_seconds=reveal_seconds, lenient=lenient)
    return QuizState(
        QuizPhase.PLAYING,
        shuffled(snapshot, rng),
        now,
        time_left=question_seconds,
        question_seconds=question_seconds,
        reveal_seconds=reveal_seconds,
        lenient=lenient,
    )


def _accuracy(correct: int, total: int) -> int:
    # Half-up rounding
    return int(math.floor(correct * 100 / total + 0.5))


def _advance(state: QuizState, now: datetime) -> QuizState:
    if state.index + 1 >= len(state.cards):
        total = len(state.cards)
        elapsed = int(math.floor((now - state.started_at).total_seconds() + 0.5))
        result = QuizResult(state.score, total, elapsed, _accuracy(state.score, total))
        return replace(state, phase=QuizPhase.FINISHED, result=result, time_left=0, pause_left=0)
    return replace(
        state,
        index=state.index + 1,
        time_left=state.question_seconds,
        answer="",
        revealed=False,
        is_correct=None,
        pause_left=0,
    )


def _reveal(state: QuizState, answer: str, correct: bool) -> QuizState:
    return replace(
        state,
        answer=answer,
        revealed=True,
        is_correct=correct,
        score=state.score + (1 if correct else 0),
        pause_left=state.reveal_seconds,
    )


def _tick(state: QuizState, now: datetime) -> QuizState:
    if state.revealed:
        pause_left = state.pause_left - 1
        if pause_left <= 0:
            return _advance(state, now)
        return replace(state, pause_left=pause_left)

    time_left = state.time_left - 1
    if time_left <= 0:
        return _reveal(replace(state, time_left=0), state.answer, False)
    return replace(state, time_left=time_left)


def reduce(state: QuizState, event: QuizEvent) -> QuizState:
    """Applies one event. Events that do not apply in the current phase are ignored."""
    if isinstance(event, Restart):
        if state.phase is not QuizPhase.FINISHED:
            return state
        return replace(
            state,
            phase=QuizPhase.PLAYING,
            cards=shuffled(state.cards, event.rng),
            started_at=event.now,
            index=0,
            score=0,
            time_left=state.question_seconds,
            answer="",
            revealed=False,
            is_correct=None,
            pause_left=0,
            result=None,
        )

    if state.phase is not QuizPhase.PLAYING:
        return state

    if isinstance(event, Tick):
        return _tick(state, event.now)

    if isinstance(event, Submit):
        if state.revealed or not event.answer.strip():
            return state
        correct = grade_answer(state.current.back, event.answer, state.lenient)
        return _reveal(state, event.answer, correct)

    raise TypeError(f"Unknown quiz event: {event!r}")
