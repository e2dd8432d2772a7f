"""
Core data models for the Quiz Flow widget.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


DEFAULT_QUIZ_URL = "https://quiz-flow-with-gamification.onrender.com/api/quiz"


class Phase(Enum):
    """Coarse-grained state of a quiz session."""
    START = "start"
    PLAYING = "playing"
    RESULTS = "results"


@dataclass
class Question:
    """Represents a single multiple-choice question."""
    text: str
    options: List[str]
    correct_answer: str


@dataclass(frozen=True)
class AnswerRecord:
    """One answer given by the player, recorded once per question."""
    question_text: str
    selected_answer: Optional[str]
    correct_answer: str
    is_correct: bool


@dataclass
class QuizSettings:
    """Configuration settings for the quiz widget."""
    timer_duration: int = 30
    quiz_url: str = DEFAULT_QUIZ_URL
    request_timeout: float = 10.0
    great_score_threshold: int = 50


@dataclass
class SessionState:
    """Mutable state owned by a single QuizSession."""
    phase: Phase = Phase.START
    quiz_set: Optional[List[Question]] = None
    current_index: int = 0
    score: int = 0
    streak: int = 0
    seconds_remaining: int = 30
    answers: List[AnswerRecord] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session handed to the presentation layer."""
    phase: Phase
    question_number: int
    total_questions: int
    question_text: Optional[str]
    options: Tuple[str, ...]
    score: int
    streak: int
    seconds_remaining: int
    answers: Tuple[AnswerRecord, ...]


@dataclass
class LoadResult:
    """Outcome of a quiz load: the questions to play and any error met on the way."""
    quiz_set: List[Question]
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.error is not None
