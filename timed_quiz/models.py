"""
Core data models for the timed quiz.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Question:
    """Represents a single multiple-choice question as authored."""
    topic: str
    prompt: str
    choices: Tuple[str, ...]
    correct_index: int


@dataclass(frozen=True)
class Quiz:
    """A loaded quiz. Questions keep their authored order."""
    title: str
    description: str
    questions: Tuple[Question, ...]
    quiz_id: str = ""


class AnswerKind(Enum):
    """Enumeration of the states a recorded answer can be in."""
    UNANSWERED = "unanswered"
    CHOICE = "choice"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Answer:
    """Recorded answer for one presented question."""
    kind: AnswerKind
    choice_index: Optional[int] = None

    @classmethod
    def choice(cls, index: int) -> "Answer":
        return cls(AnswerKind.CHOICE, index)

    @property
    def is_answered(self) -> bool:
        return self.kind is not AnswerKind.UNANSWERED

    @property
    def is_timed_out(self) -> bool:
        return self.kind is AnswerKind.TIMED_OUT

    def matches(self, index: int) -> bool:
        """Check whether this answer picked the given original choice index."""
        return self.kind is AnswerKind.CHOICE and self.choice_index == index


Answer.UNANSWERED = Answer(AnswerKind.UNANSWERED)
Answer.TIMED_OUT = Answer(AnswerKind.TIMED_OUT)


@dataclass
class QuizSettings:
    """Configuration settings for a quiz session."""
    time_per_question: int = 30
    shuffle_questions: bool = True
    shuffle_choices: bool = True
    allow_navigation: bool = False
    timer_enabled: bool = True


@dataclass(frozen=True)
class QuestionSnapshot:
    """What the presenter needs to draw the current question."""
    position: int
    total_questions: int
    topic: str
    prompt: str
    displayed_choices: Tuple[Tuple[str, int], ...]
    selected_original_index: Optional[int]
    is_locked: bool
    seconds_remaining: int
    is_last: bool
    quiz_title: str = ""
    allow_navigation: bool = False


@dataclass(frozen=True)
class QuestionDetail:
    """Per-question line of the results view, in authored order."""
    original_index: int
    presented_position: int
    topic: str
    prompt: str
    answer: Answer
    answer_text: str
    correct_text: str
    is_correct: bool
    time_taken: int
    points: int
    speed_bonus: int = 0


@dataclass(frozen=True)
class QuizResults:
    """Final score and statistics for a completed attempt."""
    total_score: int
    max_possible_score: int
    percentage: float
    average_time: float
    fastest_time: int
    details: List[QuestionDetail] = field(default_factory=list)
    quiz_title: str = ""

    @property
    def percentage_display(self) -> str:
        return f"{self.percentage:.1f}"

    @property
    def average_time_display(self) -> str:
        return f"{self.average_time:.1f}"


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a leaderboard submission."""
    success: bool
    reason: Optional[str] = None
    nickname: Optional[str] = None
    score: Optional[int] = None
