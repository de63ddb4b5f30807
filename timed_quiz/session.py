"""
Quiz session state machine.
Owns the live attempt: presented order, recorded answers and times, and
which questions are locked. All transitions run synchronously on the event
loop thread, so a timer expiry and a user action can never interleave.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from .exceptions import ContentError, PreconditionViolation
from .models import Answer, AnswerKind, Question, QuestionSnapshot, Quiz, QuizResults, QuizSettings
from .presenter import Presenter
from .quiz_timer import QuizTimer, TimerLifecycleLogger
from .randomizer import Randomizer, identity_choices
from .scorer import Scorer


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass
class Attempt:
    """One run through a quiz. Replaced wholesale on restart."""
    quiz: Quiz
    question_mapping: List[int]
    questions: List[Question]
    choice_mappings: List[List[Tuple[str, int]]]
    answers: List[Answer]
    times: List[int]
    submitted: Set[int] = field(default_factory=set)
    position: int = 0

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.position]

    def is_locked(self, position: int) -> bool:
        return position in self.submitted


class QuizSession:
    """
    Drives a single user through one quiz.

    States go ``IDLE -> IN_PROGRESS -> COMPLETE``. Invalid transitions raise
    PreconditionViolation and leave the session untouched.
    """

    def __init__(
        self,
        settings: Optional[QuizSettings] = None,
        presenter: Optional[Presenter] = None,
        randomizer: Optional[Randomizer] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "quiz"
    ):
        """
        Initialize the session.

        Args:
            settings: Quiz settings, defaults if None
            presenter: Notified after every transition and timer tick
            randomizer: Shuffles question and choice order
            clock: Monotonic clock used by the question timer
            name: Label used in log records
        """
        self.logger = logging.getLogger(__name__)
        self.settings = settings or QuizSettings()
        self.presenter = presenter
        self.randomizer = randomizer or Randomizer()
        self.scorer = Scorer(self.settings.time_per_question)
        self.name = name
        self.timer = QuizTimer(
            name=name,
            on_tick=self._on_tick,
            on_expire=self._on_expire,
            clock=clock
        )

        self._state = SessionState.IDLE
        self._attempt: Optional[Attempt] = None
        self._results: Optional[QuizResults] = None
        self._timed_position: Optional[int] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def attempt(self) -> Optional[Attempt]:
        return self._attempt

    @property
    def results(self) -> Optional[QuizResults]:
        return self._results

    @property
    def quiz(self) -> Optional[Quiz]:
        return self._attempt.quiz if self._attempt else None

    # --- Transitions ---

    def begin(self, quiz: Quiz) -> None:
        """
        Start a new attempt at ``quiz``.

        Raises:
            PreconditionViolation: If an attempt is already in progress
            ContentError: If the quiz has no questions or a malformed question
        """
        if self._state is SessionState.IN_PROGRESS:
            raise PreconditionViolation("A quiz is already in progress, restart it instead")
        self._start_attempt(quiz)

    def restart(self) -> None:
        """
        Start the current quiz over with a fresh shuffle.

        Raises:
            PreconditionViolation: If no quiz has been started
        """
        if self._attempt is None or self._state is SessionState.IDLE:
            raise PreconditionViolation("There is no quiz to restart")
        self.logger.info(f"Restarting quiz '{self._attempt.quiz.title}' for {self.name}")
        self._start_attempt(self._attempt.quiz)

    def select_choice(self, original_index: int, position: Optional[int] = None) -> None:
        """
        Record a choice for the current question without locking it.

        Args:
            original_index: Index of the choice in the question's authored order
            position: Question the caller believes is open; stale callers are rejected

        Raises:
            PreconditionViolation: If no question is open, the question is locked,
                or the index is not one of the question's choices
        """
        attempt = self._require_in_progress("select a choice")
        self._check_position(attempt, position)
        if attempt.is_locked(attempt.position):
            raise PreconditionViolation("This question's answer is already locked")
        if not 0 <= original_index < len(attempt.current_question.choices):
            raise PreconditionViolation(f"Choice {original_index} does not exist for this question")

        attempt.answers[attempt.position] = Answer.choice(original_index)
        self._notify_question()

    def submit(self, position: Optional[int] = None) -> None:
        """
        Lock the current answer and move on.

        Args:
            position: Question the caller believes is open; a repeated submit
                for a question that has already moved on is rejected

        Raises:
            PreconditionViolation: If no question is open, it is already locked,
                or no choice has been selected
        """
        self._check_position(self._require_in_progress("submit"), position)
        self._submit(forced=False)

    def time_expired(self, position: Optional[int] = None) -> None:
        """
        Handle the timer running out for ``position`` (the current one if None).

        A late expiry for a question that was already submitted, or that is no
        longer on screen, is ignored.
        """
        attempt = self._attempt
        if self._state is not SessionState.IN_PROGRESS or attempt is None:
            TimerLifecycleLogger.race_absorbed(
                self.name, f"expiry arrived while session is {self._state.value}"
            )
            return

        if position is None:
            position = attempt.position
        if position != attempt.position or attempt.is_locked(position):
            TimerLifecycleLogger.race_absorbed(
                self.name, f"expiry for question {position} ignored, already submitted or inactive"
            )
            return

        self._submit(forced=True)

    def go_to_previous(self) -> None:
        """Move to the previous question (navigation mode only)."""
        attempt = self._require_navigation()
        if attempt.position == 0:
            raise PreconditionViolation("Already at the first question")
        self._move_to(attempt.position - 1)

    def go_to_next(self) -> None:
        """Move to the next question without submitting (navigation mode only)."""
        attempt = self._require_navigation()
        if attempt.position >= attempt.question_count - 1:
            raise PreconditionViolation("Already at the last question")
        self._move_to(attempt.position + 1)

    def close(self) -> None:
        """Discard the session and stop its timer."""
        self.timer.stop()
        if self._attempt is not None:
            self.logger.info(f"Closed quiz session {self.name}")
        self._state = SessionState.IDLE
        self._attempt = None
        self._results = None
        self._timed_position = None

    # --- Views ---

    def snapshot(self) -> QuestionSnapshot:
        """
        Describe the question currently on screen.

        Raises:
            PreconditionViolation: If no attempt exists
        """
        attempt = self._attempt
        if attempt is None:
            raise PreconditionViolation("No quiz has been started")

        position = attempt.position
        question = attempt.questions[position]
        answer = attempt.answers[position]
        locked = attempt.is_locked(position)
        return QuestionSnapshot(
            position=position,
            total_questions=attempt.question_count,
            topic=question.topic,
            prompt=question.prompt,
            displayed_choices=tuple(attempt.choice_mappings[position]),
            selected_original_index=answer.choice_index if answer.kind is AnswerKind.CHOICE else None,
            is_locked=locked,
            seconds_remaining=0 if locked else self.timer.remaining(),
            is_last=position == attempt.question_count - 1,
            quiz_title=attempt.quiz.title,
            allow_navigation=self.settings.allow_navigation
        )

    # --- Internals ---

    def _start_attempt(self, quiz: Quiz) -> None:
        self._validate_quiz(quiz)
        self.timer.stop()

        questions = list(quiz.questions)
        if self.settings.shuffle_questions:
            mapping, presented = self.randomizer.randomize_questions(questions)
        else:
            mapping, presented = list(range(len(questions))), questions

        if self.settings.shuffle_choices:
            choice_mappings = [self.randomizer.randomize_choices(q) for q in presented]
        else:
            choice_mappings = [identity_choices(q) for q in presented]

        count = len(presented)
        self._attempt = Attempt(
            quiz=quiz,
            question_mapping=mapping,
            questions=presented,
            choice_mappings=choice_mappings,
            answers=[Answer.UNANSWERED] * count,
            times=[0] * count,
        )
        self._results = None
        self._state = SessionState.IN_PROGRESS

        self.logger.info(
            f"Started quiz '{quiz.title}' for {self.name}: {count} questions, "
            f"shuffle questions={self.settings.shuffle_questions}, "
            f"shuffle choices={self.settings.shuffle_choices}"
        )

        self._start_timer()
        self._notify_question()

    @staticmethod
    def _validate_quiz(quiz: Quiz) -> None:
        if not quiz.questions:
            raise ContentError(f"Quiz '{quiz.title}' has no questions")
        for number, question in enumerate(quiz.questions, start=1):
            if not question.choices:
                raise ContentError(f"Question {number} of '{quiz.title}' has no choices")
            if not 0 <= question.correct_index < len(question.choices):
                raise ContentError(
                    f"Question {number} of '{quiz.title}' has correct index "
                    f"{question.correct_index} outside its {len(question.choices)} choices"
                )

    def _submit(self, forced: bool) -> None:
        attempt = self._require_in_progress("submit")
        position = attempt.position
        if attempt.is_locked(position):
            raise PreconditionViolation("This question has already been submitted")

        if not attempt.answers[position].is_answered:
            if not forced:
                raise PreconditionViolation("Select an answer before submitting")
            attempt.answers[position] = Answer.TIMED_OUT

        self.timer.stop()
        attempt.times[position] = self.timer.elapsed()
        attempt.submitted.add(position)
        self._timed_position = None

        self.logger.debug(
            f"Question {position + 1}/{attempt.question_count} locked for {self.name}: "
            f"{attempt.answers[position].kind.value} after {attempt.times[position]}s"
            + (" (time expired)" if forced else "")
        )

        next_position = self._next_unlocked(position)
        if next_position is None:
            self._complete()
            return

        attempt.position = next_position
        self._start_timer()
        self._notify_question()

    def _next_unlocked(self, position: int) -> Optional[int]:
        attempt = self._attempt
        count = attempt.question_count
        for step in range(1, count + 1):
            candidate = (position + step) % count
            if not attempt.is_locked(candidate):
                return candidate
        return None

    def _complete(self) -> None:
        attempt = self._attempt
        self.timer.stop()
        self._state = SessionState.COMPLETE
        self._results = self.scorer.finalize(
            attempt.questions,
            attempt.question_mapping,
            attempt.answers,
            attempt.times,
            quiz_title=attempt.quiz.title
        )
        self.logger.info(
            f"Quiz '{attempt.quiz.title}' complete for {self.name}: "
            f"{self._results.total_score}/{self._results.max_possible_score}"
        )
        if self.presenter is not None:
            self.presenter.show_results(self._results)

    def _move_to(self, position: int) -> None:
        attempt = self._attempt
        attempt.position = position
        if attempt.is_locked(position):
            self.timer.stop()
            self._timed_position = None
        else:
            self._start_timer()
        self._notify_question()

    def _start_timer(self) -> None:
        self._timed_position = self._attempt.position
        self.timer.start(self.settings.time_per_question, countdown=self.settings.timer_enabled)

    def _require_in_progress(self, action: str) -> Attempt:
        if self._state is not SessionState.IN_PROGRESS or self._attempt is None:
            raise PreconditionViolation(f"Cannot {action}: no question is open ({self._state.value})")
        return self._attempt

    @staticmethod
    def _check_position(attempt: Attempt, position: Optional[int]) -> None:
        if position is None or position == attempt.position:
            return
        if attempt.is_locked(position):
            raise PreconditionViolation(f"Question {position + 1} has already been submitted")
        raise PreconditionViolation(f"Question {position + 1} is not the open question")

    def _require_navigation(self) -> Attempt:
        if not self.settings.allow_navigation:
            raise PreconditionViolation("Navigation between questions is disabled")
        return self._require_in_progress("navigate")

    def _notify_question(self) -> None:
        if self.presenter is not None:
            self.presenter.show_question(self.snapshot())

    def _on_tick(self, remaining: int) -> None:
        if self._state is SessionState.IN_PROGRESS:
            self._notify_question()

    def _on_expire(self) -> None:
        self.time_expired(self._timed_position)
