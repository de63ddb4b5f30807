"""
Quiz session controller.
Manages one quiz session per Discord channel and converts core errors into
result dictionaries the bot can render.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .exceptions import ContentError, PreconditionViolation, QuizError
from .leaderboard import HttpScoreSink, LeaderboardReporter, ScoreSink
from .models import QuizResults
from .presenter import Presenter
from .randomizer import Randomizer
from .session import QuizSession, SessionState


class QuizControllerError(QuizError):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class UnsubmittedScoreError(SessionConflictError):
    """Raised when starting a quiz would discard another user's unsubmitted score."""
    pass


class NotSessionOwnerError(QuizControllerError):
    """Raised when someone other than the player operates a session."""
    pass


@dataclass
class ChannelSession:
    """A quiz session bound to a channel and the user playing it."""
    session: QuizSession
    owner_id: int
    presenter: Optional[Presenter] = None
    reporter: Optional[LeaderboardReporter] = None
    reported_results: Optional[QuizResults] = None


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel can have at most one session, played by the user who
    started it.
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        score_sink: Optional[ScoreSink] = None,
        randomizer_factory: Callable[[], Randomizer] = Randomizer
    ):
        """
        Initialize the quiz controller.

        Args:
            data_manager: Source of quizzes
            config_manager: Source of quiz settings
            score_sink: Leaderboard destination; built from config if None
            randomizer_factory: Creates the randomizer for each new session
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.randomizer_factory = randomizer_factory

        if score_sink is None and config_manager.get_leaderboard_url():
            score_sink = HttpScoreSink(
                config_manager.get_leaderboard_url(),
                config_manager.get_leaderboard_timeout()
            )
        self.score_sink = score_sink

        # Sessions mapped by channel ID
        self._sessions: Dict[int, ChannelSession] = {}

        self.logger.info("QuizController initialized")

    # --- Quiz list ---

    def load_quizzes(self) -> Dict[str, Any]:
        """
        (Re)load quizzes from the data manager.

        Returns:
            Dictionary with success status, quiz count and loading errors
        """
        try:
            quizzes = self.data_manager.load_all()
        except ContentError as e:
            self.logger.error(f"Failed to load quizzes: {e}")
            return {
                'success': False,
                'error': str(e),
                'errors': self.data_manager.get_load_errors(),
                'user_message': f"❌ Error Loading Quizzes: {e}"
            }
        return {
            'success': True,
            'quiz_count': len(quizzes),
            'errors': self.data_manager.get_load_errors(),
            'user_message': f"✅ Loaded {len(quizzes)} quizzes"
        }

    def list_quizzes(self) -> List[Dict[str, Any]]:
        """
        Describe the available quizzes.

        Returns:
            One dictionary per quiz with id, title, description and question count
        """
        return [
            {
                'quiz_id': quiz.quiz_id,
                'title': quiz.title,
                'description': quiz.description,
                'question_count': len(quiz.questions)
            }
            for quiz in self.data_manager.get_available_quizzes()
        ]

    # --- Session lifecycle ---

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        entry = self._sessions.get(channel_id)
        return entry.session if entry else None

    def get_session_state(self, channel_id: int) -> SessionState:
        session = self.get_session(channel_id)
        return session.state if session else SessionState.IDLE

    def has_active_session(self, channel_id: int) -> bool:
        return self.get_session_state(channel_id) is SessionState.IN_PROGRESS

    def start_quiz(
        self,
        channel_id: int,
        user_id: int,
        quiz_ref: str,
        presenter: Optional[Presenter] = None
    ) -> Dict[str, Any]:
        """
        Start a quiz in a channel.

        A finished session in the channel is replaced; a running one blocks
        the start, and so does another user's finished attempt whose score
        has not reached the leaderboard yet.

        Args:
            channel_id: Discord channel identifier
            user_id: User who will play the quiz
            quiz_ref: Quiz id, filename stem or title
            presenter: Renders the session

        Returns:
            Dictionary with success status, session info and user-friendly message
        """
        try:
            if self.has_active_session(channel_id):
                raise SessionConflictError(f"Channel {channel_id} already has a quiz in progress")
            if self._has_unreported_score(channel_id, user_id):
                raise UnsubmittedScoreError(
                    f"Channel {channel_id} holds another user's unsubmitted score"
                )

            quiz = self.data_manager.get_quiz(quiz_ref)
            if quiz is None:
                raise ContentError(f"No quiz named '{quiz_ref}'")

            self._discard(channel_id)
            session = QuizSession(
                settings=self.config_manager.get_quiz_settings(),
                presenter=presenter,
                randomizer=self.randomizer_factory(),
                name=f"channel-{channel_id}"
            )
            session.begin(quiz)
            self._sessions[channel_id] = ChannelSession(session, user_id, presenter)

            self.logger.info(
                f"Created quiz session for channel {channel_id}: "
                f"quiz='{quiz.title}', questions={len(quiz.questions)}, user={user_id}"
            )
            return {
                'success': True,
                'message': f"Started quiz '{quiz.title}'",
                'session_info': self.get_session_progress(channel_id),
                'user_message': f"🎯 Started **{quiz.title}**"
            }
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "start_quiz")

    def restart_quiz(self, channel_id: int, user_id: int) -> Dict[str, Any]:
        """Restart the channel's quiz with a fresh shuffle."""
        try:
            entry = self._get_owned_entry(channel_id, user_id)
            entry.session.restart()
            return {
                'success': True,
                'message': "Quiz restarted",
                'session_info': self.get_session_progress(channel_id),
                'user_message': "🔄 Quiz restarted with a new question order"
            }
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "restart_quiz")

    def stop_quiz(self, channel_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Stop and discard the channel's session, returning to the quiz list.

        Args:
            channel_id: Discord channel identifier
            user_id: Requesting user; None skips the ownership check
        """
        try:
            if user_id is None:
                if channel_id not in self._sessions:
                    raise SessionNotFoundError(f"No quiz session in channel {channel_id}")
            else:
                self._get_owned_entry(channel_id, user_id)
            self._discard(channel_id)
            return {
                'success': True,
                'message': "Quiz stopped",
                'user_message': "🛑 Quiz stopped"
            }
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "stop_quiz")

    # --- Answering ---

    def select_choice(self, channel_id: int, user_id: int, original_index: int,
                      position: Optional[int] = None) -> Dict[str, Any]:
        try:
            entry = self._get_owned_entry(channel_id, user_id)
            entry.session.select_choice(original_index, position)
            return {'success': True, 'message': f"Selected choice {original_index}"}
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "select_choice")

    def submit_answer(self, channel_id: int, user_id: int, position: Optional[int] = None) -> Dict[str, Any]:
        try:
            entry = self._get_owned_entry(channel_id, user_id)
            entry.session.submit(position)
            return {
                'success': True,
                'message': "Answer submitted",
                'complete': entry.session.state is SessionState.COMPLETE
            }
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "submit_answer")

    def navigate(self, channel_id: int, user_id: int, direction: int) -> Dict[str, Any]:
        """Move to the previous (``direction < 0``) or next question."""
        try:
            entry = self._get_owned_entry(channel_id, user_id)
            if direction < 0:
                entry.session.go_to_previous()
            else:
                entry.session.go_to_next()
            return {'success': True, 'message': "Moved"}
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "navigate")

    # --- Results ---

    def get_results(self, channel_id: int) -> Optional[QuizResults]:
        session = self.get_session(channel_id)
        return session.results if session else None

    async def submit_score(self, channel_id: int, user_id: int, nickname: str) -> Dict[str, Any]:
        """
        Send the channel's final score to the leaderboard.

        The same completed attempt is only ever reported once; failures can
        be retried.

        Returns:
            Dictionary with success status and user-friendly message
        """
        try:
            if self.score_sink is None:
                raise PreconditionViolation("No leaderboard is configured")

            entry = self._get_owned_entry(channel_id, user_id)
            results = entry.session.results
            if entry.session.state is not SessionState.COMPLETE or results is None:
                raise PreconditionViolation("Finish the quiz before submitting a score")

            if entry.reported_results is not results:
                entry.reporter = LeaderboardReporter(self.score_sink, results.total_score)
                entry.reported_results = results

            outcome = await entry.reporter.report_async(nickname)
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "submit_score")

        if not outcome.success:
            return {
                'success': False,
                'error': outcome.reason,
                'user_message': f"❌ Score not submitted: {outcome.reason}. You can try again."
            }
        return {
            'success': True,
            'message': f"Score {outcome.score} submitted as {outcome.nickname}",
            'user_message': f"🏆 Score {outcome.score} submitted as **{outcome.nickname}**"
        }

    # --- Status ---

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for the channel's session.

        Returns:
            Dictionary with progress details, or None if there is no session
        """
        entry = self._sessions.get(channel_id)
        if entry is None or entry.session.attempt is None:
            return None

        session = entry.session
        attempt = session.attempt
        settings = session.settings
        return {
            'quiz_title': attempt.quiz.title,
            'quiz_id': attempt.quiz.quiz_id,
            'state': session.state.value,
            'owner_id': entry.owner_id,
            'current_question': attempt.position + 1,
            'total_questions': attempt.question_count,
            'answered': len(attempt.submitted),
            'seconds_remaining': session.timer.remaining(),
            'settings': {
                'time_per_question': settings.time_per_question,
                'shuffle_questions': settings.shuffle_questions,
                'shuffle_choices': settings.shuffle_choices,
                'allow_navigation': settings.allow_navigation,
                'timer_enabled': settings.timer_enabled
            }
        }

    def shutdown(self) -> None:
        """Stop every session."""
        for channel_id in list(self._sessions):
            self._discard(channel_id)
        self.logger.info("All quiz sessions stopped")

    # --- Internals ---

    def _get_owned_entry(self, channel_id: int, user_id: int) -> ChannelSession:
        entry = self._sessions.get(channel_id)
        if entry is None:
            raise SessionNotFoundError(f"No quiz session in channel {channel_id}")
        if entry.owner_id != user_id:
            raise NotSessionOwnerError(f"User {user_id} does not own the session in channel {channel_id}")
        return entry

    def _has_unreported_score(self, channel_id: int, user_id: int) -> bool:
        """
        Check whether another user's finished attempt still awaits leaderboard submission.

        The owner may replace their own results; other users must wait
        until the score is reported or the owner stops the session.
        """
        entry = self._sessions.get(channel_id)
        if entry is None or entry.owner_id == user_id or self.score_sink is None:
            return False
        results = entry.session.results
        if entry.session.state is not SessionState.COMPLETE or results is None:
            return False
        reported = (
            entry.reporter is not None
            and entry.reported_results is results
            and entry.reporter.is_reported
        )
        return not reported

    def _discard(self, channel_id: int) -> None:
        entry = self._sessions.pop(channel_id, None)
        if entry is None:
            return
        entry.session.close()
        close = getattr(entry.presenter, 'close', None)
        if callable(close):
            close()
        self.logger.info(f"Removed quiz session for channel {channel_id}")

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log an error and build the failure result for the caller.

        Returns:
            Dictionary with success False, error details and user-friendly message
        """
        if isinstance(error, (PreconditionViolation, NotSessionOwnerError,
                              SessionNotFoundError, UnsubmittedScoreError)):
            self.logger.info(f"Rejected {operation} in channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}")

        return {
            'success': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    @staticmethod
    def _get_user_friendly_error_message(error: Exception, operation: str) -> str:
        if isinstance(error, UnsubmittedScoreError):
            return "⚠️ The last player in this channel has not submitted their score yet. They can `/submit_score` or `/stop`."
        if isinstance(error, SessionConflictError):
            return "⚠️ A quiz is already running in this channel. Use `/stop` or `/restart`."
        if isinstance(error, SessionNotFoundError):
            return "ℹ️ There is no quiz in this channel. Use `/start` to begin one."
        if isinstance(error, NotSessionOwnerError):
            return "🚫 This quiz belongs to someone else."
        if isinstance(error, ContentError):
            return f"❌ {error}"
        if isinstance(error, PreconditionViolation):
            return f"⚠️ {error}"
        return f"❌ Something went wrong during {operation.replace('_', ' ')}. Please try again."
