"""
Configuration manager for quiz settings and parameters.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import QuizSettings


class ConfigManager:
    """Manages bot configuration settings and quiz parameters."""

    # Default configuration values
    DEFAULT_TIME_PER_QUESTION = 30
    DEFAULT_SHUFFLE_QUESTIONS = True
    DEFAULT_SHUFFLE_CHOICES = True
    DEFAULT_ALLOW_NAVIGATION = False
    DEFAULT_TIMER_ENABLED = True
    DEFAULT_DATA_DIRECTORY = "./data/"
    DEFAULT_LEADERBOARD_TIMEOUT = 10

    # Validation limits
    MIN_TIME_PER_QUESTION = 5
    MAX_TIME_PER_QUESTION = 300  # 5 minutes

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings()
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._leaderboard_url: Optional[str] = None
        self._leaderboard_timeout: float = self.DEFAULT_LEADERBOARD_TIMEOUT

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            A copy of the current QuizSettings, safe to hand to a session
        """
        return QuizSettings(
            time_per_question=self._global_settings.time_per_question,
            shuffle_questions=self._global_settings.shuffle_questions,
            shuffle_choices=self._global_settings.shuffle_choices,
            allow_navigation=self._global_settings.allow_navigation,
            timer_enabled=self._global_settings.timer_enabled
        )

    def set_time_per_question(self, seconds: int) -> Dict[str, Any]:
        """
        Set the time limit for each question with error handling.

        Args:
            seconds: Time limit in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(seconds, int) or isinstance(seconds, bool):
            error_msg = f"Time per question must be an integer, got {type(seconds).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            }

        if seconds < self.MIN_TIME_PER_QUESTION:
            error_msg = f"Time per question must be at least {self.MIN_TIME_PER_QUESTION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too short: Minimum is {self.MIN_TIME_PER_QUESTION} seconds"
            }

        if seconds > self.MAX_TIME_PER_QUESTION:
            error_msg = f"Time per question cannot exceed {self.MAX_TIME_PER_QUESTION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too long: Maximum is {self.MAX_TIME_PER_QUESTION} seconds ({self.MAX_TIME_PER_QUESTION // 60} minutes)"
            }

        self._global_settings.time_per_question = seconds
        self.logger.info(f"Time per question set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Time per question set to {seconds} seconds",
            'user_message': f"✅ Timer set to {seconds} seconds"
        }

    def get_time_per_question(self) -> int:
        return self._global_settings.time_per_question

    def _set_flag(self, attribute: str, value: bool, label: str, on_text: str, off_text: str) -> Dict[str, Any]:
        if not isinstance(value, bool):
            error_msg = f"{label} must be a boolean, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected true/false, got {type(value).__name__}"
            }

        setattr(self._global_settings, attribute, value)
        state = "enabled" if value else "disabled"
        self.logger.info(f"{label} {state}")
        return {
            'success': True,
            'message': f"{label} {state}",
            'user_message': f"✅ {on_text if value else off_text}"
        }

    def set_shuffle_questions(self, shuffle: bool) -> Dict[str, Any]:
        return self._set_flag(
            'shuffle_questions', shuffle, "Question shuffling",
            "Questions will be presented in random order",
            "Questions will be presented in authored order"
        )

    def set_shuffle_choices(self, shuffle: bool) -> Dict[str, Any]:
        return self._set_flag(
            'shuffle_choices', shuffle, "Choice shuffling",
            "Answer choices will be shuffled",
            "Answer choices will keep their authored order"
        )

    def toggle_shuffle(self) -> Dict[str, Any]:
        """
        Toggle question and choice shuffling together.

        Returns:
            Dictionary with success status, new value, and user-friendly message
        """
        new_value = not (self._global_settings.shuffle_questions or self._global_settings.shuffle_choices)
        self.set_shuffle_questions(new_value)
        self.set_shuffle_choices(new_value)
        order_type = "random" if new_value else "authored"
        return {
            'success': True,
            'new_value': new_value,
            'message': f"Shuffling set to {order_type} order",
            'user_message': f"✅ Questions and choices will be presented in {order_type} order"
        }

    def set_allow_navigation(self, allow: bool) -> Dict[str, Any]:
        return self._set_flag(
            'allow_navigation', allow, "Question navigation",
            "Previous/Next navigation enabled",
            "Previous/Next navigation disabled"
        )

    def set_timer_enabled(self, enabled: bool) -> Dict[str, Any]:
        return self._set_flag(
            'timer_enabled', enabled, "Question timer",
            "Questions are timed",
            "Questions are untimed"
        )

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory holding the quiz manifest, with validation.

        Args:
            directory: Path to the data directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            error_msg = f"Data directory must be a string, got {type(directory).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            }

        if not directory.strip():
            error_msg = "Data directory cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Directory path cannot be empty"
            }

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid directory path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {directory}"
            }

        self._data_directory = normalized_path
        self.logger.info(f"Data directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Data directory set to {normalized_path}",
            'user_message': f"✅ Data directory set to {normalized_path}"
        }

    def get_data_directory(self) -> str:
        return self._data_directory

    def set_leaderboard(self, url: Optional[str], timeout: float = DEFAULT_LEADERBOARD_TIMEOUT) -> Dict[str, Any]:
        """
        Configure the leaderboard endpoint; ``None`` disables score submission.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if url is not None and (not isinstance(url, str) or not url.startswith(("http://", "https://"))):
            error_msg = f"Leaderboard URL must be an http(s) URL, got {url!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid leaderboard URL"
            }

        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            error_msg = f"Leaderboard timeout must be a positive number, got {timeout!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid leaderboard timeout"
            }

        self._leaderboard_url = url
        self._leaderboard_timeout = timeout
        message = f"Leaderboard set to {url}" if url else "Leaderboard disabled"
        self.logger.info(message)
        return {
            'success': True,
            'message': message,
            'user_message': f"✅ {message}"
        }

    def get_leaderboard_url(self) -> Optional[str]:
        return self._leaderboard_url

    def get_leaderboard_timeout(self) -> float:
        return self._leaderboard_timeout

    def load_from_dict(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the ``quiz`` and ``leaderboard`` sections of a config file.

        Invalid values are logged and skipped, keeping the defaults.

        Args:
            config: Parsed configuration file

        Returns:
            List of error messages for settings that were rejected
        """
        quiz_config = config.get('quiz', {}) or {}
        leaderboard_config = config.get('leaderboard', {}) or {}

        results = []
        if 'time_per_question' in quiz_config:
            results.append(self.set_time_per_question(quiz_config['time_per_question']))
        if 'shuffle_questions' in quiz_config:
            results.append(self.set_shuffle_questions(quiz_config['shuffle_questions']))
        if 'shuffle_choices' in quiz_config:
            results.append(self.set_shuffle_choices(quiz_config['shuffle_choices']))
        if 'allow_navigation' in quiz_config:
            results.append(self.set_allow_navigation(quiz_config['allow_navigation']))
        if 'timer_enabled' in quiz_config:
            results.append(self.set_timer_enabled(quiz_config['timer_enabled']))
        if 'data_directory' in quiz_config:
            results.append(self.set_data_directory(quiz_config['data_directory']))
        if leaderboard_config.get('url'):
            results.append(self.set_leaderboard(
                leaderboard_config['url'],
                leaderboard_config.get('timeout', self.DEFAULT_LEADERBOARD_TIMEOUT)
            ))

        errors = [result['error'] for result in results if not result['success']]
        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration values")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            time_per_question=self.DEFAULT_TIME_PER_QUESTION,
            shuffle_questions=self.DEFAULT_SHUFFLE_QUESTIONS,
            shuffle_choices=self.DEFAULT_SHUFFLE_CHOICES,
            allow_navigation=self.DEFAULT_ALLOW_NAVIGATION,
            timer_enabled=self.DEFAULT_TIMER_ENABLED
        )
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._leaderboard_url = None
        self._leaderboard_timeout = self.DEFAULT_LEADERBOARD_TIMEOUT
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        seconds = self._global_settings.time_per_question
        if (not isinstance(seconds, int) or
                seconds < self.MIN_TIME_PER_QUESTION or
                seconds > self.MAX_TIME_PER_QUESTION):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid time per question: {seconds}")

        for attribute in ('shuffle_questions', 'shuffle_choices', 'allow_navigation', 'timer_enabled'):
            value = getattr(self._global_settings, attribute)
            if not isinstance(value, bool):
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {attribute.replace('_', ' ')} setting: {value}")

        if not isinstance(self._data_directory, str) or not self._data_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid data directory: {self._data_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        timer_str = f"{settings.time_per_question} seconds" if settings.timer_enabled else "off"
        return (
            f"Quiz Settings:\n"
            f"• Timer: {timer_str}\n"
            f"• Question order: {'random' if settings.shuffle_questions else 'authored'}\n"
            f"• Choice order: {'random' if settings.shuffle_choices else 'authored'}\n"
            f"• Navigation: {'on' if settings.allow_navigation else 'off'}\n"
            f"• Leaderboard: {self._leaderboard_url or 'not configured'}\n"
            f"• Data Directory: {self._data_directory}"
        )
