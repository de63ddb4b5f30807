"""
Unit tests for ConfigManager class.
"""
import logging
import unittest
from pathlib import Path

from timed_quiz.config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        settings = self.config_manager.get_quiz_settings()

        self.assertEqual(settings.time_per_question, 30)
        self.assertTrue(settings.shuffle_questions)
        self.assertTrue(settings.shuffle_choices)
        self.assertFalse(settings.allow_navigation)
        self.assertTrue(settings.timer_enabled)
        self.assertEqual(self.config_manager.get_data_directory(), "./data/")
        self.assertIsNone(self.config_manager.get_leaderboard_url())
        self.assertEqual(self.config_manager.get_leaderboard_timeout(), 10)

    def test_get_quiz_settings_returns_copy(self):
        settings = self.config_manager.get_quiz_settings()
        settings.time_per_question = 99
        self.assertEqual(self.config_manager.get_time_per_question(), 30)

    def test_set_time_per_question_valid(self):
        for seconds in (5, 45, 300):
            result = self.config_manager.set_time_per_question(seconds)
            self.assertTrue(result['success'])
            self.assertEqual(self.config_manager.get_time_per_question(), seconds)
        self.assertIn("300", result['user_message'])

    def test_set_time_per_question_invalid(self):
        for value in (4, 301, 0, -10, 12.5, "30", True, None):
            with self.subTest(value=value):
                result = self.config_manager.set_time_per_question(value)
                self.assertFalse(result['success'])
                self.assertIn('error', result)
                self.assertTrue(result['user_message'].startswith("❌"))
        self.assertEqual(self.config_manager.get_time_per_question(), 30)

    def test_boolean_flags(self):
        setters = {
            'shuffle_questions': self.config_manager.set_shuffle_questions,
            'shuffle_choices': self.config_manager.set_shuffle_choices,
            'allow_navigation': self.config_manager.set_allow_navigation,
            'timer_enabled': self.config_manager.set_timer_enabled,
        }
        for attribute, setter in setters.items():
            with self.subTest(attribute):
                current = getattr(self.config_manager.get_quiz_settings(), attribute)
                self.assertTrue(setter(not current)['success'])
                self.assertEqual(getattr(self.config_manager.get_quiz_settings(), attribute), not current)

                result = setter("yes")
                self.assertFalse(result['success'])
                self.assertEqual(getattr(self.config_manager.get_quiz_settings(), attribute), not current)

    def test_toggle_shuffle(self):
        result = self.config_manager.toggle_shuffle()
        self.assertTrue(result['success'])
        self.assertFalse(result['new_value'])
        settings = self.config_manager.get_quiz_settings()
        self.assertFalse(settings.shuffle_questions)
        self.assertFalse(settings.shuffle_choices)

        result = self.config_manager.toggle_shuffle()
        self.assertTrue(result['new_value'])
        self.assertIn("random", result['user_message'])
        self.assertTrue(self.config_manager.get_quiz_settings().shuffle_choices)

    def test_toggle_shuffle_with_mixed_flags(self):
        self.config_manager.set_shuffle_questions(False)
        result = self.config_manager.toggle_shuffle()
        # Any shuffling on counts as on, so the toggle turns both off
        self.assertFalse(result['new_value'])
        self.assertFalse(self.config_manager.get_quiz_settings().shuffle_choices)

    def test_set_data_directory(self):
        result = self.config_manager.set_data_directory("some/quizzes")
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_data_directory(), str(Path("some/quizzes").resolve()))

        for value in ("", "   ", None, 42):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_data_directory(value)['success'])

    def test_set_leaderboard(self):
        result = self.config_manager.set_leaderboard("https://scores.example.com/api", timeout=3)
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_leaderboard_url(), "https://scores.example.com/api")
        self.assertEqual(self.config_manager.get_leaderboard_timeout(), 3)

        self.assertFalse(self.config_manager.set_leaderboard("ftp://scores.example.com")['success'])
        self.assertFalse(self.config_manager.set_leaderboard("https://ok.example.com", timeout=0)['success'])
        self.assertEqual(self.config_manager.get_leaderboard_timeout(), 3)

        self.assertTrue(self.config_manager.set_leaderboard(None)['success'])
        self.assertIsNone(self.config_manager.get_leaderboard_url())

    def test_load_from_dict(self):
        errors = self.config_manager.load_from_dict({
            'quiz': {
                'time_per_question': 20,
                'shuffle_questions': False,
                'allow_navigation': True,
                'timer_enabled': False,
            },
            'leaderboard': {'url': "http://localhost:8000/scores", 'timeout': 5},
            'logging': {'level': 'DEBUG'},
        })

        self.assertEqual(errors, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.time_per_question, 20)
        self.assertFalse(settings.shuffle_questions)
        self.assertTrue(settings.shuffle_choices)
        self.assertTrue(settings.allow_navigation)
        self.assertFalse(settings.timer_enabled)
        self.assertEqual(self.config_manager.get_leaderboard_url(), "http://localhost:8000/scores")

    def test_load_from_dict_skips_invalid_values(self):
        errors = self.config_manager.load_from_dict({
            'quiz': {'time_per_question': 1000, 'shuffle_choices': "no"},
            'leaderboard': {'url': None},
        })

        self.assertEqual(len(errors), 2)
        self.assertEqual(self.config_manager.get_time_per_question(), 30)
        self.assertTrue(self.config_manager.get_quiz_settings().shuffle_choices)
        self.assertIsNone(self.config_manager.get_leaderboard_url())

    def test_load_from_empty_dict(self):
        self.assertEqual(self.config_manager.load_from_dict({}), [])

    def test_reset_to_defaults(self):
        self.config_manager.set_time_per_question(60)
        self.config_manager.set_allow_navigation(True)
        self.config_manager.set_leaderboard("https://scores.example.com")

        self.config_manager.reset_to_defaults()

        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.time_per_question, 30)
        self.assertFalse(settings.allow_navigation)
        self.assertIsNone(self.config_manager.get_leaderboard_url())

    def test_validate_settings(self):
        self.assertEqual(self.config_manager.validate_settings(), {"valid": True, "issues": []})

        # Force corrupt state past the setters
        self.config_manager._global_settings.time_per_question = 1
        self.config_manager._global_settings.timer_enabled = "sometimes"
        result = self.config_manager.validate_settings()
        self.assertFalse(result["valid"])
        self.assertEqual(len(result["issues"]), 2)

    def test_settings_summary(self):
        summary = self.config_manager.get_settings_summary()
        self.assertIn("Timer: 30 seconds", summary)
        self.assertIn("Question order: random", summary)
        self.assertIn("Leaderboard: not configured", summary)

        self.config_manager.set_timer_enabled(False)
        self.assertIn("Timer: off", self.config_manager.get_settings_summary())


if __name__ == '__main__':
    unittest.main()
