"""
Unit tests for leaderboard score submission.
"""
import asyncio
import unittest
from unittest.mock import Mock, patch

import requests

from timed_quiz.exceptions import SinkError
from timed_quiz.leaderboard import HttpScoreSink, LeaderboardReporter, ScoreSink, validate_nickname


class TestHttpScoreSink(unittest.TestCase):
    """Test cases for posting scores over HTTP."""

    def setUp(self):
        self.sink = HttpScoreSink("https://scores.example.com/submit", timeout=4)

    @patch('timed_quiz.leaderboard.requests.post')
    def test_submit_posts_json(self, mock_post):
        mock_post.return_value = Mock(status_code=201)

        self.sink.submit("ada", 141)

        mock_post.assert_called_once_with(
            "https://scores.example.com/submit",
            json={'nickname': "ada", 'score': 141},
            timeout=4
        )
        mock_post.return_value.raise_for_status.assert_called_once_with()

    @patch('timed_quiz.leaderboard.requests.post')
    def test_http_error_becomes_sink_error(self, mock_post):
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Server Error")
        mock_post.return_value = response

        with self.assertRaises(SinkError):
            self.sink.submit("ada", 141)

    @patch('timed_quiz.leaderboard.requests.post')
    def test_connection_error_becomes_sink_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        with self.assertRaises(SinkError) as context:
            self.sink.submit("ada", 141)
        self.assertIn("refused", str(context.exception))


class TestValidateNickname(unittest.TestCase):

    def test_valid(self):
        self.assertIsNone(validate_nickname("ada"))
        self.assertIsNone(validate_nickname("x" * 20))

    def test_invalid(self):
        self.assertIsNotNone(validate_nickname(""))
        self.assertIsNotNone(validate_nickname("   "))
        self.assertIsNotNone(validate_nickname("x" * 21))
        self.assertIsNotNone(validate_nickname(None))


class TestLeaderboardReporter(unittest.TestCase):
    """Test cases for exactly-once reporting."""

    def setUp(self):
        self.sink = Mock(spec=ScoreSink)
        self.reporter = LeaderboardReporter(self.sink, 141)

    def test_success_is_sent_once(self):
        first = self.reporter.report("ada")
        second = self.reporter.report("someone else")

        self.assertTrue(first.success)
        self.assertIs(second, first)
        self.assertEqual(second.nickname, "ada")
        self.sink.submit.assert_called_once_with("ada", 141)
        self.assertTrue(self.reporter.is_reported)

    def test_failure_can_be_retried(self):
        self.sink.submit.side_effect = [SinkError("Leaderboard unavailable"), None]

        failed = self.reporter.report("ada")
        self.assertFalse(failed.success)
        self.assertEqual(failed.reason, "Leaderboard unavailable")
        self.assertEqual(failed.score, 141)
        self.assertFalse(self.reporter.is_reported)

        retried = self.reporter.report("ada")
        self.assertTrue(retried.success)
        self.assertEqual(retried.score, 141)
        self.assertEqual(self.sink.submit.call_count, 2)
        self.assertEqual(self.reporter.get_status()['attempts'], 2)

    def test_invalid_nickname_is_not_sent(self):
        result = self.reporter.report("")
        self.assertFalse(result.success)
        self.sink.submit.assert_not_called()
        self.assertEqual(self.reporter.attempts, 0)

    def test_nickname_is_trimmed(self):
        self.reporter.report("  ada  ")
        self.sink.submit.assert_called_once_with("ada", 141)

    def test_status(self):
        self.assertEqual(
            self.reporter.get_status(),
            {'score': 141, 'attempts': 0, 'reported': False, 'nickname': None}
        )
        self.reporter.report("ada")
        self.assertEqual(self.reporter.get_status()['nickname'], "ada")


class TestLeaderboardReporterAsync(unittest.IsolatedAsyncioTestCase):
    """Concurrent submissions from the event loop."""

    async def test_concurrent_reports_send_once(self):
        sink = Mock(spec=ScoreSink)
        reporter = LeaderboardReporter(sink, 90)

        results = await asyncio.gather(
            reporter.report_async("ada"),
            reporter.report_async("ada")
        )

        self.assertTrue(all(result.success for result in results))
        sink.submit.assert_called_once_with("ada", 90)


if __name__ == '__main__':
    unittest.main()
