"""
Leaderboard submission of final scores.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from .exceptions import SinkError
from .models import SubmissionResult

MAX_NICKNAME_LENGTH = 20


class ScoreSink(ABC):
    """Destination for final scores."""

    @abstractmethod
    def submit(self, nickname: str, score: int) -> None:
        """
        Deliver a score.

        Raises:
            SinkError: If the score was not accepted
        """


class HttpScoreSink(ScoreSink):
    """Posts scores as JSON to a leaderboard endpoint."""

    def __init__(self, url: str, timeout: float = 10):
        self.url = url
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def submit(self, nickname: str, score: int) -> None:
        payload = {'nickname': nickname, 'score': score}
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()  # Raise for any non-2xx status
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Leaderboard request to {self.url} failed: {e}")
            raise SinkError(f"Leaderboard unavailable: {e}") from e
        self.logger.info(f"Submitted score {score} for '{nickname}' to {self.url}")


def validate_nickname(nickname: Any) -> Optional[str]:
    """
    Check a nickname.

    Returns:
        An error message, or None if the nickname is acceptable
    """
    if not isinstance(nickname, str) or not nickname.strip():
        return "Nickname cannot be empty"
    if len(nickname.strip()) > MAX_NICKNAME_LENGTH:
        return f"Nickname cannot exceed {MAX_NICKNAME_LENGTH} characters"
    return None


class LeaderboardReporter:
    """
    Reports one attempt's score to a sink.

    A successful report is sent exactly once; later calls return the same
    result. Failed reports leave the score untouched so the caller can retry.
    """

    def __init__(self, sink: ScoreSink, score: int):
        self.sink = sink
        self.score = score
        self.attempts = 0
        self._success: Optional[SubmissionResult] = None
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def is_reported(self) -> bool:
        return self._success is not None

    def report(self, nickname: str) -> SubmissionResult:
        """
        Send the score under ``nickname``.

        Returns:
            SubmissionResult describing success or the failure reason
        """
        if self._success is not None:
            self.logger.debug("Score already reported, not sending again")
            return self._success

        error = validate_nickname(nickname)
        if error:
            return SubmissionResult(success=False, reason=error, nickname=nickname, score=self.score)

        nickname = nickname.strip()
        self.attempts += 1
        try:
            self.sink.submit(nickname, self.score)
        except SinkError as e:
            self.logger.warning(f"Score submission attempt {self.attempts} failed: {e}")
            return SubmissionResult(success=False, reason=str(e), nickname=nickname, score=self.score)

        self._success = SubmissionResult(success=True, nickname=nickname, score=self.score)
        return self._success

    async def report_async(self, nickname: str) -> SubmissionResult:
        """Run :meth:`report` in a worker thread so the event loop keeps running."""
        # One request at a time, so a double click cannot send the score twice
        async with self._lock:
            return await asyncio.to_thread(self.report, nickname)

    def get_status(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'attempts': self.attempts,
            'reported': self.is_reported,
            'nickname': self._success.nickname if self._success else None
        }
