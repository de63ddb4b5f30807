"""
Per-question countdown timer.
Remaining and elapsed time are always recomputed from the captured start
timestamp, so a delayed or skipped tick never makes the countdown drift.
"""
import asyncio
import logging
import math
import time
from typing import Callable, Optional

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """
    Structured records for the life of a question timer.

    Every record carries ``extra={'event_type': ..., 'timer_name': ...}`` so
    the lifecycle can be filtered out of the bot log.
    """

    # Ticks are logged every TICK_LOG_INTERVAL seconds and for the final seconds
    TICK_LOG_INTERVAL = 10
    FINAL_SECONDS = 5

    @staticmethod
    def _emit(level: int, event_type: str, timer_name: str, message: str, **fields) -> None:
        logger.log(
            level,
            f"Timer {timer_name}: {message}",
            extra=dict(fields, event_type=event_type, timer_name=timer_name)
        )

    @staticmethod
    def started(timer_name: str, duration: int, countdown: bool) -> None:
        mode = "countdown" if countdown else "measuring only"
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'timer_start', timer_name,
            f"started for {duration}s ({mode})",
            duration=duration, countdown=countdown
        )

    @staticmethod
    def ticked(timer_name: str, remaining: int) -> None:
        if remaining % TimerLifecycleLogger.TICK_LOG_INTERVAL and remaining > TimerLifecycleLogger.FINAL_SECONDS:
            return
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'timer_tick', timer_name,
            f"{remaining}s remaining", remaining=remaining
        )

    @staticmethod
    def stopped(timer_name: str, elapsed: int) -> None:
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'timer_stop', timer_name,
            f"stopped after {elapsed}s", elapsed=elapsed
        )

    @staticmethod
    def expired(timer_name: str, duration: int) -> None:
        TimerLifecycleLogger._emit(
            logging.INFO, 'timer_expired', timer_name,
            f"expired after {duration}s", duration=duration
        )

    @staticmethod
    def callback_failed(timer_name: str, callback: str, error: Exception) -> None:
        TimerLifecycleLogger._emit(
            logging.ERROR, 'timer_callback_error', timer_name,
            f"{callback} raised {type(error).__name__}: {error}",
            callback=callback, error_type=type(error).__name__
        )

    @staticmethod
    def race_absorbed(timer_name: str, details: str) -> None:
        """An expiry that lost to a submit; expected, so debug level."""
        TimerLifecycleLogger._emit(
            logging.DEBUG, 'timer_race', timer_name, details, details=details
        )


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class QuizTimer:
    """Manages the countdown for the question currently on screen."""

    def __init__(
        self,
        name: str = "quiz",
        on_tick: Optional[Callable[[int], None]] = None,
        on_expire: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the timer.

        Args:
            name: Label used in log records
            on_tick: Called with the remaining seconds at least once per second
            on_expire: Called once when the countdown reaches zero
            clock: Monotonic clock returning seconds
        """
        self.on_tick = on_tick
        self.on_expire = on_expire
        self._name = name
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._duration = 0
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._running = False
        self._expired = False
        # Bumped on every start/stop; a countdown only acts for its own generation
        self._generation = 0

    def start(self, duration: int, countdown: bool = True) -> None:
        """
        Start timing a question, stopping any previous run first.

        Args:
            duration: Time limit in seconds
            countdown: When False the timer only measures elapsed time and
                never ticks or expires
        """
        if duration <= 0:
            raise ValueError(f"Timer duration must be positive, got {duration}")

        self.stop()
        self._duration = duration
        self._started_at = self._clock()
        self._stopped_at = None
        self._running = True
        self._expired = False

        TimerLifecycleLogger.started(self._name, duration, countdown)

        if not countdown:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, timer {self._name} will only measure elapsed time")
            return

        self._task = loop.create_task(self._countdown(self._generation))

    def stop(self) -> None:
        """Cancel pending tick and expiry notifications and freeze elapsed time."""
        self._generation += 1
        if self._running:
            self._stopped_at = self._clock()
            TimerLifecycleLogger.stopped(self._name, self.elapsed())
        self._running = False

        task, self._task = self._task, None
        # The countdown task may be the caller (stop from inside an expiry callback)
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    def remaining(self) -> int:
        """Seconds left, recomputed from the start timestamp."""
        if self._started_at is None:
            return 0
        return max(0, self._duration - self._whole_seconds_elapsed())

    def elapsed(self) -> int:
        """Whole seconds since start, clamped to the duration."""
        if self._started_at is None:
            return 0
        return min(self._duration, self._whole_seconds_elapsed())

    @property
    def duration(self) -> int:
        return self._duration

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_expired(self) -> bool:
        return self._expired

    def _whole_seconds_elapsed(self) -> int:
        now = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0, math.floor(now - self._started_at))

    def _seconds_to_next_tick(self) -> float:
        fraction = (self._clock() - self._started_at) % 1.0
        return max(0.01, 1.0 - fraction)

    async def _countdown(self, generation: int) -> None:
        try:
            while generation == self._generation:
                remaining = self.remaining()
                if remaining <= 0:
                    self._fire_expiry(generation)
                    return

                TimerLifecycleLogger.ticked(self._name, remaining)
                if self.on_tick is not None:
                    self._invoke(self.on_tick, remaining, operation="on_tick")

                await asyncio.sleep(self._seconds_to_next_tick())
        except asyncio.CancelledError:
            logger.debug(f"Timer {self._name}: countdown task cancelled")
            raise

    def _fire_expiry(self, generation: int) -> None:
        if self._expired or generation != self._generation:
            return
        self._expired = True
        self._running = False
        self._stopped_at = self._started_at + self._duration
        self._task = None

        TimerLifecycleLogger.expired(self._name, self._duration)
        if self.on_expire is not None:
            self._invoke(self.on_expire, operation="on_expire")

    def _invoke(self, callback: Callable, *args, operation: str) -> None:
        try:
            callback(*args)
        except Exception as e:
            TimerLifecycleLogger.callback_failed(self._name, operation, e)
