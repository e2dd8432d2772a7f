"""
Quiz engine core logic for the Quiz Flow widget.
Handles scoring and the per-question countdown timer.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Optional

# Set up logger for timer operations
logger = logging.getLogger(__name__)

BASE_POINTS = 10
TIME_BONUS_DIVISOR = 5
STREAK_BONUS_DIVISOR = 2


def calculate_points(seconds_remaining: int, streak: int) -> int:
    """
    Points awarded for a correct answer.

    Args:
        seconds_remaining: Countdown value at the moment of submission
        streak: Streak after counting this answer

    Returns:
        10 plus one point per full 5 seconds left plus one point per
        full 2 answers of streak
    """
    time_bonus = seconds_remaining // TIME_BONUS_DIVISOR
    streak_bonus = streak // STREAK_BONUS_DIVISOR
    return BASE_POINTS + time_bonus + streak_bonus


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(channel_id: str, duration: int) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Channel {channel_id}, Duration {duration}s",
            extra={
                'event_type': 'timer_countdown_start',
                'channel_id': channel_id,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_tick(channel_id: str, remaining_time: int) -> None:
        """Log timer ticks (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            logger.debug(
                f"Timer lifecycle: TICK - Channel {channel_id}, Remaining {remaining_time}s",
                extra={
                    'event_type': 'timer_tick',
                    'channel_id': channel_id,
                    'remaining_time': remaining_time,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_cancelled(channel_id: str, reason: str) -> None:
        """Log timer cancellation."""
        logger.info(
            f"Timer lifecycle: CANCELLED - Channel {channel_id} ({reason})",
            extra={
                'event_type': 'timer_cancelled',
                'channel_id': channel_id,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stray_tick(channel_id: str, details: str) -> None:
        """Log a tick that arrived after its countdown stopped mattering."""
        logger.warning(
            f"Timer lifecycle: STRAY_TICK - Channel {channel_id}: {details}",
            extra={
                'event_type': 'timer_stray_tick',
                'channel_id': channel_id,
                'details': details,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: str, error_type: str, error_message: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Channel {channel_id}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """Repeating one-second ticker bound to the playing phase of a session."""

    def __init__(self, channel_id: str = None, interval: float = 1.0):
        """
        Initialize the timer.

        Args:
            channel_id: Identifier used in log records
            interval: Seconds between ticks
        """
        self._task: Optional[asyncio.Task] = None
        self._channel_id = channel_id
        self._interval = interval

    def start(self, on_tick: Callable[[], Any], duration: int = 0) -> None:
        """
        Start ticking, replacing any previous run.

        Must be called from within a running event loop.

        Args:
            on_tick: Called once per interval; may be sync or async
            duration: Countdown length, for logging only
        """
        self.cancel("restarted")
        TimerLifecycleLogger.log_timer_start(self._channel_id, duration)
        self._task = asyncio.get_running_loop().create_task(self._run(on_tick))

    async def _run(self, on_tick: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(self._interval)
            # A replaced or cancelled run must never call back
            if self._task is not asyncio.current_task():
                return
            try:
                result = on_tick()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                # A failing callback does not stop the countdown
                TimerLifecycleLogger.log_timer_error(
                    self._channel_id, "tick_callback_error", str(e)
                )

    def cancel(self, reason: str = "cancel requested") -> bool:
        """
        Stop ticking.

        Returns:
            True if a running countdown was cancelled, False if none was running
        """
        task = self._task
        self._task = None
        if task is None or task.done():
            return False
        task.cancel()
        TimerLifecycleLogger.log_timer_cancelled(self._channel_id, reason)
        return True

    @property
    def is_running(self) -> bool:
        """Check if the countdown task is alive."""
        return self._task is not None and not self._task.done()
