"""
Configuration manager for Quiz Flow settings and parameters.
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .models import DEFAULT_QUIZ_URL, QuizSettings


class ConfigManager:
    """Manages widget configuration settings and quiz parameters."""

    # Default configuration values
    DEFAULT_TIMER_DURATION = 30
    DEFAULT_QUIZ_URL = DEFAULT_QUIZ_URL
    DEFAULT_REQUEST_TIMEOUT = 10.0

    # Validation limits
    MIN_TIMER_DURATION = 5
    MAX_TIMER_DURATION = 30
    MAX_REQUEST_TIMEOUT = 120.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings()

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            A copy of the QuizSettings currently in effect
        """
        return QuizSettings(
            timer_duration=self._global_settings.timer_duration,
            quiz_url=self._global_settings.quiz_url,
            request_timeout=self._global_settings.request_timeout,
            great_score_threshold=self._global_settings.great_score_threshold
        )

    def set_timer_duration(self, duration: int) -> Dict[str, Any]:
        """
        Set the countdown length for each question.

        Args:
            duration: Timer duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        # bool is an int subclass but never a valid duration
        if not isinstance(duration, int) or isinstance(duration, bool):
            error_msg = f"Timer duration must be an integer, got {type(duration).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(duration).__name__}"
            }

        if duration < self.MIN_TIMER_DURATION:
            error_msg = f"Timer duration must be at least {self.MIN_TIMER_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too short: Minimum is {self.MIN_TIMER_DURATION} seconds"
            }

        if duration > self.MAX_TIMER_DURATION:
            error_msg = f"Timer duration cannot exceed {self.MAX_TIMER_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too long: Maximum is {self.MAX_TIMER_DURATION} seconds"
            }

        self._global_settings.timer_duration = duration
        self.logger.info(f"Timer duration set to {duration} seconds")
        return {
            'success': True,
            'message': f"Timer duration set to {duration} seconds",
            'user_message': f"✅ Timer set to {duration} seconds"
        }

    def get_timer_duration(self) -> int:
        return self._global_settings.timer_duration

    def set_quiz_url(self, url: str) -> Dict[str, Any]:
        """
        Set the endpoint the quiz is fetched from.

        Args:
            url: Absolute http(s) URL

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(url, str) or not url.strip():
            error_msg = "Quiz URL must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Quiz URL cannot be empty"
            }

        parsed = urlparse(url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            error_msg = f"Quiz URL must be an http(s) URL, got {url!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid quiz URL: {url}"
            }

        self._global_settings.quiz_url = url.strip()
        self.logger.info(f"Quiz URL set to {self._global_settings.quiz_url}")
        return {
            'success': True,
            'message': f"Quiz URL set to {self._global_settings.quiz_url}",
            'user_message': f"✅ Quiz will be loaded from {self._global_settings.quiz_url}"
        }

    def get_quiz_url(self) -> str:
        return self._global_settings.quiz_url

    def set_request_timeout(self, timeout: float) -> Dict[str, Any]:
        """
        Set the total timeout for the quiz request.

        Args:
            timeout: Seconds, greater than zero

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool):
            error_msg = f"Request timeout must be a number, got {type(timeout).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(timeout).__name__}"
            }

        if timeout <= 0 or timeout > self.MAX_REQUEST_TIMEOUT:
            error_msg = f"Request timeout must be between 0 and {self.MAX_REQUEST_TIMEOUT} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timeout out of range: Use up to {self.MAX_REQUEST_TIMEOUT:g} seconds"
            }

        self._global_settings.request_timeout = float(timeout)
        self.logger.info(f"Request timeout set to {timeout} seconds")
        return {
            'success': True,
            'message': f"Request timeout set to {timeout} seconds",
            'user_message': f"✅ Request timeout set to {timeout} seconds"
        }

    def get_request_timeout(self) -> float:
        return self._global_settings.request_timeout

    def apply_config(self, config: Optional[Dict[str, Any]]) -> List[str]:
        """
        Apply the 'quiz' block of a loaded config.json.

        Invalid entries are logged and skipped; defaults stay in effect.

        Returns:
            Error messages for the entries that were rejected
        """
        errors = []
        quiz_config = (config or {}).get('quiz', {})

        if 'timer_duration' in quiz_config:
            result = self.set_timer_duration(quiz_config['timer_duration'])
            if not result['success']:
                errors.append(result['error'])

        if 'quiz_url' in quiz_config:
            result = self.set_quiz_url(quiz_config['quiz_url'])
            if not result['success']:
                errors.append(result['error'])

        if 'request_timeout' in quiz_config:
            result = self.set_request_timeout(quiz_config['request_timeout'])
            if not result['success']:
                errors.append(result['error'])

        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration entries")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            timer_duration=self.DEFAULT_TIMER_DURATION,
            quiz_url=self.DEFAULT_QUIZ_URL,
            request_timeout=self.DEFAULT_REQUEST_TIMEOUT
        )
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
        settings = self._global_settings

        if (not isinstance(settings.timer_duration, int) or
                settings.timer_duration < self.MIN_TIMER_DURATION or
                settings.timer_duration > self.MAX_TIMER_DURATION):
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid timer duration: {settings.timer_duration}"
            )

        parsed = urlparse(settings.quiz_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid quiz URL: {settings.quiz_url}")

        if not 0 < settings.request_timeout <= self.MAX_REQUEST_TIMEOUT:
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid request timeout: {settings.request_timeout}"
            )

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        return (
            f"Quiz Settings:\n"
            f"• Timer: {self._global_settings.timer_duration} seconds\n"
            f"• Quiz URL: {self._global_settings.quiz_url}\n"
            f"• Request timeout: {self._global_settings.request_timeout:g} seconds"
        )
