"""
Unit tests for ConfigManager class.
"""
import unittest
import logging

from quiz_flow.config_manager import ConfigManager
from quiz_flow.models import DEFAULT_QUIZ_URL


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_quiz_settings()

        self.assertEqual(settings.timer_duration, 30)
        self.assertEqual(settings.quiz_url, DEFAULT_QUIZ_URL)
        self.assertEqual(settings.request_timeout, 10.0)
        self.assertEqual(settings.great_score_threshold, 50)

    def test_get_quiz_settings_returns_copy(self):
        """Test that callers cannot change settings through the returned object."""
        settings = self.config_manager.get_quiz_settings()
        settings.timer_duration = 99

        self.assertEqual(self.config_manager.get_timer_duration(), 30)

    def test_set_timer_duration_valid_values(self):
        """Test setting valid timer durations, including both limits."""
        for duration in (5, 20, 30):
            result = self.config_manager.set_timer_duration(duration)
            self.assertTrue(result['success'])
            self.assertEqual(self.config_manager.get_timer_duration(), duration)

    def test_set_timer_duration_invalid_values(self):
        """Test that invalid durations are rejected and the old value kept."""
        for duration in ("30", 30.5, None, True, 4, 0, -1, 301):
            with self.subTest(duration=duration):
                result = self.config_manager.set_timer_duration(duration)
                self.assertFalse(result['success'])
                self.assertIn('error', result)
                self.assertTrue(result['user_message'].startswith("❌"))
        self.assertEqual(self.config_manager.get_timer_duration(), 30)

    def test_timer_duration_cannot_exceed_thirty_seconds(self):
        """Test that the countdown is capped at 30 seconds from every entry point."""
        result = self.config_manager.set_timer_duration(31)
        self.assertFalse(result['success'])
        self.assertIn("30", result['error'])

        errors = self.config_manager.apply_config({'quiz': {'timer_duration': 300}})
        self.assertEqual(len(errors), 1)
        self.assertEqual(self.config_manager.get_timer_duration(), 30)

    def test_set_quiz_url_valid(self):
        result = self.config_manager.set_quiz_url("  https://quiz.example.com/api/quiz  ")

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_quiz_url(), "https://quiz.example.com/api/quiz")

    def test_set_quiz_url_invalid(self):
        for url in ("", "   ", None, "ftp://quiz.example.com", "quiz.example.com/api", "https://"):
            with self.subTest(url=url):
                result = self.config_manager.set_quiz_url(url)
                self.assertFalse(result['success'])
        self.assertEqual(self.config_manager.get_quiz_url(), DEFAULT_QUIZ_URL)

    def test_set_request_timeout(self):
        result = self.config_manager.set_request_timeout(5)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_request_timeout(), 5.0)
        self.assertIsInstance(self.config_manager.get_request_timeout(), float)

    def test_set_request_timeout_invalid(self):
        for timeout in (0, -2.5, 121, "10", False):
            with self.subTest(timeout=timeout):
                self.assertFalse(self.config_manager.set_request_timeout(timeout)['success'])
        self.assertEqual(self.config_manager.get_request_timeout(), 10.0)

    def test_apply_config_valid_block(self):
        errors = self.config_manager.apply_config({
            'quiz': {
                'timer_duration': 20,
                'quiz_url': "http://localhost:8000/api/quiz",
                'request_timeout': 3
            }
        })

        self.assertEqual(errors, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.timer_duration, 20)
        self.assertEqual(settings.quiz_url, "http://localhost:8000/api/quiz")
        self.assertEqual(settings.request_timeout, 3.0)

    def test_apply_config_skips_invalid_entries(self):
        """Test that one bad entry does not block the valid ones."""
        errors = self.config_manager.apply_config({
            'quiz': {'timer_duration': 1, 'request_timeout': 15}
        })

        self.assertEqual(len(errors), 1)
        self.assertEqual(self.config_manager.get_timer_duration(), 30)
        self.assertEqual(self.config_manager.get_request_timeout(), 15.0)

    def test_apply_config_without_quiz_block(self):
        self.assertEqual(self.config_manager.apply_config(None), [])
        self.assertEqual(self.config_manager.apply_config({'bot': {}}), [])
        self.assertEqual(self.config_manager.get_timer_duration(), 30)

    def test_reset_to_defaults(self):
        self.config_manager.set_timer_duration(15)
        self.config_manager.set_quiz_url("https://other.example.com/quiz")

        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_timer_duration(), 30)
        self.assertEqual(self.config_manager.get_quiz_url(), DEFAULT_QUIZ_URL)

    def test_validate_settings(self):
        self.assertEqual(self.config_manager.validate_settings(), {"valid": True, "issues": []})

        # Bypass the setters to simulate corrupted state
        self.config_manager._global_settings.timer_duration = 1
        self.config_manager._global_settings.quiz_url = "not a url"

        result = self.config_manager.validate_settings()
        self.assertFalse(result["valid"])
        self.assertEqual(len(result["issues"]), 2)

    def test_settings_summary(self):
        summary = self.config_manager.get_settings_summary()

        self.assertIn("Timer: 30 seconds", summary)
        self.assertIn(DEFAULT_QUIZ_URL, summary)
        self.assertIn("Request timeout: 10 seconds", summary)


if __name__ == '__main__':
    unittest.main()
