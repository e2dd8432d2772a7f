"""
Comprehensive integration tests for Quiz Flow.
Tests complete quiz session flows from the quiz service response to the results screen.
"""
import asyncio
import json
import unittest
from unittest.mock import patch

from quiz_flow import data_manager
from quiz_flow.config_manager import ConfigManager
from quiz_flow.data_manager import QuizDataLoader
from quiz_flow.models import Phase, QuizSettings
from quiz_flow.quiz_controller import QuizController, QuizUnavailableError
from quiz_flow.quiz_engine import QuizTimer
from quiz_flow.views import QuizWidget
from tests.test_fixtures import DummyResponse, DummySession, MockDiscordObjects, TestFixtures


class TestCompleteQuizFlow(unittest.IsolatedAsyncioTestCase):
    """Test complete quiz flow from load to results."""

    def setUp(self):
        """Set up integration test environment."""
        self.config_manager = ConfigManager()
        self.config_manager.apply_config({'quiz': {'quiz_url': "https://quiz.example.com/api/quiz"}})
        settings = self.config_manager.get_quiz_settings()
        self.data_loader = QuizDataLoader(settings.quiz_url, settings.request_timeout)
        self.quiz_controller = QuizController(self.data_loader, settings)

    async def asyncTearDown(self):
        await self.quiz_controller.shutdown()

    def _serve(self, response):
        session = DummySession(response)
        patcher = patch.object(data_manager.aiohttp, "ClientSession", lambda *args, **kwargs: session)
        patcher.start()
        self.addCleanup(patcher.stop)
        return session

    def _serve_valid_quiz(self):
        return self._serve(DummyResponse(200, json.dumps(TestFixtures.create_valid_remote_quiz())))

    async def test_full_quiz_flow(self):
        """Load, answer every question and read the results."""
        service = self._serve_valid_quiz()
        await self.quiz_controller.load_quiz()
        self.assertEqual(service.requested_urls, ["https://quiz.example.com/api/quiz"])

        session = self.quiz_controller.start_quiz(100)
        self.assertEqual(session.get_current_question().text, "What is the capital of Japan?")

        self.quiz_controller.submit_answer(100, "Tokyo")
        self.quiz_controller.submit_answer(100, "20")

        self.assertEqual(session.phase, Phase.RESULTS)
        self.assertEqual(session.score, 16)
        self.assertEqual(session.streak, 0)
        self.assertEqual(
            [(a.selected_answer, a.correct_answer, a.is_correct) for a in session.answers],
            [("Tokyo", "Tokyo", True), ("20", "15", False)]
        )
        self.assertFalse(session.timer.is_running)

    async def test_play_again_after_results(self):
        self._serve_valid_quiz()
        await self.quiz_controller.load_quiz()
        self.quiz_controller.start_quiz(100)
        self.quiz_controller.submit_answer(100, "Tokyo")
        self.quiz_controller.submit_answer(100, "15")

        session = self.quiz_controller.start_quiz(100)

        self.assertEqual(session.phase, Phase.PLAYING)
        self.assertEqual(session.answers, [])
        self.assertEqual(session.score, 0)

    async def test_countdown_runs_out_on_every_question(self):
        """A real timer drives timeouts through to the results phase."""
        self._serve_valid_quiz()
        await self.quiz_controller.load_quiz()
        self.quiz_controller.settings = QuizSettings(timer_duration=3)

        session = self.quiz_controller.get_or_create_session(100)
        session.timer = QuizTimer("100", interval=0.01)
        self.quiz_controller.start_quiz(100)

        for _ in range(100):
            if session.phase is Phase.RESULTS:
                break
            await asyncio.sleep(0.01)

        self.assertEqual(session.phase, Phase.RESULTS)
        self.assertEqual(session.score, 0)
        self.assertEqual([a.selected_answer for a in session.answers], [None, None])
        self.assertFalse(session.timer.is_running)

    async def test_concurrent_channels_are_independent(self):
        self._serve_valid_quiz()
        await self.quiz_controller.load_quiz()

        first = self.quiz_controller.start_quiz(1)
        second = self.quiz_controller.start_quiz(2)
        self.quiz_controller.submit_answer(1, "Tokyo")
        self.quiz_controller.submit_answer(2, "Seoul")

        self.assertEqual((first.score, first.streak), (16, 1))
        self.assertEqual((second.score, second.streak), (0, 0))

        self.quiz_controller.end_session(1)
        self.assertEqual(second.phase, Phase.PLAYING)


class TestErrorRecoveryFlow(unittest.IsolatedAsyncioTestCase):
    """Test the error view and the manual reload path."""

    async def asyncSetUp(self):
        """Set up integration test environment."""
        self.data_loader = QuizDataLoader("https://quiz.example.com/api/quiz")
        self.quiz_controller = QuizController(self.data_loader)

    async def asyncTearDown(self):
        await self.quiz_controller.shutdown()

    def _serve(self, response):
        session = DummySession(response)
        patcher = patch.object(data_manager.aiohttp, "ClientSession", lambda *args, **kwargs: session)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_service_outage_blocks_play_until_reload(self):
        self._serve(DummyResponse(502, "Bad Gateway"))
        result = await self.quiz_controller.load_quiz()

        self.assertTrue(result.is_fallback)
        self.assertEqual(len(self.quiz_controller.quiz_set), 3)
        with self.assertRaises(QuizUnavailableError):
            self.quiz_controller.start_quiz(1)

        self._serve(DummyResponse(200, json.dumps(TestFixtures.create_valid_remote_quiz())))
        await self.quiz_controller.reload()

        session = self.quiz_controller.start_quiz(1)
        self.assertEqual(session.phase, Phase.PLAYING)
        self.assertEqual(len(session.quiz_set), 2)

    async def test_widget_retry_after_malformed_quiz(self):
        """The widget shows the error view and Retry brings back the start screen."""
        self._serve(DummyResponse(200, json.dumps({"data": []})))
        await self.quiz_controller.load_quiz()

        widget = QuizWidget(self.quiz_controller, 1)
        embed, view = widget.render()
        self.assertIn("Error loading quiz", embed.title)

        self._serve(DummyResponse(200, json.dumps(TestFixtures.create_valid_remote_quiz())))
        interaction = MockDiscordObjects.create_mock_interaction(channel_id=1)
        await widget.handle_retry(interaction)

        embed, view = widget.render()
        self.assertEqual(embed.title, "Welcome to the Quiz!")
        self.assertEqual([item.label for item in view.children], ["Start Quiz"])
        await widget.close()

    async def test_network_failure_shows_error_details(self):
        self._serve(asyncio.TimeoutError())
        await self.quiz_controller.load_quiz()

        status = self.quiz_controller.get_status(1)

        self.assertTrue(status['loaded'])
        self.assertIn("Timed out", status['error'])
        self.assertIsNone(status['session'])


if __name__ == '__main__':
    unittest.main()
