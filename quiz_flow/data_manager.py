"""
Data manager for fetching the remote quiz document and validating its shape.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import DEFAULT_QUIZ_URL, LoadResult, Question


class QuizLoadError(Exception):
    """Raised when the remote quiz document cannot be fetched or understood."""
    pass


# Used whenever the remote quiz cannot be loaded
FALLBACK_QUESTIONS = [
    {
        "question": "What is the capital of France?",
        "options": ["London", "Berlin", "Paris", "Madrid"],
        "correct_answer": "Paris"
    },
    {
        "question": "Which planet is known as the Red Planet?",
        "options": ["Venus", "Mars", "Jupiter", "Saturn"],
        "correct_answer": "Mars"
    },
    {
        "question": "What is 2 + 2?",
        "options": ["3", "4", "5", "6"],
        "correct_answer": "4"
    }
]


def create_fallback_quiz() -> List[Question]:
    """Build a fresh copy of the built-in fallback questions."""
    return [
        Question(
            text=q["question"],
            options=list(q["options"]),
            correct_answer=q["correct_answer"]
        )
        for q in FALLBACK_QUESTIONS
    ]


class QuizDataLoader:
    """Loads the quiz from the remote quiz service, falling back to built-in questions."""

    def __init__(self, quiz_url: str = DEFAULT_QUIZ_URL, request_timeout: float = 10.0):
        """
        Initialize the loader.

        Args:
            quiz_url: Endpoint returning the quiz JSON document
            request_timeout: Total timeout for the HTTP request in seconds
        """
        self.quiz_url = quiz_url
        self.request_timeout = request_timeout
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback
        self.fallback_quiz_created = False
        self.loaded_questions: List[Question] = []

    async def load(self) -> LoadResult:
        """
        Load the quiz, never raising.

        Returns:
            LoadResult holding the remote questions, or the fallback
            questions together with the error that caused the fallback
        """
        self.load_errors.clear()
        self.fallback_quiz_created = False

        try:
            data = await self._fetch_quiz_document()
            questions = self.parse_quiz_document(data)
        except QuizLoadError as e:
            return self._use_fallback(str(e))
        except aiohttp.ClientError as e:
            return self._use_fallback(f"Network error fetching quiz: {e}")
        except asyncio.TimeoutError:
            return self._use_fallback(
                f"Timed out after {self.request_timeout}s fetching quiz"
            )
        except Exception as e:
            self.logger.exception("Unexpected error while loading quiz")
            return self._use_fallback(f"Unexpected error: {e}")

        self.loaded_questions = questions
        self.logger.info(
            f"Loaded {len(questions)} questions from {self.quiz_url}"
        )
        return LoadResult(quiz_set=questions)

    async def _fetch_quiz_document(self) -> Any:
        """
        Issue the single GET request for the quiz document.

        Raises:
            QuizLoadError: On a non-OK status or an unparseable body
            aiohttp.ClientError: On transport failures
        """
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.quiz_url) as response:
                if not response.ok:
                    raise QuizLoadError(
                        f"Failed to fetch quiz data: HTTP {response.status}"
                    )
                body = await response.text()

        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise QuizLoadError(f"Invalid JSON in quiz response: {e}")

    def validate_quiz_structure(self, data: Any) -> bool:
        """
        Validate that the document has a top-level 'questions' list.

        Expected structure:
        {
            "questions": [
                {
                    "description": str,
                    "options": [{"description": str, "is_correct": bool}]
                }
            ]
        }

        Only the top-level shape is checked here; per-question problems
        surface while transforming.
        """
        if not isinstance(data, dict):
            self.logger.error("Quiz data must be a JSON object")
            return False

        if "questions" not in data:
            self.logger.error("Quiz data must contain a 'questions' key")
            return False

        if not isinstance(data["questions"], list):
            self.logger.error("'questions' value must be an array")
            return False

        return True

    def parse_quiz_document(self, data: Any) -> List[Question]:
        """
        Validate and transform a remote quiz document.

        Raises:
            QuizLoadError: If the shape is wrong, any question fails to
                transform, or there are no questions at all
        """
        if not self.validate_quiz_structure(data):
            raise QuizLoadError("Invalid quiz data format")

        questions = []
        for i, remote_question in enumerate(data["questions"]):
            try:
                questions.append(self.transform_question(remote_question))
            except (KeyError, TypeError, AttributeError) as e:
                raise QuizLoadError(f"Question {i} could not be read: {e!r}")

        if not questions:
            raise QuizLoadError("Quiz contains no questions")

        return questions

    def transform_question(self, remote_question: Dict[str, Any]) -> Question:
        """
        Convert one remote question into the canonical Question shape.

        The correct answer is the description of the first option flagged
        is_correct, or the empty string when none is flagged.
        """
        options = [option["description"] for option in remote_question["options"]]

        correct_answer = ""
        for option in remote_question["options"]:
            if option.get("is_correct"):
                correct_answer = option["description"]
                break

        if not correct_answer:
            self.logger.warning(
                f"No option marked correct for question: {remote_question['description']!r}"
            )

        return Question(
            text=remote_question["description"],
            options=options,
            correct_answer=correct_answer
        )

    def _use_fallback(self, error: str) -> LoadResult:
        """Record the error and hand back the built-in questions."""
        self.load_errors.append(error)
        self.fallback_quiz_created = True
        self.loaded_questions = create_fallback_quiz()
        self.logger.warning(f"Using fallback quiz: {error}")
        return LoadResult(quiz_set=self.loaded_questions, error=error)

    def get_load_errors(self) -> List[str]:
        """Get list of errors encountered during the last load operation."""
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        """Check if there were any errors during the last load operation."""
        return len(self.load_errors) > 0

    def is_fallback_quiz_active(self) -> bool:
        """Check if the fallback quiz replaced the remote one."""
        return self.fallback_quiz_created

    def get_loading_summary(self) -> Dict[str, Optional[Any]]:
        """
        Get a summary of the last load operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'quiz_url': self.quiz_url,
            'question_count': len(self.loaded_questions),
            'has_errors': self.has_load_errors(),
            'errors': self.get_load_errors(),
            'fallback_active': self.is_fallback_quiz_active()
        }
