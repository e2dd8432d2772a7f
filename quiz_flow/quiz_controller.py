"""
Quiz session controller for the Quiz Flow widget.
Owns the session state machine and the quiz data each widget plays.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .models import (
    AnswerRecord, LoadResult, Phase, Question, QuizSettings,
    SessionSnapshot, SessionState
)
from .quiz_engine import QuizTimer, TimerLifecycleLogger, calculate_points
from .data_manager import QuizDataLoader


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class InvalidTransitionError(QuizControllerError):
    """Raised when an action is not valid in the session's current phase."""
    pass


class QuizUnavailableError(QuizControllerError):
    """Raised when a quiz cannot be started because loading is pending or failed."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizSession:
    """
    State machine for one player's run through a quiz.

    Phases go start -> playing -> results, and results loops back to
    playing through start(). Every mutation happens in start(),
    submit_answer() or tick(); listeners are notified after each one.
    """

    def __init__(
        self,
        quiz_set: Optional[List[Question]],
        settings: Optional[QuizSettings] = None,
        timer: Optional[QuizTimer] = None,
        channel_id: Optional[int] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings or QuizSettings()
        self.channel_id = channel_id
        self.timer = timer if timer is not None else QuizTimer(str(channel_id))
        self._state = SessionState(
            quiz_set=quiz_set,
            seconds_remaining=self.settings.timer_duration
        )
        self._listeners: List[Callable[[SessionSnapshot], Any]] = []

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def quiz_set(self) -> Optional[List[Question]]:
        return self._state.quiz_set

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def score(self) -> int:
        return self._state.score

    @property
    def streak(self) -> int:
        return self._state.streak

    @property
    def seconds_remaining(self) -> int:
        return self._state.seconds_remaining

    @property
    def answers(self) -> List[AnswerRecord]:
        return list(self._state.answers)

    def add_listener(self, listener: Callable[[SessionSnapshot], Any]) -> None:
        """Register a callable that receives a snapshot after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[SessionSnapshot], Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get_current_question(self) -> Optional[Question]:
        """
        Get the question being asked.

        Returns:
            Current Question while playing, None otherwise
        """
        if self._state.phase is not Phase.PLAYING:
            return None
        return self._state.quiz_set[self._state.current_index]

    def start(self) -> None:
        """
        Begin a fresh run from the start or results phase.

        Raises:
            InvalidTransitionError: If already playing or no quiz is loaded
        """
        if self._state.phase is Phase.PLAYING:
            raise InvalidTransitionError("Quiz is already in progress")
        if not self._state.quiz_set:
            raise InvalidTransitionError("Cannot start a quiz with no questions loaded")

        previous_phase = self._state.phase
        self._state.phase = Phase.PLAYING
        self._state.score = 0
        self._state.streak = 0
        self._state.current_index = 0
        self._state.seconds_remaining = self.settings.timer_duration
        self._state.answers = []

        self._start_countdown()
        self._log_transition(previous_phase, Phase.PLAYING, "quiz started")
        self._notify()

    def submit_answer(
        self,
        selected_answer: Optional[str],
        question_number: Optional[int] = None
    ) -> AnswerRecord:
        """
        Answer the current question.

        Args:
            selected_answer: The chosen option, or None when time ran out
            question_number: 1-based question the answer was given for;
                when set it must match the current question

        Returns:
            The AnswerRecord appended for this question

        Raises:
            InvalidTransitionError: If the session is not playing or the
                answer belongs to a different question
        """
        state = self._state
        if state.phase is not Phase.PLAYING:
            raise InvalidTransitionError(
                f"Cannot submit an answer in phase '{state.phase.value}'"
            )
        if state.current_index >= len(state.quiz_set):
            raise InvalidTransitionError("No question left to answer")
        if question_number is not None and question_number != state.current_index + 1:
            raise InvalidTransitionError(
                f"Answer for question {question_number} arrived after the quiz "
                f"moved on to question {state.current_index + 1}"
            )

        question = state.quiz_set[state.current_index]
        # An empty correct answer means no option was marked correct
        is_correct = (
            selected_answer is not None
            and question.correct_answer != ""
            and selected_answer == question.correct_answer
        )

        if is_correct:
            state.streak += 1
            points = calculate_points(state.seconds_remaining, state.streak)
            state.score += points
        else:
            points = 0
            state.streak = 0

        record = AnswerRecord(
            question_text=question.text,
            selected_answer=selected_answer,
            correct_answer=question.correct_answer,
            is_correct=is_correct
        )
        state.answers.append(record)

        self.logger.info(
            f"Question {state.current_index + 1} answered for channel {self.channel_id}: "
            f"correct={is_correct}, points={points}, score={state.score}, streak={state.streak}",
            extra={
                'event_type': 'answer_submitted',
                'channel_id': self.channel_id,
                'question_index': state.current_index,
                'is_correct': is_correct,
                'timed_out': selected_answer is None,
                'points': points,
                'timestamp': time.time()
            }
        )

        if state.current_index + 1 < len(state.quiz_set):
            state.current_index += 1
            state.seconds_remaining = self.settings.timer_duration
            self._start_countdown()
        else:
            state.phase = Phase.RESULTS
            self.timer.cancel("quiz finished")
            self._log_transition(Phase.PLAYING, Phase.RESULTS, "last question answered")

        self._notify()
        return record

    def tick(self) -> None:
        """
        Advance the countdown by one second.

        At zero the current question is submitted with no answer.
        Ticks outside the playing phase are ignored.
        """
        state = self._state
        if state.phase is not Phase.PLAYING:
            TimerLifecycleLogger.log_stray_tick(
                str(self.channel_id), f"tick ignored in phase '{state.phase.value}'"
            )
            return

        if state.seconds_remaining > 0:
            state.seconds_remaining -= 1
            TimerLifecycleLogger.log_timer_tick(str(self.channel_id), state.seconds_remaining)

        if state.seconds_remaining == 0:
            self.logger.info(
                f"Time expired on question {state.current_index + 1} for channel {self.channel_id}"
            )
            self.submit_answer(None)
        else:
            self._notify()

    def snapshot(self) -> SessionSnapshot:
        """Build a read-only view of the current state."""
        state = self._state
        question = self.get_current_question()
        return SessionSnapshot(
            phase=state.phase,
            question_number=state.current_index + 1,
            total_questions=len(state.quiz_set) if state.quiz_set else 0,
            question_text=question.text if question else None,
            options=tuple(question.options) if question else (),
            score=state.score,
            streak=state.streak,
            seconds_remaining=state.seconds_remaining,
            answers=tuple(state.answers)
        )

    def close(self) -> None:
        """Tear down the session; no tick fires afterwards."""
        self.timer.cancel("session closed")
        self._listeners.clear()

    def _start_countdown(self) -> None:
        self.timer.start(self.tick, self.settings.timer_duration)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error(f"Session listener failed for channel {self.channel_id}: {e}")

    def _log_transition(self, from_phase: Phase, to_phase: Phase, reason: str) -> None:
        self.logger.info(
            f"Session for channel {self.channel_id}: {from_phase.value} -> {to_phase.value} ({reason})",
            extra={
                'event_type': 'session_phase_transition',
                'channel_id': self.channel_id,
                'from_phase': from_phase.value,
                'to_phase': to_phase.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )


class QuizController:
    """
    Loads quiz data and hands out one QuizSession per Discord channel.

    Play is blocked while the quiz is loading or when the last load fell
    back to the built-in questions; the only way out of an error is a
    full reload().
    """

    def __init__(self, data_loader: QuizDataLoader, settings: Optional[QuizSettings] = None):
        """
        Initialize the quiz controller.

        Args:
            data_loader: Instance for loading quiz data
            settings: Quiz settings shared by every session
        """
        self.logger = logging.getLogger(__name__)
        self.data_loader = data_loader
        self.settings = settings or QuizSettings()

        self._load_result: Optional[LoadResult] = None
        self._is_loading = False
        self._sessions: Dict[int, QuizSession] = {}

        self.logger.info("QuizController initialized")

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_loaded(self) -> bool:
        return self._load_result is not None

    @property
    def has_error(self) -> bool:
        return self._load_result is not None and self._load_result.is_fallback

    @property
    def load_error(self) -> Optional[str]:
        return self._load_result.error if self._load_result else None

    @property
    def quiz_set(self) -> Optional[List[Question]]:
        return self._load_result.quiz_set if self._load_result else None

    async def load_quiz(self) -> LoadResult:
        """
        Run the loader once and remember its result.

        Returns:
            The LoadResult; never raises
        """
        self._is_loading = True
        try:
            self._load_result = await self.data_loader.load()
        finally:
            self._is_loading = False

        if self._load_result.is_fallback:
            self.logger.warning(f"Quiz loaded with errors: {self._load_result.error}")
        else:
            self.logger.info(f"Quiz loaded with {len(self._load_result.quiz_set)} questions")
        return self._load_result

    async def reload(self) -> LoadResult:
        """Full manual reload: drop every session and fetch the quiz again."""
        self.logger.info(f"Reloading quiz, closing {len(self._sessions)} sessions")
        self._close_all_sessions()
        self._load_result = None
        return await self.load_quiz()

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        return self._sessions.get(channel_id)

    def get_or_create_session(self, channel_id: int) -> QuizSession:
        """
        Get the channel's session, creating one in the start phase if needed.

        Raises:
            QuizUnavailableError: If no quiz has been loaded yet
        """
        session = self._sessions.get(channel_id)
        if session is not None:
            return session

        if self.quiz_set is None:
            raise QuizUnavailableError("Quiz is still loading")

        session = QuizSession(self.quiz_set, self.settings, channel_id=channel_id)
        self._sessions[channel_id] = session
        self.logger.info(
            f"Created quiz session for channel {channel_id}: questions={len(self.quiz_set)}",
            extra={
                'event_type': 'session_created',
                'channel_id': channel_id,
                'timestamp': time.time()
            }
        )
        return session

    def start_quiz(self, channel_id: int) -> QuizSession:
        """
        Start (or restart) the quiz in a channel.

        Raises:
            QuizUnavailableError: While loading or after a failed load
            InvalidTransitionError: If the channel's quiz is already running
        """
        if self._is_loading:
            raise QuizUnavailableError("Quiz is still loading")
        if self.has_error:
            raise QuizUnavailableError(f"Quiz failed to load: {self.load_error}")

        session = self.get_or_create_session(channel_id)
        session.start()
        return session

    def submit_answer(
        self,
        channel_id: int,
        selected_answer: Optional[str],
        question_number: Optional[int] = None
    ) -> AnswerRecord:
        """
        Forward an answer to the channel's session.

        Raises:
            SessionNotFoundError: If the channel has no session
            InvalidTransitionError: If the session is not playing or has moved
                past question_number
        """
        session = self._sessions.get(channel_id)
        if session is None:
            raise SessionNotFoundError(f"No quiz session for channel {channel_id}")
        return session.submit_answer(selected_answer, question_number)

    def end_session(self, channel_id: int) -> bool:
        """
        Close and forget a channel's session.

        Returns:
            True if a session was closed, False if none existed
        """
        session = self._sessions.pop(channel_id, None)
        if session is None:
            return False
        session.close()
        self.logger.info(
            f"Closed quiz session for channel {channel_id}",
            extra={
                'event_type': 'session_closed',
                'channel_id': channel_id,
                'timestamp': time.time()
            }
        )
        return True

    def get_status(self, channel_id: int) -> Dict[str, Any]:
        """
        Summarize load state and the channel's session.

        Returns:
            Dictionary describing the loader and session state
        """
        status = {
            'loading': self._is_loading,
            'loaded': self.is_loaded,
            'error': self.load_error,
            'question_count': len(self.quiz_set) if self.quiz_set else 0,
            'session': None
        }
        session = self._sessions.get(channel_id)
        if session is not None:
            snapshot = session.snapshot()
            status['session'] = {
                'phase': snapshot.phase.value,
                'question_number': snapshot.question_number,
                'total_questions': snapshot.total_questions,
                'score': snapshot.score,
                'streak': snapshot.streak,
                'seconds_remaining': snapshot.seconds_remaining,
                'answered': len(snapshot.answers)
            }
        return status

    async def shutdown(self) -> None:
        """Close every session."""
        self._close_all_sessions()

    def _close_all_sessions(self) -> None:
        for channel_id in list(self._sessions):
            self.end_session(channel_id)
