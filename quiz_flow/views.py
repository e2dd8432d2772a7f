"""
Discord presentation layer for the Quiz Flow widget.
Renders session snapshots as embeds and turns button presses into session actions.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import discord

from .models import Phase, SessionSnapshot
from .quiz_controller import QuizController, QuizControllerError

logger = logging.getLogger(__name__)

COLOR_START = 0x2196f3
COLOR_PLAYING = 0x00ff00
COLOR_WARNING = 0xff6600
COLOR_CRITICAL = 0xff0000
COLOR_RESULTS = 0x4caf50
COLOR_NEUTRAL = 0x6699ff

MAX_BUTTON_LABEL = 80
MAX_FIELD_VALUE = 1024
MAX_REVIEW_FIELDS = 20


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 1] + "…"


def build_loading_embed() -> discord.Embed:
    return discord.Embed(
        title="⏳ Loading quiz...",
        description="Fetching today's questions.",
        color=COLOR_NEUTRAL
    )


def build_error_embed(error: Optional[str] = None) -> discord.Embed:
    """Error view shown after a failed load; the only way forward is Retry."""
    embed = discord.Embed(
        title="❌ Error loading quiz",
        description="Error loading quiz. Please try again.",
        color=COLOR_CRITICAL
    )
    if error:
        embed.add_field(name="Details", value=_truncate(error, MAX_FIELD_VALUE), inline=False)
    embed.set_footer(text="Retry reloads the quiz from scratch")
    return embed


def build_start_embed(snapshot: SessionSnapshot) -> discord.Embed:
    embed = discord.Embed(
        title="Welcome to the Quiz!",
        description="Test your knowledge and earn points!",
        color=COLOR_START
    )
    embed.add_field(
        name="How it works",
        value=(
            "⏱️ Answer quickly for time bonuses\n"
            "🔥 Build streaks for extra points\n"
            "🏆 Compete for high scores"
        ),
        inline=False
    )
    embed.set_footer(text=f"{snapshot.total_questions} questions")
    return embed


def build_playing_embed(snapshot: SessionSnapshot) -> discord.Embed:
    remaining = snapshot.seconds_remaining
    # Change color as the countdown runs out
    if remaining > 5:
        color = COLOR_PLAYING
        timer_emoji = "⏱️"
    elif remaining > 2:
        color = COLOR_WARNING
        timer_emoji = "⚠️"
    else:
        color = COLOR_CRITICAL
        timer_emoji = "🚨"

    embed = discord.Embed(
        title=f"Question {snapshot.question_number}",
        description=snapshot.question_text,
        color=color
    )
    embed.add_field(name="🏆 Score", value=str(snapshot.score), inline=True)
    embed.add_field(name="🔥 Streak", value=str(snapshot.streak), inline=True)
    embed.add_field(name=f"{timer_emoji} Time", value=f"{remaining}s", inline=True)
    embed.set_footer(text=f"Question {snapshot.question_number}/{snapshot.total_questions}")
    return embed


def build_results_embed(snapshot: SessionSnapshot, great_score_threshold: int = 50) -> discord.Embed:
    verdict = "Great job! 🎉" if snapshot.score > great_score_threshold else "Good effort! 👍"
    embed = discord.Embed(
        title="Quiz Results",
        description=f"**Final Score: {snapshot.score}**\n{verdict}",
        color=COLOR_RESULTS
    )

    for index, answer in enumerate(snapshot.answers[:MAX_REVIEW_FIELDS], start=1):
        mark = "✅" if answer.is_correct else "❌"
        selected = answer.selected_answer if answer.selected_answer is not None else "*(no answer)*"
        lines = [f"Your answer: {selected}"]
        if not answer.is_correct:
            lines.append(f"Correct answer: {answer.correct_answer}")
        embed.add_field(
            name=_truncate(f"{mark} Q{index}: {answer.question_text}", 256),
            value=_truncate("\n".join(lines), MAX_FIELD_VALUE),
            inline=False
        )

    hidden = len(snapshot.answers) - MAX_REVIEW_FIELDS
    if hidden > 0:
        embed.set_footer(text=f"... and {hidden} more answers")
    return embed


def build_embed(snapshot: SessionSnapshot, great_score_threshold: int = 50) -> discord.Embed:
    """Render the embed for a session snapshot."""
    if snapshot.phase is Phase.PLAYING:
        return build_playing_embed(snapshot)
    if snapshot.phase is Phase.RESULTS:
        return build_results_embed(snapshot, great_score_threshold)
    return build_start_embed(snapshot)


class QuizView(discord.ui.View):
    """Buttons for one render of the widget."""

    def __init__(self, widget: "QuizWidget", snapshot: Optional[SessionSnapshot] = None):
        super().__init__(timeout=None)
        self.widget = widget

        if snapshot is None:
            if widget.controller.has_error:
                self._add_button("Retry", discord.ButtonStyle.primary, "retry", widget.handle_retry)
            return

        if snapshot.phase is Phase.START:
            self._add_button("Start Quiz", discord.ButtonStyle.primary, "start", widget.handle_start)
        elif snapshot.phase is Phase.PLAYING:
            for index, option in enumerate(snapshot.options):
                self._add_option_button(snapshot.question_number, index, option)
        elif snapshot.phase is Phase.RESULTS:
            self._add_button("Play Again", discord.ButtonStyle.primary, "start", widget.handle_start)

    def _add_button(self, label, style, action, handler) -> None:
        button = discord.ui.Button(
            label=label,
            style=style,
            custom_id=f"quiz:{self.widget.channel_id}:{action}"
        )

        async def callback(interaction: discord.Interaction):
            await handler(interaction)

        button.callback = callback
        self.add_item(button)

    def _add_option_button(self, question_number: int, index: int, option: str) -> None:
        button = discord.ui.Button(
            label=_truncate(option, MAX_BUTTON_LABEL) or "(blank)",
            style=discord.ButtonStyle.success,
            custom_id=f"quiz:{self.widget.channel_id}:q{question_number}:option:{index}",
            row=index // 5
        )

        async def callback(interaction: discord.Interaction):
            await self.widget.handle_answer(interaction, option, question_number)

        button.callback = callback
        self.add_item(button)


class QuizWidget:
    """
    One quiz message in a channel.

    Observes the channel's QuizSession and edits the message after every
    change. Discord errors while rendering are logged and swallowed so the
    countdown keeps running.
    """

    def __init__(
        self,
        controller: QuizController,
        channel_id: int,
        on_reload: Optional[Callable[[], Awaitable[None]]] = None
    ):
        self.controller = controller
        self.channel_id = channel_id
        self.on_reload = on_reload
        self.message: Optional[discord.Message] = None
        self._render_task: Optional[asyncio.Task] = None
        self._pending: bool = False

    def render(self):
        """
        Build the embed and view for the current state.

        Returns:
            Tuple of (embed, view)
        """
        if self.controller.is_loading or not self.controller.is_loaded:
            return build_loading_embed(), QuizView(self)
        if self.controller.has_error:
            return build_error_embed(self.controller.load_error), QuizView(self)

        session = self.controller.get_or_create_session(self.channel_id)
        snapshot = session.snapshot()
        embed = build_embed(snapshot, self.controller.settings.great_score_threshold)
        return embed, QuizView(self, snapshot)

    def attach(self, message: discord.Message) -> None:
        """Bind the widget to its message and start observing the session."""
        self.message = message
        session = self.controller.get_session(self.channel_id)
        if session is not None:
            session.remove_listener(self.on_session_change)
            session.add_listener(self.on_session_change)

    def on_session_change(self, snapshot: SessionSnapshot) -> None:
        """Session listener; schedules a message edit, coalescing bursts."""
        if self.message is None:
            return
        if self._render_task is not None and not self._render_task.done():
            self._pending = True
            return
        self._render_task = asyncio.get_running_loop().create_task(self.refresh())

    async def refresh(self) -> None:
        """Edit the widget message to match the current state."""
        if self.message is None:
            return
        while True:
            self._pending = False
            embed, view = self.render()
            try:
                await self.message.edit(embed=embed, view=view)
            except discord.HTTPException as e:
                logger.error(f"Failed to update quiz widget in channel {self.channel_id}: {e}")
            if not self._pending:
                return

    async def handle_start(self, interaction: discord.Interaction) -> None:
        try:
            self.controller.get_or_create_session(self.channel_id)
            self.attach(interaction.message or self.message)
            self.controller.start_quiz(self.channel_id)
        except QuizControllerError as e:
            await self._reject(interaction, str(e))
            return
        await interaction.response.defer()
        logger.info(f"Quiz started from widget in channel {self.channel_id} by {interaction.user}")

    async def handle_answer(
        self,
        interaction: discord.Interaction,
        option: str,
        question_number: Optional[int] = None
    ) -> None:
        try:
            self.controller.submit_answer(self.channel_id, option, question_number)
        except QuizControllerError as e:
            await self._reject(interaction, str(e))
            return
        await interaction.response.defer()

    async def handle_retry(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer()
        if self.message is None:
            self.message = interaction.message
        if self.on_reload is not None:
            await self.on_reload()
            return
        await self.controller.reload()
        await self.rebind()

    async def rebind(self) -> None:
        """Observe the fresh session after a reload and redraw."""
        if self.controller.is_loaded and not self.controller.has_error:
            self.controller.get_or_create_session(self.channel_id)
            self.attach(self.message)
        await self.refresh()

    async def close(self) -> None:
        session = self.controller.get_session(self.channel_id)
        if session is not None:
            session.remove_listener(self.on_session_change)
        if self._render_task is not None and not self._render_task.done():
            self._render_task.cancel()

    async def _reject(self, interaction: discord.Interaction, message: str) -> None:
        logger.warning(f"Rejected quiz action in channel {self.channel_id}: {message}")
        embed = discord.Embed(title="❌ Quiz Error", description=message, color=COLOR_CRITICAL)
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")
