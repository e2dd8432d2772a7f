import discord
from discord.ext import commands
import logging
import os
from typing import Dict, Optional

from .data_manager import QuizDataLoader
from .config_manager import ConfigManager
from .models import Phase
from .quiz_controller import QuizController
from .views import QuizWidget

logger = logging.getLogger(__name__)


class QuizBot(commands.Bot):
    """Discord bot hosting the quiz widget"""

    def __init__(self, config=None):
        # Set up intents - minimal intents for slash commands
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None  # We'll implement our own help command
        )

        # Store configuration
        self.app_config = config or {}

        # Core components, created in setup_hook
        self.config_manager = ConfigManager()
        self.data_loader: Optional[QuizDataLoader] = None
        self.quiz_controller: Optional[QuizController] = None
        self.widgets: Dict[int, QuizWidget] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            config_errors = self.config_manager.apply_config(self.app_config)
            for error in config_errors:
                logger.warning(f"Configuration entry ignored: {error}")

            settings = self.config_manager.get_quiz_settings()
            self.data_loader = QuizDataLoader(settings.quiz_url, settings.request_timeout)
            self.quiz_controller = QuizController(self.data_loader, settings)

            await self.setup_commands()

            # Load quiz data once; play stays blocked until this resolves
            await self.quiz_controller.load_quiz()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quiz", description="Post the quiz widget in this channel")
        async def quiz_command(interaction: discord.Interaction):
            await self.handle_quiz(interaction)

        @self.tree.command(name="reload", description="Reload the quiz from the quiz service")
        async def reload_command(interaction: discord.Interaction):
            await self.handle_reload(interaction)

        @self.tree.command(name="status", description="Show quiz loading status and your progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        """Stop every countdown before disconnecting"""
        for widget in list(self.widgets.values()):
            await widget.close()
        self.widgets.clear()
        if self.quiz_controller is not None:
            await self.quiz_controller.shutdown()
        await super().close()

    async def reload_quiz(self):
        """Full reload: refetch the quiz and redraw every widget."""
        await self.quiz_controller.reload()
        for widget in list(self.widgets.values()):
            await widget.rebind()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        help_embed = discord.Embed(
            title="🎯 Quiz Commands",
            description="Answer quickly for time bonuses and build streaks for extra points.",
            color=0x00ff00
        )
        help_embed.add_field(
            name="🎮 Commands",
            value=(
                "`/quiz` - Post the quiz widget in this channel\n"
                "`/reload` - Reload the quiz from the quiz service\n"
                "`/status` - Show loading status and your progress\n"
                "`/help` - Show this help message"
            ),
            inline=False
        )
        help_embed.add_field(
            name="🏆 Scoring",
            value=(
                "Correct answer: 10 points\n"
                "Time bonus: +1 per 5 seconds left\n"
                "Streak bonus: +1 per 2 correct answers in a row"
            ),
            inline=False
        )
        help_embed.add_field(
            name="⚙️ Current Settings",
            value=f"```\n{self.config_manager.get_settings_summary()}\n```",
            inline=False
        )
        help_embed.set_footer(text="Use slash commands to interact with the bot")

        try:
            await interaction.response.send_message(embed=help_embed)
        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_quiz(self, interaction: discord.Interaction):
        """Handle /quiz command: post a fresh widget in the channel"""
        channel_id = interaction.channel_id
        session = self.quiz_controller.get_session(channel_id)
        if session is not None and session.phase is Phase.PLAYING:
            await self.send_error_response(
                interaction,
                "A quiz is already running in this channel. Finish it first.",
                "❌ Quiz In Progress"
            )
            return

        old_widget = self.widgets.pop(channel_id, None)
        if old_widget is not None:
            await old_widget.close()

        widget = QuizWidget(self.quiz_controller, channel_id, on_reload=self.reload_quiz)
        embed, view = widget.render()

        try:
            await interaction.response.send_message(embed=embed, view=view)
            message = await interaction.original_response()
        except discord.HTTPException as e:
            logger.error(f"Failed to post quiz widget in channel {channel_id}: {e}")
            return

        widget.attach(message)
        self.widgets[channel_id] = widget
        logger.info(f"Posted quiz widget in channel {channel_id}")

    async def handle_reload(self, interaction: discord.Interaction):
        """Handle /reload command"""
        await interaction.response.defer(ephemeral=True)
        await self.reload_quiz()

        if self.quiz_controller.has_error:
            await self.send_error_response(
                interaction,
                f"Quiz still unavailable: {self.quiz_controller.load_error}",
                "❌ Reload Failed"
            )
        else:
            await self.send_info_response(
                interaction,
                f"Loaded {len(self.quiz_controller.quiz_set)} questions.",
                "✅ Quiz Reloaded"
            )

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        status = self.quiz_controller.get_status(interaction.channel_id)

        if status['loading']:
            load_state = "⏳ Loading"
        elif status['error']:
            load_state = f"❌ Failed: {status['error']}"
        else:
            load_state = f"✅ {status['question_count']} questions loaded"

        embed = discord.Embed(title="📊 Quiz Status", color=0x6699ff)
        embed.add_field(name="Quiz", value=load_state[:1024], inline=False)

        session_info = status['session']
        if session_info:
            embed.add_field(name="Phase", value=session_info['phase'], inline=True)
            embed.add_field(name="Score", value=str(session_info['score']), inline=True)
            embed.add_field(name="Streak", value=str(session_info['streak']), inline=True)
            if session_info['phase'] == "playing":
                embed.add_field(
                    name="Progress",
                    value=f"Question {session_info['question_number']}/{session_info['total_questions']}, "
                          f"{session_info['seconds_remaining']}s left",
                    inline=False
                )
        else:
            embed.add_field(name="🎯 Start", value="Use `/quiz` to post the quiz widget", inline=False)

        embed.set_footer(text="Use /help to see all available commands")

        try:
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in status command: {e}")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    # Fall back to environment variable if no token provided
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Quiz Flow bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
