import discord
from discord.ext import commands
import logging
import os
from typing import Any, Dict, Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .models import QuestionSnapshot
from .presenter import DiscordPresenter
from .quiz_controller import QuizController

logger = logging.getLogger(__name__)

BUTTON_LABEL_LIMIT = 80
CHOICES_PER_ROW = 5
MAX_CHOICE_BUTTONS = 20  # four rows; the fifth row holds the controls


def _choice_label(display_index: int, text: str) -> str:
    label = f"{display_index + 1}. {text}"
    return label if len(label) <= BUTTON_LABEL_LIMIT else label[:BUTTON_LABEL_LIMIT - 1] + "…"


class ChoiceButton(discord.ui.Button):
    """Selects one answer choice for the open question."""

    def __init__(self, bot: "QuizBot", display_index: int, text: str, original_index: int,
                 position: int, selected: bool, disabled: bool):
        super().__init__(
            label=_choice_label(display_index, text),
            style=discord.ButtonStyle.primary if selected else discord.ButtonStyle.secondary,
            disabled=disabled,
            row=display_index // CHOICES_PER_ROW
        )
        self.bot = bot
        self.original_index = original_index
        self.position = position

    async def callback(self, interaction: discord.Interaction):
        await self.bot.handle_choice(interaction, self.original_index, self.position)


class SubmitButton(discord.ui.Button):
    def __init__(self, bot: "QuizBot", position: int, is_last: bool, disabled: bool):
        super().__init__(
            label="Finish" if is_last else "Submit",
            style=discord.ButtonStyle.success,
            disabled=disabled,
            row=4
        )
        self.bot = bot
        self.position = position

    async def callback(self, interaction: discord.Interaction):
        await self.bot.handle_submit(interaction, self.position)


class NavigateButton(discord.ui.Button):
    def __init__(self, bot: "QuizBot", direction: int, disabled: bool):
        super().__init__(
            label="Previous" if direction < 0 else "Next",
            style=discord.ButtonStyle.secondary,
            disabled=disabled,
            row=4
        )
        self.bot = bot
        self.direction = direction

    async def callback(self, interaction: discord.Interaction):
        await self.bot.handle_navigate(interaction, self.direction)


class QuizView(discord.ui.View):
    """Buttons for one question: its choices, Submit, and optional navigation."""

    def __init__(self, bot: "QuizBot", snapshot: QuestionSnapshot):
        super().__init__(timeout=None)
        position = snapshot.position

        for display_index, (text, original_index) in enumerate(snapshot.displayed_choices[:MAX_CHOICE_BUTTONS]):
            self.add_item(ChoiceButton(
                bot, display_index, text, original_index, position,
                selected=original_index == snapshot.selected_original_index,
                disabled=snapshot.is_locked
            ))

        if snapshot.allow_navigation:
            self.add_item(NavigateButton(bot, -1, disabled=position == 0))
        self.add_item(SubmitButton(
            bot, position, snapshot.is_last,
            disabled=snapshot.is_locked or snapshot.selected_original_index is None
        ))
        if snapshot.allow_navigation:
            self.add_item(NavigateButton(bot, 1, disabled=snapshot.is_last))


class ResultsView(discord.ui.View):
    """Buttons shown under the results: play again or go back to the quiz list."""

    def __init__(self, bot: "QuizBot"):
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(label="Restart Quiz", style=discord.ButtonStyle.primary)
    async def restart_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.bot.handle_restart(interaction)

    @discord.ui.button(label="Back to Quiz List", style=discord.ButtonStyle.secondary)
    async def back_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.bot.handle_stop(interaction)


class QuizBot(commands.Bot):
    """Discord bot for playing timed quizzes"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        # Minimal intents for slash commands
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        logger.info("Setting up bot components...")

        self.config_manager = ConfigManager()
        if self.app_config:
            self.config_manager.load_from_dict(self.app_config)

        self.data_manager = DataManager(self.config_manager.get_data_directory())
        self.quiz_controller = QuizController(self.data_manager, self.config_manager)

        result = self.quiz_controller.load_quizzes()
        if not result['success']:
            # The bot still runs; /quizzes reports the problem
            logger.error(f"Quiz data unavailable: {result['error']}")

        self.setup_commands()
        logger.info("Bot setup completed successfully")

    def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quizzes", description="List the available quizzes")
        async def quizzes_command(interaction: discord.Interaction):
            await self.handle_quizzes(interaction)

        @self.tree.command(name="start", description="Start a quiz by id or title")
        @discord.app_commands.describe(quiz="Quiz id or title, see /quizzes")
        async def start_command(interaction: discord.Interaction, quiz: str):
            await self.handle_start(interaction, quiz)

        @self.tree.command(name="restart", description="Restart the current quiz with a new order")
        async def restart_command(interaction: discord.Interaction):
            await self.handle_restart(interaction)

        @self.tree.command(name="stop", description="Stop the current quiz and return to the quiz list")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show current quiz status and progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="set_timer", description="Set the time limit for each question (5-300 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_set_timer(interaction, seconds)

        @self.tree.command(name="shuffle", description="Toggle random question and choice order")
        async def shuffle_command(interaction: discord.Interaction):
            await self.handle_shuffle(interaction)

        @self.tree.command(name="submit_score", description="Submit your final score to the leaderboard")
        @discord.app_commands.describe(nickname="Name to show on the leaderboard (max 20 characters)")
        async def submit_score_command(interaction: discord.Interaction, nickname: str):
            await self.handle_submit_score(interaction, nickname)

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
        if self.quiz_controller is not None:
            self.quiz_controller.shutdown()
        await super().close()

    # --- Views ---

    def build_view(self, kind: str, payload: Any) -> discord.ui.View:
        """View factory handed to each DiscordPresenter."""
        if kind == "results":
            return ResultsView(self)
        return QuizView(self, payload)

    # --- Responses ---

    async def send_result(self, interaction: discord.Interaction, result: Dict[str, Any],
                          title: str, ephemeral_on_success: bool = False):
        """Reply with a controller result as an embed."""
        success = result['success']
        embed = discord.Embed(
            title=title if success else "❌ " + title,
            description=result.get('user_message', result.get('message', '')),
            color=0x00ff00 if success else 0xff0000
        )
        await self._send(interaction, embed=embed, ephemeral=ephemeral_on_success or not success)

    async def _send(self, interaction: discord.Interaction, **kwargs):
        try:
            if interaction.response.is_done():
                await interaction.followup.send(**kwargs)
            else:
                await interaction.response.send_message(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to respond to interaction: {e}")

    async def _acknowledge(self, interaction: discord.Interaction, result: Dict[str, Any]):
        """Silently accept a button press, or explain why it was rejected."""
        try:
            if result['success']:
                await interaction.response.defer()
            else:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to acknowledge button press: {e}")

    # --- Command handlers ---

    async def handle_help(self, interaction: discord.Interaction):
        embed = discord.Embed(
            title="📖 Quiz Bot Commands",
            description="Answer each question before the timer runs out. Faster correct answers earn a speed bonus.",
            color=0x0099ff
        )
        embed.add_field(
            name="🎮 Playing",
            value=(
                "`/quizzes` - List the available quizzes\n"
                "`/start <quiz>` - Start a quiz\n"
                "`/restart` - Start over with a new order\n"
                "`/stop` - Stop and return to the quiz list\n"
                "`/status` - Show progress"
            ),
            inline=False
        )
        embed.add_field(
            name="⚙️ Settings",
            value=(
                "`/set_timer <seconds>` - Time limit per question\n"
                "`/shuffle` - Toggle random question and choice order"
            ),
            inline=False
        )
        embed.add_field(
            name="🏆 Scoring",
            value=(
                "100 points per correct answer plus up to 50 for speed.\n"
                "`/submit_score <nickname>` - Send your final score to the leaderboard"
            ),
            inline=False
        )
        embed.set_footer(text=self.config_manager.get_settings_summary().replace("\n", " | "))
        await self._send(interaction, embed=embed, ephemeral=True)

    async def handle_quizzes(self, interaction: discord.Interaction):
        quizzes = self.quiz_controller.list_quizzes()
        if not quizzes:
            summary = self.data_manager.get_loading_summary()
            embed = discord.Embed(
                title="❌ No Quizzes Available",
                description="No quiz files found or all files failed to load.",
                color=0xff0000
            )
            if summary['has_errors']:
                error_text = "\n".join(summary['errors'][:3])
                if len(summary['errors']) > 3:
                    error_text += "\n... and more"
                embed.add_field(name="Loading Errors", value=f"```\n{error_text}\n```", inline=False)
            await self._send(interaction, embed=embed, ephemeral=True)
            return

        embed = discord.Embed(title="📚 Available Quizzes", color=0x0099ff)
        for quiz in quizzes[:25]:
            embed.add_field(
                name=quiz['title'],
                value=f"{quiz['description']}\n{quiz['question_count']} questions · `/start {quiz['quiz_id']}`",
                inline=False
            )
        await self._send(interaction, embed=embed)

    async def handle_start(self, interaction: discord.Interaction, quiz_ref: str):
        """Handle /start command"""
        presenter = DiscordPresenter(interaction.channel, view_factory=self.build_view)
        result = self.quiz_controller.start_quiz(
            interaction.channel_id, interaction.user.id, quiz_ref, presenter
        )
        if not result['success']:
            presenter.close()
            await self.send_result(interaction, result, "Quiz Start Failed")
            return

        info = result['session_info']
        settings = info['settings']
        timer_text = f"{settings['time_per_question']} seconds per question" if settings['timer_enabled'] else "Untimed"
        embed = discord.Embed(
            title="🎯 Quiz Started!",
            description=f"**{info['quiz_title']}** for {interaction.user.mention}",
            color=0x00ff00
        )
        embed.add_field(
            name="📊 Quiz Details",
            value=(
                f"Questions: {info['total_questions']}\n"
                f"Order: {'🔀 Random' if settings['shuffle_questions'] else '📋 Authored'}\n"
                f"Timer: {timer_text}"
            ),
            inline=False
        )
        embed.set_footer(text="Use /stop to end the quiz or /restart to start over")
        await self._send(interaction, embed=embed)

    async def handle_restart(self, interaction: discord.Interaction):
        result = self.quiz_controller.restart_quiz(interaction.channel_id, interaction.user.id)
        await self.send_result(interaction, result, "Quiz Restarted")

    async def handle_stop(self, interaction: discord.Interaction):
        result = self.quiz_controller.stop_quiz(interaction.channel_id, interaction.user.id)
        if result['success']:
            await self.handle_quizzes(interaction)
        else:
            await self.send_result(interaction, result, "Stop Failed")

    async def handle_status(self, interaction: discord.Interaction):
        info = self.quiz_controller.get_session_progress(interaction.channel_id)
        if info is None:
            embed = discord.Embed(
                title="ℹ️ No Quiz Running",
                description="Use `/quizzes` to see the available quizzes.",
                color=0x0099ff
            )
            embed.add_field(name="Settings", value=self.config_manager.get_settings_summary(), inline=False)
            await self._send(interaction, embed=embed, ephemeral=True)
            return

        embed = discord.Embed(title=f"📊 {info['quiz_title']}", color=0x0099ff)
        embed.add_field(name="State", value=info['state'].replace('_', ' ').title(), inline=True)
        embed.add_field(
            name="Progress",
            value=f"Question {info['current_question']}/{info['total_questions']} ({info['answered']} answered)",
            inline=True
        )
        embed.add_field(name="Player", value=f"<@{info['owner_id']}>", inline=True)
        await self._send(interaction, embed=embed, ephemeral=True)

    async def handle_set_timer(self, interaction: discord.Interaction, seconds: int):
        result = self.config_manager.set_time_per_question(seconds)
        await self.send_result(interaction, result, "Timer Updated")

    async def handle_shuffle(self, interaction: discord.Interaction):
        result = self.config_manager.toggle_shuffle()
        await self.send_result(interaction, result, "Order Updated")

    async def handle_submit_score(self, interaction: discord.Interaction, nickname: str):
        await interaction.response.defer(ephemeral=True)
        result = await self.quiz_controller.submit_score(interaction.channel_id, interaction.user.id, nickname)
        await self.send_result(interaction, result, "Score Submitted")

    # --- Button handlers ---

    async def handle_choice(self, interaction: discord.Interaction, original_index: int, position: int):
        result = self.quiz_controller.select_choice(
            interaction.channel_id, interaction.user.id, original_index, position
        )
        await self._acknowledge(interaction, result)

    async def handle_submit(self, interaction: discord.Interaction, position: int):
        result = self.quiz_controller.submit_answer(interaction.channel_id, interaction.user.id, position)
        await self._acknowledge(interaction, result)

    async def handle_navigate(self, interaction: discord.Interaction, direction: int):
        result = self.quiz_controller.navigate(interaction.channel_id, interaction.user.id, direction)
        await self._acknowledge(interaction, result)


async def run_bot(token: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Discord Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
