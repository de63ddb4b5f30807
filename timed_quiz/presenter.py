"""
Presenters render session state. The session notifies them after every
transition and on every timer tick.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Tuple

import discord

from .models import QuestionSnapshot, QuizResults

logger = logging.getLogger(__name__)

# Discord limits
FIELD_VALUE_LIMIT = 1024
MAX_DETAIL_FIELDS = 20


class Presenter(ABC):
    """Receives snapshots from a quiz session."""

    @abstractmethod
    def show_question(self, snapshot: QuestionSnapshot) -> None:
        """Render the current question."""

    @abstractmethod
    def show_results(self, results: QuizResults) -> None:
        """Render the results of a completed attempt."""


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def build_question_embed(snapshot: QuestionSnapshot) -> discord.Embed:
    """
    Create the embed for a question snapshot.

    Args:
        snapshot: Current question state

    Returns:
        Embed with the prompt, numbered choices and remaining time
    """
    remaining = snapshot.seconds_remaining
    if snapshot.is_locked:
        color = 0x808080  # Grey
        timer_emoji = "🔒"
    elif remaining >= 10:
        color = 0x00ff00  # Green
        timer_emoji = "⏱️"
    else:
        color = 0xff0000  # Red
        timer_emoji = "🚨"

    embed = discord.Embed(
        title=f"🎯 Question {snapshot.position + 1}/{snapshot.total_questions}",
        description=snapshot.prompt,
        color=color
    )
    embed.set_author(name=snapshot.topic)

    lines = []
    for display_index, (text, original_index) in enumerate(snapshot.displayed_choices):
        marker = "🔘" if original_index == snapshot.selected_original_index else "⚪"
        lines.append(f"{marker} **{display_index + 1}.** {text}")
    embed.add_field(
        name="Choices",
        value=_truncate("\n".join(lines), FIELD_VALUE_LIMIT),
        inline=False
    )

    embed.add_field(
        name=f"{timer_emoji} Time Remaining",
        value=f"{remaining} second{'s' if remaining != 1 else ''}",
        inline=True
    )
    if snapshot.quiz_title:
        embed.add_field(name="📚 Quiz", value=snapshot.quiz_title, inline=True)

    if snapshot.is_locked:
        embed.set_footer(text="Answer locked")
    elif snapshot.is_last:
        embed.set_footer(text="Last question: pick an answer and press Finish")
    else:
        embed.set_footer(text="Pick an answer and press Submit")
    return embed


def build_results_embed(results: QuizResults) -> discord.Embed:
    """Create the results embed, with one field per question in authored order."""
    embed = discord.Embed(
        title=f"🏁 Final Score: {results.percentage_display}%",
        description=f"Total Points: {results.total_score}/{results.max_possible_score}",
        color=0x0099ff
    )
    if results.quiz_title:
        embed.set_author(name=results.quiz_title)

    embed.add_field(
        name="⏱️ Time",
        value=(
            f"Average Time: {results.average_time_display}s per question\n"
            f"Fastest Answer: {results.fastest_time}s"
        ),
        inline=False
    )

    for detail in results.details[:MAX_DETAIL_FIELDS]:
        status = "✅" if detail.is_correct else "❌"
        lines = [f"Your answer: {detail.answer_text}"]
        if not detail.is_correct:
            lines.append(f"Correct answer: {detail.correct_text}")
        points_line = f"Time taken: {detail.time_taken}s | Points earned: {detail.points}"
        if detail.speed_bonus > 0:
            points_line += f" (includes {detail.speed_bonus} speed bonus)"
        lines.append(points_line)
        embed.add_field(
            name=_truncate(f"{status} Question {detail.original_index + 1}: {detail.prompt}", 256),
            value=_truncate("\n".join(lines), FIELD_VALUE_LIMIT),
            inline=False
        )

    hidden = len(results.details) - MAX_DETAIL_FIELDS
    if hidden > 0:
        embed.set_footer(text=f"... and {hidden} more question(s)")
    return embed


ViewFactory = Callable[[str, Any], Optional[discord.ui.View]]


class DiscordPresenter(Presenter):
    """
    Renders a session into a single Discord message.

    Rendering is asynchronous while the session is not, so snapshots are
    coalesced: only the most recent pending snapshot is drawn.
    """

    def __init__(self, channel: discord.abc.Messageable, view_factory: Optional[ViewFactory] = None):
        """
        Initialize the presenter.

        Args:
            channel: Where the quiz message is posted
            view_factory: Builds the interactive components for ``("question", snapshot)``
                or ``("results", results)``
        """
        self.channel = channel
        self.view_factory = view_factory
        self.message: Optional[discord.Message] = None
        self._pending: Optional[Tuple[str, Any]] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._view_key: Optional[tuple] = None

    def show_question(self, snapshot: QuestionSnapshot) -> None:
        self._schedule("question", snapshot)

    def show_results(self, results: QuizResults) -> None:
        self._schedule("results", results)

    def close(self) -> None:
        """Stop rendering; pending snapshots are dropped."""
        self._pending = None
        if self._flush_task is not None and not self._flush_task.done():
            self._flush_task.cancel()
        self._flush_task = None

    async def wait_rendered(self) -> None:
        """Wait until every scheduled snapshot has been drawn."""
        while self._flush_task is not None and not self._flush_task.done():
            await self._flush_task

    def _schedule(self, kind: str, payload: Any) -> None:
        self._pending = (kind, payload)
        if self._flush_task is not None and not self._flush_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, cannot render quiz message")
            return
        self._flush_task = loop.create_task(self._flush())

    async def _flush(self) -> None:
        while self._pending is not None:
            kind, payload = self._pending
            self._pending = None
            try:
                await self._render(kind, payload)
            except discord.HTTPException as e:
                # Log error but don't raise to avoid breaking the session
                logger.error(f"Failed to render quiz {kind}: {e}")
            except Exception as e:
                logger.error(f"Unexpected error rendering quiz {kind}: {e}", exc_info=True)

    async def _render(self, kind: str, payload: Any) -> None:
        if kind == "results":
            embed = build_results_embed(payload)
            key = ("results",)
        else:
            embed = build_question_embed(payload)
            key = ("question", payload.position, payload.selected_original_index, payload.is_locked)

        kwargs = {'embed': embed}
        if key != self._view_key and self.view_factory is not None:
            kwargs['view'] = self.view_factory(kind, payload)

        if self.message is None:
            self.message = await self.channel.send(**kwargs)
        else:
            await self.message.edit(**kwargs)
        self._view_key = key
