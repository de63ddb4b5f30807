"""
Unit tests for the Discord bot front end with mocked Discord API objects.
"""
import logging
import unittest
from unittest.mock import Mock

import discord

from timed_quiz.bot import QuizBot, QuizView, ResultsView, SubmitButton, NavigateButton, ChoiceButton
from timed_quiz.config_manager import ConfigManager
from timed_quiz.data_manager import DataManager
from timed_quiz.leaderboard import ScoreSink
from timed_quiz.quiz_controller import QuizController
from tests.test_fixtures import MockDiscordObjects, TestFixtures
from tests.test_presenter import make_snapshot

CHANNEL = 12345
PLAYER = 67890
OTHER_USER = 11111


class BotTestCase(unittest.IsolatedAsyncioTestCase):
    """Bot with real controller and config, and a mocked quiz source."""

    async def asyncSetUp(self):
        logging.disable(logging.CRITICAL)
        self.bot = QuizBot({'bot': {'command_prefix': '?'}})

        self.bot.data_manager = Mock(spec=DataManager)
        self.bot.data_manager.get_quiz.side_effect = lambda ref: (
            TestFixtures.create_sample_quiz() if ref == "sample" else None
        )
        self.bot.data_manager.get_available_quizzes.return_value = [TestFixtures.create_sample_quiz()]
        self.bot.data_manager.get_loading_summary.return_value = {
            'total_quizzes': 0, 'has_errors': True, 'error_count': 1,
            'errors': ["manifest.yaml not found"], 'data_directory': "./data/", 'available_quizzes': []
        }

        self.bot.config_manager = ConfigManager()
        self.bot.config_manager.set_shuffle_questions(False)
        self.bot.config_manager.set_shuffle_choices(False)
        self.bot.config_manager.set_timer_enabled(False)

        self.sink = Mock(spec=ScoreSink)
        self.bot.quiz_controller = QuizController(
            self.bot.data_manager, self.bot.config_manager, score_sink=self.sink
        )

    async def asyncTearDown(self):
        self.bot.quiz_controller.shutdown()
        logging.disable(logging.NOTSET)

    def interaction(self, user_id: int = PLAYER):
        return MockDiscordObjects.create_mock_interaction(CHANNEL, user_id)

    async def start_sample(self):
        interaction = self.interaction()
        await self.bot.handle_start(interaction, "sample")
        return interaction


class TestBotSetup(BotTestCase):

    async def test_command_prefix_from_config(self):
        self.assertEqual(self.bot.command_prefix, '?')

    async def test_setup_commands_registers_slash_commands(self):
        self.bot.setup_commands()

        names = {command.name for command in self.bot.tree.get_commands()}
        self.assertEqual(names, {
            "help", "quizzes", "start", "restart", "stop",
            "status", "set_timer", "shuffle", "submit_score"
        })


class TestCommands(BotTestCase):

    async def test_start_posts_question_with_buttons(self):
        interaction = await self.start_sample()

        embed = interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "🎯 Quiz Started!")
        self.assertTrue(self.bot.quiz_controller.has_active_session(CHANNEL))

        presenter = self.bot.quiz_controller._sessions[CHANNEL].presenter
        await presenter.wait_rendered()
        kwargs = interaction.channel.send.await_args.kwargs
        self.assertEqual(kwargs['embed'].title, "🎯 Question 1/3")
        self.assertIsInstance(kwargs['view'], QuizView)

    async def test_start_unknown_quiz_is_ephemeral(self):
        interaction = self.interaction()
        await self.bot.handle_start(interaction, "history")

        kwargs = interaction.response.send_message.await_args.kwargs
        self.assertTrue(kwargs['ephemeral'])
        self.assertIn("history", kwargs['embed'].description)
        self.assertFalse(self.bot.quiz_controller.has_active_session(CHANNEL))

    async def test_quizzes_lists_available(self):
        interaction = self.interaction()
        await self.bot.handle_quizzes(interaction)

        embed = interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.fields[0].name, "Sample Quiz")
        self.assertIn("/start sample.yaml", embed.fields[0].value)

    async def test_quizzes_reports_loading_errors(self):
        self.bot.data_manager.get_available_quizzes.return_value = []
        interaction = self.interaction()
        await self.bot.handle_quizzes(interaction)

        embed = interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "❌ No Quizzes Available")
        self.assertIn("manifest.yaml not found", embed.fields[0].value)

    async def test_set_timer(self):
        interaction = self.interaction()
        await self.bot.handle_set_timer(interaction, 45)
        self.assertEqual(self.bot.config_manager.get_time_per_question(), 45)

        interaction = self.interaction()
        await self.bot.handle_set_timer(interaction, 2)
        self.assertTrue(interaction.response.send_message.await_args.kwargs['ephemeral'])
        self.assertEqual(self.bot.config_manager.get_time_per_question(), 45)

    async def test_shuffle_toggles(self):
        await self.bot.handle_shuffle(self.interaction())
        self.assertTrue(self.bot.config_manager.get_quiz_settings().shuffle_questions)

    async def test_status_without_session(self):
        interaction = self.interaction()
        await self.bot.handle_status(interaction)
        embed = interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "ℹ️ No Quiz Running")

    async def test_status_with_session(self):
        await self.start_sample()
        interaction = self.interaction()
        await self.bot.handle_status(interaction)

        embed = interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "📊 Sample Quiz")
        self.assertIn("Question 1/3", embed.fields[1].value)

    async def test_stop_returns_to_quiz_list(self):
        await self.start_sample()
        interaction = self.interaction()
        await self.bot.handle_stop(interaction)

        self.assertFalse(self.bot.quiz_controller.has_active_session(CHANNEL))
        embed = interaction.response.send_message.await_args.kwargs['embed']
        self.assertEqual(embed.title, "📚 Available Quizzes")

    async def test_submit_score_uses_followup(self):
        await self.start_sample()
        for choice in (1, 0, 2):
            self.bot.quiz_controller.select_choice(CHANNEL, PLAYER, choice)
            self.bot.quiz_controller.submit_answer(CHANNEL, PLAYER)

        interaction = self.interaction()
        interaction.response.is_done.return_value = True
        await self.bot.handle_submit_score(interaction, "ada")

        interaction.response.defer.assert_awaited_once_with(ephemeral=True)
        embed = interaction.followup.send.await_args.kwargs['embed']
        self.assertEqual(embed.title, "Score Submitted")
        self.sink.submit.assert_called_once_with("ada", 450)


class TestButtons(BotTestCase):

    async def test_owner_choice_is_deferred(self):
        await self.start_sample()
        interaction = self.interaction()

        await self.bot.handle_choice(interaction, 1, 0)

        interaction.response.defer.assert_awaited_once()
        self.assertEqual(self.bot.quiz_controller.get_session(CHANNEL).attempt.answers[0].choice_index, 1)

    async def test_other_user_gets_ephemeral_notice(self):
        await self.start_sample()
        interaction = self.interaction(OTHER_USER)

        await self.bot.handle_choice(interaction, 1, 0)

        interaction.response.send_message.assert_awaited_once()
        args, kwargs = interaction.response.send_message.await_args
        self.assertIn("someone else", args[0])
        self.assertTrue(kwargs['ephemeral'])
        self.assertIsNone(self.bot.quiz_controller.get_session(CHANNEL).attempt.answers[0].choice_index)

    async def test_submit_button(self):
        await self.start_sample()
        await self.bot.handle_choice(self.interaction(), 1, 0)

        interaction = self.interaction()
        await self.bot.handle_submit(interaction, 0)

        interaction.response.defer.assert_awaited_once()
        self.assertEqual(self.bot.quiz_controller.get_session_progress(CHANNEL)['current_question'], 2)

    async def test_stale_submit_button_is_rejected(self):
        await self.start_sample()
        await self.bot.handle_choice(self.interaction(), 1, 0)
        await self.bot.handle_submit(self.interaction(), 0)

        interaction = self.interaction()
        await self.bot.handle_submit(interaction, 0)

        interaction.response.send_message.assert_awaited_once()
        self.assertEqual(self.bot.quiz_controller.get_session_progress(CHANNEL)['answered'], 1)


class TestViews(BotTestCase):

    async def test_question_view_without_navigation(self):
        view = QuizView(self.bot, make_snapshot())

        choices = [item for item in view.children if isinstance(item, ChoiceButton)]
        submits = [item for item in view.children if isinstance(item, SubmitButton)]
        self.assertEqual(len(choices), 3)
        self.assertEqual([button.original_index for button in choices], [1, 0, 2])
        self.assertEqual(choices[0].label, "1. 4")
        self.assertEqual(len(submits), 1)
        self.assertTrue(submits[0].disabled)
        self.assertFalse(any(isinstance(item, NavigateButton) for item in view.children))

    async def test_question_view_with_selection_and_navigation(self):
        view = QuizView(self.bot, make_snapshot(selected_original_index=0, allow_navigation=True))

        selected = [item for item in view.children if isinstance(item, ChoiceButton) and item.original_index == 0]
        self.assertEqual(selected[0].style, discord.ButtonStyle.primary)
        submit = next(item for item in view.children if isinstance(item, SubmitButton))
        self.assertFalse(submit.disabled)
        navigation = [item for item in view.children if isinstance(item, NavigateButton)]
        self.assertEqual([item.label for item in navigation], ["Previous", "Next"])
        self.assertTrue(navigation[0].disabled)

    async def test_locked_question_view(self):
        view = QuizView(self.bot, make_snapshot(is_locked=True, selected_original_index=1,
                                                is_last=True, position=2))

        self.assertTrue(all(item.disabled for item in view.children))
        submit = next(item for item in view.children if isinstance(item, SubmitButton))
        self.assertEqual(submit.label, "Finish")

    async def test_results_view(self):
        view = self.bot.build_view("results", None)
        self.assertIsInstance(view, ResultsView)
        self.assertEqual([item.label for item in view.children], ["Restart Quiz", "Back to Quiz List"])


if __name__ == '__main__':
    unittest.main()
