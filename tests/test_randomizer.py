"""
Unit tests for reversible question and choice shuffling.
"""
import random
import unittest
from unittest.mock import Mock

from timed_quiz.models import Question
from timed_quiz.randomizer import Randomizer, identity_choices, invert
from tests.test_fixtures import TestFixtures


class TestPermute(unittest.TestCase):
    """Test cases for Randomizer.permute."""

    def setUp(self):
        self.randomizer = TestFixtures.create_seeded_randomizer()

    def test_permute_is_a_bijection(self):
        for n in (1, 2, 5, 17):
            mapping = self.randomizer.permute(n)
            self.assertEqual(sorted(mapping), list(range(n)))

    def test_permute_empty_and_single(self):
        self.assertEqual(self.randomizer.permute(0), [])
        self.assertEqual(self.randomizer.permute(1), [0])

    def test_permute_swaps_walk_down_from_last_position(self):
        """Each step swaps position i with a j drawn from [0, i]."""
        rng = Mock(spec=random.Random)
        rng.randint.side_effect = [0, 0]  # i=2 swaps with 0, then i=1 swaps with 0
        mapping = Randomizer(rng).permute(3)

        self.assertEqual([call.args for call in rng.randint.call_args_list], [(0, 2), (0, 1)])
        self.assertEqual(mapping, [1, 2, 0])

    def test_permute_reaches_every_order(self):
        randomizer = Randomizer(random.Random(7))
        seen = {tuple(randomizer.permute(3)) for _ in range(300)}
        self.assertEqual(len(seen), 6)

    def test_same_seed_gives_same_order(self):
        first = Randomizer(random.Random(42)).permute(10)
        second = Randomizer(random.Random(42)).permute(10)
        self.assertEqual(first, second)


class TestRandomizeQuestionsAndChoices(unittest.TestCase):
    """Test cases for shuffling quiz content."""

    def setUp(self):
        self.randomizer = TestFixtures.create_seeded_randomizer()
        self.questions = TestFixtures.create_sample_questions()

    def test_randomize_questions_keeps_mapping(self):
        mapping, permuted = self.randomizer.randomize_questions(self.questions)

        self.assertEqual(len(permuted), len(self.questions))
        for position, original in enumerate(mapping):
            self.assertIs(permuted[position], self.questions[original])

    def test_randomize_choices_pairs_text_with_original_index(self):
        question = self.questions[1]
        displayed = self.randomizer.randomize_choices(question)

        self.assertEqual(sorted(index for _, index in displayed), list(range(len(question.choices))))
        for text, index in displayed:
            self.assertEqual(question.choices[index], text)

    def test_identity_choices(self):
        question = Question("T", "Q?", ("a", "b"), 0)
        self.assertEqual(identity_choices(question), [("a", 0), ("b", 1)])


class TestInvert(unittest.TestCase):
    """Test cases for permutation inversion."""

    def test_invert_round_trips(self):
        mapping = Randomizer(random.Random(3)).permute(8)
        inverse = invert(mapping)
        for position, original in enumerate(mapping):
            self.assertEqual(inverse[original], position)

    def test_invert_rejects_duplicates(self):
        with self.assertRaises(ValueError):
            invert([0, 0, 1])

    def test_invert_rejects_out_of_range(self):
        with self.assertRaises(ValueError):
            invert([0, 3])


if __name__ == '__main__':
    unittest.main()
