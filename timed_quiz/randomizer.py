"""
Reversible shuffling of question and choice order.
"""
import random
from typing import List, Optional, Sequence, Tuple

from .models import Question


class Randomizer:
    """Produces uniformly random, reversible permutations."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the randomizer.

        Args:
            rng: Source of randomness, a fresh ``random.Random`` if None
        """
        self._rng = rng or random.Random()

    def permute(self, n: int) -> List[int]:
        """
        Build a uniformly random permutation of ``range(n)``.

        Fisher-Yates: walk ``i`` from ``n - 1`` down to 1 and swap with a
        uniformly chosen ``j`` in ``[0, i]``.

        Args:
            n: Size of the permutation

        Returns:
            List where position ``i`` holds the original index shown at ``i``
        """
        mapping = list(range(n))
        for i in range(n - 1, 0, -1):
            j = self._rng.randint(0, i)
            mapping[i], mapping[j] = mapping[j], mapping[i]
        return mapping

    def randomize_questions(
        self, questions: Sequence[Question]
    ) -> Tuple[List[int], List[Question]]:
        """
        Shuffle questions, keeping the mapping back to authored order.

        Returns:
            ``(mapping, permuted)`` with ``permuted[i] == questions[mapping[i]]``
        """
        mapping = self.permute(len(questions))
        return mapping, [questions[index] for index in mapping]

    def randomize_choices(self, question: Question) -> List[Tuple[str, int]]:
        """Shuffle one question's choices as ``(text, original_index)`` pairs."""
        return [(question.choices[index], index) for index in self.permute(len(question.choices))]


def identity_choices(question: Question) -> List[Tuple[str, int]]:
    """Choices of a question in authored order, paired with their indices."""
    return [(text, index) for index, text in enumerate(question.choices)]


def invert(mapping: Sequence[int]) -> List[int]:
    """
    Invert a permutation.

    Raises:
        ValueError: If ``mapping`` is not a permutation of ``range(len(mapping))``
    """
    inverse = [-1] * len(mapping)
    for position, original in enumerate(mapping):
        if not 0 <= original < len(mapping) or inverse[original] != -1:
            raise ValueError(f"Not a permutation: {list(mapping)}")
        inverse[original] = position
    return inverse
