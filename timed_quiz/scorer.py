"""
Scoring for completed attempts.
"""
import logging
from typing import List, Sequence

from .models import Answer, Question, QuestionDetail, QuizResults
from .randomizer import invert

BASE_SCORE = 100
SPEED_BONUS_MAX = 50


class Scorer:
    """Turns recorded answers and times into points and summary statistics."""

    def __init__(self, time_per_question: int = 30):
        """
        Initialize the scorer.

        Args:
            time_per_question: Time limit the speed bonus is measured against
        """
        if time_per_question <= 0:
            raise ValueError("Time per question must be positive")
        self.time_per_question = time_per_question
        self.logger = logging.getLogger(__name__)

    def speed_bonus(self, elapsed: int) -> int:
        """Bonus for answering after ``elapsed`` seconds, in ``[0, SPEED_BONUS_MAX]``."""
        elapsed = min(max(elapsed, 0), self.time_per_question)
        # Integer form of floor(SPEED_BONUS_MAX * (1 - elapsed / limit))
        bonus = SPEED_BONUS_MAX * (self.time_per_question - elapsed) // self.time_per_question
        return max(0, bonus)

    def score_of(self, question: Question, answer: Answer, elapsed: int) -> int:
        """
        Points for one question.

        Returns:
            0 for a wrong, missing or timed out answer, otherwise
            ``BASE_SCORE`` plus the speed bonus
        """
        if not answer.matches(question.correct_index):
            return 0
        return BASE_SCORE + self.speed_bonus(elapsed)

    def max_possible_score(self, question_count: int) -> int:
        return question_count * (BASE_SCORE + SPEED_BONUS_MAX)

    def finalize(
        self,
        questions: Sequence[Question],
        question_mapping: Sequence[int],
        answers: Sequence[Answer],
        times: Sequence[int],
        quiz_title: str = ""
    ) -> QuizResults:
        """
        Aggregate an attempt into final results.

        Args:
            questions: Questions in presented order
            question_mapping: Presented position -> authored index
            answers: Recorded answers in presented order
            times: Recorded elapsed seconds in presented order, 0 if never measured
            quiz_title: Title copied onto the results

        Returns:
            QuizResults with details listed in authored order
        """
        if not (len(questions) == len(question_mapping) == len(answers) == len(times)):
            raise ValueError("Questions, mapping, answers and times must have the same length")

        scores = [
            self.score_of(question, answer, elapsed)
            for question, answer, elapsed in zip(questions, answers, times)
        ]
        total_score = sum(scores)
        max_possible = self.max_possible_score(len(questions))
        percentage = (total_score / max_possible * 100) if max_possible else 0.0

        # A time of 0 means "never measured", so it is left out of the statistics
        measured = [elapsed for elapsed in times if elapsed > 0]
        average_time = sum(measured) / len(measured) if measured else 0
        fastest_time = min(measured) if measured else 0

        inverse = invert(question_mapping)
        details: List[QuestionDetail] = []
        for original_index, position in enumerate(inverse):
            question = questions[position]
            answer = answers[position]
            points = scores[position]
            details.append(QuestionDetail(
                original_index=original_index,
                presented_position=position,
                topic=question.topic,
                prompt=question.prompt,
                answer=answer,
                answer_text=self._describe_answer(question, answer),
                correct_text=question.choices[question.correct_index],
                is_correct=answer.matches(question.correct_index),
                time_taken=times[position],
                points=points,
                speed_bonus=max(0, points - BASE_SCORE)
            ))

        self.logger.info(
            f"Attempt scored: {total_score}/{max_possible} ({percentage:.1f}%)"
        )

        return QuizResults(
            total_score=total_score,
            max_possible_score=max_possible,
            percentage=percentage,
            average_time=average_time,
            fastest_time=fastest_time,
            details=details,
            quiz_title=quiz_title
        )

    @staticmethod
    def _describe_answer(question: Question, answer: Answer) -> str:
        if answer.is_timed_out:
            return "Time Out"
        if not answer.is_answered:
            return "No answer"
        return question.choices[answer.choice_index]
