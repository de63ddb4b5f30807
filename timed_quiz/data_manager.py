"""
Data manager for YAML quiz files and quiz data validation.
"""
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ContentError
from .models import Question, Quiz

MANIFEST_FILENAME = "manifest.yaml"
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB limit


class QuizSource(ABC):
    """Supplies validated quizzes to the session."""

    @abstractmethod
    def load_all(self) -> List[Quiz]:
        """
        Load every available quiz.

        Raises:
            ContentError: If no quiz could be loaded
        """


class DataManager(QuizSource):
    """Manages loading and validation of YAML quiz files listed in a manifest."""

    def __init__(self, data_directory: str = "./data/"):
        """
        Initialize DataManager with the data directory path.

        Args:
            data_directory: Directory holding ``manifest.yaml`` and the quiz files
        """
        self.data_directory = Path(data_directory)
        self.loaded_quizzes: Dict[str, Quiz] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback

    def load_all(self) -> List[Quiz]:
        """
        Load all quizzes listed in the manifest, in manifest order.

        Files that fail to load are skipped and recorded in ``load_errors``.

        Returns:
            List of loaded quizzes

        Raises:
            ContentError: If the manifest is unusable or no quiz file is valid
        """
        self.loaded_quizzes.clear()
        self.load_errors.clear()

        try:
            entries = self._load_manifest()
        except ContentError as e:
            self.load_errors.append(str(e))
            self.logger.error(f"Error loading quizzes: {e}")
            raise

        for entry in entries:
            filename = entry['filename']
            try:
                quiz = self._load_quiz_file(filename)
            except ContentError as e:
                self.logger.warning(f"Failed to load {filename}: {e}")
                self.load_errors.append(f"{filename}: {e}")
                continue
            self.loaded_quizzes[filename] = quiz
            self.logger.info(f"Loaded quiz '{quiz.title}' with {len(quiz.questions)} questions")

        if not self.loaded_quizzes:
            self.logger.error("No quiz files could be loaded successfully")
            raise ContentError("No valid quiz files found")

        self.logger.info(f"Successfully loaded {len(self.loaded_quizzes)} quiz files")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return list(self.loaded_quizzes.values())

    def _load_manifest(self) -> List[Dict[str, Any]]:
        """
        Read the manifest and return its entries sorted by ``order``.

        Raises:
            ContentError: If the manifest is missing, unreadable or malformed
        """
        manifest_path = self.data_directory / MANIFEST_FILENAME
        manifest = self._read_yaml(manifest_path, "quiz manifest")

        if not isinstance(manifest, dict) or not isinstance(manifest.get("quizzes"), list):
            raise ContentError("Invalid manifest format")

        entries = []
        for i, entry in enumerate(manifest["quizzes"]):
            if not isinstance(entry, dict) or not isinstance(entry.get("filename"), str):
                self.load_errors.append(f"Manifest entry {i} has no filename")
                self.logger.warning(f"Skipping manifest entry {i}: no filename")
                continue

            filename = entry["filename"]
            if not self._is_local_filename(filename):
                self.load_errors.append(f"{filename}: must be a file inside the data directory")
                self.logger.warning(f"Skipping manifest entry {i}: {filename} is outside the data directory")
                continue

            entries.append({'filename': filename, 'order': self._parse_order(entry.get("order"))})

        # sorted() is stable, so ties keep manifest order
        return sorted(entries, key=lambda e: e['order'])

    @staticmethod
    def _parse_order(order: Any) -> float:
        """Numeric sort key; numeric strings count, anything else sorts as 0."""
        if isinstance(order, bool) or order is None:
            return 0
        if isinstance(order, (int, float)):
            return order
        if isinstance(order, str):
            try:
                return float(order)
            except ValueError:
                return 0
        return 0

    @staticmethod
    def _is_local_filename(filename: str) -> bool:
        path = Path(filename)
        return bool(filename.strip()) and not path.is_absolute() and ".." not in path.parts

    def _load_quiz_file(self, filename: str) -> Quiz:
        """
        Load, validate and parse one quiz file.

        Raises:
            ContentError: If the file is unusable
        """
        data = self._read_yaml(self.data_directory / filename, "quiz file")
        if not self.validate_quiz_structure(data):
            raise ContentError("Invalid quiz data")
        return self._parse_quiz(filename, data)

    def _read_yaml(self, path: Path, description: str) -> Any:
        try:
            if not path.exists():
                raise ContentError(f"Failed to load {description}: {path.name} not found")
            if not os.access(path, os.R_OK):
                raise ContentError(f"Permission denied: Cannot read {path.name}")

            file_size = path.stat().st_size
            if file_size > MAX_FILE_SIZE:
                raise ContentError(
                    f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                    f"Maximum size is {MAX_FILE_SIZE / 1024 / 1024}MB"
                )

            with open(path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ContentError(f"Invalid YAML in {path.name}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ContentError(f"Failed to read {path.name}: {e}") from e

    def validate_quiz_structure(self, data: Any) -> bool:
        """
        Validate that parsed YAML has the correct quiz structure.

        Expected structure::

            title: str
            description: str
            questions:
              - topic: str
                question: str
                choices: [str, ...]   # at least one
                correct: int          # index into choices

        Args:
            data: Parsed YAML data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Quiz data must be a mapping")
            return False

        if not isinstance(data.get("title"), str):
            self.logger.error("Quiz data must have a string 'title'")
            return False

        if not isinstance(data.get("description"), str):
            self.logger.error("Quiz data must have a string 'description'")
            return False

        questions = data.get("questions")
        if not isinstance(questions, list) or not questions:
            self.logger.error("'questions' must be a non-empty list")
            return False

        for i, question_data in enumerate(questions):
            if not isinstance(question_data, dict):
                self.logger.error(f"Question {i} must be a mapping")
                return False

            if not question_data.get("topic"):
                self.logger.error(f"Question {i} missing 'topic' field")
                return False

            if not question_data.get("question"):
                self.logger.error(f"Question {i} missing 'question' field")
                return False

            choices = question_data.get("choices")
            if not isinstance(choices, list) or not choices:
                self.logger.error(f"Question {i} 'choices' field must be a non-empty list")
                return False

            correct = question_data.get("correct")
            # bool is an int subclass; reject it explicitly
            if not isinstance(correct, int) or isinstance(correct, bool):
                self.logger.error(f"Question {i} 'correct' field must be a number")
                return False

            if not 0 <= correct < len(choices):
                self.logger.error(f"Question {i} 'correct' index {correct} is out of range")
                return False

        return True

    def _parse_quiz(self, quiz_id: str, data: Dict[str, Any]) -> Quiz:
        questions = tuple(
            Question(
                topic=str(q["topic"]),
                prompt=str(q["question"]),
                choices=tuple(str(choice) for choice in q["choices"]),
                correct_index=q["correct"]
            )
            for q in data["questions"]
        )
        return Quiz(
            title=data["title"],
            description=data["description"],
            questions=questions,
            quiz_id=quiz_id
        )

    def get_available_quizzes(self) -> List[Quiz]:
        """
        Get loaded quizzes in manifest order.

        Returns:
            List of quizzes from the last load
        """
        return list(self.loaded_quizzes.values())

    def get_quiz(self, quiz_ref: str) -> Optional[Quiz]:
        """
        Find a quiz by id (filename), filename stem or title, ignoring case.

        Args:
            quiz_ref: Identifier typed by the user

        Returns:
            The quiz, or None if no quiz matches
        """
        if quiz_ref in self.loaded_quizzes:
            return self.loaded_quizzes[quiz_ref]

        wanted = quiz_ref.strip().lower()
        for quiz_id, quiz in self.loaded_quizzes.items():
            if wanted in (quiz_id.lower(), Path(quiz_id).stem.lower(), quiz.title.lower()):
                return quiz
        return None

    def get_load_errors(self) -> List[str]:
        """
        Get list of errors encountered during the last load operation.

        Returns:
            List of error messages
        """
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_quizzes': len(self.loaded_quizzes),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'data_directory': str(self.data_directory),
            'available_quizzes': list(self.loaded_quizzes.keys())
        }
