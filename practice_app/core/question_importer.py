"""Utilities for importing a question bank from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    ID: stable identifier            (optional; defaults to q1, q2, ...)
    Q: Question text. Additional lines until the next marker are treated as
       part of the question.
    A: First option text
    B: Second option text
    C: ...                           (two to six options, lettered A-F)
    CORRECT: A|B|...
    DIFFICULTY: easy|medium|hard     (optional)
    MARKS: +4 / -1                   (optional per-question marking override)

Example:

    ID: phys-001
    Q: What is the SI unit of force?
    A: Joule
    B: Newton
    C: Watt
    D: Pascal
    CORRECT: B
    DIFFICULTY: easy
    MARKS: 4 / -1
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from practice_app.core.errors import QuestionImportError
from practice_app.core.models import MarkingScheme, Question


@dataclass(slots=True)
class ImportedQuestionBank:
    """Container for imported question bank metadata and questions."""

    source_path: Path | None
    questions: list[Question]


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F"]
_MIN_OPTIONS = 2


def load_questions_from_file(file_path: Path) -> ImportedQuestionBank:
    text = Path(file_path).read_text(encoding="utf-8")
    questions = parse_question_text(text)
    if not questions:
        raise QuestionImportError("Question file did not contain any questions.")
    return ImportedQuestionBank(source_path=Path(file_path), questions=questions)


def parse_question_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    questions: list[Question] = []
    seen_ids: set[str] = set()
    for position, block in enumerate(blocks, start=1):
        question = _parse_block(block, default_id=f"q{position}")
        if question.id in seen_ids:
            raise QuestionImportError(f"Duplicate question id '{question.id}'.")
        seen_ids.add(question.id)
        questions.append(question)
    return questions


def _parse_block(block: str, default_id: str) -> Question:
    question_id = default_id
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    difficulty: str | None = None
    marking: MarkingScheme | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("ID:"):
            question_id = line.split(":", 1)[1].strip()
            if not question_id:
                raise QuestionImportError("ID cannot be empty.")
            current_section = None
            continue

        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("DIFFICULTY:"):
            difficulty = line.split(":", 1)[1].strip().lower() or None
            current_section = None
            continue

        if upper.startswith("MARKS:"):
            marking = _parse_marks(line.split(":", 1)[1])
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuestionImportError("Question text missing (Q: ...)")
    if len(options) < _MIN_OPTIONS:
        raise QuestionImportError(f"Question '{question_id}' needs at least two options.")
    expected = _OPTION_ORDER[: len(options)]
    if sorted(options) != expected:
        raise QuestionImportError(
            f"Options for '{question_id}' must be lettered consecutively from A."
        )
    if any(not text.strip() for text in options.values()):
        raise QuestionImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise QuestionImportError(f"Question '{question_id}' is missing CORRECT.")
    if correct_letter not in options:
        raise QuestionImportError(
            f"CORRECT for '{question_id}' must be one of {', '.join(expected)}."
        )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionImportError("Question text cannot be empty.")

    return Question(
        id=question_id,
        text=question_text,
        options={letter: options[letter].strip() for letter in expected},
        correct_option=correct_letter,
        difficulty=difficulty,
        marking=marking,
    )


def _parse_marks(raw_value: str) -> MarkingScheme:
    parts = [part.strip() for part in raw_value.split("/")]
    if len(parts) != 2 or not all(parts):
        raise QuestionImportError("MARKS must look like '4 / -1'.")
    try:
        correct_marks = float(parts[0])
        incorrect_marks = float(parts[1])
    except ValueError as exc:
        raise QuestionImportError("MARKS values must be numbers.") from exc
    if correct_marks <= 0:
        raise QuestionImportError("Correct marks must be positive.")
    return MarkingScheme(correct_marks=correct_marks, incorrect_marks=incorrect_marks)
