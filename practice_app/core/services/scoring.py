"""Evaluation rule and score computation shared by the client and the receiving system.

A question is evaluated when it was saved as answered, or marked for review while
holding an answer. Everything else is skipped: it counts toward the total but not
toward the correct or incorrect tallies.

Practice sessions score ``round(100 * correct / total)``. Weighted (mock test)
sessions score ``round(100 * awarded / maximum)`` where each question contributes its
correct marks on success, its incorrect marks (usually negative) on failure and zero
when skipped; the maximum is the sum of every question's correct marks.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
import math

from practice_app.core.models import (
    MarkingPrecedence,
    MarkingScheme,
    Question,
    QuestionResult,
    QuestionStatus,
    SessionEntry,
    SubmissionOutcome,
)

DEFAULT_MARKING = MarkingScheme()


@dataclass(frozen=True, slots=True)
class ScoreSummary:
    score: int
    correct_count: int
    incorrect_count: int
    skipped_count: int
    total_questions: int
    marks_awarded: float
    max_marks: float


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_evaluated(entry: SessionEntry) -> bool:
    if entry.status is QuestionStatus.ANSWERED:
        return entry.user_answer is not None
    return entry.is_marked_and_answered


def evaluate_answer(question: Question, entry: SessionEntry) -> SubmissionOutcome:
    if not is_evaluated(entry):
        return SubmissionOutcome.SKIPPED
    if entry.user_answer == question.correct_option:
        return SubmissionOutcome.CORRECT
    return SubmissionOutcome.INCORRECT


def resolve_marking(
    question_marking: MarkingScheme | None,
    default_marking: MarkingScheme | None,
    precedence: MarkingPrecedence = MarkingPrecedence.QUESTION_OVERRIDE,
) -> MarkingScheme:
    """Pick the scheme for one question; a missing scheme falls back to +1/0."""
    if precedence is MarkingPrecedence.QUESTION_OVERRIDE and question_marking is not None:
        return question_marking
    return default_marking or question_marking or DEFAULT_MARKING


def marks_for(outcome: SubmissionOutcome, marking: MarkingScheme) -> float:
    if outcome is SubmissionOutcome.CORRECT:
        return marking.correct_marks
    if outcome is SubmissionOutcome.INCORRECT:
        return marking.incorrect_marks
    return 0.0


def evaluate_questions(
    questions: Sequence[Question],
    entries: Sequence[SessionEntry],
    question_times_ms: Mapping[int, int],
    default_marking: MarkingScheme | None = None,
    precedence: MarkingPrecedence = MarkingPrecedence.QUESTION_OVERRIDE,
) -> list[QuestionResult]:
    """Build per-question results; time is floored to whole seconds."""
    if len(questions) != len(entries):
        raise ValueError("Questions and session entries are not aligned")

    results: list[QuestionResult] = []
    for index, (question, entry) in enumerate(zip(questions, entries)):
        outcome = evaluate_answer(question, entry)
        marking = resolve_marking(question.marking, default_marking, precedence)
        results.append(
            QuestionResult(
                question_id=question.id,
                user_answer=entry.user_answer,
                outcome=outcome,
                time_taken_seconds=int(question_times_ms.get(index, 0)) // 1000,
                marks_awarded=marks_for(outcome, marking),
                max_marks=marking.correct_marks,
            )
        )
    return results


def summarize(results: Iterable[QuestionResult], weighted: bool) -> ScoreSummary:
    results = list(results)
    correct = sum(1 for r in results if r.outcome is SubmissionOutcome.CORRECT)
    incorrect = sum(1 for r in results if r.outcome is SubmissionOutcome.INCORRECT)
    skipped = len(results) - correct - incorrect
    awarded = sum(r.marks_awarded for r in results)
    maximum = sum(r.max_marks for r in results)

    if weighted:
        score = round_half_up(100 * awarded / maximum) if maximum > 0 else 0
    else:
        score = round_half_up(100 * correct / len(results)) if results else 0

    return ScoreSummary(
        score=score,
        correct_count=correct,
        incorrect_count=incorrect,
        skipped_count=skipped,
        total_questions=len(results),
        marks_awarded=awarded,
        max_marks=maximum,
    )
