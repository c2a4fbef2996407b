"""Domain models for the practice session engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class QuestionStatus(str, Enum):
    """Palette status of a question within a session."""

    NOT_VISITED = "not_visited"
    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    MARKED_FOR_REVIEW = "marked_for_review"


class SessionMode(str, Enum):
    """Practice sessions count up; timed sessions count down and auto-submit."""

    PRACTICE = "practice"
    TIMED = "timed"


class SubmissionOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    SKIPPED = "skipped"


class MarkingPrecedence(str, Enum):
    """Which marking scheme applies when a question carries its own override."""

    QUESTION_OVERRIDE = "question_override"
    TEST_DEFAULT = "test_default"


@dataclass(frozen=True, slots=True)
class MarkingScheme:
    """Marks for a correct answer and the (usually negative) marks for a wrong one."""

    correct_marks: float = 1.0
    incorrect_marks: float = 0.0


@dataclass(frozen=True, slots=True)
class Question:
    """Read-only multiple-choice question supplied at session start."""

    id: str
    text: str
    options: dict[str, str]
    correct_option: str
    difficulty: str | None = None
    marking: MarkingScheme | None = None


@dataclass(slots=True)
class SessionEntry:
    """Per-question session state, index-aligned with the question set."""

    status: QuestionStatus = QuestionStatus.NOT_VISITED
    user_answer: str | None = None
    is_bookmarked: bool = False

    @property
    def has_answer(self) -> bool:
        return self.user_answer is not None

    @property
    def is_marked_and_answered(self) -> bool:
        return self.status is QuestionStatus.MARKED_FOR_REVIEW and self.has_answer

    def copy(self) -> SessionEntry:
        return SessionEntry(
            status=self.status,
            user_answer=self.user_answer,
            is_bookmarked=self.is_bookmarked,
        )


@dataclass(frozen=True, slots=True)
class TimerSnapshot:
    """Elapsed session time plus the accumulated time of each visited question."""

    main_elapsed_ms: int = 0
    question_elapsed_ms: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Settings fixed for the lifetime of a session."""

    mode: SessionMode = SessionMode.PRACTICE
    time_limit_minutes: int | None = None
    mock_test_id: int | None = None
    default_marking: MarkingScheme | None = None
    marking_precedence: MarkingPrecedence = MarkingPrecedence.QUESTION_OVERRIDE

    def __post_init__(self) -> None:
        if self.mode is SessionMode.TIMED and not self.time_limit_minutes:
            raise ValueError("Timed sessions need a positive time limit.")

    @property
    def is_weighted(self) -> bool:
        """Mock tests are scored with marks rather than a plain percentage."""
        return self.mock_test_id is not None or self.default_marking is not None

    @property
    def time_limit_ms(self) -> int | None:
        if self.mode is not SessionMode.TIMED or not self.time_limit_minutes:
            return None
        return self.time_limit_minutes * 60 * 1000


@dataclass(frozen=True, slots=True)
class StatusCounts:
    """Counts shown in the status legend and the submission confirmation."""

    not_visited: int = 0
    unanswered: int = 0
    answered: int = 0
    marked_for_review: int = 0
    marked_and_answered: int = 0
    bookmarked: int = 0

    @property
    def total(self) -> int:
        return self.not_visited + self.unanswered + self.answered + self.marked_for_review


@dataclass(frozen=True, slots=True)
class AdvanceResult:
    """Outcome of a Save/Mark commit: the new cursor, or the end-of-set signal."""

    current_index: int
    end_of_set: bool = False


@dataclass(frozen=True, slots=True)
class QuestionResult:
    """Evaluation of one question at submission time."""

    question_id: str
    user_answer: str | None
    outcome: SubmissionOutcome
    time_taken_seconds: int
    marks_awarded: float = 0.0
    max_marks: float = 0.0


@dataclass(frozen=True, slots=True)
class SubmissionRecord:
    """Write-once outcome of an attempt, sent to the receiving system."""

    questions: list[QuestionResult]
    score: int
    total_time_seconds: int
    total_questions: int
    correct_count: int
    incorrect_count: int
    skipped_count: int
    session_type: str = "practice"
    mock_test_id: int | None = None
    weighted: bool = False
    default_marking: MarkingScheme | None = None
    marking_precedence: MarkingPrecedence = MarkingPrecedence.QUESTION_OVERRIDE


@dataclass(frozen=True, slots=True)
class SavedSession:
    """Durable save-and-resume snapshot of a running attempt."""

    config: SessionConfig
    question_ids: list[str]
    current_index: int
    timer: TimerSnapshot
    answers_by_question_id: dict[str, str]
    statuses_by_question_id: dict[str, QuestionStatus]
    bookmarked_question_ids: set[str]
    questions: list[Question] = field(default_factory=list)
    session_name: str = ""
    mock_test_ref: int | None = None


@dataclass(frozen=True, slots=True)
class EphemeralState:
    """Tab-survival snapshot: cursor and entries only, no timer state."""

    current_index: int
    entries: list[SessionEntry]
    timestamp: float
    mode: SessionMode
    time_limit_minutes: int | None = None


@dataclass(frozen=True, slots=True)
class NoRestore:
    """Fresh start: every question begins as not visited."""


@dataclass(frozen=True, slots=True)
class EphemeralRestore:
    state: EphemeralState


@dataclass(frozen=True, slots=True)
class DurableRestore:
    saved: SavedSession


RestoreSource = NoRestore | EphemeralRestore | DurableRestore
