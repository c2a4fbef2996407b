"""Pydantic wire schemas for durable saves, submissions and ephemeral snapshots.

Saved-session and snapshot payloads use camelCase keys on the wire; submission payloads
use snake_case. Every model accepts either the alias or the field name on input.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from practice_app.core.models import (
    EphemeralState,
    MarkingPrecedence,
    MarkingScheme,
    Question,
    QuestionResult,
    QuestionStatus,
    SavedSession,
    SessionConfig,
    SessionEntry,
    SessionMode,
    SubmissionOutcome,
    SubmissionRecord,
    TimerSnapshot,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Question snapshots ---


class MarkingPayload(CamelModel):
    correct_marks: float = 1.0
    incorrect_marks: float = 0.0


class QuestionPayload(CamelModel):
    """Minimal question snapshot, enough to rehydrate a session without a fetch."""

    id: str
    text: str
    options: dict[str, str]
    correct_option: str
    difficulty: str | None = None
    marking: MarkingPayload | None = None


def question_to_payload(question: Question) -> QuestionPayload:
    marking = None
    if question.marking is not None:
        marking = MarkingPayload(
            correct_marks=question.marking.correct_marks,
            incorrect_marks=question.marking.incorrect_marks,
        )
    return QuestionPayload(
        id=question.id,
        text=question.text,
        options=dict(question.options),
        correct_option=question.correct_option,
        difficulty=question.difficulty,
        marking=marking,
    )


def payload_to_question(payload: QuestionPayload) -> Question:
    marking = None
    if payload.marking is not None:
        marking = MarkingScheme(
            correct_marks=payload.marking.correct_marks,
            incorrect_marks=payload.marking.incorrect_marks,
        )
    return Question(
        id=payload.id,
        text=payload.text,
        options=dict(payload.options),
        correct_option=payload.correct_option,
        difficulty=payload.difficulty,
        marking=marking,
    )


# --- Durable saved sessions ---


class SessionConfigPayload(CamelModel):
    mode: SessionMode = SessionMode.PRACTICE
    time_limit_minutes: int | None = None
    mock_test_id: int | None = None
    default_marking: MarkingPayload | None = None
    marking_precedence: MarkingPrecedence = MarkingPrecedence.QUESTION_OVERRIDE


class TimerStatePayload(CamelModel):
    main_timer_elapsed_ms: int = Field(default=0, ge=0)
    question_times: dict[int, int] = Field(default_factory=dict)


class SessionStatePayload(CamelModel):
    session_config: SessionConfigPayload
    question_set: list[str]
    current_index: int = Field(default=0, ge=0)
    timer_state: TimerStatePayload = Field(default_factory=TimerStatePayload)
    user_answers: dict[str, str] = Field(default_factory=dict)
    question_statuses: dict[str, QuestionStatus] = Field(default_factory=dict)
    bookmarked_questions: dict[str, bool] = Field(default_factory=dict)
    questions: list[QuestionPayload] = Field(default_factory=list)
    mock_test_ref: int | None = None


class SaveSessionRequest(CamelModel):
    session_name: str = Field(min_length=1)
    session_state: SessionStatePayload


class SavedSessionRecord(CamelModel):
    id: str
    session_name: str
    session_state: SessionStatePayload
    created_at: datetime
    updated_at: datetime


class SavedSessionSummary(CamelModel):
    id: str
    session_name: str
    total_questions: int
    current_index: int
    elapsed_time: str = "00:00:00"
    updated_at: datetime


def config_to_payload(config: SessionConfig) -> SessionConfigPayload:
    default_marking = None
    if config.default_marking is not None:
        default_marking = MarkingPayload(
            correct_marks=config.default_marking.correct_marks,
            incorrect_marks=config.default_marking.incorrect_marks,
        )
    return SessionConfigPayload(
        mode=config.mode,
        time_limit_minutes=config.time_limit_minutes,
        mock_test_id=config.mock_test_id,
        default_marking=default_marking,
        marking_precedence=config.marking_precedence,
    )


def payload_to_config(payload: SessionConfigPayload) -> SessionConfig:
    default_marking = None
    if payload.default_marking is not None:
        default_marking = MarkingScheme(
            correct_marks=payload.default_marking.correct_marks,
            incorrect_marks=payload.default_marking.incorrect_marks,
        )
    return SessionConfig(
        mode=payload.mode,
        time_limit_minutes=payload.time_limit_minutes,
        mock_test_id=payload.mock_test_id,
        default_marking=default_marking,
        marking_precedence=payload.marking_precedence,
    )


def saved_session_to_payload(saved: SavedSession) -> SessionStatePayload:
    return SessionStatePayload(
        session_config=config_to_payload(saved.config),
        question_set=list(saved.question_ids),
        current_index=saved.current_index,
        timer_state=TimerStatePayload(
            main_timer_elapsed_ms=saved.timer.main_elapsed_ms,
            question_times=dict(saved.timer.question_elapsed_ms),
        ),
        user_answers=dict(saved.answers_by_question_id),
        question_statuses=dict(saved.statuses_by_question_id),
        bookmarked_questions={question_id: True for question_id in sorted(saved.bookmarked_question_ids)},
        questions=[question_to_payload(q) for q in saved.questions],
        mock_test_ref=saved.mock_test_ref,
    )


def payload_to_saved_session(payload: SessionStatePayload, session_name: str = "") -> SavedSession:
    return SavedSession(
        config=payload_to_config(payload.session_config),
        question_ids=list(payload.question_set),
        current_index=payload.current_index,
        timer=TimerSnapshot(
            main_elapsed_ms=payload.timer_state.main_timer_elapsed_ms,
            question_elapsed_ms=dict(payload.timer_state.question_times),
        ),
        answers_by_question_id=dict(payload.user_answers),
        statuses_by_question_id=dict(payload.question_statuses),
        bookmarked_question_ids={qid for qid, flagged in payload.bookmarked_questions.items() if flagged},
        questions=[payload_to_question(q) for q in payload.questions],
        session_name=session_name,
        mock_test_ref=payload.mock_test_ref,
    )


# --- Ephemeral snapshots ---


class SessionEntryPayload(BaseModel):
    status: QuestionStatus = QuestionStatus.NOT_VISITED
    user_answer: str | None = None
    is_bookmarked: bool = False


class EphemeralSnapshotPayload(CamelModel):
    current_index: int = Field(ge=0)
    session_entries: list[SessionEntryPayload]
    timestamp: float
    mode: SessionMode
    time_limit: int | None = None


def ephemeral_to_payload(state: EphemeralState) -> EphemeralSnapshotPayload:
    return EphemeralSnapshotPayload(
        current_index=state.current_index,
        session_entries=[
            SessionEntryPayload(
                status=entry.status,
                user_answer=entry.user_answer,
                is_bookmarked=entry.is_bookmarked,
            )
            for entry in state.entries
        ],
        timestamp=state.timestamp,
        mode=state.mode,
        time_limit=state.time_limit_minutes,
    )


def payload_to_ephemeral(payload: EphemeralSnapshotPayload) -> EphemeralState:
    return EphemeralState(
        current_index=payload.current_index,
        entries=[
            SessionEntry(
                status=entry.status,
                user_answer=entry.user_answer,
                is_bookmarked=entry.is_bookmarked,
            )
            for entry in payload.session_entries
        ],
        timestamp=payload.timestamp,
        mode=payload.mode,
        time_limit_minutes=payload.time_limit,
    )


# --- Submissions ---


class SubmittedQuestion(BaseModel):
    question_id: str
    user_answer: str | None = None
    status: SubmissionOutcome
    time_taken: int = Field(default=0, ge=0)


class SubmissionRequest(BaseModel):
    questions: list[SubmittedQuestion]
    score: int
    total_time: int = Field(ge=0)
    total_questions: int = Field(ge=0)
    correct_answers: int = Field(ge=0)
    incorrect_answers: int = Field(ge=0)
    skipped_answers: int = Field(ge=0)
    session_type: str = "practice"
    mock_test_id: int | None = None
    weighted: bool = False
    default_marking: MarkingPayload | None = None
    marking_precedence: MarkingPrecedence = MarkingPrecedence.QUESTION_OVERRIDE


class SubmissionResponse(BaseModel):
    result_id: str
    score: int
    message: str = "Test submitted successfully"


def record_to_request(record: SubmissionRecord) -> SubmissionRequest:
    default_marking = None
    if record.default_marking is not None:
        default_marking = MarkingPayload(
            correct_marks=record.default_marking.correct_marks,
            incorrect_marks=record.default_marking.incorrect_marks,
        )
    return SubmissionRequest(
        questions=[
            SubmittedQuestion(
                question_id=result.question_id,
                user_answer=result.user_answer,
                status=result.outcome,
                time_taken=result.time_taken_seconds,
            )
            for result in record.questions
        ],
        score=record.score,
        total_time=record.total_time_seconds,
        total_questions=record.total_questions,
        correct_answers=record.correct_count,
        incorrect_answers=record.incorrect_count,
        skipped_answers=record.skipped_count,
        session_type=record.session_type,
        mock_test_id=record.mock_test_id,
        weighted=record.weighted,
        default_marking=default_marking,
        marking_precedence=record.marking_precedence,
    )


def request_to_results(request: SubmissionRequest) -> list[QuestionResult]:
    return [
        QuestionResult(
            question_id=item.question_id,
            user_answer=item.user_answer,
            outcome=item.status,
            time_taken_seconds=item.time_taken,
        )
        for item in request.questions
    ]


# --- Bookmarks ---


class BookmarkRequest(CamelModel):
    question_id: str
    bookmarked: bool


class BookmarkResponse(CamelModel):
    question_id: str
    bookmarked: bool
