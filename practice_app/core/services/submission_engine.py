"""Submission state machine and construction of the submission record."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import Enum
import logging
from threading import Lock

from practice_app.core.errors import TransportError
from practice_app.core.models import (
    Question,
    SessionConfig,
    SessionEntry,
    SubmissionRecord,
)
from practice_app.core.payloads import SubmissionResponse, record_to_request
from practice_app.core.services.api_client import RemoteStore
from practice_app.core.services.scoring import evaluate_questions, summarize
from practice_app.core.time_format import format_human_readable

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


def build_submission_record(
    config: SessionConfig,
    questions: Sequence[Question],
    entries: Sequence[SessionEntry],
    question_times_ms: Mapping[int, int],
    total_time_ms: int,
) -> SubmissionRecord:
    """Evaluate every question and compute the provisional score."""
    results = evaluate_questions(
        questions,
        entries,
        question_times_ms,
        default_marking=config.default_marking,
        precedence=config.marking_precedence,
    )
    summary = summarize(results, weighted=config.is_weighted)
    return SubmissionRecord(
        questions=results,
        score=summary.score,
        total_time_seconds=int(total_time_ms) // 1000,
        total_questions=summary.total_questions,
        correct_count=summary.correct_count,
        incorrect_count=summary.incorrect_count,
        skipped_count=summary.skipped_count,
        session_type="mock_test" if config.mock_test_id is not None else "practice",
        mock_test_id=config.mock_test_id,
        weighted=config.is_weighted,
        default_marking=config.default_marking,
        marking_precedence=config.marking_precedence,
    )


RecordFactory = Callable[[], SubmissionRecord]


class SubmissionEngine:
    """Governs manual and timeout submission of one attempt.

    ``idle -> confirming -> submitting -> completed | failed``. A timeout skips the
    confirmation step. Only one submission may be in flight; any attempt made while
    submitting, or after completion, is ignored.
    """

    def __init__(
        self,
        remote: RemoteStore,
        record_factory: RecordFactory,
        on_completed: Callable[[SubmissionResponse], None] | None = None,
    ) -> None:
        self._remote = remote
        self._record_factory = record_factory
        self._on_completed = on_completed
        self._lock = Lock()
        self._state = SubmissionState.IDLE
        self._auto_submitting = False
        self._record: SubmissionRecord | None = None
        self._response: SubmissionResponse | None = None
        self._error: str | None = None

    # --- Queries ---

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def is_submitting(self) -> bool:
        return self._state is SubmissionState.SUBMITTING

    @property
    def is_auto_submitting(self) -> bool:
        return self._auto_submitting

    @property
    def can_submit(self) -> bool:
        return self._state in (SubmissionState.IDLE, SubmissionState.FAILED)

    @property
    def record(self) -> SubmissionRecord | None:
        return self._record

    @property
    def response(self) -> SubmissionResponse | None:
        return self._response

    @property
    def error(self) -> str | None:
        return self._error

    # --- Transitions ---

    def request_submit(self) -> bool:
        """Open the confirmation step. Returns False when a submission cannot start."""
        with self._lock:
            if self._state not in (SubmissionState.IDLE, SubmissionState.FAILED):
                return False
            self._state = SubmissionState.CONFIRMING
            self._error = None
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._state is SubmissionState.CONFIRMING:
                self._state = SubmissionState.IDLE

    def confirm(self) -> bool:
        """Submit after the user confirmed. Returns True if the submission was accepted."""
        with self._lock:
            if self._state is not SubmissionState.CONFIRMING:
                return False
            self._state = SubmissionState.SUBMITTING
        return self._send()

    def submit_on_timeout(self) -> bool:
        """Submit straight away because time ran out; no confirmation step."""
        with self._lock:
            if self._state in (SubmissionState.SUBMITTING, SubmissionState.COMPLETED):
                logger.debug("Timeout submission ignored; state is %s", self._state.value)
                return False
            self._state = SubmissionState.SUBMITTING
            self._auto_submitting = True
        logger.info("Time is up; auto-submitting")
        return self._send()

    def _send(self) -> bool:
        try:
            record = self._record_factory()
            self._record = record
            response = self._remote.submit(record_to_request(record))
        except TransportError as exc:
            logger.error("Submission failed: %s", exc)
            with self._lock:
                self._state = SubmissionState.FAILED
                self._auto_submitting = False
                self._error = str(exc)
            return False

        with self._lock:
            self._response = response
            self._state = SubmissionState.COMPLETED
            self._auto_submitting = False
        logger.info(
            "Submission accepted as result %s (score %d, server score %d, time %s)",
            response.result_id,
            record.score,
            response.score,
            format_human_readable(record.total_time_seconds),
        )
        if self._on_completed is not None:
            self._on_completed(response)
        return True
