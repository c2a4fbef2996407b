"""In-memory repositories backing the receiving system."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from uuid import uuid4

from practice_app.core.payloads import (
    SavedSessionRecord,
    SavedSessionSummary,
    SaveSessionRequest,
    SubmissionRequest,
)
from practice_app.core.time_format import format_hhmmss


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SavedSessionRepository:
    """Durable saved sessions keyed by a generated id."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._records: dict[str, SavedSessionRecord] = {}

    def create(self, request: SaveSessionRequest) -> SavedSessionRecord:
        now = _now()
        record = SavedSessionRecord(
            id=uuid4().hex,
            session_name=request.session_name,
            session_state=request.session_state,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._records[record.id] = record
        return record

    def update(self, session_id: str, request: SaveSessionRequest) -> SavedSessionRecord | None:
        with self._lock:
            existing = self._records.get(session_id)
            if existing is None:
                return None
            record = existing.model_copy(
                update={
                    "session_name": request.session_name,
                    "session_state": request.session_state,
                    "updated_at": _now(),
                }
            )
            self._records[session_id] = record
            return record

    def get(self, session_id: str) -> SavedSessionRecord | None:
        with self._lock:
            return self._records.get(session_id)

    def pop(self, session_id: str) -> SavedSessionRecord | None:
        with self._lock:
            return self._records.pop(session_id, None)

    def delete(self, session_id: str) -> bool:
        return self.pop(session_id) is not None

    def summaries(self) -> list[SavedSessionSummary]:
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: r.updated_at, reverse=True)
        return [
            SavedSessionSummary(
                id=record.id,
                session_name=record.session_name,
                total_questions=len(record.session_state.question_set),
                current_index=record.session_state.current_index,
                elapsed_time=format_hhmmss(record.session_state.timer_state.main_timer_elapsed_ms // 1000),
                updated_at=record.updated_at,
            )
            for record in records
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass(slots=True)
class StoredResult:
    result_id: str
    submission: SubmissionRequest
    score: int
    submitted_at: datetime


class ResultRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._results: dict[str, StoredResult] = {}

    def add(self, submission: SubmissionRequest, score: int) -> StoredResult:
        stored = StoredResult(
            result_id=uuid4().hex,
            submission=submission,
            score=score,
            submitted_at=_now(),
        )
        with self._lock:
            self._results[stored.result_id] = stored
        return stored

    def get(self, result_id: str) -> StoredResult | None:
        with self._lock:
            return self._results.get(result_id)


class BookmarkRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._bookmarked: set[str] = set()

    def set(self, question_id: str, bookmarked: bool) -> bool:
        with self._lock:
            if bookmarked:
                self._bookmarked.add(question_id)
            else:
                self._bookmarked.discard(question_id)
            return question_id in self._bookmarked

    def all(self) -> list[str]:
        with self._lock:
            return sorted(self._bookmarked)
