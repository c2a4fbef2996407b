from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from practice_app.core.errors import TransportError
from practice_app.core.models import MarkingScheme, Question, SessionConfig
from practice_app.core.payloads import (
    BookmarkResponse,
    SavedSessionRecord,
    SavedSessionSummary,
    SaveSessionRequest,
    SubmissionRequest,
    SubmissionResponse,
)
from practice_app.core.services.api_client import HttpRemoteStore
from practice_app.core.services.snapshot_storage import MemorySnapshotStorage
from practice_app.core.session_controller import SessionController
from practice_app.server.api_server import create_api_app


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class ManualScheduler:
    """Scheduler whose ticks are fired explicitly by the test."""

    def __init__(self) -> None:
        self.callback: Callable[[], None] | None = None
        self.interval_ms: int | None = None
        self.active = False
        self.start_calls = 0
        self.stop_calls = 0

    def start(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.interval_ms = interval_ms
        self.active = True
        self.start_calls += 1

    def stop(self) -> None:
        self.active = False
        self.stop_calls += 1

    def is_active(self) -> bool:
        return self.active

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            if self.active and self.callback is not None:
                self.callback()


class InMemoryRemoteStore:
    """RemoteStore double with per-operation failure injection."""

    def __init__(self) -> None:
        self.saved: dict[str, SavedSessionRecord] = {}
        self.submissions: list[SubmissionRequest] = []
        self.bookmarks: dict[str, bool] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self._next_id = 0

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise TransportError(f"{operation} failed", status_code=503)

    def create_saved_session(self, request: SaveSessionRequest) -> SavedSessionRecord:
        self._check("create_saved_session")
        self._next_id += 1
        now = datetime.now(timezone.utc)
        record = SavedSessionRecord(
            id=f"saved-{self._next_id}",
            session_name=request.session_name,
            session_state=request.session_state,
            created_at=now,
            updated_at=now,
        )
        self.saved[record.id] = record
        return record

    def update_saved_session(self, session_id: str, request: SaveSessionRequest) -> SavedSessionRecord:
        self._check("update_saved_session")
        existing = self.saved.get(session_id)
        if existing is None:
            raise TransportError("Saved session not found", status_code=404)
        record = existing.model_copy(
            update={
                "session_name": request.session_name,
                "session_state": request.session_state,
            }
        )
        self.saved[session_id] = record
        return record

    def list_saved_sessions(self) -> list[SavedSessionSummary]:
        self._check("list_saved_sessions")
        return [
            SavedSessionSummary(
                id=record.id,
                session_name=record.session_name,
                total_questions=len(record.session_state.question_set),
                current_index=record.session_state.current_index,
                updated_at=record.updated_at,
            )
            for record in self.saved.values()
        ]

    def delete_saved_session(self, session_id: str) -> None:
        self._check("delete_saved_session")
        if self.saved.pop(session_id, None) is None:
            raise TransportError("Saved session not found", status_code=404)

    def resume_saved_session(self, session_id: str) -> SavedSessionRecord:
        self._check("resume_saved_session")
        record = self.saved.pop(session_id, None)
        if record is None:
            raise TransportError("Saved session not found", status_code=404)
        return record

    def submit(self, request: SubmissionRequest) -> SubmissionResponse:
        self._check("submit")
        self.submissions.append(request)
        return SubmissionResponse(result_id=f"result-{len(self.submissions)}", score=request.score)

    def set_bookmark(self, question_id: str, bookmarked: bool) -> BookmarkResponse:
        self._check("set_bookmark")
        self.bookmarks[question_id] = bookmarked
        return BookmarkResponse(question_id=question_id, bookmarked=bookmarked)


def make_question(question_id: str, correct: str = "A", marking: MarkingScheme | None = None) -> Question:
    return Question(
        id=question_id,
        text=f"Question {question_id}?",
        options={"A": "Alpha", "B": "Beta", "C": "Gamma", "D": "Delta"},
        correct_option=correct,
        marking=marking,
    )


@pytest.fixture
def questions() -> list[Question]:
    return [make_question(f"q{i}") for i in range(1, 6)]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def storage() -> MemorySnapshotStorage:
    return MemorySnapshotStorage()


@pytest.fixture
def make_controller(questions, remote, storage, scheduler, clock):
    def factory(
        config: SessionConfig | None = None,
        question_set: list[Question] | None = None,
        **mount_kwargs,
    ) -> SessionController:
        controller = SessionController(
            question_set or questions,
            config or SessionConfig(),
            remote,
            storage,
            scheduler=scheduler,
            clock=clock,
        )
        controller.mount(**mount_kwargs)
        return controller

    return factory


@pytest.fixture
def api_client(questions) -> TestClient:
    return TestClient(create_api_app(questions))


@pytest.fixture
def http_remote(api_client) -> HttpRemoteStore:
    return HttpRemoteStore(base_url="http://testserver", session=api_client)
