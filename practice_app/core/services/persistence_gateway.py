"""Ephemeral tab-survival snapshots and durable save-and-resume of sessions."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import Lock
import time

from pydantic import ValidationError

from practice_app.constants.session_constants import EPHEMERAL_SLOT_PREFIX
from practice_app.core.errors import SnapshotStorageError, TransportError
from practice_app.core.models import (
    DurableRestore,
    EphemeralState,
    Question,
    SavedSession,
    SessionConfig,
    SessionEntry,
    TimerSnapshot,
)
from practice_app.core.payloads import (
    EphemeralSnapshotPayload,
    SaveSessionRequest,
    ephemeral_to_payload,
    payload_to_ephemeral,
    payload_to_saved_session,
    saved_session_to_payload,
)
from practice_app.core.services.api_client import RemoteStore
from practice_app.core.services.snapshot_storage import SnapshotStorage

logger = logging.getLogger(__name__)


def slot_key(question_ids: list[str]) -> str:
    """Deterministic slot name for a question set, independent of question order."""
    return EPHEMERAL_SLOT_PREFIX + ",".join(sorted(question_ids))


def build_saved_session(
    config: SessionConfig,
    questions: list[Question],
    entries: list[SessionEntry],
    current_index: int,
    timer: TimerSnapshot,
    session_name: str = "",
) -> SavedSession:
    """Serialize session state keyed by stable question id."""
    if len(questions) != len(entries):
        raise ValueError("Questions and session entries are not aligned")
    return SavedSession(
        config=config,
        question_ids=[q.id for q in questions],
        current_index=current_index,
        timer=timer,
        answers_by_question_id={
            q.id: entry.user_answer for q, entry in zip(questions, entries) if entry.user_answer is not None
        },
        statuses_by_question_id={q.id: entry.status for q, entry in zip(questions, entries)},
        bookmarked_question_ids={q.id for q, entry in zip(questions, entries) if entry.is_bookmarked},
        questions=list(questions),
        session_name=session_name,
        mock_test_ref=config.mock_test_id,
    )


@dataclass(frozen=True, slots=True)
class ResumePlan:
    """Everything needed to rehydrate a durable session without a fresh fetch."""

    config: SessionConfig
    questions: list[Question]
    restore: DurableRestore
    timer: TimerSnapshot


def plan_resume(saved: SavedSession, questions: list[Question] | None = None) -> ResumePlan:
    """Order the question snapshots by the saved question-id sequence."""
    available = {q.id: q for q in (questions or saved.questions)}
    missing = [qid for qid in saved.question_ids if qid not in available]
    if missing:
        raise ValueError(f"Saved session references unknown questions: {', '.join(missing)}")
    ordered = [available[qid] for qid in saved.question_ids]
    return ResumePlan(
        config=saved.config,
        questions=ordered,
        restore=DurableRestore(saved),
        timer=saved.timer,
    )


class PersistenceGateway:
    """Writes and consumes ephemeral snapshots and owns the durable save id for a run."""

    def __init__(self, storage: SnapshotStorage, remote: RemoteStore) -> None:
        self._storage = storage
        self._remote = remote
        self._lock = Lock()
        self._saved_session_id: str | None = None
        self._save_in_flight: bool = False

    # --- Ephemeral snapshots ---

    def write_snapshot(
        self,
        question_ids: list[str],
        current_index: int,
        entries: list[SessionEntry],
        config: SessionConfig,
    ) -> bool:
        """Persist the tab-survival snapshot; failures are logged and reported as False."""
        state = EphemeralState(
            current_index=current_index,
            entries=entries,
            timestamp=time.time(),
            mode=config.mode,
            time_limit_minutes=config.time_limit_minutes,
        )
        payload = ephemeral_to_payload(state).model_dump(mode="json", by_alias=True)
        try:
            self._storage.write(slot_key(question_ids), payload)
        except SnapshotStorageError as exc:
            logger.warning("Could not write session snapshot: %s", exc)
            return False
        return True

    def consume_snapshot(self, question_ids: list[str]) -> EphemeralState | None:
        """Read the snapshot for this question set once, then delete it.

        Unreadable or mismatched snapshots count as absent so a fresh session can start.
        """
        key = slot_key(question_ids)
        try:
            raw = self._storage.read(key)
        except SnapshotStorageError as exc:
            logger.warning("Could not read session snapshot: %s", exc)
            self._discard(key)
            return None
        if raw is None:
            return None
        self._discard(key)

        try:
            state = payload_to_ephemeral(EphemeralSnapshotPayload.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Discarding corrupted session snapshot: %s", exc.errors()[:1])
            return None
        if len(state.entries) != len(question_ids) or state.current_index >= len(question_ids):
            logger.warning("Discarding snapshot that does not match the question set")
            return None
        logger.info("Recovered session snapshot at question %d", state.current_index + 1)
        return state

    def discard_snapshot(self, question_ids: list[str]) -> None:
        self._discard(slot_key(question_ids))

    def _discard(self, key: str) -> None:
        try:
            self._storage.delete(key)
        except SnapshotStorageError as exc:
            logger.warning("Could not delete session snapshot: %s", exc)

    # --- Durable save and resume ---

    @property
    def saved_session_id(self) -> str | None:
        return self._saved_session_id

    def is_saving(self) -> bool:
        return self._save_in_flight

    def save_durable(self, session_name: str, saved: SavedSession) -> str | None:
        """Create the durable record on first save and update it afterwards.

        Returns the record id, or None when another save is already in flight.
        Raises ``TransportError`` on failure; the remembered id is left unchanged.
        """
        with self._lock:
            if self._save_in_flight:
                logger.debug("Durable save already in flight; ignoring")
                return None
            self._save_in_flight = True
            existing_id = self._saved_session_id

        request = SaveSessionRequest(
            session_name=session_name,
            session_state=saved_session_to_payload(saved),
        )
        try:
            if existing_id is None:
                record = self._remote.create_saved_session(request)
                logger.info("Created saved session %s", record.id)
            else:
                record = self._remote.update_saved_session(existing_id, request)
                logger.info("Updated saved session %s", record.id)
            with self._lock:
                self._saved_session_id = record.id
            return record.id
        finally:
            with self._lock:
                self._save_in_flight = False

    def resume_durable(self, session_id: str) -> SavedSession:
        """Fetch a saved session; the server deletes it as part of the same call."""
        record = self._remote.resume_saved_session(session_id)
        saved = payload_to_saved_session(record.session_state, session_name=record.session_name)
        logger.info("Resumed saved session %s (%s)", record.id, record.session_name)
        return saved

    def clear_attempt(self, question_ids: list[str]) -> None:
        """Drop both persisted forms of the attempt once its submission is accepted."""
        self.discard_snapshot(question_ids)
        session_id = self._saved_session_id
        if session_id is None:
            return
        try:
            self._remote.delete_saved_session(session_id)
        except TransportError as exc:
            if exc.status_code != 404:
                logger.error("Could not delete saved session %s: %s", session_id, exc)
        self._saved_session_id = None

