"""Composition root wiring user intents to the store, timers, persistence and submission."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
import logging
from threading import RLock
from typing import Any

from practice_app.constants.session_constants import (
    BOOKMARK_FAILED_MESSAGE,
    END_OF_SET_MESSAGE,
    SAVE_FAILED_MESSAGE,
    SUBMIT_FAILED_MESSAGE,
    TIME_UP_MESSAGE,
)
from practice_app.core.errors import TransportError
from practice_app.core.intents import Intent
from practice_app.core.models import (
    EphemeralRestore,
    NoRestore,
    Question,
    RestoreSource,
    SavedSession,
    SessionConfig,
    SessionEntry,
    StatusCounts,
)
from practice_app.core.services.api_client import RemoteStore
from practice_app.core.services.optimistic import apply_optimistically
from practice_app.core.services.persistence_gateway import (
    PersistenceGateway,
    build_saved_session,
    plan_resume,
)
from practice_app.core.services.session_state_store import SessionStateStore
from practice_app.core.services.snapshot_storage import SnapshotStorage
from practice_app.core.services.submission_engine import (
    SubmissionEngine,
    SubmissionState,
    build_submission_record,
)
from practice_app.core.services.timer_engine import (
    Clock,
    Scheduler,
    TimerEngine,
    TimerView,
    monotonic_ms,
)
from practice_app.core.payloads import SubmissionResponse

logger = logging.getLogger(__name__)

ViewListener = Callable[[], None]


def default_session_name(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"Practice Session - {now.strftime('%b %d, %I:%M %p')}"


@dataclass(frozen=True, slots=True)
class ExitDialogView:
    is_open: bool = False
    session_name: str = ""
    suggested_name: str = ""
    is_saving: bool = False
    error: str | None = None

    @property
    def can_save(self) -> bool:
        return self.is_open and not self.is_saving and bool(self.session_name.strip())


@dataclass(frozen=True, slots=True)
class SessionView:
    """Read model handed to the presentation layer."""

    current_index: int
    total_questions: int
    question: Question
    entry: SessionEntry
    entries: list[SessionEntry]
    counts: StatusCounts
    timer: TimerView
    end_of_set: bool
    end_of_set_message: str | None
    exit_dialog: ExitDialogView
    submission_state: SubmissionState
    is_auto_submitting: bool
    auto_submit_message: str | None
    can_submit: bool
    last_error: str | None
    result_id: str | None
    has_exited: bool
    restored_from: str


class SessionController:
    """Facade over the session services; every mutation is serialized by one lock."""

    def __init__(
        self,
        questions: list[Question],
        config: SessionConfig,
        remote: RemoteStore,
        storage: SnapshotStorage,
        scheduler: Scheduler | None = None,
        clock: Clock = monotonic_ms,
    ) -> None:
        self._lock = RLock()
        self._questions = list(questions)
        self._config = config
        self._remote = remote

        self._store = SessionStateStore()
        self._timer = TimerEngine(config, scheduler=scheduler, clock=clock)
        self._persistence = PersistenceGateway(storage, remote)
        self._submission = SubmissionEngine(
            remote,
            record_factory=self._build_record,
            on_completed=self._on_submission_completed,
        )

        self._timer.set_on_time_up(self._handle_time_up)
        self._timer.add_tick_listener(self._on_tick)

        self._listeners: list[ViewListener] = []
        self._mounted = False
        self._end_of_set = False
        self._has_exited = False
        self._last_error: str | None = None
        self._result_id: str | None = None

        self._exit_open = False
        self._exit_name = ""
        self._exit_saving = False
        self._exit_error: str | None = None
        self._paused_by_dialog = False

    @classmethod
    def resume_saved(
        cls,
        session_id: str,
        remote: RemoteStore,
        storage: SnapshotStorage,
        scheduler: Scheduler | None = None,
        clock: Clock = monotonic_ms,
    ) -> SessionController:
        """Fetch (and thereby consume) a durable session and mount a controller on it."""
        saved = PersistenceGateway(storage, remote).resume_durable(session_id)
        plan = plan_resume(saved)
        controller = cls(plan.questions, plan.config, remote, storage, scheduler=scheduler, clock=clock)
        controller.mount(saved_session=saved)
        return controller

    # --- Wiring ---

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def mount(self, saved_session: SavedSession | None = None, fresh_start: bool = False) -> None:
        """Initialize from exactly one restore source and start the timers.

        A durable payload wins; otherwise the ephemeral slot is consumed unless a fresh
        start was requested.
        """
        with self._lock:
            if self._mounted:
                return
            question_ids = [q.id for q in self._questions]
            restore: RestoreSource = NoRestore()
            if saved_session is not None:
                restore = plan_resume(saved_session, self._questions).restore
                self._persistence.discard_snapshot(question_ids)
            elif fresh_start:
                self._persistence.discard_snapshot(question_ids)
            else:
                state = self._persistence.consume_snapshot(question_ids)
                if state is not None:
                    restore = EphemeralRestore(state)

            self._store.initialize(self._questions, restore)
            if saved_session is not None:
                self._timer.restore(
                    saved_session.timer.main_elapsed_ms,
                    saved_session.timer.question_elapsed_ms,
                )
            self._store.subscribe(self._on_store_changed)
            self._mounted = True
            self._write_snapshot()
            start_index = self._store.current_index

        self._timer.start(start_index)
        self._notify()

    def shutdown(self) -> None:
        """Stop ticking; the ephemeral snapshot stays behind for a later remount."""
        self._timer.stop()

    # --- Navigation and answers ---

    def select_answer(self, answer: str | None) -> None:
        with self._lock:
            self._require_active()
            self._store.set_answer(self._store.current_index, answer)

    def save_and_next(self) -> bool:
        """Commit the current question and advance. Returns False at the end of the set."""
        with self._lock:
            self._require_active()
            result = self._store.commit_save_and_advance(self._store.current_index)
            return self._after_advance(result.end_of_set, result.current_index)

    def mark_and_next(self) -> bool:
        with self._lock:
            self._require_active()
            result = self._store.commit_mark_and_advance(self._store.current_index)
            return self._after_advance(result.end_of_set, result.current_index)

    def clear_response(self) -> None:
        with self._lock:
            self._require_active()
            self._store.clear_answer(self._store.current_index)

    def navigate(self, index: int) -> None:
        with self._lock:
            self._require_active()
            self._store.navigate_direct(index)
            self._timer.switch_active_question(index)
            self._end_of_set = False
        self._notify()

    def return_to_start(self) -> None:
        self.navigate(0)

    def stay_here(self) -> None:
        with self._lock:
            self._end_of_set = False
        self._notify()

    def _after_advance(self, end_of_set: bool, current_index: int) -> bool:
        if end_of_set:
            self._end_of_set = True
            self._notify()
            return False
        self._timer.switch_active_question(current_index)
        self._notify()
        return True

    # --- Timer ---

    def pause(self) -> None:
        with self._lock:
            self._timer.pause()
        self._notify()

    def resume(self) -> None:
        with self._lock:
            if self._exit_open:
                return
            self._timer.resume()
        self._notify()

    def toggle_pause(self) -> bool:
        with self._lock:
            if self._timer.is_paused:
                self.resume()
            else:
                self.pause()
            return self._timer.is_paused

    # --- Bookmarks ---

    def toggle_bookmark(self) -> bool:
        """Flip the bookmark locally, then commit it; rolls back if the commit fails."""
        with self._lock:
            self._require_active()
            index = self._store.current_index
            question = self._store.question(index)
            flagged = not self._store.entry(index).is_bookmarked
            try:
                apply_optimistically(
                    capture=self._store.capture,
                    restore=self._store.restore_capture,
                    apply=lambda: self._store.set_bookmark(index, flagged),
                    commit=lambda: self._remote.set_bookmark(question.id, flagged),
                )
            except TransportError as exc:
                logger.warning("Bookmark update for %s failed: %s", question.id, exc)
                self._last_error = BOOKMARK_FAILED_MESSAGE
                self._notify()
                return False
            self._last_error = None
        self._notify()
        return True

    # --- Exit flow ---

    def begin_exit(self) -> None:
        """Open the exit dialog, pausing the timers if they were running."""
        with self._lock:
            self._require_active()
            if self._exit_open:
                return
            self._paused_by_dialog = self._timer.pause()
            self._exit_open = True
            self._exit_name = ""
            self._exit_error = None
        self._notify()

    def set_session_name(self, name: str) -> None:
        with self._lock:
            if self._exit_open:
                self._exit_name = name
        self._notify()

    def confirm_save_and_exit(self) -> bool:
        """Save the session durably and exit. On failure the dialog stays open for retry."""
        with self._lock:
            if not self._exit_open or self._exit_saving:
                return False
            name = self._exit_name.strip()
            if not name:
                self._exit_error = "Please enter a session name."
                self._notify()
                return False

            # Time must be frozen before it is read for the snapshot.
            self._timer.pause()
            saved = build_saved_session(
                self._config,
                self._questions,
                self._store.entries(),
                self._store.current_index,
                self._timer.snapshot(),
                session_name=name,
            )
            self._exit_saving = True
            self._exit_error = None
            self._notify()
            session_id = None
            try:
                session_id = self._persistence.save_durable(name, saved)
            except TransportError as exc:
                logger.error("Save and exit failed: %s", exc)
                self._exit_error = SAVE_FAILED_MESSAGE
            finally:
                self._exit_saving = False
            if session_id is None:
                self._notify()
                return False

            self._persistence.discard_snapshot(self._store.question_ids())
            self._exit_open = False
            self._paused_by_dialog = False
            self._has_exited = True
            logger.info("Session saved as %s; exiting", session_id)
        self._timer.stop()
        self._notify()
        return True

    def exit_without_saving(self) -> None:
        with self._lock:
            if not self._exit_open:
                return
            self._persistence.discard_snapshot(self._store.question_ids())
            self._exit_open = False
            self._has_exited = True
        self._timer.stop()
        self._notify()

    def cancel_exit(self) -> None:
        """Close the dialog, discard the typed name and resume if the dialog paused us."""
        with self._lock:
            if not self._exit_open or self._exit_saving:
                return
            self._exit_open = False
            self._exit_name = ""
            self._exit_error = None
            if self._paused_by_dialog:
                self._timer.resume()
            self._paused_by_dialog = False
        self._notify()

    # --- Submission ---

    def request_submit(self) -> bool:
        with self._lock:
            if not self._mounted:
                raise RuntimeError("Session controller used before mount()")
            if self._has_exited:
                return False
            opened = self._submission.request_submit()
        self._notify()
        return opened

    def cancel_submit(self) -> None:
        with self._lock:
            self._submission.cancel()
        self._notify()

    def confirm_submit(self) -> bool:
        with self._lock:
            if self._submission.state is not SubmissionState.CONFIRMING:
                return False
            paused_here = self._timer.pause()
            accepted = self._submission.confirm()
            if accepted:
                self._last_error = None
            elif self._submission.state is SubmissionState.FAILED:
                self._last_error = SUBMIT_FAILED_MESSAGE
                if paused_here:
                    self._timer.resume()
        if accepted:
            self._timer.stop()
        self._notify()
        return accepted

    def _handle_time_up(self) -> None:
        with self._lock:
            if self._has_exited:
                return
            if self._exit_open:
                self._exit_open = False
                self._exit_name = ""
                self._paused_by_dialog = False
            self._notify()
            accepted = self._submission.submit_on_timeout()
            if not accepted and self._submission.state is SubmissionState.FAILED:
                self._last_error = SUBMIT_FAILED_MESSAGE
        self._notify()

    def _build_record(self):
        return build_submission_record(
            self._config,
            self._questions,
            self._store.entries(),
            self._timer.question_time_map(),
            self._timer.total_session_time(),
        )

    def _on_submission_completed(self, response: SubmissionResponse) -> None:
        self._result_id = response.result_id
        self._persistence.clear_attempt(self._store.question_ids())

    # --- Command bus ---

    def dispatch(self, intent: Intent, **payload: Any) -> Any:
        """Route an intent from an input adapter to the matching operation."""
        handlers: dict[Intent, Callable[..., Any]] = {
            Intent.SELECT_ANSWER: self.select_answer,
            Intent.SAVE_AND_NEXT: self.save_and_next,
            Intent.MARK_AND_NEXT: self.mark_and_next,
            Intent.CLEAR_RESPONSE: self.clear_response,
            Intent.NAVIGATE: self.navigate,
            Intent.RETURN_TO_START: self.return_to_start,
            Intent.STAY_HERE: self.stay_here,
            Intent.PAUSE: self.pause,
            Intent.RESUME: self.resume,
            Intent.TOGGLE_PAUSE: self.toggle_pause,
            Intent.TOGGLE_BOOKMARK: self.toggle_bookmark,
            Intent.BEGIN_EXIT: self.begin_exit,
            Intent.SET_SESSION_NAME: self.set_session_name,
            Intent.SAVE_AND_EXIT: self.confirm_save_and_exit,
            Intent.EXIT_WITHOUT_SAVING: self.exit_without_saving,
            Intent.CANCEL_EXIT: self.cancel_exit,
            Intent.REQUEST_SUBMIT: self.request_submit,
            Intent.CONFIRM_SUBMIT: self.confirm_submit,
            Intent.CANCEL_SUBMIT: self.cancel_submit,
        }
        return handlers[Intent(intent)](**payload)

    # --- Read model ---

    def view_state(self) -> SessionView:
        with self._lock:
            if not self._mounted:
                raise RuntimeError("Session controller used before mount()")
            index = self._store.current_index
            auto = self._submission.is_auto_submitting
            return SessionView(
                current_index=index,
                total_questions=self._store.question_count,
                question=self._store.question(index),
                entry=self._store.entry(index),
                entries=self._store.entries(),
                counts=self._store.status_counts(),
                timer=self._timer.view(),
                end_of_set=self._end_of_set,
                end_of_set_message=END_OF_SET_MESSAGE if self._end_of_set else None,
                exit_dialog=ExitDialogView(
                    is_open=self._exit_open,
                    session_name=self._exit_name,
                    suggested_name=default_session_name() if self._exit_open else "",
                    is_saving=self._exit_saving,
                    error=self._exit_error,
                ),
                submission_state=self._submission.state,
                is_auto_submitting=auto,
                auto_submit_message=TIME_UP_MESSAGE if auto else None,
                can_submit=self._submission.can_submit and not self._has_exited,
                last_error=self._last_error,
                result_id=self._result_id,
                has_exited=self._has_exited,
                restored_from=self._store.restored_from(),
            )

    @property
    def store(self) -> SessionStateStore:
        return self._store

    @property
    def timer(self) -> TimerEngine:
        return self._timer

    @property
    def persistence(self) -> PersistenceGateway:
        return self._persistence

    @property
    def submission(self) -> SubmissionEngine:
        return self._submission

    # --- Internals ---

    def _require_active(self) -> None:
        if not self._mounted:
            raise RuntimeError("Session controller used before mount()")
        if self._has_exited or self._submission.state in (
            SubmissionState.SUBMITTING,
            SubmissionState.COMPLETED,
        ):
            raise RuntimeError("Session is no longer accepting changes")

    def _on_store_changed(self) -> None:
        self._write_snapshot()

    def _write_snapshot(self) -> None:
        if not self._mounted or self._has_exited:
            return
        if self._submission.state is SubmissionState.COMPLETED:
            return
        self._persistence.write_snapshot(
            self._store.question_ids(),
            self._store.current_index,
            self._store.entries(),
            self._config,
        )

    def _on_tick(self, _view: TimerView) -> None:
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
