"""Service owning the per-question status array and the current-question cursor."""

from __future__ import annotations

from collections.abc import Callable
import logging

from practice_app.core.models import (
    AdvanceResult,
    DurableRestore,
    EphemeralRestore,
    NoRestore,
    Question,
    QuestionStatus,
    RestoreSource,
    SessionEntry,
    StatusCounts,
)

logger = logging.getLogger(__name__)

StoreListener = Callable[[], None]


class SessionStateStore:
    """Applies the navigation and answer state machine to the session entries.

    Status only changes on explicit commitments (Save, Mark for review) or when a
    question is first shown; picking an option merely records a provisional answer.
    """

    def __init__(self) -> None:
        self._questions: list[Question] = []
        self._entries: list[SessionEntry] = []
        self._current_index: int = 0
        self._initialized: bool = False
        self._restored_from: str = "none"
        self._listeners: list[StoreListener] = []

    # --- Lifecycle ---

    def initialize(self, questions: list[Question], restore: RestoreSource | None = None) -> None:
        """Build the entries for ``questions``, consuming at most one restore source.

        A store is initialized once per mount; later calls are ignored so a restore
        source can never be applied twice.
        """
        if self._initialized:
            logger.debug("Session store already initialized; ignoring re-initialization")
            return
        if not questions:
            raise ValueError("A practice session needs at least one question.")

        restore = restore or NoRestore()
        entries = [SessionEntry() for _ in questions]
        current_index = 0

        if isinstance(restore, EphemeralRestore):
            state = restore.state
            if len(state.entries) != len(questions):
                raise ValueError(
                    f"Snapshot holds {len(state.entries)} entries for {len(questions)} questions"
                )
            entries = [entry.copy() for entry in state.entries]
            current_index = state.current_index
            self._restored_from = "ephemeral"
        elif isinstance(restore, DurableRestore):
            saved = restore.saved
            for index, question in enumerate(questions):
                status = saved.statuses_by_question_id.get(question.id)
                entries[index] = SessionEntry(
                    status=status or QuestionStatus.NOT_VISITED,
                    user_answer=saved.answers_by_question_id.get(question.id),
                    is_bookmarked=question.id in saved.bookmarked_question_ids,
                )
            current_index = saved.current_index
            self._restored_from = "durable"

        if not 0 <= current_index < len(questions):
            raise IndexError(f"Restored question index {current_index} out of range")

        self._questions = list(questions)
        self._entries = entries
        self._current_index = current_index
        self._initialized = True
        self._visit(current_index)
        logger.info(
            "Session store initialized with %d questions (restore=%s, index=%d)",
            len(questions),
            self._restored_from,
            current_index,
        )
        self._notify()

    def is_initialized(self) -> bool:
        return self._initialized

    def restored_from(self) -> str:
        return self._restored_from

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Queries ---

    @property
    def current_index(self) -> int:
        self._require_initialized()
        return self._current_index

    @property
    def question_count(self) -> int:
        return len(self._questions)

    def questions(self) -> list[Question]:
        return list(self._questions)

    def question(self, index: int) -> Question:
        self._check_index(index)
        return self._questions[index]

    def entry(self, index: int) -> SessionEntry:
        self._check_index(index)
        return self._entries[index].copy()

    def entries(self) -> list[SessionEntry]:
        self._require_initialized()
        return [entry.copy() for entry in self._entries]

    def question_ids(self) -> list[str]:
        return [question.id for question in self._questions]

    def status_counts(self) -> StatusCounts:
        self._require_initialized()
        counts = {status: 0 for status in QuestionStatus}
        for entry in self._entries:
            counts[entry.status] += 1
        return StatusCounts(
            not_visited=counts[QuestionStatus.NOT_VISITED],
            unanswered=counts[QuestionStatus.UNANSWERED],
            answered=counts[QuestionStatus.ANSWERED],
            marked_for_review=counts[QuestionStatus.MARKED_FOR_REVIEW],
            marked_and_answered=sum(1 for e in self._entries if e.is_marked_and_answered),
            bookmarked=sum(1 for e in self._entries if e.is_bookmarked),
        )

    # --- Transitions ---

    def set_answer(self, index: int, answer: str | None) -> None:
        """Record a provisional answer. Status is left alone."""
        self._check_index(index)
        self._entries[index].user_answer = answer
        self._notify()

    def visit(self, index: int) -> None:
        self._check_index(index)
        if self._visit(index):
            self._notify()

    def commit_save_and_advance(self, index: int) -> AdvanceResult:
        self._check_index(index)
        entry = self._entries[index]
        if entry.status is QuestionStatus.MARKED_FOR_REVIEW:
            if not entry.has_answer:
                entry.status = QuestionStatus.UNANSWERED
        elif entry.has_answer:
            entry.status = QuestionStatus.ANSWERED
        else:
            entry.status = QuestionStatus.UNANSWERED
        return self._advance_from(index)

    def commit_mark_and_advance(self, index: int) -> AdvanceResult:
        self._check_index(index)
        self._entries[index].status = QuestionStatus.MARKED_FOR_REVIEW
        return self._advance_from(index)

    def clear_answer(self, index: int) -> None:
        """Drop the answer; the status is resolved by the next Save/Mark commit."""
        self._check_index(index)
        self._entries[index].user_answer = None
        self._notify()

    def navigate_direct(self, index: int) -> None:
        """Jump to ``index`` from the palette, discarding any uncommitted answer."""
        self._check_index(index)
        current = self._entries[self._current_index]
        if current.has_answer and current.status not in (
            QuestionStatus.ANSWERED,
            QuestionStatus.MARKED_FOR_REVIEW,
        ):
            current.user_answer = None
        if current.status is QuestionStatus.NOT_VISITED:
            current.status = QuestionStatus.UNANSWERED
        self._current_index = index
        self._visit(index)
        self._notify()

    def return_to_start(self) -> None:
        self.navigate_direct(0)

    def set_bookmark(self, index: int, is_bookmarked: bool) -> None:
        self._check_index(index)
        self._entries[index].is_bookmarked = is_bookmarked
        self._notify()

    # --- Capture/restore for optimistic updates ---

    def capture(self) -> tuple[int, list[SessionEntry]]:
        self._require_initialized()
        return self._current_index, [entry.copy() for entry in self._entries]

    def restore_capture(self, captured: tuple[int, list[SessionEntry]]) -> None:
        current_index, entries = captured
        if len(entries) != len(self._questions):
            raise ValueError("Captured entries do not match the question set")
        self._current_index = current_index
        self._entries = [entry.copy() for entry in entries]
        self._notify()

    # --- Internals ---

    def _advance_from(self, index: int) -> AdvanceResult:
        if index >= len(self._entries) - 1:
            self._notify()
            return AdvanceResult(current_index=self._current_index, end_of_set=True)
        self._current_index = index + 1
        self._visit(self._current_index)
        self._notify()
        return AdvanceResult(current_index=self._current_index)

    def _visit(self, index: int) -> bool:
        entry = self._entries[index]
        if entry.status is QuestionStatus.NOT_VISITED:
            entry.status = QuestionStatus.UNANSWERED
            return True
        return False

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Session store used before initialize()")

    def _check_index(self, index: int) -> None:
        self._require_initialized()
        if not 0 <= index < len(self._entries):
            raise IndexError(f"Question index {index} out of range")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
