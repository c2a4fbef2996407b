"""FastAPI receiving system for saved sessions, submissions, bookmarks and the question bank."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime
import logging
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel
import uvicorn

from practice_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from practice_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from practice_app.core.models import (
    MarkingScheme,
    Question,
    QuestionResult,
    SubmissionOutcome,
)
from practice_app.core.payloads import (
    BookmarkRequest,
    BookmarkResponse,
    QuestionPayload,
    SavedSessionRecord,
    SavedSessionSummary,
    SaveSessionRequest,
    SubmissionRequest,
    SubmissionResponse,
    question_to_payload,
    request_to_results,
)
from practice_app.core.services.scoring import marks_for, resolve_marking, summarize
from practice_app.server.repositories import (
    BookmarkRepository,
    ResultRepository,
    SavedSessionRepository,
)

logger = logging.getLogger(__name__)


class ResultPayload(BaseModel):
    result_id: str
    score: int
    submitted_at: datetime
    submission: SubmissionRequest


class ReceivingState:
    """Everything the routes share: the bank, mock-test markings and the repositories."""

    def __init__(
        self,
        questions: Sequence[Question],
        mock_test_markings: Mapping[int, MarkingScheme] | None = None,
    ) -> None:
        self.questions = list(questions)
        self.questions_by_id = {q.id: q for q in self.questions}
        self.mock_test_markings = dict(mock_test_markings or {})
        self.saved_sessions = SavedSessionRepository()
        self.results = ResultRepository()
        self.bookmarks = BookmarkRepository()


def resolve_default_marking(state: ReceivingState, submission: SubmissionRequest) -> MarkingScheme | None:
    if submission.mock_test_id is not None and submission.mock_test_id in state.mock_test_markings:
        return state.mock_test_markings[submission.mock_test_id]
    if submission.default_marking is None:
        return None
    return MarkingScheme(
        correct_marks=submission.default_marking.correct_marks,
        incorrect_marks=submission.default_marking.incorrect_marks,
    )


def recompute_score(state: ReceivingState, submission: SubmissionRequest) -> int:
    """Authoritative score from the per-question detail and the bank's marking.

    The client's outcome is trusted only for skipped questions; correctness of
    everything else is re-derived from the submitted answer. A known mock test's
    marking replaces the submitted default marking.
    """
    default_marking = resolve_default_marking(state, submission)

    results: list[QuestionResult] = []
    for item in request_to_results(submission):
        question = state.questions_by_id.get(item.question_id)
        if question is None:
            raise ValueError(f"Unknown question id '{item.question_id}'")
        outcome = item.outcome
        if outcome is not SubmissionOutcome.SKIPPED:
            if item.user_answer is None:
                outcome = SubmissionOutcome.SKIPPED
            elif item.user_answer == question.correct_option:
                outcome = SubmissionOutcome.CORRECT
            else:
                outcome = SubmissionOutcome.INCORRECT
        marking = resolve_marking(question.marking, default_marking, submission.marking_precedence)
        results.append(
            replace(
                item,
                outcome=outcome,
                marks_awarded=marks_for(outcome, marking),
                max_marks=marking.correct_marks,
            )
        )

    weighted = submission.weighted or submission.mock_test_id is not None
    return summarize(results, weighted=weighted).score


def _get_state_dependency(state: ReceivingState):
    def dependency() -> ReceivingState:
        return state

    return dependency


def create_api_app(
    questions: Sequence[Question],
    mock_test_markings: Mapping[int, MarkingScheme] | None = None,
) -> FastAPI:
    """Create a FastAPI application serving the given question bank."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    receiving_state = ReceivingState(questions, mock_test_markings)
    app.state.receiving = receiving_state
    state_dep = _get_state_dependency(receiving_state)

    @app.get("/questions")
    def list_questions(state: ReceivingState = Depends(state_dep)) -> list[dict[str, object]]:
        return [
            question_to_payload(q).model_dump(mode="json", by_alias=True)
            for q in state.questions
        ]

    @app.get("/saved-sessions")
    def list_saved_sessions(state: ReceivingState = Depends(state_dep)) -> list[dict[str, object]]:
        return [_dump(summary) for summary in state.saved_sessions.summaries()]

    @app.post("/saved-sessions", status_code=201)
    def create_saved_session(
        payload: SaveSessionRequest,
        state: ReceivingState = Depends(state_dep),
    ) -> dict[str, object]:
        record = state.saved_sessions.create(payload)
        logger.info("Saved session %s created (%s)", record.id, record.session_name)
        return _dump(record)

    @app.put("/saved-sessions/{session_id}")
    def update_saved_session(
        session_id: str,
        payload: SaveSessionRequest,
        state: ReceivingState = Depends(state_dep),
    ) -> dict[str, object]:
        record = state.saved_sessions.update(session_id, payload)
        if record is None:
            raise HTTPException(status_code=404, detail="Saved session not found")
        logger.info("Saved session %s updated", session_id)
        return _dump(record)

    @app.delete("/saved-sessions/{session_id}", status_code=204)
    def delete_saved_session(
        session_id: str,
        state: ReceivingState = Depends(state_dep),
    ) -> Response:
        if not state.saved_sessions.delete(session_id):
            raise HTTPException(status_code=404, detail="Saved session not found")
        logger.info("Saved session %s deleted", session_id)
        return Response(status_code=204)

    @app.post("/saved-sessions/{session_id}/resume")
    def resume_saved_session(
        session_id: str,
        state: ReceivingState = Depends(state_dep),
    ) -> dict[str, object]:
        record = state.saved_sessions.pop(session_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Saved session not found")
        logger.info("Saved session %s resumed and removed", session_id)
        return _dump(record)

    @app.post("/submissions", status_code=201)
    def submit(
        payload: SubmissionRequest,
        state: ReceivingState = Depends(state_dep),
    ) -> dict[str, object]:
        try:
            score = recompute_score(state, payload)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if score != payload.score:
            logger.warning("Client score %d differs from recomputed score %d", payload.score, score)
        stored = state.results.add(payload, score)
        logger.info("Submission stored as result %s with score %d", stored.result_id, score)
        return SubmissionResponse(result_id=stored.result_id, score=score).model_dump(mode="json")

    @app.get("/results/{result_id}")
    def get_result(result_id: str, state: ReceivingState = Depends(state_dep)) -> dict[str, object]:
        stored = state.results.get(result_id)
        if stored is None:
            raise HTTPException(status_code=404, detail="Result not found")
        return ResultPayload(
            result_id=stored.result_id,
            score=stored.score,
            submitted_at=stored.submitted_at,
            submission=stored.submission,
        ).model_dump(mode="json")

    @app.post("/bookmarks")
    def set_bookmark(
        payload: BookmarkRequest,
        state: ReceivingState = Depends(state_dep),
    ) -> dict[str, object]:
        if payload.question_id not in state.questions_by_id:
            raise HTTPException(status_code=404, detail="Question not found")
        flagged = state.bookmarks.set(payload.question_id, payload.bookmarked)
        return _dump(BookmarkResponse(question_id=payload.question_id, bookmarked=flagged))

    @app.get("/bookmarks")
    def list_bookmarks(state: ReceivingState = Depends(state_dep)) -> list[str]:
        return state.bookmarks.all()

    return app


def _dump(model: QuestionPayload | SavedSessionRecord | SavedSessionSummary | BookmarkResponse) -> dict[str, object]:
    return model.model_dump(mode="json", by_alias=True)


def start_api_server(
    questions: Sequence[Question],
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    mock_test_markings: Mapping[int, MarkingScheme] | None = None,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(questions, mock_test_markings=mock_test_markings)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="PracticeApiServer", daemon=True)
    thread.start()
    return thread
