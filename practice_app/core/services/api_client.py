"""Client for the receiving system: saved sessions, submissions and bookmarks."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import ValidationError
import requests

from practice_app.constants.network_constants import DEFAULT_API_URL, REQUEST_TIMEOUT_SECONDS
from practice_app.core.errors import TransportError
from practice_app.core.payloads import (
    BookmarkRequest,
    BookmarkResponse,
    QuestionPayload,
    SavedSessionRecord,
    SavedSessionSummary,
    SaveSessionRequest,
    SubmissionRequest,
    SubmissionResponse,
)

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Operations the engine needs from the receiving system."""

    def create_saved_session(self, request: SaveSessionRequest) -> SavedSessionRecord: ...

    def update_saved_session(self, session_id: str, request: SaveSessionRequest) -> SavedSessionRecord: ...

    def list_saved_sessions(self) -> list[SavedSessionSummary]: ...

    def delete_saved_session(self, session_id: str) -> None: ...

    def resume_saved_session(self, session_id: str) -> SavedSessionRecord: ...

    def submit(self, request: SubmissionRequest) -> SubmissionResponse: ...

    def set_bookmark(self, question_id: str, bookmarked: bool) -> BookmarkResponse: ...


class HttpRemoteStore:
    """``RemoteStore`` over HTTP using a ``requests`` session."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    def fetch_questions(self) -> list[QuestionPayload]:
        data = self._request("GET", "/questions")
        return [self._parse(QuestionPayload, item) for item in data]

    def create_saved_session(self, request: SaveSessionRequest) -> SavedSessionRecord:
        data = self._request("POST", "/saved-sessions", json=self._dump(request))
        return self._parse(SavedSessionRecord, data)

    def update_saved_session(self, session_id: str, request: SaveSessionRequest) -> SavedSessionRecord:
        data = self._request("PUT", f"/saved-sessions/{session_id}", json=self._dump(request))
        return self._parse(SavedSessionRecord, data)

    def list_saved_sessions(self) -> list[SavedSessionSummary]:
        data = self._request("GET", "/saved-sessions")
        return [self._parse(SavedSessionSummary, item) for item in data]

    def delete_saved_session(self, session_id: str) -> None:
        self._request("DELETE", f"/saved-sessions/{session_id}")

    def resume_saved_session(self, session_id: str) -> SavedSessionRecord:
        data = self._request("POST", f"/saved-sessions/{session_id}/resume")
        return self._parse(SavedSessionRecord, data)

    def submit(self, request: SubmissionRequest) -> SubmissionResponse:
        data = self._request("POST", "/submissions", json=request.model_dump(mode="json"))
        return self._parse(SubmissionResponse, data)

    def set_bookmark(self, question_id: str, bookmarked: bool) -> BookmarkResponse:
        body = BookmarkRequest(question_id=question_id, bookmarked=bookmarked)
        data = self._request("POST", "/bookmarks", json=self._dump(body))
        return self._parse(BookmarkResponse, data)

    # --- Internals ---

    @staticmethod
    def _dump(model: Any) -> dict[str, Any]:
        return model.model_dump(mode="json", by_alias=True)

    @staticmethod
    def _parse(model_type: Any, data: Any) -> Any:
        try:
            return model_type.model_validate(data)
        except ValidationError as exc:
            raise TransportError(f"Unexpected response payload: {exc}") from exc

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, json=json, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise TransportError(f"Could not reach the server: {exc}") from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error("%s %s returned %s: %s", method, path, response.status_code, detail)
            raise TransportError(detail, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Server returned a non-JSON response") from exc


def _error_detail(response: Any) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str):
            return detail
    return f"HTTP {response.status_code}"
