from fastapi.testclient import TestClient
import pytest
import requests

from practice_app.core.errors import TransportError
from practice_app.core.models import (
    MarkingPrecedence,
    MarkingScheme,
    SessionConfig,
    SessionEntry,
    TimerSnapshot,
)
from practice_app.core.payloads import SaveSessionRequest, saved_session_to_payload
from practice_app.core.services.api_client import HttpRemoteStore
from practice_app.core.services.persistence_gateway import build_saved_session
from practice_app.core.services.snapshot_storage import MemorySnapshotStorage
from practice_app.core.session_controller import SessionController
from practice_app.server.api_server import create_api_app

from conftest import make_question


class UnreachableSession:
    def request(self, method, url, json=None, timeout=None):
        raise requests.ConnectionError("connection refused")


def _save_request(questions, name="Saved"):
    saved = build_saved_session(
        SessionConfig(), questions, [SessionEntry() for _ in questions], 0, TimerSnapshot()
    )
    return SaveSessionRequest(session_name=name, session_state=saved_session_to_payload(saved))


def test_fetch_questions(http_remote, questions):
    fetched = http_remote.fetch_questions()
    assert [q.id for q in fetched] == [q.id for q in questions]


def test_saved_session_calls(http_remote, questions):
    record = http_remote.create_saved_session(_save_request(questions))
    updated = http_remote.update_saved_session(record.id, _save_request(questions, "Renamed"))
    assert updated.id == record.id
    assert updated.session_name == "Renamed"

    summaries = http_remote.list_saved_sessions()
    assert [s.id for s in summaries] == [record.id]

    assert http_remote.delete_saved_session(record.id) is None
    assert http_remote.list_saved_sessions() == []


def test_http_errors_carry_status_and_detail(http_remote):
    with pytest.raises(TransportError) as excinfo:
        http_remote.resume_saved_session("missing")
    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "Saved session not found"


def test_connection_failure_becomes_transport_error():
    store = HttpRemoteStore(base_url="http://unreachable", session=UnreachableSession())
    with pytest.raises(TransportError) as excinfo:
        store.set_bookmark("q1", True)
    assert excinfo.value.status_code is None


def test_bookmark_round_trip(http_remote):
    response = http_remote.set_bookmark("q3", True)
    assert response.question_id == "q3"
    assert response.bookmarked is True


def test_full_session_against_receiving_system(http_remote, api_client, scheduler, clock, questions):
    storage = MemorySnapshotStorage()
    controller = SessionController(questions, SessionConfig(), http_remote, storage, scheduler=scheduler, clock=clock)
    controller.mount()

    controller.select_answer("A")
    controller.save_and_next()
    controller.toggle_bookmark()
    clock.advance(3_000)
    controller.begin_exit()
    controller.set_session_name("Over HTTP")
    assert controller.confirm_save_and_exit()

    session_id = http_remote.list_saved_sessions()[0].id
    resumed = SessionController.resume_saved(session_id, http_remote, storage, scheduler=scheduler, clock=clock)
    assert resumed.view_state().entries[1].is_bookmarked
    assert http_remote.list_saved_sessions() == []

    resumed.select_answer("B")
    resumed.save_and_next()
    resumed.request_submit()
    assert resumed.confirm_submit()

    result_id = resumed.view_state().result_id
    stored = api_client.get(f"/results/{result_id}").json()
    assert stored["score"] == 20
    assert stored["submission"]["total_time"] == 3


def _answer_two_and_submit(controller):
    controller.select_answer("A")
    controller.save_and_next()
    controller.select_answer("B")
    controller.save_and_next()
    controller.request_submit()
    assert controller.confirm_submit()
    return controller.submission.record.score, controller.submission.response.score


@pytest.mark.parametrize(
    "config",
    [
        SessionConfig(),
        SessionConfig(default_marking=MarkingScheme(4, -1)),
        SessionConfig(mock_test_id=42, default_marking=MarkingScheme(3, -1)),
        SessionConfig(default_marking=MarkingScheme(4, -1), marking_precedence=MarkingPrecedence.TEST_DEFAULT),
    ],
)
def test_client_and_server_agree_on_score(http_remote, scheduler, clock, questions, config):
    controller = SessionController(
        questions, config, http_remote, MemorySnapshotStorage(), scheduler=scheduler, clock=clock
    )
    controller.mount()
    client_score, server_score = _answer_two_and_submit(controller)
    assert client_score == server_score


def test_client_and_server_agree_with_question_markings(scheduler, clock):
    bank = [make_question("m1", marking=MarkingScheme(2, 0)), make_question("m2"), make_question("m3")]
    remote = HttpRemoteStore(base_url="http://testserver", session=TestClient(create_api_app(bank)))

    for precedence in MarkingPrecedence:
        config = SessionConfig(default_marking=MarkingScheme(4, -1), marking_precedence=precedence)
        controller = SessionController(bank, config, remote, MemorySnapshotStorage(), scheduler=scheduler, clock=clock)
        controller.mount(fresh_start=True)
        client_score, server_score = _answer_two_and_submit(controller)
        assert client_score == server_score
