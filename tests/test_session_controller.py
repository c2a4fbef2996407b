import pytest

from practice_app.constants.session_constants import (
    BOOKMARK_FAILED_MESSAGE,
    SAVE_FAILED_MESSAGE,
    SUBMIT_FAILED_MESSAGE,
    TIME_UP_MESSAGE,
)
from practice_app.core.intents import Intent
from practice_app.core.models import QuestionStatus, SessionConfig, SessionMode
from practice_app.core.services.persistence_gateway import slot_key
from practice_app.core.services.submission_engine import SubmissionState
from practice_app.core.session_controller import SessionController, default_session_name


def _timed(minutes=30):
    return SessionConfig(mode=SessionMode.TIMED, time_limit_minutes=minutes)


def test_mount_starts_fresh_session(make_controller, scheduler):
    controller = make_controller()
    view = controller.view_state()

    assert view.current_index == 0
    assert view.total_questions == 5
    assert view.entry.status is QuestionStatus.UNANSWERED
    assert view.restored_from == "none"
    assert scheduler.active


def test_view_before_mount_raises(questions, remote, storage, scheduler, clock):
    controller = SessionController(questions, SessionConfig(), remote, storage, scheduler=scheduler, clock=clock)
    with pytest.raises(RuntimeError):
        controller.view_state()


def test_every_change_writes_ephemeral_snapshot(make_controller, storage, questions):
    controller = make_controller()
    controller.select_answer("B")
    controller.save_and_next()

    raw = storage.read(slot_key([q.id for q in questions]))
    assert raw["currentIndex"] == 1
    assert raw["sessionEntries"][0]["user_answer"] == "B"


def test_remount_restores_from_ephemeral_snapshot(make_controller):
    first = make_controller()
    first.select_answer("A")
    first.save_and_next()
    first.shutdown()

    second = make_controller()
    view = second.view_state()
    assert view.restored_from == "ephemeral"
    assert view.current_index == 1
    assert view.entries[0].status is QuestionStatus.ANSWERED


def test_fresh_start_ignores_snapshot(make_controller):
    first = make_controller()
    first.save_and_next()
    first.shutdown()

    second = make_controller(fresh_start=True)
    assert second.view_state().restored_from == "none"
    assert second.view_state().current_index == 0


def test_save_and_next_switches_question_timer(make_controller, clock):
    controller = make_controller()
    clock.advance(4_000)
    controller.save_and_next()
    clock.advance(1_000)

    assert controller.timer.active_index == 1
    times = controller.timer.question_time_map()
    assert times[0] == 4_000
    assert times[1] == 1_000


def test_end_of_set_prompt(make_controller):
    controller = make_controller()
    controller.navigate(4)
    assert controller.mark_and_next() is False

    view = controller.view_state()
    assert view.end_of_set
    assert view.end_of_set_message is not None

    controller.dispatch(Intent.RETURN_TO_START)
    view = controller.view_state()
    assert view.current_index == 0
    assert not view.end_of_set


def test_stay_here_dismisses_prompt(make_controller):
    controller = make_controller()
    controller.navigate(4)
    controller.save_and_next()
    controller.stay_here()
    view = controller.view_state()
    assert not view.end_of_set
    assert view.current_index == 4


def test_navigate_discards_provisional_answer(make_controller):
    controller = make_controller()
    controller.select_answer("C")
    controller.navigate(3)
    controller.navigate(0)
    assert controller.view_state().entry.user_answer is None


def test_dispatch_routes_intents(make_controller):
    controller = make_controller()
    controller.dispatch(Intent.SELECT_ANSWER, answer="A")
    controller.dispatch(Intent.SAVE_AND_NEXT)
    controller.dispatch("navigate", index=0)
    controller.dispatch(Intent.CLEAR_RESPONSE)

    view = controller.view_state()
    assert view.current_index == 0
    assert view.entry.user_answer is None
    assert view.entry.status is QuestionStatus.ANSWERED


def test_toggle_pause(make_controller):
    controller = make_controller()
    assert controller.toggle_pause() is True
    assert controller.view_state().timer.is_paused
    assert controller.toggle_pause() is False


def test_bookmark_commits_remotely(make_controller, remote):
    controller = make_controller()
    assert controller.toggle_bookmark()
    assert controller.view_state().entry.is_bookmarked
    assert remote.bookmarks == {"q1": True}


def test_bookmark_rolls_back_on_failure(make_controller, remote):
    controller = make_controller()
    remote.failing.add("set_bookmark")

    assert controller.toggle_bookmark() is False
    view = controller.view_state()
    assert not view.entry.is_bookmarked
    assert view.last_error == BOOKMARK_FAILED_MESSAGE


def test_exit_dialog_pauses_and_cancel_resumes(make_controller, clock):
    controller = make_controller()
    clock.advance(2_000)
    controller.begin_exit()
    assert controller.view_state().timer.is_paused
    assert controller.view_state().exit_dialog.suggested_name.startswith("Practice Session - ")

    controller.set_session_name("Draft name")
    clock.advance(10_000)
    controller.cancel_exit()

    view = controller.view_state()
    assert not view.timer.is_paused
    assert not view.exit_dialog.is_open
    assert view.exit_dialog.session_name == ""
    assert controller.timer.total_session_time() == 2_000


def test_cancel_exit_keeps_user_pause(make_controller):
    controller = make_controller()
    controller.pause()
    controller.begin_exit()
    controller.cancel_exit()
    assert controller.view_state().timer.is_paused


def test_resume_is_blocked_while_exit_dialog_open(make_controller):
    controller = make_controller()
    controller.begin_exit()
    controller.resume()
    assert controller.view_state().timer.is_paused


def test_save_and_exit_requires_a_name(make_controller, remote):
    controller = make_controller()
    controller.begin_exit()
    controller.set_session_name("   ")
    assert controller.confirm_save_and_exit() is False
    assert controller.view_state().exit_dialog.error
    assert remote.saved == {}


def test_save_and_exit_persists_paused_time(make_controller, remote, storage, clock):
    controller = make_controller()
    controller.select_answer("A")
    controller.save_and_next()
    clock.advance(7_000)
    controller.begin_exit()
    clock.advance(60_000)
    controller.set_session_name("Lunch break")

    assert controller.confirm_save_and_exit()
    view = controller.view_state()
    assert view.has_exited
    assert not view.exit_dialog.is_open
    assert storage.keys() == []

    record = next(iter(remote.saved.values()))
    assert record.session_name == "Lunch break"
    assert record.session_state.timer_state.main_timer_elapsed_ms == 7_000
    assert record.session_state.current_index == 1

    with pytest.raises(RuntimeError):
        controller.select_answer("B")


def test_failed_save_keeps_dialog_open_for_retry(make_controller, remote):
    controller = make_controller()
    controller.begin_exit()
    controller.set_session_name("Retry me")
    remote.failing.add("create_saved_session")

    assert controller.confirm_save_and_exit() is False
    view = controller.view_state()
    assert view.exit_dialog.is_open
    assert view.exit_dialog.error == SAVE_FAILED_MESSAGE
    assert view.exit_dialog.can_save
    assert not view.has_exited

    remote.failing.clear()
    assert controller.confirm_save_and_exit()


def test_exit_without_saving(make_controller, storage):
    controller = make_controller()
    controller.begin_exit()
    controller.exit_without_saving()
    assert controller.view_state().has_exited
    assert storage.keys() == []


def test_resume_saved_session(make_controller, remote, storage, scheduler, clock):
    first = make_controller()
    first.select_answer("B")
    first.mark_and_next()
    clock.advance(12_000)
    first.begin_exit()
    first.set_session_name("Later")
    first.confirm_save_and_exit()
    session_id = next(iter(remote.saved))

    resumed = SessionController.resume_saved(session_id, remote, storage, scheduler=scheduler, clock=clock)
    view = resumed.view_state()

    assert view.restored_from == "durable"
    assert view.current_index == 1
    assert view.entries[0].status is QuestionStatus.MARKED_FOR_REVIEW
    assert view.entries[0].user_answer == "B"
    assert resumed.timer.total_session_time() == 12_000
    assert remote.saved == {}


def test_manual_submit_flow(make_controller, remote, storage):
    controller = make_controller()
    controller.select_answer("A")
    controller.save_and_next()

    assert controller.request_submit()
    assert controller.view_state().submission_state is SubmissionState.CONFIRMING
    assert controller.confirm_submit()

    view = controller.view_state()
    assert view.submission_state is SubmissionState.COMPLETED
    assert view.result_id == "result-1"
    assert not view.can_submit
    assert storage.keys() == []
    assert remote.submissions[0].score == 20
    assert remote.submissions[0].correct_answers == 1


def test_cancel_submit_returns_to_session(make_controller):
    controller = make_controller()
    controller.request_submit()
    controller.cancel_submit()
    assert controller.view_state().submission_state is SubmissionState.IDLE


def test_failed_submit_resumes_and_allows_retry(make_controller, remote):
    controller = make_controller()
    remote.failing.add("submit")
    controller.request_submit()

    assert controller.confirm_submit() is False
    view = controller.view_state()
    assert view.submission_state is SubmissionState.FAILED
    assert view.last_error == SUBMIT_FAILED_MESSAGE
    assert view.can_submit
    assert not view.timer.is_paused

    remote.failing.clear()
    controller.request_submit()
    assert controller.confirm_submit()


def test_time_up_auto_submits_once(make_controller, remote, scheduler, clock):
    controller = make_controller(config=_timed(1))
    controller.select_answer("A")
    controller.save_and_next()

    clock.advance(60_000)
    scheduler.fire()
    controller.timer.tick()

    view = controller.view_state()
    assert view.submission_state is SubmissionState.COMPLETED
    assert view.timer.has_timed_out
    assert len(remote.submissions) == 1
    assert remote.submissions[0].total_time == 60

    assert controller.request_submit() is False
    assert len(remote.submissions) == 1


def test_failed_auto_submit_dismisses_overlay(make_controller, remote, clock):
    controller = make_controller(config=_timed(1))
    remote.failing.add("submit")
    clock.advance(60_000)
    controller.timer.tick()

    view = controller.view_state()
    assert view.submission_state is SubmissionState.FAILED
    assert not view.is_auto_submitting
    assert view.auto_submit_message is None
    assert view.last_error == SUBMIT_FAILED_MESSAGE
    assert view.can_submit


def test_auto_submit_message_while_submitting(make_controller, remote, clock):
    controller = make_controller(config=_timed(1))
    seen = []

    original_submit = remote.submit

    def capturing_submit(request):
        seen.append((controller.view_state().auto_submit_message, controller.submission.is_submitting))
        return original_submit(request)

    remote.submit = capturing_submit
    clock.advance(60_000)
    controller.timer.tick()
    assert seen == [(TIME_UP_MESSAGE, True)]


def test_listeners_are_notified(make_controller):
    controller = make_controller()
    calls = []
    unsubscribe = controller.subscribe(lambda: calls.append(1))
    controller.select_answer("A")
    controller.save_and_next()
    unsubscribe()
    controller.navigate(0)
    assert calls


def test_default_session_name_format():
    from datetime import datetime

    name = default_session_name(datetime(2024, 3, 5, 14, 7))
    assert name == "Practice Session - Mar 05, 02:07 PM"


def test_failed_save_notifies_listeners_with_error(make_controller, remote):
    controller = make_controller()
    controller.begin_exit()
    controller.set_session_name("Retry me")
    remote.failing.add("create_saved_session")

    dialogs = []
    controller.subscribe(lambda: dialogs.append(controller.view_state().exit_dialog))
    controller.confirm_save_and_exit()

    last = dialogs[-1]
    assert last.is_open
    assert not last.is_saving
    assert last.error == SAVE_FAILED_MESSAGE
    assert last.can_save


def test_confirm_without_pending_submission_keeps_timer_running(make_controller, remote):
    controller = make_controller()
    assert controller.confirm_submit() is False

    view = controller.view_state()
    assert not view.timer.is_paused
    assert view.submission_state is SubmissionState.IDLE
    assert remote.submissions == []


def test_duplicate_confirm_after_completion_is_ignored(make_controller, remote):
    controller = make_controller()
    controller.request_submit()
    assert controller.confirm_submit()
    assert controller.confirm_submit() is False
    assert len(remote.submissions) == 1


def test_auto_submit_message_clears_once_accepted(make_controller, clock):
    controller = make_controller(config=_timed(1))
    clock.advance(60_000)
    controller.timer.tick()

    view = controller.view_state()
    assert view.submission_state is SubmissionState.COMPLETED
    assert not view.is_auto_submitting
    assert view.auto_submit_message is None
