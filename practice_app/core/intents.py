"""User intents the presentation layer raises into the session controller."""

from __future__ import annotations

from enum import Enum


class Intent(str, Enum):
    SELECT_ANSWER = "select_answer"
    SAVE_AND_NEXT = "save_and_next"
    MARK_AND_NEXT = "mark_and_next"
    CLEAR_RESPONSE = "clear_response"
    NAVIGATE = "navigate"
    RETURN_TO_START = "return_to_start"
    STAY_HERE = "stay_here"
    PAUSE = "pause"
    RESUME = "resume"
    TOGGLE_PAUSE = "toggle_pause"
    TOGGLE_BOOKMARK = "toggle_bookmark"
    BEGIN_EXIT = "begin_exit"
    SET_SESSION_NAME = "set_session_name"
    SAVE_AND_EXIT = "save_and_exit"
    EXIT_WITHOUT_SAVING = "exit_without_saving"
    CANCEL_EXIT = "cancel_exit"
    REQUEST_SUBMIT = "request_submit"
    CONFIRM_SUBMIT = "confirm_submit"
    CANCEL_SUBMIT = "cancel_submit"
