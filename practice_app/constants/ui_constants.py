"""Qt adapter constants: keyboard shortcuts and the intents they raise."""

from practice_app.core.intents import Intent

SHORTCUT_BINDINGS: dict[str, Intent] = {
    "Alt+S": Intent.SAVE_AND_NEXT,
    "Alt+M": Intent.MARK_AND_NEXT,
    "Alt+C": Intent.CLEAR_RESPONSE,
    "Alt+B": Intent.TOGGLE_BOOKMARK,
}
