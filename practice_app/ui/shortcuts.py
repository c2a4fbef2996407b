"""Translate keyboard shortcuts into controller intents."""

from __future__ import annotations

from collections.abc import Mapping
import logging

from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import QWidget

from practice_app.constants.ui_constants import SHORTCUT_BINDINGS
from practice_app.core.intents import Intent
from practice_app.core.session_controller import SessionController

logger = logging.getLogger(__name__)


def bind_shortcuts(
    widget: QWidget,
    controller: SessionController,
    bindings: Mapping[str, Intent] = SHORTCUT_BINDINGS,
) -> list[QShortcut]:
    """Install one ``QShortcut`` per binding on ``widget``; keep the returned list alive."""
    shortcuts: list[QShortcut] = []
    for key, intent in bindings.items():
        shortcut = QShortcut(QKeySequence(key), widget)
        shortcut.activated.connect(_dispatcher(controller, intent))
        shortcuts.append(shortcut)
    return shortcuts


def _dispatcher(controller: SessionController, intent: Intent):
    def dispatch() -> None:
        try:
            controller.dispatch(intent)
        except RuntimeError as exc:
            # Shortcuts pressed after exit or submission are not errors for the user.
            logger.debug("Ignored %s: %s", intent.value, exc)

    return dispatch
