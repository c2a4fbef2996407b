"""Qt adapters that drive the session controller from a PySide6 event loop."""

from .qt_scheduler import QtScheduler
from .shortcuts import bind_shortcuts

__all__ = [
    "QtScheduler",
    "bind_shortcuts",
]
