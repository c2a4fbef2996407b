"""Static metadata describing the practice application."""

APP_NAME = "Practice Session Engine"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Exam-practice session engine: question status tracking, session and per-question "
    "timers, save-and-resume, and submission scoring, with a FastAPI receiving service."
)
