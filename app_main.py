"""Application entry point: serve a question bank through the receiving system."""

from __future__ import annotations

import os
from pathlib import Path
import sys

from practice_app.constants.about import APP_NAME, APP_VERSION
from practice_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from practice_app.core.errors import QuestionImportError
from practice_app.core.question_importer import load_questions_from_file
from practice_app.server.api_server import start_api_server
from practice_app.utils.logging_config import configure_logging

_DEFAULT_QUESTIONS_FILE = Path(__file__).resolve().parent / "sample_questions.txt"


def _resolve_questions_file(argv: list[str]) -> Path:
    if len(argv) > 1:
        return Path(argv[1])
    return Path(os.getenv("PRACTICE_QUESTIONS_FILE", str(_DEFAULT_QUESTIONS_FILE)))


def main() -> None:
    """Initialize logging, load the question bank and run the API server until interrupted."""
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    questions_file = _resolve_questions_file(sys.argv)
    try:
        bank = load_questions_from_file(questions_file)
    except (OSError, QuestionImportError) as exc:
        logger.error("Could not load questions from %s: %s", questions_file, exc)
        sys.exit(1)
    logger.info("Loaded %d questions from %s", len(bank.questions), bank.source_path)

    server_thread = start_api_server(bank.questions, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("Receiving system available at http://%s:%d/", DEFAULT_HOST, DEFAULT_PORT)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
