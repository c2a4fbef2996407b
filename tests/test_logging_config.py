import logging

from practice_app.utils.logging_config import configure_logging


def test_configure_logging_returns_package_logger():
    logger = configure_logging(logging.DEBUG)
    assert logger.name == "practice_app"
    assert logging.getLogger("practice_app.core").parent is logger
