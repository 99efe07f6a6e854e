"""Tests for logging configuration."""

import logging

from nutrition_resolver.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("nutrition_resolver")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.level == logging.INFO


def test_configure_logging_debug_level() -> None:
    logger = logging.getLogger("nutrition_resolver")

    configure_logging(debug=True)

    assert logger.level == logging.DEBUG
