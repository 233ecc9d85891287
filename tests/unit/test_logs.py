from __future__ import annotations

import logging

from pharmacy_import.logs import SUMMARY_LEVEL, LabeledFormatter, setup_logging


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("pharmacy_import.test", level, __file__, 1, msg, None, None)


def test_labels() -> None:
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.WARNING, "careful")) == "WARN careful"
    assert fmt.format(_record(SUMMARY_LEVEL, "done")) == "SUMMARY done"


def test_setup_logging_is_idempotent() -> None:
    logger = setup_logging()
    setup_logging(verbose=True)
    try:
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
    finally:
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
