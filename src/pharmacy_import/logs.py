from __future__ import annotations

import logging
import sys

# between INFO (20) and WARNING (30)
SUMMARY_LEVEL = 25

_ROOT_LOGGER = "pharmacy_import"


class LabeledFormatter(logging.Formatter):
    """Prefix every message with a short level label (`INFO`, `WARN`, `ERROR`, `SUMMARY`)."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure the package logger for CLI use.

    Safe to call repeatedly: existing handlers are replaced, never duplicated.
    Output goes to stderr so stdout stays reserved for the summary line.
    """
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(_ROOT_LOGGER)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    logger.propagate = False
    return logger


def log_summary(message: str) -> None:
    """Log `message` at the custom SUMMARY level."""
    logging.getLogger(_ROOT_LOGGER).log(SUMMARY_LEVEL, message)
