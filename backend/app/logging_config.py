"""Logging for the Kahraba backend.

Route modules log through ``get_logger``; lifecycle events from the core
services go to the kahraba job-events log.
"""

import logging

from kahraba.logging_config import LOG_FORMAT, setup_kahraba_logging

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Configure API and core loggers once per process."""
    global _configured
    if _configured:
        return
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    setup_kahraba_logging(level)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger for an API module."""
    return logging.getLogger(name)


def log_request(logger: logging.Logger, method: str, path: str, actor: str, **fields) -> None:
    """One-line request log: ``POST /jobs | actor=customer:c1 | key=value``."""
    extra = "".join(f" | {k}={v}" for k, v in fields.items() if v is not None)
    logger.info(f"{method} {path} | actor={actor}{extra}")
