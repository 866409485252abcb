"""Logging setup for kahraba.

Two sinks:
- ``local-YYYY-MM-DD.log``: the regular ``kahraba`` logger output
- ``job-events-YYYY-MM-DD.log``: one line per lifecycle event (transition,
  settlement, offer), grep-friendly
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
EVENT_FORMAT = "%(asctime)s | %(message)s"

_EVENT_LOGGER_NAME = "kahraba.events"


def get_log_dir() -> Path:
    """Resolve the log directory from KAHRABA_DATA_DIR (default ~/.kahraba)."""
    base = os.environ.get("KAHRABA_DATA_DIR")
    root = Path(base) if base else Path.home() / ".kahraba"
    return root / "logs"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_kahraba_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``kahraba`` logger with a dated file handler.

    DEBUG additionally echoes to the console. Safe to call more than once.
    """
    logger = logging.getLogger("kahraba")
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(log_dir / f"local-{_today()}.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if resolved <= logging.DEBUG and not has_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console)

    return logger


def _event_logger() -> logging.Logger:
    logger = logging.getLogger(_EVENT_LOGGER_NAME)
    path = get_log_dir() / f"job-events-{_today()}.log"
    current = [
        h
        for h in logger.handlers
        if isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(path)
    ]
    if not current:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(EVENT_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def log_job_event(event_type: str, details: str, job_id: Optional[str] = None) -> None:
    """Append one line to the job-events log."""
    _event_logger().info(f"{event_type} | job={job_id or '-'} | {details}")


def log_transition(
    job_id: str, from_status: str, to_status: str, actor_role: str, actor_id: Optional[str]
) -> None:
    log_job_event(
        "transition",
        f"{from_status} -> {to_status} | actor={actor_role}:{actor_id or '-'}",
        job_id=job_id,
    )


def log_settlement(job_id: str, electrician_id: str, earning, commission) -> None:
    log_job_event(
        "settlement",
        f"electrician={electrician_id} | earning={earning} | commission={commission}",
        job_id=job_id,
    )


def log_offer(job_id: str, electrician_id: str, outcome: str) -> None:
    log_job_event("offer", f"electrician={electrician_id} | outcome={outcome}", job_id=job_id)
