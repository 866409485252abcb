"""Transition notifications.

The services call ``notify(job_id, status)`` after a transition commits. Push
delivery lives outside this package; the defaults here do nothing or log.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Receives committed status changes."""

    def notify(self, job_id: str, status: str) -> None: ...


class NullNotifier:
    """Drops every notification."""

    def notify(self, job_id: str, status: str) -> None:
        return None


class LoggingNotifier:
    """Logs each notification at INFO."""

    def notify(self, job_id: str, status: str) -> None:
        logger.info(f"notify | job={job_id} | status={status}")
