"""
Status publishers.

Git-provider check/comment publishers live outside testgate; these adapters
cover logging-only deployments and tests.
"""

import logging
import threading
from dataclasses import dataclass

from testgate.domain.interfaces import StatusPublisherInterface
from testgate.domain.models import TestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """One published scenario outcome."""

    version_set: str
    scenario: str
    status: TestStatus
    detail: str


class LoggingStatusPublisher(StatusPublisherInterface):
    """Writes every outcome to the log."""

    def notify(
        self, version_set: str, scenario: str, status: TestStatus, detail: str
    ) -> None:
        level = logging.INFO if status is TestStatus.PASSED else logging.WARNING
        logger.log(level, "%s/%s: %s - %s", version_set, scenario, status.value, detail)


class InMemoryStatusPublisher(StatusPublisherInterface):
    """Records notifications for inspection."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._notifications: list[Notification] = []

    def notify(
        self, version_set: str, scenario: str, status: TestStatus, detail: str
    ) -> None:
        with self._lock:
            self._notifications.append(
                Notification(version_set, scenario, status, detail)
            )

    def notifications(self, version_set: str | None = None) -> list[Notification]:
        with self._lock:
            return [
                n
                for n in self._notifications
                if version_set is None or n.version_set == version_set
            ]
