"""Tests for status publishers."""

import logging

from testgate.domain.models import TestStatus
from testgate.infrastructure.publishing import (
    InMemoryStatusPublisher,
    LoggingStatusPublisher,
    Notification,
)


def test_in_memory_publisher_records_notifications():
    publisher = InMemoryStatusPublisher()
    publisher.notify("vs-1", "login-test", TestStatus.PASSED, "test passed")
    publisher.notify("vs-2", "login-test", TestStatus.FAILED, "test failed")

    assert publisher.notifications("vs-1") == [
        Notification("vs-1", "login-test", TestStatus.PASSED, "test passed")
    ]
    assert len(publisher.notifications()) == 2


def test_logging_publisher_levels(caplog):
    publisher = LoggingStatusPublisher()

    with caplog.at_level(logging.INFO, logger="testgate"):
        publisher.notify("vs-1", "a", TestStatus.PASSED, "test passed")
        publisher.notify("vs-1", "b", TestStatus.FAILED, "test failed")

    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.INFO, logging.WARNING]
    assert "vs-1/b: Failed - test failed" in caplog.text
