"""
Infrastructure layer for version-set test orchestration.

Contains adapters for external concerns (persistence, execution, publishing).
"""

from testgate.infrastructure.execution import (
    FilesystemExecutionEngine,
    InMemoryExecutionEngine,
)
from testgate.infrastructure.persistence import (
    FilesystemScenarioCatalog,
    FilesystemVersionSetStore,
    InMemoryScenarioCatalog,
    InMemoryVersionSetStore,
)
from testgate.infrastructure.publishing import (
    InMemoryStatusPublisher,
    LoggingStatusPublisher,
    Notification,
)

__all__ = [
    # Persistence
    "InMemoryVersionSetStore",
    "InMemoryScenarioCatalog",
    "FilesystemVersionSetStore",
    "FilesystemScenarioCatalog",
    # Execution
    "InMemoryExecutionEngine",
    "FilesystemExecutionEngine",
    # Publishing
    "LoggingStatusPublisher",
    "InMemoryStatusPublisher",
    "Notification",
]
