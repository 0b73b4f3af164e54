"""
Persistence adapters for VersionSets and the scenario catalog.
"""

from testgate.infrastructure.persistence.filesystem import (
    FilesystemScenarioCatalog,
    FilesystemVersionSetStore,
)
from testgate.infrastructure.persistence.memory import (
    InMemoryScenarioCatalog,
    InMemoryVersionSetStore,
)

__all__ = [
    "InMemoryVersionSetStore",
    "InMemoryScenarioCatalog",
    "FilesystemVersionSetStore",
    "FilesystemScenarioCatalog",
]
