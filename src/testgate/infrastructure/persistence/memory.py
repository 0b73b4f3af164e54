"""
In-memory VersionSet store and scenario catalog.

Useful for testing and embedding. The store is thread-safe and enforces the
same conditional-write contract as a real API server.
"""

import threading
from dataclasses import replace

from testgate.domain.exceptions import (
    ConflictError,
    SelectionError,
    VersionSetNotFound,
)
from testgate.domain.interfaces import (
    ScenarioCatalogInterface,
    VersionSetStoreInterface,
)
from testgate.domain.models import ScenarioDefinition, VersionSet


class InMemoryVersionSetStore(VersionSetStoreInterface):
    """Dict-backed store with integer resource versions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, VersionSet] = {}
        self._counter = 0
        self.update_count = 0

    def add(self, version_set: VersionSet) -> VersionSet:
        """Create a record (the build-completion side of the system)."""
        with self._lock:
            if version_set.name in self._records:
                raise ValueError(f"VersionSet already exists: {version_set.name}")
            self._counter += 1
            stored = replace(version_set, resource_version=str(self._counter))
            self._records[version_set.name] = stored
            return stored

    def delete(self, name: str) -> None:
        with self._lock:
            self._records.pop(name, None)

    def get(self, name: str) -> VersionSet:
        with self._lock:
            if name not in self._records:
                raise VersionSetNotFound(name)
            return self._records[name]

    def get_latest(self, name: str) -> VersionSet:
        return self.get(name)

    def update(self, version_set: VersionSet) -> VersionSet:
        with self._lock:
            current = self._records.get(version_set.name)
            if current is None:
                raise VersionSetNotFound(version_set.name)
            if current.resource_version != version_set.resource_version:
                raise ConflictError(version_set.name)
            self._counter += 1
            stored = replace(version_set, resource_version=str(self._counter))
            self._records[version_set.name] = stored
            self.update_count += 1
            return stored

    def list_by_application(self, application: str) -> list[VersionSet]:
        with self._lock:
            return sorted(
                (vs for vs in self._records.values() if vs.application == application),
                key=lambda vs: vs.name,
            )


class InMemoryScenarioCatalog(ScenarioCatalogInterface):
    """Simple in-memory catalog for testing."""

    def __init__(self, scenarios: list[ScenarioDefinition] | None = None) -> None:
        self._scenarios: dict[str, ScenarioDefinition] = {}
        self._unavailable: str | None = None
        for scenario in scenarios or []:
            self.add(scenario)

    def add(self, scenario: ScenarioDefinition) -> None:
        """Add or replace a scenario."""
        self._scenarios[scenario.name] = scenario

    def remove(self, name: str) -> None:
        self._scenarios.pop(name, None)

    def set_unavailable(self, reason: str | None) -> None:
        """Make every lookup fail with `reason` (None restores service)."""
        self._unavailable = reason

    def list_by_application(self, application: str) -> list[ScenarioDefinition]:
        if self._unavailable is not None:
            raise SelectionError(application, self._unavailable)
        return [s for s in self._scenarios.values() if s.application == application]
