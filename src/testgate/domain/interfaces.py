"""
Domain interfaces (Ports) for version-set test orchestration.

These abstract base classes define the contracts that external collaborators
must satisfy. They have no external dependencies.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from testgate.domain.models import (
        RunHandle,
        RunRequest,
        RunState,
        ScenarioDefinition,
        TestStatus,
        VersionSet,
    )


class VersionSetStoreInterface(ABC):
    """
    Port for the long-lived VersionSet record.

    Writes are conditional: `update` succeeds only if the record still carries
    the `resource_version` it was read with.
    """

    @abstractmethod
    def get(self, name: str) -> "VersionSet":
        """
        Retrieve a VersionSet, possibly from a cache.

        Raises:
            VersionSetNotFound: If no such VersionSet exists
        """
        pass

    @abstractmethod
    def get_latest(self, name: str) -> "VersionSet":
        """
        Retrieve the authoritative current copy, bypassing any cache.

        Raises:
            VersionSetNotFound: If no such VersionSet exists
        """
        pass

    @abstractmethod
    def update(self, version_set: "VersionSet") -> "VersionSet":
        """
        Conditionally replace the stored record.

        Args:
            version_set: New state, carrying the resource_version it was derived from

        Returns:
            The stored record with its new resource_version

        Raises:
            ConflictError: If the stored resource_version has moved on
            VersionSetNotFound: If the record no longer exists
        """
        pass

    @abstractmethod
    def list_by_application(self, application: str) -> list["VersionSet"]:
        """List every VersionSet owned by an application."""
        pass


class ScenarioCatalogInterface(ABC):
    """Port for the catalog of ScenarioDefinitions."""

    @abstractmethod
    def list_by_application(self, application: str) -> list["ScenarioDefinition"]:
        """
        List every scenario declared for an application, valid or not.

        Raises:
            SelectionError: If the catalog cannot be read
        """
        pass


class ExecutionEngineInterface(ABC):
    """
    Port for the engine that actually runs test pipelines.

    Note (Idempotent submission):
        Submitting a request whose name already exists returns the handle of
        the existing run instead of creating a second one.
    """

    @abstractmethod
    def submit(self, request: "RunRequest") -> "RunHandle":
        """
        Submit a run.

        Raises:
            LaunchError: If the engine rejects the request
        """
        pass

    @abstractmethod
    def get(self, handle: "RunHandle") -> "RunState":
        """
        Fetch the current state of a run.

        Raises:
            RunNotFound: If the run no longer exists
        """
        pass

    @abstractmethod
    def annotate(self, handle: "RunHandle", key: str, value: str) -> None:
        """Attach a key/value annotation to a run."""
        pass

    @abstractmethod
    def set_protective_hold(self, handle: "RunHandle") -> None:
        """Prevent the run from being deleted until the hold is cleared."""
        pass

    @abstractmethod
    def clear_protective_hold(self, handle: "RunHandle") -> None:
        """Release the hold; a no-op if none is set or the run is gone."""
        pass


class StatusPublisherInterface(ABC):
    """Port for reporting terminal scenario outcomes (e.g. Git provider checks)."""

    @abstractmethod
    def notify(
        self,
        version_set: str,
        scenario: str,
        status: "TestStatus",
        detail: str,
    ) -> None:
        """Publish one scenario outcome; delivery retries are the publisher's job."""
        pass
