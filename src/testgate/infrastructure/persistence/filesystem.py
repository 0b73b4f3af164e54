"""
Filesystem implementations of the VersionSet store and scenario catalog.

Directory structure:
{base_dir}/
    version_sets/
        {name}.json
        .lock            # serializes conditional writes across processes
    scenarios/
        {name}.json      # one ScenarioDocument per file
"""

import fcntl
import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from testgate.domain.exceptions import (
    ConflictError,
    CorruptStateError,
    SelectionError,
    VersionSetNotFound,
)
from testgate.domain.interfaces import (
    ScenarioCatalogInterface,
    VersionSetStoreInterface,
)
from testgate.domain.models import ExecutionSource, ScenarioDefinition, VersionSet
from testgate.infrastructure.documents import (
    ScenarioDocument,
    VersionSetDocument,
    dump,
)

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON using write-to-temp + rename."""
    temp_path = path.with_suffix(".tmp")
    with open(temp_path, "w") as f:
        json.dump(data, f, indent=2)
    temp_path.rename(path)  # Atomic on POSIX


@contextmanager
def locked(lock_path: Path) -> Iterator[None]:
    """Exclusive advisory lock held for the duration of the block."""
    with open(lock_path, "a") as lock_file:
        fcntl.flock(lock_file, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)


class FilesystemVersionSetStore(VersionSetStoreInterface):
    """
    VersionSet records as JSON documents.

    resource_version is an integer bumped by every write; update() compares
    it under a file lock, which makes the write conditional across processes.
    """

    def __init__(self, base_dir: str | Path):
        self._dir = Path(base_dir) / "version_sets"
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock_path = self._dir / ".lock"

    def _path(self, name: str) -> Path:
        return self._dir / f"{name}.json"

    def _read(self, name: str) -> VersionSetDocument:
        path = self._path(name)
        if not path.exists():
            raise VersionSetNotFound(name)
        try:
            with open(path) as f:
                return VersionSetDocument.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            raise CorruptStateError(
                f"unreadable record: {e}", version_set=name
            ) from e

    def add(self, version_set: VersionSet) -> VersionSet:
        """Create a record (the build-completion side of the system)."""
        with locked(self._lock_path):
            if self._path(version_set.name).exists():
                raise ValueError(f"VersionSet already exists: {version_set.name}")
            document = VersionSetDocument.from_domain(version_set, resource_version=1)
            write_json_atomic(self._path(version_set.name), dump(document))
            return document.to_domain()

    def get(self, name: str) -> VersionSet:
        return self._read(name).to_domain()

    def get_latest(self, name: str) -> VersionSet:
        return self.get(name)

    def update(self, version_set: VersionSet) -> VersionSet:
        with locked(self._lock_path):
            current = self._read(version_set.name)
            if str(current.resource_version) != version_set.resource_version:
                raise ConflictError(version_set.name)
            document = VersionSetDocument.from_domain(
                version_set, resource_version=current.resource_version + 1
            )
            write_json_atomic(self._path(version_set.name), dump(document))
            return document.to_domain()

    def list_by_application(self, application: str) -> list[VersionSet]:
        result = []
        for path in sorted(self._dir.glob("*.json")):
            version_set = self.get(path.stem)
            if version_set.application == application:
                result.append(version_set)
        return result


class FilesystemScenarioCatalog(ScenarioCatalogInterface):
    """
    Scenario documents in a directory.

    A document that fails validation is reported as an invalid scenario
    rather than failing the whole catalog.
    """

    def __init__(self, base_dir: str | Path):
        self._dir = Path(base_dir) / "scenarios"
        self._dir.mkdir(parents=True, exist_ok=True)

    def _load(self, path: Path) -> ScenarioDefinition | None:
        with open(path) as f:
            raw = f.read()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Skipping unreadable scenario file %s: %s", path, e)
            return None
        try:
            return ScenarioDocument.model_validate(data).to_domain()
        except ValidationError as e:
            application = data.get("application") if isinstance(data, dict) else None
            if not isinstance(application, str):
                logger.warning("Skipping scenario file %s: %s", path, e)
                return None
            return ScenarioDefinition(
                name=str(data.get("name") or path.stem),
                application=application,
                source=ExecutionSource(resolver="unknown"),
                valid=False,
                invalid_reason=(
                    f"invalid scenario document: {e.error_count()} error(s)"
                ),
            )

    def list_by_application(self, application: str) -> list[ScenarioDefinition]:
        try:
            paths = sorted(self._dir.glob("*.json"))
            loaded = [self._load(path) for path in paths]
        except OSError as e:
            raise SelectionError(application, str(e)) from e
        return [s for s in loaded if s is not None and s.application == application]
