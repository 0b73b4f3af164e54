"""
Filesystem execution engine.

Records submitted runs as JSON documents under {base_dir}/runs/. Nothing is
executed: an external runner (or `testgate complete-run`) records outcomes
with finish() and request_deletion().
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from testgate.domain.exceptions import LaunchError, RunNotFound
from testgate.domain.interfaces import ExecutionEngineInterface
from testgate.domain.models import LABEL_SCENARIO, RunHandle, RunRequest, RunState
from testgate.infrastructure.documents import RunDocument, dump
from testgate.infrastructure.persistence.filesystem import locked, write_json_atomic


class FilesystemExecutionEngine(ExecutionEngineInterface):
    """Run documents on disk; submission is idempotent per run name."""

    def __init__(
        self,
        base_dir: str | Path,
        clock: Callable[[], datetime] | None = None,
    ):
        self._dir = Path(base_dir) / "runs"
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock_path = self._dir / ".lock"
        self._now = clock or (lambda: datetime.now(UTC))

    def _path(self, name: str) -> Path:
        return self._dir / f"{name}.json"

    def _read(self, name: str) -> RunDocument:
        path = self._path(name)
        if not path.exists():
            raise RunNotFound(name)
        with open(path) as f:
            return RunDocument.model_validate(json.load(f))

    def _update(self, name: str, **changes: Any) -> RunDocument:
        with locked(self._lock_path):
            document = self._read(name).model_copy(update=changes)
            write_json_atomic(self._path(name), dump(document))
            return document

    # -- ExecutionEngineInterface ---------------------------------------------

    def submit(self, request: RunRequest) -> RunHandle:
        scenario = dict(request.labels).get(LABEL_SCENARIO, request.name)
        try:
            document = RunDocument.from_request(request, self._now())
        except ValidationError as e:
            raise LaunchError(scenario, f"invalid run request: {e}") from e

        try:
            with locked(self._lock_path):
                if not self._path(request.name).exists():
                    write_json_atomic(self._path(request.name), dump(document))
        except OSError as e:
            raise LaunchError(scenario, str(e)) from e
        return RunHandle(request.name)

    def get(self, handle: RunHandle) -> RunState:
        return self._read(handle.name).to_domain()

    def annotate(self, handle: RunHandle, key: str, value: str) -> None:
        with locked(self._lock_path):
            document = self._read(handle.name)
            annotations = {**document.annotations, key: value}
            write_json_atomic(
                self._path(handle.name),
                dump(document.model_copy(update={"annotations": annotations})),
            )

    def set_protective_hold(self, handle: RunHandle) -> None:
        self._update(handle.name, protective_hold=True)

    def clear_protective_hold(self, handle: RunHandle) -> None:
        with locked(self._lock_path):
            path = self._path(handle.name)
            if not path.exists():
                return
            document = self._read(handle.name)
            if document.deletion_requested:
                path.unlink()
                return
            write_json_atomic(
                path, dump(document.model_copy(update={"protective_hold": False}))
            )

    # -- Outcome recording ------------------------------------------------------

    def finish(
        self,
        name: str,
        succeeded: bool,
        results: dict[str, str] | None = None,
        message: str = "",
    ) -> RunState:
        """Record a run as finished with its task results."""
        now = self._now()
        document = self._update(
            name,
            finished=True,
            succeeded=succeeded,
            results=dict(results or {}),
            completion_time=now,
            updated_at=now,
            message=message,
        )
        return document.to_domain()

    def request_deletion(self, name: str) -> RunState:
        """Delete a run, or flag it for deletion while a hold is set."""
        with locked(self._lock_path):
            document = self._read(name)
            if not document.protective_hold:
                self._path(name).unlink()
                return document.model_copy(
                    update={"deletion_requested": True}
                ).to_domain()
            document = document.model_copy(
                update={"deletion_requested": True, "updated_at": self._now()}
            )
            write_json_atomic(self._path(name), dump(document))
            return document.to_domain()

    def list_runs(self) -> list[RunState]:
        paths = sorted(self._dir.glob("*.json"))
        return [self._read(path.stem).to_domain() for path in paths]
