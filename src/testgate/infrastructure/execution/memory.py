"""
In-memory execution engine.

Stands in for the pipeline engine in tests and local drills: runs never
execute on their own; callers drive them with finish() and request_deletion().
"""

import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from testgate.domain.exceptions import LaunchError, RunNotFound
from testgate.domain.interfaces import ExecutionEngineInterface
from testgate.domain.models import LABEL_SCENARIO, RunHandle, RunRequest, RunState


class InMemoryExecutionEngine(ExecutionEngineInterface):
    """Thread-safe registry of submitted runs."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._lock = threading.Lock()
        self._now = clock or (lambda: datetime.now(UTC))
        self._runs: dict[str, RunState] = {}
        self._requests: dict[str, RunRequest] = {}
        self._annotations: dict[str, dict[str, str]] = {}
        self._rejection: str | None = None
        self.submissions = 0  # accepted submit() calls that created a run

    # -- ExecutionEngineInterface ---------------------------------------------

    def submit(self, request: RunRequest) -> RunHandle:
        with self._lock:
            if self._rejection is not None:
                raise LaunchError(self._scenario_of(request), self._rejection)
            if request.name in self._runs:
                return RunHandle(request.name)
            now = self._now()
            self._runs[request.name] = RunState(
                name=request.name,
                labels=request.labels,
                start_time=now,
                updated_at=now,
                protective_hold=request.protective_hold,
            )
            self._requests[request.name] = request
            self.submissions += 1
            return RunHandle(request.name)

    def get(self, handle: RunHandle) -> RunState:
        with self._lock:
            if handle.name not in self._runs:
                raise RunNotFound(handle.name)
            return self._runs[handle.name]

    def annotate(self, handle: RunHandle, key: str, value: str) -> None:
        with self._lock:
            if handle.name not in self._runs:
                raise RunNotFound(handle.name)
            self._annotations.setdefault(handle.name, {})[key] = value

    def set_protective_hold(self, handle: RunHandle) -> None:
        self._set_hold(handle, True)

    def clear_protective_hold(self, handle: RunHandle) -> None:
        self._set_hold(handle, False)

    # -- Simulation controls ----------------------------------------------------

    def reject_submissions(self, reason: str | None) -> None:
        """Reject every following submit() with `reason` (None accepts again)."""
        self._rejection = reason

    def finish(
        self,
        name: str,
        succeeded: bool,
        results: dict[str, str] | None = None,
        at: datetime | None = None,
        message: str = "",
    ) -> RunState:
        """Mark a run finished with the given task results."""
        when = at or self._now()
        return self._mutate(
            name,
            finished=True,
            succeeded=succeeded,
            results=tuple((results or {}).items()),
            completion_time=when,
            updated_at=when,
            message=message,
        )

    def request_deletion(self, name: str, at: datetime | None = None) -> RunState:
        """Ask for deletion; the run lingers while a protective hold is set."""
        with self._lock:
            run = self._runs.get(name)
            if run is None:
                raise RunNotFound(name)
            if not run.protective_hold:
                del self._runs[name]
                return replace(run, deletion_requested=True)
        return self._mutate(name, deletion_requested=True, updated_at=at or self._now())

    def request_for(self, name: str) -> RunRequest:
        with self._lock:
            return self._requests[name]

    def annotations_for(self, name: str) -> dict[str, str]:
        with self._lock:
            return dict(self._annotations.get(name, {}))

    def runs(self) -> list[RunState]:
        with self._lock:
            return [self._runs[name] for name in sorted(self._runs)]

    # -- Internals ---------------------------------------------------------------

    def _set_hold(self, handle: RunHandle, value: bool) -> None:
        with self._lock:
            run = self._runs.get(handle.name)
            if run is None:
                return
            if not value and run.deletion_requested:
                # Hold was the only thing keeping a deleted run around
                del self._runs[handle.name]
                return
            self._runs[handle.name] = replace(run, protective_hold=value)

    def _mutate(self, name: str, **changes: object) -> RunState:
        with self._lock:
            run = self._runs.get(name)
            if run is None:
                raise RunNotFound(name)
            updated = replace(run, **changes)  # type: ignore[arg-type]
            self._runs[name] = updated
            return updated

    @staticmethod
    def _scenario_of(request: RunRequest) -> str:
        return dict(request.labels).get(LABEL_SCENARIO, request.name)
