"""
Domain models for version-set integration testing.

Pure data structures. Records read from or written to external systems are
immutable (frozen dataclasses with tuple collections); the Status Map is the
one mutable working copy and is always re-decoded before mutation.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum

# =============================================================================
# RESERVED KEYS
# =============================================================================

STATUS_MAP_ANNOTATION = "test.testgate.io/status"

LABEL_VERSION_SET = "testgate.io/version-set"
LABEL_SCENARIO = "testgate.io/scenario"
LABEL_GENERATION = "testgate.io/generation"
LABEL_APPLICATION = "testgate.io/application"

# Stamped on a TestRun once its terminal verdict is recorded
RUN_RECORDED_STATUS_ANNOTATION = "testgate.io/recorded-status"

RERUN_ALL = "all"


# =============================================================================
# VERSION SET
# =============================================================================


@dataclass(frozen=True)
class Component:
    """One component pinned to an exact artifact reference."""

    name: str
    artifact_ref: str  # e.g. registry/image@sha256:...


@dataclass(frozen=True)
class VersionSet:
    """
    Immutable record of one exact artifact reference per component.

    Only `annotations`, `rerun_request` and `testing_finished_at` are ever
    changed by the orchestrator, always through a conditional write that
    carries `resource_version`.
    """

    name: str
    application: str
    components: tuple[Component, ...]
    trigger_context: str  # push, pull_request, group, override, ...
    trigger_component: str | None = None
    annotations: tuple[tuple[str, str], ...] = ()
    rerun_request: str | None = None
    testing_finished_at: datetime | None = None
    resource_version: str = ""

    def annotation(self, key: str) -> str | None:
        for k, v in self.annotations:
            if k == key:
                return v
        return None

    def with_annotation(self, key: str, value: str) -> "VersionSet":
        kept = tuple((k, v) for k, v in self.annotations if k != key)
        return replace(self, annotations=kept + ((key, value),))


# =============================================================================
# SCENARIO DEFINITION
# =============================================================================


@dataclass(frozen=True)
class ExecutionSource:
    """Where the test logic lives (resolver + locator parameters)."""

    resolver: str  # e.g. "git", "bundles"
    params: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ScenarioParam:
    """Extra parameter declared on a scenario; value is single or multi."""

    name: str
    value: str | tuple[str, ...]


@dataclass(frozen=True)
class ScenarioDefinition:
    """Reusable definition of what test logic to run, with what parameters."""

    name: str
    application: str
    source: ExecutionSource
    params: tuple[ScenarioParam, ...] = ()
    contexts: tuple[str, ...] = ()
    valid: bool = True
    invalid_reason: str = ""


# =============================================================================
# TEST RUN
# =============================================================================


@dataclass(frozen=True)
class RunHandle:
    """Reference to an execution submitted to the execution engine."""

    name: str


@dataclass(frozen=True)
class RunRequest:
    """Fully built execution request handed to the execution engine."""

    name: str
    source: ExecutionSource
    params: tuple[ScenarioParam, ...]
    labels: tuple[tuple[str, str], ...]
    protective_hold: bool = True


@dataclass(frozen=True)
class RunState:
    """Snapshot of a TestRun as reported by the execution engine."""

    name: str
    labels: tuple[tuple[str, str], ...]
    finished: bool = False
    succeeded: bool | None = None
    deletion_requested: bool = False
    results: tuple[tuple[str, str], ...] = ()
    start_time: datetime | None = None
    completion_time: datetime | None = None
    updated_at: datetime | None = None
    message: str = ""
    protective_hold: bool = False

    def label(self, key: str) -> str | None:
        for k, v in self.labels:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class RunLabels:
    """Typed view of the ownership labels on a TestRun."""

    version_set: str
    scenario: str
    generation: int

    @classmethod
    def from_labels(cls, labels: tuple[tuple[str, str], ...]) -> "RunLabels | None":
        """Extract ownership labels; None if the run is not ours."""
        found = dict(labels)
        version_set = found.get(LABEL_VERSION_SET)
        scenario = found.get(LABEL_SCENARIO)
        if not version_set or not scenario:
            return None
        try:
            generation = int(found.get(LABEL_GENERATION, "0"))
        except ValueError:
            return None
        return cls(version_set=version_set, scenario=scenario, generation=generation)


# =============================================================================
# STATUS MAP
# =============================================================================


class TestStatus(Enum):
    """Per-scenario test status."""

    __test__ = False  # not a pytest class

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    PASSED = "Passed"
    FAILED = "Failed"
    INVALID = "Invalid"
    DELETED = "Deleted"

    @property
    def is_terminal(self) -> bool:
        return self not in (TestStatus.PENDING, TestStatus.IN_PROGRESS)


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating one TestRun."""

    status: TestStatus
    detail: str = ""


@dataclass(frozen=True)
class StatusMapEntry:
    """Status of one scenario within a VersionSet's Status Map."""

    scenario: str
    status: TestStatus
    last_update_time: datetime
    detail: str = ""
    test_run_name: str = ""
    start_time: datetime | None = None
    completion_time: datetime | None = None
    generation: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_claimed(self) -> bool:
        """Pending with a run name: a launch is underway, no report seen yet."""
        return self.status is TestStatus.PENDING and bool(self.test_run_name)


@dataclass
class StatusMap:
    """
    Mutable working copy of the per-scenario status collection.

    Always obtained by decoding the latest VersionSet record and written back
    with a conditional update; see testgate.domain.status_map.
    """

    entries: dict[str, StatusMapEntry] = field(default_factory=dict)

    def get(self, scenario: str) -> StatusMapEntry | None:
        return self.entries.get(scenario)

    def names(self) -> list[str]:
        return sorted(self.entries)

    def __contains__(self, scenario: object) -> bool:
        return scenario in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def init_entries(self, names: Iterable[str], now: datetime) -> list[str]:
        """Add a Pending entry for every name not already present.

        Returns:
            The names that were added (empty on a repeated call)
        """
        added = []
        for name in names:
            if name in self.entries:
                continue
            self.entries[name] = StatusMapEntry(
                scenario=name,
                status=TestStatus.PENDING,
                last_update_time=now,
                detail="Pending",
            )
            added.append(name)
        return added

    def update_if_newer(
        self,
        scenario: str,
        status: TestStatus,
        detail: str,
        time: datetime,
        *,
        test_run_name: str | None = None,
        start_time: datetime | None = None,
        completion_time: datetime | None = None,
        generation: int | None = None,
    ) -> bool:
        """
        Apply an update unless it is stale.

        The update is rejected when `time` is not strictly newer than the stored
        `last_update_time`, when it belongs to another `generation`, or when it
        names a run other than the one recorded for the entry.

        Returns:
            True if the entry was created or replaced
        """
        entry = self.entries.get(scenario)
        if entry is None:
            self.entries[scenario] = StatusMapEntry(
                scenario=scenario,
                status=status,
                last_update_time=time,
                detail=detail,
                test_run_name=test_run_name or "",
                start_time=start_time,
                completion_time=completion_time,
                generation=generation or 0,
            )
            return True

        if generation is not None and generation != entry.generation:
            return False
        if (
            test_run_name is not None
            and entry.test_run_name
            and test_run_name != entry.test_run_name
        ):
            return False
        if time <= entry.last_update_time:
            return False

        self.entries[scenario] = replace(
            entry,
            status=status,
            detail=detail,
            last_update_time=time,
            test_run_name=(
                entry.test_run_name if test_run_name is None else test_run_name
            ),
            start_time=entry.start_time if start_time is None else start_time,
            completion_time=(
                entry.completion_time if completion_time is None else completion_time
            ),
        )
        return True

    def claim(self, scenario: str, run_name: str, time: datetime) -> bool:
        """
        Reserve `run_name` for an unlaunched Pending entry.

        Only the writer whose claim is stored may submit the run. The entry
        stays Pending until the run's first report is recorded.

        Returns:
            True if the entry was unclaimed and is now claimed
        """
        entry = self.entries.get(scenario)
        if entry is None or entry.status is not TestStatus.PENDING:
            return False
        if entry.test_run_name or time <= entry.last_update_time:
            return False
        self.entries[scenario] = replace(
            entry,
            test_run_name=run_name,
            last_update_time=time,
            detail="Launch claimed",
        )
        return True

    def renew_claim(
        self, scenario: str, run_name: str, claimed_at: datetime, time: datetime
    ) -> bool:
        """Take over a claim still stamped `claimed_at`; False if it moved on."""
        entry = self.entries.get(scenario)
        if entry is None or not entry.is_claimed:
            return False
        if entry.test_run_name != run_name or entry.last_update_time != claimed_at:
            return False
        if time <= claimed_at:
            return False
        self.entries[scenario] = replace(entry, last_update_time=time)
        return True

    def record_run_report(
        self,
        scenario: str,
        run_name: str,
        generation: int,
        status: TestStatus,
        detail: str,
        time: datetime,
        *,
        start_time: datetime | None = None,
        completion_time: datetime | None = None,
    ) -> bool:
        """
        Merge a status report stamped by the run's own clock.

        The first report of the claimed run replaces the claim whatever its
        stamp, since the claim was stamped by the orchestrator's clock. Later
        reports go through update_if_newer and compare run time to run time.

        Returns:
            True if the entry was replaced
        """
        entry = self.entries.get(scenario)
        if (
            entry is not None
            and entry.is_claimed
            and entry.test_run_name == run_name
            and entry.generation == generation
        ):
            self.entries[scenario] = replace(
                entry,
                status=status,
                detail=detail,
                last_update_time=time,
                start_time=start_time,
                completion_time=completion_time,
            )
            return True
        return self.update_if_newer(
            scenario,
            status,
            detail,
            time,
            test_run_name=run_name,
            start_time=start_time,
            completion_time=completion_time,
            generation=generation,
        )

    def reset_for_rerun(self, scenario: str, now: datetime) -> StatusMapEntry:
        """
        Start a new lifecycle generation for a scenario.

        Clears the run reference and timestamps and bumps the generation so an
        update still in flight for the previous run cannot land on the new one.

        Raises:
            KeyError: If the scenario has no entry
        """
        entry = self.entries[scenario]
        # last_update_time must move forward even under clock skew
        stamp = max(now, entry.last_update_time + timedelta(microseconds=1))
        reset = StatusMapEntry(
            scenario=scenario,
            status=TestStatus.PENDING,
            last_update_time=stamp,
            detail="Pending (rerun requested)",
            generation=entry.generation + 1,
        )
        self.entries[scenario] = reset
        return reset

    def pending_launches(self) -> list[tuple[str, int]]:
        """(scenario, generation) for every Pending entry without a run."""
        return [
            (name, entry.generation)
            for name, entry in sorted(self.entries.items())
            if entry.status is TestStatus.PENDING and not entry.test_run_name
        ]

    def stale_claims(self, before: datetime) -> list[StatusMapEntry]:
        """Claimed entries whose claim was last written before `before`."""
        return [
            entry
            for _, entry in sorted(self.entries.items())
            if entry.is_claimed and entry.last_update_time < before
        ]

    def all_terminal(self, names: Iterable[str]) -> bool:
        """True iff every named scenario has an entry and all entries are terminal."""
        if any(name not in self.entries for name in names):
            return False
        return all(entry.is_terminal for entry in self.entries.values())


# =============================================================================
# ENGINE RESULTS
# =============================================================================


@dataclass(frozen=True)
class ReconcileResult:
    """What one reconcile pass did to a VersionSet."""

    version_set: str
    initialized: tuple[str, ...] = ()
    launched: tuple[tuple[str, str], ...] = ()  # (scenario, run name)
    invalid: tuple[str, ...] = ()
    reset: tuple[str, ...] = ()
    testing_finished: bool = False
