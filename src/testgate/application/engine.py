"""
OrchestrationEngine: drives each VersionSet's Status Map to convergence.

Every transition (Discover, Launch, Observe, Converge-check, Rerun) is a
read-mutate-write cycle run through OptimisticUpdater, so it is safe for any
number of workers to process events for the same VersionSet concurrently and
for any event to be delivered more than once.

Launch writes a claim (the deterministic run name on the Pending entry)
before submitting, so a worker acting on an outdated view never submits.
Entry timestamps written by the engine use its own clock; reports from a
run use the run's clock, and the run's first report replaces the claim.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from testgate.application.config import EngineConfig
from testgate.application.launcher import TestRunLauncher, run_name_for
from testgate.application.optimistic import OptimisticUpdater
from testgate.application.outcome_evaluator import OutcomeEvaluator
from testgate.application.scenario_selector import ScenarioSelector
from testgate.domain.exceptions import LaunchError, RunNotFound, VersionSetNotFound
from testgate.domain.interfaces import (
    ExecutionEngineInterface,
    ScenarioCatalogInterface,
    StatusPublisherInterface,
    VersionSetStoreInterface,
)
from testgate.domain.models import (
    RERUN_ALL,
    RUN_RECORDED_STATUS_ANNOTATION,
    ReconcileResult,
    RunHandle,
    RunLabels,
    RunState,
    ScenarioDefinition,
    StatusMap,
    StatusMapEntry,
    TestStatus,
    Verdict,
    VersionSet,
)
from testgate.domain.status_map import read_status_map, write_status_map

logger = logging.getLogger(__name__)


def _stamp_after(entry: StatusMapEntry | None, now: datetime) -> datetime:
    """`now`, or the smallest instant strictly after the entry's last update."""
    if entry is None or now > entry.last_update_time:
        return now
    return entry.last_update_time + timedelta(microseconds=1)


class OrchestrationEngine:
    """
    Reconciles VersionSets, TestRun events and rerun requests.

    Exposed operations:
        reconcile_version_set: Discover → Launch → Converge-check
        reconcile_test_run_event: Observe → Converge-check
        request_rerun: Rerun → Launch → Converge-check
        get_status_map: decoded Status Map, for inspection
    """

    def __init__(
        self,
        store: VersionSetStoreInterface,
        catalog: ScenarioCatalogInterface,
        execution_engine: ExecutionEngineInterface,
        publisher: StatusPublisherInterface | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            store: VersionSet store (conditional writes)
            catalog: ScenarioDefinition catalog
            execution_engine: Engine that runs TestRuns
            publisher: Receives terminal outcomes (optional)
            config: Retry/backoff and launcher settings
            clock: Source of "now" (UTC); injectable for tests
            sleep: Backoff sleeper; injectable for tests
        """
        self._config = config or EngineConfig()
        self._store = store
        self._execution = execution_engine
        self._publisher = publisher
        self._now = clock or (lambda: datetime.now(UTC))
        self._selector = ScenarioSelector(catalog)
        self._launcher = TestRunLauncher(
            execution_engine, self._config.reserved_param_name
        )
        self._evaluator = OutcomeEvaluator()
        self._updater = OptimisticUpdater(store, self._config, sleep)

    # =========================================================================
    # EXPOSED OPERATIONS
    # =========================================================================

    def reconcile_version_set(self, name: str) -> ReconcileResult:
        """
        Run Discover → Launch → Converge-check once. Idempotent.

        Raises:
            VersionSetNotFound: If the VersionSet does not exist
            SelectionError: If the catalog is unreadable (nothing is written)
            CorruptStateError: If the stored Status Map cannot be decoded
            ConflictError: If writes kept losing races
        """
        version_set = self._store.get(name)
        scenarios = self._selected(version_set)

        reset: tuple[str, ...] = ()
        if version_set.rerun_request:
            reset = self._rerun(name, version_set.rerun_request, scenarios)

        initialized = self._discover(name, scenarios)
        launched, invalid = self._launch_pending(name, scenarios)
        finished = self._converge(name, scenarios)
        return ReconcileResult(
            version_set=name,
            initialized=initialized,
            launched=launched,
            invalid=invalid,
            reset=reset,
            testing_finished=finished,
        )

    def reconcile_test_run_event(self, handle: RunHandle) -> StatusMapEntry | None:
        """
        Run Observe → Converge-check once for a TestRun. Idempotent.

        Returns:
            The scenario's entry after the event, or None if the run is gone,
            not owned by testgate, or its VersionSet no longer exists
        """
        try:
            run = self._execution.get(handle)
        except RunNotFound:
            logger.debug("Run %s is gone; nothing to observe", handle.name)
            return None

        labels = RunLabels.from_labels(run.labels)
        if labels is None:
            logger.debug("Run %s carries no ownership labels; ignoring", run.name)
            return None

        try:
            version_set = self._store.get(labels.version_set)
        except VersionSetNotFound:
            logger.info(
                "VersionSet %s of run %s no longer exists; releasing run",
                labels.version_set,
                run.name,
            )
            self._release(run)
            return None

        verdict = self._evaluator.evaluate(run)
        entry = self._apply_report(version_set.name, labels, run, verdict)
        self._converge(version_set.name, self._selected(version_set))
        return entry

    def request_rerun(self, name: str, scope: str) -> ReconcileResult:
        """
        Run Rerun once for `scope` ("all" or a scenario name), then relaunch.

        Scenarios currently Pending or InProgress are left alone.
        """
        version_set = self._store.get(name)
        scenarios = self._selected(version_set)

        reset = self._rerun(name, scope, scenarios)
        initialized = self._discover(name, scenarios)
        launched, invalid = self._launch_pending(name, scenarios)
        finished = self._converge(name, scenarios)
        return ReconcileResult(
            version_set=name,
            initialized=initialized,
            launched=launched,
            invalid=invalid,
            reset=reset,
            testing_finished=finished,
        )

    def get_status_map(self, name: str) -> StatusMap:
        """Decoded Status Map of a VersionSet."""
        return read_status_map(self._store.get_latest(name))

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def _selected(self, version_set: VersionSet) -> dict[str, ScenarioDefinition]:
        return {s.name: s for s in self._selector.select(version_set)}

    def _discover(
        self, name: str, scenarios: dict[str, ScenarioDefinition]
    ) -> tuple[str, ...]:
        """Create Pending entries for newly applicable scenarios."""
        added: list[str] = []

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal added
            # A finished VersionSet keeps its verdict until a rerun reopens it
            if current.testing_finished_at is not None:
                added = []
                return None
            status_map = read_status_map(current)
            added = status_map.init_entries(sorted(scenarios), self._now())
            if not added:
                return None
            return write_status_map(current, status_map)

        self._updater.apply(name, mutate)
        if added:
            logger.info(
                "Tracking %d new scenario(s) for %s: %s", len(added), name, added
            )
        return tuple(added)

    def _launch_pending(
        self, name: str, scenarios: dict[str, ScenarioDefinition]
    ) -> tuple[tuple[tuple[str, str], ...], tuple[str, ...]]:
        """
        Claim and launch a run for every Pending entry without one.

        A run is submitted only by the worker whose claim write succeeded.
        Claims older than launch_claim_timeout_seconds are taken over.
        """
        version_set = self._store.get_latest(name)
        status_map = read_status_map(version_set)
        cutoff = self._now() - timedelta(
            seconds=self._config.launch_claim_timeout_seconds
        )

        launched: list[tuple[str, str]] = []
        invalid: list[str] = []
        for scenario_name, generation in status_map.pending_launches():
            scenario = scenarios.get(scenario_name)
            if scenario is None:
                if self._close_unlaunchable(name, scenario_name, generation):
                    invalid.append(scenario_name)
                continue

            run_name = run_name_for(name, scenario_name, generation)
            if not self._claim(name, scenario_name, generation, run_name):
                continue
            if self._submit(version_set, scenario, generation, run_name):
                launched.append((scenario_name, run_name))
            else:
                invalid.append(scenario_name)

        for claim in status_map.stale_claims(cutoff):
            if self._run_exists(claim.test_run_name):
                # Submitted, but its first report never landed
                self._report_launch(
                    name, claim.scenario, claim.generation, claim.test_run_name
                )
                continue
            if not self._take_over(name, claim):
                continue
            scenario = scenarios.get(claim.scenario)
            if scenario is None:
                if self._close_unlaunchable(
                    name, claim.scenario, claim.generation, claim.test_run_name
                ):
                    invalid.append(claim.scenario)
            elif self._submit(
                version_set, scenario, claim.generation, claim.test_run_name
            ):
                launched.append((claim.scenario, claim.test_run_name))
            else:
                invalid.append(claim.scenario)
        return tuple(launched), tuple(invalid)

    def _claim(self, name: str, scenario: str, generation: int, run_name: str) -> bool:
        """Write `run_name` into an unlaunched Pending entry of `generation`."""
        claimed = False

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal claimed
            status_map = read_status_map(current)
            entry = status_map.get(scenario)
            claimed = (
                entry is not None
                and entry.generation == generation
                and status_map.claim(
                    scenario, run_name, _stamp_after(entry, self._now())
                )
            )
            return write_status_map(current, status_map) if claimed else None

        self._updater.apply(name, mutate)
        if not claimed:
            logger.debug("Launch of %s for %s already claimed", run_name, name)
        return claimed

    def _take_over(self, name: str, claim: StatusMapEntry) -> bool:
        """Renew a stale claim unless another writer touched it meanwhile."""
        renewed = False

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal renewed
            status_map = read_status_map(current)
            entry = status_map.get(claim.scenario)
            renewed = (
                entry is not None
                and entry.generation == claim.generation
                and status_map.renew_claim(
                    claim.scenario,
                    claim.test_run_name,
                    claim.last_update_time,
                    _stamp_after(entry, self._now()),
                )
            )
            return write_status_map(current, status_map) if renewed else None

        self._updater.apply(name, mutate)
        if renewed:
            logger.warning(
                "Taking over stale launch claim %s for %s", claim.test_run_name, name
            )
        return renewed

    def _submit(
        self,
        version_set: VersionSet,
        scenario: ScenarioDefinition,
        generation: int,
        run_name: str,
    ) -> bool:
        """Submit a claimed run. False if the execution engine refused it."""
        try:
            self._launcher.launch(version_set, scenario, generation)
        except LaunchError as e:
            logger.warning(
                "Launch of %s for %s failed: %s", scenario.name, version_set.name, e
            )
            self._record_launch_outcome(
                version_set.name,
                scenario.name,
                generation,
                Verdict(TestStatus.INVALID, e.reason),
                claimed_by=run_name,
            )
            return False

        self._report_launch(version_set.name, scenario.name, generation, run_name)
        return True

    def _report_launch(
        self, name: str, scenario: str, generation: int, run_name: str
    ) -> None:
        """Record the first report of a submitted run, in the run's own clock."""
        try:
            run = self._execution.get(RunHandle(run_name))
        except RunNotFound:
            logger.debug("Run %s is gone before its launch was recorded", run_name)
            return

        verdict = self._evaluator.evaluate(run)
        if not verdict.status.is_terminal:
            verdict = Verdict(TestStatus.IN_PROGRESS, "Test run started")
        labels = RunLabels(version_set=name, scenario=scenario, generation=generation)
        self._apply_report(name, labels, run, verdict)

    def _close_unlaunchable(
        self, name: str, scenario: str, generation: int, claimed_by: str = ""
    ) -> bool:
        """Mark an entry Invalid whose scenario is no longer selected."""
        verdict = Verdict(
            TestStatus.INVALID,
            "Scenario is no longer applicable or valid; not launched",
        )
        return self._record_launch_outcome(
            name, scenario, generation, verdict, claimed_by=claimed_by
        )

    def _record_launch_outcome(
        self,
        name: str,
        scenario: str,
        generation: int,
        verdict: Verdict,
        claimed_by: str = "",
    ) -> bool:
        """Move a Pending entry of `generation` still claimed by `claimed_by`."""
        applied = False

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal applied
            applied = False
            status_map = read_status_map(current)
            entry = status_map.get(scenario)
            if (
                entry is None
                or entry.generation != generation
                or entry.status is not TestStatus.PENDING
                or entry.test_run_name != claimed_by
            ):
                return None
            now = self._now()
            applied = status_map.update_if_newer(
                scenario,
                verdict.status,
                verdict.detail,
                _stamp_after(entry, now),
                completion_time=now if verdict.status.is_terminal else None,
                generation=generation,
            )
            return write_status_map(current, status_map) if applied else None

        self._updater.apply(name, mutate)
        if applied and verdict.status.is_terminal:
            self._notify(name, scenario, verdict)
        return applied

    def _apply_report(
        self, name: str, labels: RunLabels, run: RunState, verdict: Verdict
    ) -> StatusMapEntry | None:
        """Merge a run's verdict, then stamp, release and notify as it allows."""
        entry, applied = self._observe(name, labels, run, verdict)

        if applied and verdict.status.is_terminal:
            self._stamp_run(run, verdict)
        if verdict.status.is_terminal and self._settled(entry, run, labels):
            self._release(run)
        if applied and verdict.status.is_terminal:
            self._notify(name, labels.scenario, verdict)
        return entry

    def _observe(
        self, name: str, labels: RunLabels, run: RunState, verdict: Verdict
    ) -> tuple[StatusMapEntry | None, bool]:
        """Merge a run's verdict into its entry unless the update is stale."""
        applied = False
        latest: StatusMapEntry | None = None
        # Reports are ordered by the run's clock, never the orchestrator's
        stamp = run.updated_at or run.start_time or self._now()

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal applied, latest
            applied = False
            status_map = read_status_map(current)
            latest = status_map.get(labels.scenario)
            if latest is None:
                logger.debug(
                    "No entry for %s in %s; ignoring run %s",
                    labels.scenario,
                    name,
                    run.name,
                )
                return None
            applied = status_map.record_run_report(
                labels.scenario,
                run.name,
                labels.generation,
                verdict.status,
                verdict.detail,
                stamp,
                start_time=run.start_time,
                completion_time=(
                    run.completion_time if verdict.status.is_terminal else None
                ),
            )
            if not applied:
                logger.debug(
                    "Stale update for %s/%s from %s rejected",
                    name,
                    labels.scenario,
                    run.name,
                )
                return None
            latest = status_map.get(labels.scenario)
            return write_status_map(current, status_map)

        self._updater.apply(name, mutate)
        if applied:
            logger.info(
                "Scenario %s of %s is %s (%s)",
                labels.scenario,
                name,
                verdict.status.value,
                run.name,
            )
        return latest, applied

    def _rerun(
        self, name: str, scope: str, scenarios: dict[str, ScenarioDefinition]
    ) -> tuple[str, ...]:
        """Reset terminal entries in scope and consume the rerun marker."""
        reset: list[str] = []

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal reset
            reset = []
            status_map = read_status_map(current)
            clear_marker = current.rerun_request == scope

            if scope == RERUN_ALL:
                targets = sorted(scenarios)
            elif scope in scenarios:
                targets = [scope]
            else:
                logger.warning(
                    "Rerun of unknown scenario %s requested for %s; ignoring",
                    scope,
                    name,
                )
                targets = []

            now = self._now()
            for target in targets:
                entry = status_map.get(target)
                if entry is None or not entry.is_terminal:
                    continue
                status_map.reset_for_rerun(target, now)
                reset.append(target)

            if not reset and not clear_marker:
                return None
            updated = write_status_map(current, status_map) if reset else current
            return replace(
                updated,
                rerun_request=None if clear_marker else current.rerun_request,
                testing_finished_at=None if reset else current.testing_finished_at,
            )

        self._updater.apply(name, mutate)
        if reset:
            logger.info("Rerun of %s reset %s", name, reset)
        return tuple(reset)

    def _converge(self, name: str, scenarios: dict[str, ScenarioDefinition]) -> bool:
        """Mark the VersionSet testing-finished once every entry is terminal."""
        finished = False

        def mutate(current: VersionSet) -> VersionSet | None:
            nonlocal finished
            if current.testing_finished_at is not None:
                finished = True
                return None
            finished = read_status_map(current).all_terminal(scenarios)
            if not finished:
                return None
            return replace(current, testing_finished_at=self._now())

        _, written = self._updater.apply(name, mutate)
        if written:
            logger.info("Testing finished for %s", name)
        return finished

    # =========================================================================
    # SIDE EFFECTS
    # =========================================================================

    def _settled(
        self, entry: StatusMapEntry | None, run: RunState, labels: RunLabels
    ) -> bool:
        """True once a finished run no longer needs its protective hold."""
        if entry is None:
            return True
        if entry.generation != labels.generation:
            return True
        if entry.test_run_name and entry.test_run_name != run.name:
            return True
        return entry.is_terminal

    def _run_exists(self, run_name: str) -> bool:
        try:
            self._execution.get(RunHandle(run_name))
        except RunNotFound:
            return False
        return True

    def _stamp_run(self, run: RunState, verdict: Verdict) -> None:
        try:
            self._execution.annotate(
                RunHandle(run.name),
                RUN_RECORDED_STATUS_ANNOTATION,
                verdict.status.value,
            )
        except RunNotFound:
            logger.debug("Run %s vanished before it could be annotated", run.name)

    def _release(self, run: RunState) -> None:
        if run.protective_hold:
            self._execution.clear_protective_hold(RunHandle(run.name))

    def _notify(self, name: str, scenario: str, verdict: Verdict) -> None:
        if self._publisher is None:
            return
        try:
            self._publisher.notify(name, scenario, verdict.status, verdict.detail)
        except Exception as e:
            logger.warning(
                "Publishing %s for %s/%s failed: %s",
                verdict.status.value,
                name,
                scenario,
                e,
            )
