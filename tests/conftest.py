"""Shared pytest fixtures for testgate tests."""

import json
import threading
from datetime import UTC, datetime, timedelta

import pytest

from testgate.application.engine import OrchestrationEngine
from testgate.domain.models import (
    Component,
    ExecutionSource,
    ScenarioDefinition,
    ScenarioParam,
    VersionSet,
)
from testgate.infrastructure.execution.memory import InMemoryExecutionEngine
from testgate.infrastructure.persistence.memory import (
    InMemoryScenarioCatalog,
    InMemoryVersionSetStore,
)
from testgate.infrastructure.publishing import InMemoryStatusPublisher

EPOCH = datetime(2025, 1, 1, tzinfo=UTC)


class StepClock:
    """Deterministic clock that moves forward one second per reading."""

    def __init__(
        self, start: datetime = EPOCH, step: timedelta = timedelta(seconds=1)
    ):
        self._lock = threading.Lock()
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        with self._lock:
            now = self.current
            self.current = now + self.step
            return now


def make_version_set(
    name: str = "shop-build-1",
    application: str = "shop",
    trigger_context: str = "push",
    trigger_component: str | None = None,
) -> VersionSet:
    """A VersionSet with two pinned components."""
    return VersionSet(
        name=name,
        application=application,
        components=(
            Component("frontend", "registry.example/frontend@sha256:aaa"),
            Component("backend", "registry.example/backend@sha256:bbb"),
        ),
        trigger_context=trigger_context,
        trigger_component=trigger_component,
    )


def make_scenario(
    name: str,
    application: str = "shop",
    contexts: tuple[str, ...] = (),
    params: tuple[ScenarioParam, ...] = (),
    valid: bool = True,
) -> ScenarioDefinition:
    return ScenarioDefinition(
        name=name,
        application=application,
        source=ExecutionSource(
            "git", (("url", "https://git.example/tests"), ("revision", "main"))
        ),
        params=params,
        contexts=contexts,
        valid=valid,
    )


def output_payload(result: str = "SUCCESS", **extra) -> str:
    """A TEST_OUTPUT payload as a pipeline task would report it."""
    return json.dumps({"result": result, **extra})


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store() -> InMemoryVersionSetStore:
    return InMemoryVersionSetStore()


@pytest.fixture
def catalog() -> InMemoryScenarioCatalog:
    """Catalog with one push-only scenario and one scenario for every trigger."""
    return InMemoryScenarioCatalog(
        [
            make_scenario("login-test"),
            make_scenario("push-only-test", contexts=("push",)),
        ]
    )


@pytest.fixture
def runs(clock: StepClock) -> InMemoryExecutionEngine:
    return InMemoryExecutionEngine(clock=clock)


@pytest.fixture
def publisher() -> InMemoryStatusPublisher:
    return InMemoryStatusPublisher()


@pytest.fixture
def engine(
    store: InMemoryVersionSetStore,
    catalog: InMemoryScenarioCatalog,
    runs: InMemoryExecutionEngine,
    publisher: InMemoryStatusPublisher,
    clock: StepClock,
) -> OrchestrationEngine:
    return OrchestrationEngine(
        store=store,
        catalog=catalog,
        execution_engine=runs,
        publisher=publisher,
        clock=clock,
        sleep=lambda _: None,
    )


@pytest.fixture
def version_set(store: InMemoryVersionSetStore) -> VersionSet:
    """A stored push-triggered VersionSet."""
    return store.add(make_version_set())


@pytest.fixture
def scenario_factory():
    """Builds ScenarioDefinitions for the "shop" application."""
    return make_scenario


@pytest.fixture
def version_set_factory():
    """Builds unsaved VersionSets."""
    return make_version_set


@pytest.fixture
def output():
    """Builds TEST_OUTPUT payloads."""
    return output_payload


@pytest.fixture
def clock_factory():
    """Builds StepClocks offset from the shared epoch, e.g. for a drifting runner."""

    def build(offset: timedelta = timedelta(0)) -> StepClock:
        return StepClock(EPOCH + offset)

    return build
