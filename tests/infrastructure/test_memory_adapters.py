"""Tests for the in-memory store, catalog and execution engine."""

import pytest

from testgate.domain.exceptions import (
    ConflictError,
    LaunchError,
    RunNotFound,
    SelectionError,
    VersionSetNotFound,
)
from testgate.domain.models import ExecutionSource, RunHandle, RunRequest
from testgate.infrastructure.execution.memory import InMemoryExecutionEngine
from testgate.infrastructure.persistence.memory import (
    InMemoryScenarioCatalog,
    InMemoryVersionSetStore,
)


def make_request(name: str = "vs-login-g0", hold: bool = True) -> RunRequest:
    return RunRequest(
        name=name,
        source=ExecutionSource("git"),
        params=(),
        labels=(("testgate.io/scenario", "login"),),
        protective_hold=hold,
    )


class TestInMemoryVersionSetStore:
    """Tests for InMemoryVersionSetStore."""

    def test_add_assigns_resource_version(self, version_set_factory):
        store = InMemoryVersionSetStore()

        stored = store.add(version_set_factory())

        assert stored.resource_version == "1"
        assert store.get(stored.name) == stored

    def test_add_twice_raises(self, version_set_factory):
        store = InMemoryVersionSetStore()
        store.add(version_set_factory())

        with pytest.raises(ValueError):
            store.add(version_set_factory())

    def test_update_bumps_resource_version(self, store, version_set):
        updated = store.update(version_set.with_annotation("k", "v"))

        assert updated.resource_version != version_set.resource_version
        assert store.update_count == 1

    def test_update_with_stale_version_conflicts(self, store, version_set):
        store.update(version_set.with_annotation("k", "1"))

        with pytest.raises(ConflictError):
            store.update(version_set.with_annotation("k", "2"))
        assert store.get(version_set.name).annotation("k") == "1"

    def test_missing_record(self, store):
        with pytest.raises(VersionSetNotFound):
            store.get_latest("missing")

    def test_list_by_application(self, store, version_set_factory):
        store.add(version_set_factory(name="b"))
        store.add(version_set_factory(name="a"))
        store.add(version_set_factory(name="c", application="billing"))

        names = [vs.name for vs in store.list_by_application("shop")]

        assert names == ["a", "b"]


class TestInMemoryScenarioCatalog:
    """Tests for InMemoryScenarioCatalog."""

    def test_filters_by_application(self, scenario_factory):
        catalog = InMemoryScenarioCatalog(
            [scenario_factory("a"), scenario_factory("b", application="billing")]
        )

        assert [s.name for s in catalog.list_by_application("shop")] == ["a"]

    def test_unavailable_catalog_raises(self, scenario_factory):
        catalog = InMemoryScenarioCatalog([scenario_factory("a")])
        catalog.set_unavailable("timeout")

        with pytest.raises(SelectionError, match="timeout"):
            catalog.list_by_application("shop")

        catalog.set_unavailable(None)
        assert len(catalog.list_by_application("shop")) == 1


class TestInMemoryExecutionEngine:
    """Tests for InMemoryExecutionEngine."""

    @pytest.fixture
    def engine(self, clock) -> InMemoryExecutionEngine:
        return InMemoryExecutionEngine(clock=clock)

    def test_submit_is_idempotent_by_name(self, engine):
        first = engine.submit(make_request())
        second = engine.submit(make_request())

        assert first == second == RunHandle("vs-login-g0")
        assert engine.submissions == 1

    def test_rejected_submission(self, engine):
        engine.reject_submissions("no capacity")

        with pytest.raises(LaunchError) as exc_info:
            engine.submit(make_request())

        assert exc_info.value.scenario == "login"

    def test_finish_records_results(self, engine):
        engine.submit(make_request())

        run = engine.finish("vs-login-g0", True, {"TEST_OUTPUT": "{}"})

        assert run.finished
        assert run.succeeded
        assert run.results == (("TEST_OUTPUT", "{}"),)
        assert run.completion_time == run.updated_at

    def test_deletion_without_hold_removes_run(self, engine):
        engine.submit(make_request(hold=False))

        engine.request_deletion("vs-login-g0")

        with pytest.raises(RunNotFound):
            engine.get(RunHandle("vs-login-g0"))

    def test_deletion_with_hold_waits_for_release(self, engine):
        handle = engine.submit(make_request())

        run = engine.request_deletion(handle.name)

        assert run.deletion_requested
        assert engine.get(handle).deletion_requested
        engine.clear_protective_hold(handle)
        assert engine.runs() == []

    def test_annotate(self, engine):
        handle = engine.submit(make_request())

        engine.annotate(handle, "testgate.io/note", "seen")

        assert engine.annotations_for(handle.name) == {"testgate.io/note": "seen"}

    def test_annotate_missing_run(self, engine):
        with pytest.raises(RunNotFound):
            engine.annotate(RunHandle("missing"), "k", "v")

    def test_hold_can_be_set_again(self, engine):
        handle = engine.submit(make_request(hold=False))

        engine.set_protective_hold(handle)

        assert engine.get(handle).protective_hold
