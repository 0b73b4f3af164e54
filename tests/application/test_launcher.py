"""Tests for TestRunLauncher."""

import json

import pytest

from testgate.application.launcher import (
    TestRunLauncher,
    run_name_for,
    serialize_components,
)
from testgate.domain.exceptions import LaunchError
from testgate.domain.interfaces import ExecutionEngineInterface
from testgate.domain.models import (
    LABEL_APPLICATION,
    LABEL_GENERATION,
    LABEL_SCENARIO,
    LABEL_VERSION_SET,
    ScenarioParam,
)


class RefusingEngine(ExecutionEngineInterface):
    """Engine whose client raises `error` on submit."""

    def __init__(self, error: Exception):
        self.error = error

    def submit(self, request):
        raise self.error

    def get(self, handle):
        raise NotImplementedError

    def annotate(self, handle, key, value):
        raise NotImplementedError

    def set_protective_hold(self, handle):
        raise NotImplementedError

    def clear_protective_hold(self, handle):
        raise NotImplementedError


def test_run_name_is_deterministic():
    assert run_name_for("shop-build-1", "login-test", 2) == "shop-build-1-login-test-g2"


def test_serialize_components(version_set_factory):
    payload = json.loads(serialize_components(version_set_factory()))

    assert payload == {
        "application": "shop",
        "components": [
            {
                "name": "frontend",
                "containerImage": "registry.example/frontend@sha256:aaa",
            },
            {
                "name": "backend",
                "containerImage": "registry.example/backend@sha256:bbb",
            },
        ],
    }


class TestBuildRequest:
    """Tests for TestRunLauncher.build_request."""

    @pytest.fixture
    def launcher(self, runs) -> TestRunLauncher:
        return TestRunLauncher(runs)

    def test_request_carries_payload_and_labels(
        self, launcher, version_set_factory, scenario_factory
    ):
        version_set = version_set_factory()
        scenario = scenario_factory(
            "login-test", params=(ScenarioParam("BROWSERS", ("firefox", "chrome")),)
        )

        request = launcher.build_request(version_set, scenario, 1)

        assert request.name == "shop-build-1-login-test-g1"
        assert request.source == scenario.source
        assert request.protective_hold
        assert [p.name for p in request.params] == ["VERSION_SET", "BROWSERS"]
        assert request.params[0].value == serialize_components(version_set)
        assert request.params[1].value == ("firefox", "chrome")
        assert dict(request.labels) == {
            LABEL_VERSION_SET: "shop-build-1",
            LABEL_SCENARIO: "login-test",
            LABEL_GENERATION: "1",
            LABEL_APPLICATION: "shop",
        }

    def test_reserved_parameter_cannot_be_overridden(
        self, launcher, version_set_factory, scenario_factory
    ):
        version_set = version_set_factory()
        scenario = scenario_factory(
            "login-test", params=(ScenarioParam("VERSION_SET", "hijacked"),)
        )

        request = launcher.build_request(version_set, scenario, 0)

        values = [p.value for p in request.params if p.name == "VERSION_SET"]
        assert values == [serialize_components(version_set)]

    def test_custom_reserved_name(self, runs, version_set_factory, scenario_factory):
        launcher = TestRunLauncher(runs, reserved_param_name="SNAPSHOT")

        request = launcher.build_request(
            version_set_factory(), scenario_factory("login-test"), 0
        )

        assert request.params[0].name == "SNAPSHOT"


class TestLaunch:
    """Tests for TestRunLauncher.launch."""

    def test_launch_submits_once_per_name(
        self, runs, version_set_factory, scenario_factory
    ):
        launcher = TestRunLauncher(runs)
        version_set = version_set_factory()
        scenario = scenario_factory("login-test")

        first = launcher.launch(version_set, scenario)
        second = launcher.launch(version_set, scenario)

        assert first == second
        assert runs.submissions == 1

    def test_rejection_raises_launch_error(
        self, runs, version_set_factory, scenario_factory
    ):
        runs.reject_submissions("quota exceeded")
        launcher = TestRunLauncher(runs)

        with pytest.raises(LaunchError) as exc_info:
            launcher.launch(version_set_factory(), scenario_factory("login-test"))

        assert exc_info.value.reason == "quota exceeded"
        assert exc_info.value.scenario == "login-test"

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("name too long"),
            RuntimeError("admission webhook denied"),
            ConnectionError("connection reset"),
            OSError(28, "No space left on device"),
        ],
        ids=lambda error: type(error).__name__,
    )
    def test_client_errors_become_launch_error(
        self, error, version_set_factory, scenario_factory
    ):
        launcher = TestRunLauncher(RefusingEngine(error))

        with pytest.raises(LaunchError) as exc_info:
            launcher.launch(version_set_factory(), scenario_factory("login-test"))

        assert exc_info.value.reason == str(error)
        assert exc_info.value.__cause__ is error

    def test_error_without_message_is_named(
        self, version_set_factory, scenario_factory
    ):
        launcher = TestRunLauncher(RefusingEngine(TimeoutError()))

        with pytest.raises(LaunchError) as exc_info:
            launcher.launch(version_set_factory(), scenario_factory("login-test"))

        assert exc_info.value.reason == "TimeoutError"
