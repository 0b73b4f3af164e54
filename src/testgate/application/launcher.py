"""
TestRunLauncher: builds and submits one TestRun for a (VersionSet, scenario).

Deduplication is not done here: the engine only calls launch() after its
claim of the deterministic run name was written to the Status Map.
"""

import json
import logging

from testgate.domain.exceptions import LaunchError
from testgate.domain.interfaces import ExecutionEngineInterface
from testgate.domain.models import (
    LABEL_APPLICATION,
    LABEL_GENERATION,
    LABEL_SCENARIO,
    LABEL_VERSION_SET,
    RunHandle,
    RunRequest,
    ScenarioDefinition,
    ScenarioParam,
    VersionSet,
)

logger = logging.getLogger(__name__)


def run_name_for(version_set: str, scenario: str, generation: int) -> str:
    """Deterministic TestRun name for one lifecycle generation of an entry."""
    return f"{version_set}-{scenario}-g{generation}"


def serialize_components(version_set: VersionSet) -> str:
    """VersionSet payload injected into every TestRun."""
    return json.dumps(
        {
            "application": version_set.application,
            "components": [
                {"name": c.name, "containerImage": c.artifact_ref}
                for c in version_set.components
            ],
        },
        separators=(",", ":"),
    )


class TestRunLauncher:
    """Side-effect-isolated constructor + submit of TestRuns."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        execution_engine: ExecutionEngineInterface,
        reserved_param_name: str = "VERSION_SET",
    ):
        """
        Args:
            execution_engine: Where runs are submitted
            reserved_param_name: Parameter carrying the VersionSet payload
        """
        self._engine = execution_engine
        self._reserved = reserved_param_name

    def build_request(
        self, version_set: VersionSet, scenario: ScenarioDefinition, generation: int
    ) -> RunRequest:
        params = [ScenarioParam(self._reserved, serialize_components(version_set))]
        for param in scenario.params:
            if param.name == self._reserved:
                logger.warning(
                    "Scenario %s declares reserved parameter %s; ignoring it",
                    scenario.name,
                    self._reserved,
                )
                continue
            params.append(param)

        return RunRequest(
            name=run_name_for(version_set.name, scenario.name, generation),
            source=scenario.source,
            params=tuple(params),
            labels=(
                (LABEL_VERSION_SET, version_set.name),
                (LABEL_SCENARIO, scenario.name),
                (LABEL_GENERATION, str(generation)),
                (LABEL_APPLICATION, version_set.application),
            ),
            protective_hold=True,
        )

    def launch(
        self, version_set: VersionSet, scenario: ScenarioDefinition, generation: int = 0
    ) -> RunHandle:
        """
        Submit a TestRun.

        Every error raised by submit() is a launch failure, transient client
        errors included: the entry is recorded Invalid and a rerun retries it.

        Raises:
            LaunchError: If the submission fails for any reason
        """
        request = self.build_request(version_set, scenario, generation)
        try:
            handle = self._engine.submit(request)
        except LaunchError:
            raise
        except Exception as e:
            raise LaunchError(scenario.name, str(e) or type(e).__name__) from e

        logger.info(
            "Launched %s for scenario %s of %s",
            handle.name,
            scenario.name,
            version_set.name,
        )
        return handle
