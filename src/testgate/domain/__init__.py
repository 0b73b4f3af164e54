"""
Domain layer for version-set test orchestration.

Contains core business logic with no external dependencies.
"""

from testgate.domain.exceptions import (
    ConfigValidationError,
    ConflictError,
    CorruptStateError,
    GateError,
    LaunchError,
    RetryableError,
    RunNotFound,
    SelectionError,
    VersionSetNotFound,
)
from testgate.domain.interfaces import (
    ExecutionEngineInterface,
    ScenarioCatalogInterface,
    StatusPublisherInterface,
    VersionSetStoreInterface,
)
from testgate.domain.models import (
    RERUN_ALL,
    RUN_RECORDED_STATUS_ANNOTATION,
    STATUS_MAP_ANNOTATION,
    Component,
    ExecutionSource,
    ReconcileResult,
    RunHandle,
    RunLabels,
    RunRequest,
    RunState,
    ScenarioDefinition,
    ScenarioParam,
    StatusMap,
    StatusMapEntry,
    TestStatus,
    Verdict,
    VersionSet,
)
from testgate.domain.selection import select_for_version_set, select_scenarios
from testgate.domain.status_map import decode, encode

__all__ = [
    # Models
    "Component",
    "VersionSet",
    "ExecutionSource",
    "ScenarioParam",
    "ScenarioDefinition",
    "RunHandle",
    "RunRequest",
    "RunState",
    "RunLabels",
    "TestStatus",
    "Verdict",
    "StatusMapEntry",
    "StatusMap",
    "ReconcileResult",
    "RERUN_ALL",
    "STATUS_MAP_ANNOTATION",
    "RUN_RECORDED_STATUS_ANNOTATION",
    # Codec and selection
    "encode",
    "decode",
    "select_scenarios",
    "select_for_version_set",
    # Interfaces
    "VersionSetStoreInterface",
    "ScenarioCatalogInterface",
    "ExecutionEngineInterface",
    "StatusPublisherInterface",
    # Exceptions
    "GateError",
    "RetryableError",
    "SelectionError",
    "CorruptStateError",
    "ConflictError",
    "LaunchError",
    "VersionSetNotFound",
    "RunNotFound",
    "ConfigValidationError",
]
