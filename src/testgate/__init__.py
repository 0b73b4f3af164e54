"""
TestGate: integration-test orchestration for version sets.

Every VersionSet (one build's components) gets one test run per applicable
scenario, tracked in a status map persisted on the VersionSet itself and
written with optimistic concurrency.

Example:
    from testgate import OrchestrationEngine
    from testgate.infrastructure import (
        InMemoryExecutionEngine,
        InMemoryScenarioCatalog,
        InMemoryVersionSetStore,
    )

    engine = OrchestrationEngine(
        store=InMemoryVersionSetStore(),
        catalog=InMemoryScenarioCatalog(),
        execution_engine=InMemoryExecutionEngine(),
    )
    result = engine.reconcile_version_set("app-build-42")
"""

# Application layer (orchestration)
from testgate.application import (
    EngineConfig,
    OrchestrationEngine,
    OutcomeEvaluator,
    ScenarioSelector,
    TestRunLauncher,
    load_config,
)

# Domain exceptions
from testgate.domain.exceptions import (
    ConflictError,
    CorruptStateError,
    GateError,
    LaunchError,
    SelectionError,
)

# Domain interfaces (for type hints and custom adapters)
from testgate.domain.interfaces import (
    ExecutionEngineInterface,
    ScenarioCatalogInterface,
    StatusPublisherInterface,
    VersionSetStoreInterface,
)
from testgate.domain.models import (
    ReconcileResult,
    RunHandle,
    ScenarioDefinition,
    StatusMap,
    StatusMapEntry,
    TestStatus,
    VersionSet,
)

# Infrastructure (explicit import encouraged for dependency injection)
from testgate.infrastructure import (
    FilesystemExecutionEngine,
    FilesystemScenarioCatalog,
    FilesystemVersionSetStore,
    InMemoryExecutionEngine,
    InMemoryScenarioCatalog,
    InMemoryVersionSetStore,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Domain models
    "VersionSet",
    "ScenarioDefinition",
    "RunHandle",
    "TestStatus",
    "StatusMapEntry",
    "StatusMap",
    "ReconcileResult",
    # Domain interfaces
    "VersionSetStoreInterface",
    "ScenarioCatalogInterface",
    "ExecutionEngineInterface",
    "StatusPublisherInterface",
    # Domain exceptions
    "GateError",
    "SelectionError",
    "CorruptStateError",
    "ConflictError",
    "LaunchError",
    # Application layer
    "EngineConfig",
    "load_config",
    "OrchestrationEngine",
    "OutcomeEvaluator",
    "ScenarioSelector",
    "TestRunLauncher",
    # Infrastructure
    "InMemoryVersionSetStore",
    "InMemoryScenarioCatalog",
    "InMemoryExecutionEngine",
    "FilesystemVersionSetStore",
    "FilesystemScenarioCatalog",
    "FilesystemExecutionEngine",
]
