"""
Application layer for version-set test orchestration.

Contains the orchestration engine and the services it composes.
"""

from testgate.application.config import EngineConfig, load_config
from testgate.application.engine import OrchestrationEngine
from testgate.application.launcher import TestRunLauncher
from testgate.application.optimistic import OptimisticUpdater
from testgate.application.outcome_evaluator import OutcomeEvaluator
from testgate.application.scenario_selector import ScenarioSelector

__all__ = [
    "EngineConfig",
    "load_config",
    "OrchestrationEngine",
    "OptimisticUpdater",
    "OutcomeEvaluator",
    "ScenarioSelector",
    "TestRunLauncher",
]
