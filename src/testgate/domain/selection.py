"""
Scenario applicability rules.

A scenario applies to a VersionSet when it is valid, belongs to the same
application, and either declares no contexts or declares one that matches
the VersionSet's trigger.
"""

from collections.abc import Iterable

from testgate.domain.models import ScenarioDefinition, VersionSet

# Context that matches every VersionSet
APPLICATION_CONTEXT = "application"
# Prefix of contexts that match VersionSets produced by one component's build
COMPONENT_CONTEXT_PREFIX = "component_"


def context_applies(
    contexts: Iterable[str],
    trigger_context: str,
    trigger_component: str | None = None,
) -> bool:
    """Decide whether a scenario's context list admits a trigger."""
    contexts = tuple(contexts)
    if not contexts:
        return True
    for context in contexts:
        if context in (APPLICATION_CONTEXT, trigger_context):
            return True
        if (
            trigger_component
            and context == f"{COMPONENT_CONTEXT_PREFIX}{trigger_component}"
        ):
            return True
    return False


def select_scenarios(
    application: str,
    trigger_context: str,
    catalog: Iterable[ScenarioDefinition],
    trigger_component: str | None = None,
) -> list[ScenarioDefinition]:
    """
    Filter a catalog down to the scenarios that must be tracked.

    Args:
        application: Owning application of the VersionSet
        trigger_context: Trigger tag of the VersionSet (e.g. "push")
        catalog: Every scenario known for the application
        trigger_component: Component whose build produced the VersionSet

    Returns:
        Applicable scenarios sorted by name
    """
    selected = [
        scenario
        for scenario in catalog
        if scenario.valid
        and scenario.application == application
        and context_applies(scenario.contexts, trigger_context, trigger_component)
    ]
    return sorted(selected, key=lambda s: s.name)


def select_for_version_set(
    version_set: VersionSet, catalog: Iterable[ScenarioDefinition]
) -> list[ScenarioDefinition]:
    """select_scenarios() driven by a VersionSet's own trigger data."""
    return select_scenarios(
        version_set.application,
        version_set.trigger_context,
        catalog,
        trigger_component=version_set.trigger_component,
    )
