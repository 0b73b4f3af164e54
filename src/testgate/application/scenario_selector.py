"""
ScenarioSelector: catalog lookup plus applicability filtering.
"""

import logging

from testgate.domain.exceptions import SelectionError
from testgate.domain.interfaces import ScenarioCatalogInterface
from testgate.domain.models import ScenarioDefinition, VersionSet
from testgate.domain.selection import select_for_version_set

logger = logging.getLogger(__name__)


class ScenarioSelector:
    """
    Produces the scenarios a VersionSet must be tested against.

    A catalog failure is always surfaced as SelectionError, never as an empty
    selection, which would read as "no tests required".
    """

    def __init__(self, catalog: ScenarioCatalogInterface):
        self._catalog = catalog

    def select(self, version_set: VersionSet) -> list[ScenarioDefinition]:
        try:
            catalog = self._catalog.list_by_application(version_set.application)
        except SelectionError:
            raise
        except OSError as e:
            raise SelectionError(version_set.application, str(e)) from e

        for scenario in catalog:
            if not scenario.valid:
                logger.debug(
                    "Skipping invalid scenario %s: %s",
                    scenario.name,
                    scenario.invalid_reason or "not admitted",
                )

        selected = select_for_version_set(version_set, catalog)
        logger.debug(
            "Selected %d of %d scenarios for %s (context=%s)",
            len(selected),
            len(catalog),
            version_set.name,
            version_set.trigger_context,
        )
        return selected
