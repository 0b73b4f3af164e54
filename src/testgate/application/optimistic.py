"""
Optimistic read-mutate-write against the VersionSet store.

Every attempt re-reads the latest record, so a mutation is always applied to
the current state and never to a stale in-memory base.
"""

import logging
import time
from collections.abc import Callable

from testgate.application.config import EngineConfig
from testgate.domain.exceptions import ConflictError
from testgate.domain.interfaces import VersionSetStoreInterface
from testgate.domain.models import VersionSet

logger = logging.getLogger(__name__)

# Returns the mutated record, or None when there is nothing to write
Mutation = Callable[[VersionSet], VersionSet | None]


class OptimisticUpdater:
    """Runs a mutation under bounded conflict retries with backoff."""

    def __init__(
        self,
        store: VersionSetStoreInterface,
        config: EngineConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._config = config or EngineConfig()
        self._sleep = sleep

    def apply(self, name: str, mutate: Mutation) -> tuple[VersionSet, bool]:
        """
        Apply `mutate` to the latest copy of a VersionSet.

        The mutation may run several times and must be a pure function of the
        record it is given.

        Returns:
            (stored record, whether a write happened)

        Raises:
            ConflictError: If every attempt lost the race
            VersionSetNotFound: If the record does not exist
        """
        max_attempts = self._config.max_conflict_retries
        for attempt in range(1, max_attempts + 1):
            current = self._store.get_latest(name)
            updated = mutate(current)
            if updated is None:
                return current, False
            try:
                return self._store.update(updated), True
            except ConflictError:
                if attempt == max_attempts:
                    break
                delay = self._config.backoff(attempt)
                logger.debug(
                    "Conflict updating %s (attempt %d/%d), retrying in %.3fs",
                    name,
                    attempt,
                    max_attempts,
                    delay,
                )
                self._sleep(delay)

        raise ConflictError(name, attempts=max_attempts)
