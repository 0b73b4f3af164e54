"""
Domain exceptions for version-set test orchestration.

RetryableError subclasses mean "nothing was decided, try again on the next
event or backoff tick". LaunchError is recorded on the Status Map instead of
being retried.
"""


class GateError(Exception):
    """Base class for all orchestration errors."""


class RetryableError(GateError):
    """Transient failure; the caller should requeue the triggering event."""


class SelectionError(RetryableError):
    """The scenario catalog could not be read for an application."""

    def __init__(self, application: str, reason: str):
        super().__init__(f"Cannot list scenarios for '{application}': {reason}")
        self.application = application
        self.reason = reason


class CorruptStateError(RetryableError):
    """
    The Status Map stored on a VersionSet cannot be decoded.

    Never answered with an empty map: that would silently discard
    in-flight run references.
    """

    def __init__(self, reason: str, version_set: str | None = None):
        where = f" on '{version_set}'" if version_set else ""
        super().__init__(f"Corrupt status map{where}: {reason}")
        self.reason = reason
        self.version_set = version_set


class ConflictError(RetryableError):
    """An optimistic write lost the race against another writer."""

    def __init__(self, version_set: str, attempts: int = 1):
        super().__init__(
            f"Conflicting update on '{version_set}' after {attempts} attempt(s)"
        )
        self.version_set = version_set
        self.attempts = attempts


class LaunchError(GateError):
    """The execution engine rejected a TestRun submission."""

    def __init__(self, scenario: str, reason: str):
        super().__init__(f"Failed to launch scenario '{scenario}': {reason}")
        self.scenario = scenario
        self.reason = reason


class VersionSetNotFound(GateError, KeyError):
    """No VersionSet with the requested name exists."""

    def __init__(self, name: str):
        super().__init__(f"VersionSet not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class RunNotFound(GateError, KeyError):
    """No TestRun with the requested name exists in the execution engine."""

    def __init__(self, name: str):
        super().__init__(f"TestRun not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class ConfigValidationError(GateError):
    """Configuration file failed schema validation."""

    def __init__(self, source: str, errors: list[str]):
        super().__init__(f"{source}: " + "; ".join(errors))
        self.source = source
        self.errors = errors
