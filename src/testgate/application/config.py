"""Engine configuration and its JSON loader."""

import json
from dataclasses import dataclass
from pathlib import Path

from testgate.domain.exceptions import ConfigValidationError
from testgate.schemas import validate_config


@dataclass(frozen=True)
class EngineConfig:
    """Tunables of the orchestration engine."""

    max_conflict_retries: int = 5  # read-mutate-write attempts per transition
    backoff_base_seconds: float = 0.05
    backoff_max_seconds: float = 1.0
    reserved_param_name: str = "VERSION_SET"
    # A launch claim older than this is taken over by the next reconcile
    launch_claim_timeout_seconds: float = 300.0

    def backoff(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based), capped exponential."""
        return min(
            self.backoff_base_seconds * (2 ** (attempt - 1)), self.backoff_max_seconds
        )


def load_config(path: str | Path | None = None) -> EngineConfig:
    """
    Load and validate engine configuration from a JSON file.

    Args:
        path: Path to the config JSON. None yields the defaults.

    Returns:
        The parsed EngineConfig

    Raises:
        ConfigValidationError: If the file isn't valid JSON or fails schema validation
        FileNotFoundError: If the file doesn't exist
    """
    if path is None:
        return EngineConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(str(config_path), [str(e)]) from e

    errors = validate_config(data)
    if errors:
        raise ConfigValidationError(str(config_path), errors)
    return EngineConfig(**data)
