"""
Status Map codec.

The Status Map travels as a JSON array in the VersionSet's
STATUS_MAP_ANNOTATION, one object per scenario, sorted by scenario name:

    [{"scenario": "login-test", "status": "InProgress",
      "lastUpdateTime": "2025-01-01T00:00:00+00:00",
      "details": "...", "testRunName": "...", "generation": 0,
      "startTime": "...", "completionTime": "..."}]
"""

import json
from datetime import datetime
from typing import Any

from testgate.domain.exceptions import CorruptStateError
from testgate.domain.models import (
    STATUS_MAP_ANNOTATION,
    StatusMap,
    StatusMapEntry,
    TestStatus,
    VersionSet,
)


def _entry_to_dict(entry: StatusMapEntry) -> dict[str, Any]:
    data: dict[str, Any] = {
        "scenario": entry.scenario,
        "status": entry.status.value,
        "lastUpdateTime": entry.last_update_time.isoformat(),
        "details": entry.detail,
        "testRunName": entry.test_run_name,
        "generation": entry.generation,
    }
    if entry.start_time is not None:
        data["startTime"] = entry.start_time.isoformat()
    if entry.completion_time is not None:
        data["completionTime"] = entry.completion_time.isoformat()
    return data


def _parse_time(data: dict[str, Any], key: str) -> datetime | None:
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise CorruptStateError(f"'{key}' must be a string, got {type(raw).__name__}")
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise CorruptStateError(f"'{key}' is not an ISO timestamp: {raw!r}") from e


def _dict_to_entry(data: Any) -> StatusMapEntry:
    if not isinstance(data, dict):
        raise CorruptStateError(f"entry must be an object, got {type(data).__name__}")

    scenario = data.get("scenario")
    if not isinstance(scenario, str) or not scenario:
        raise CorruptStateError("entry is missing 'scenario'")

    try:
        status = TestStatus(data.get("status"))
    except ValueError as e:
        raise CorruptStateError(
            f"unknown status {data.get('status')!r} for '{scenario}'"
        ) from e

    last_update_time = _parse_time(data, "lastUpdateTime")
    if last_update_time is None:
        raise CorruptStateError(f"entry '{scenario}' is missing 'lastUpdateTime'")

    generation = data.get("generation", 0)
    if not isinstance(generation, int) or isinstance(generation, bool):
        raise CorruptStateError(f"'generation' of '{scenario}' must be an integer")

    detail = data.get("details", "")
    test_run_name = data.get("testRunName", "")
    if not isinstance(detail, str) or not isinstance(test_run_name, str):
        raise CorruptStateError(f"entry '{scenario}' has non-string text fields")

    return StatusMapEntry(
        scenario=scenario,
        status=status,
        last_update_time=last_update_time,
        detail=detail,
        test_run_name=test_run_name,
        start_time=_parse_time(data, "startTime"),
        completion_time=_parse_time(data, "completionTime"),
        generation=generation,
    )


def encode(status_map: StatusMap) -> str:
    """Serialize a Status Map. Total for every StatusMap."""
    return json.dumps(
        [_entry_to_dict(status_map.entries[name]) for name in status_map.names()],
        separators=(",", ":"),
    )


def decode(opaque: str | None) -> StatusMap:
    """
    Deserialize a Status Map.

    Args:
        opaque: The stored payload; None or empty means no map yet

    Raises:
        CorruptStateError: If a payload exists but cannot be parsed
    """
    if opaque is None or not opaque.strip():
        return StatusMap()

    try:
        data = json.loads(opaque)
    except json.JSONDecodeError as e:
        raise CorruptStateError(f"invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise CorruptStateError(f"expected a list, got {type(data).__name__}")

    entries: dict[str, StatusMapEntry] = {}
    for item in data:
        entry = _dict_to_entry(item)
        if entry.scenario in entries:
            raise CorruptStateError(f"duplicate entry for '{entry.scenario}'")
        entries[entry.scenario] = entry
    return StatusMap(entries=entries)


def read_status_map(version_set: VersionSet) -> StatusMap:
    """Decode the Status Map carried by a VersionSet."""
    try:
        return decode(version_set.annotation(STATUS_MAP_ANNOTATION))
    except CorruptStateError as e:
        raise CorruptStateError(e.reason, version_set=version_set.name) from e


def write_status_map(version_set: VersionSet, status_map: StatusMap) -> VersionSet:
    """Return a copy of the VersionSet carrying the encoded Status Map."""
    return version_set.with_annotation(STATUS_MAP_ANNOTATION, encode(status_map))
