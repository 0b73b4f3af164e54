"""
OutcomeEvaluator: classifies a TestRun into a status verdict.

Fails closed: a finished run whose results are missing or malformed is a
failed test, never a pass by default and never a silent skip.
"""

import json

from testgate.domain.models import RunState, TestStatus, Verdict
from testgate.schemas import validate_test_output

TEST_OUTPUT_RESULT = "TEST_OUTPUT"

# TEST_OUTPUT "result" values that count as success
SUCCESS_RESULTS = frozenset({"SUCCESS", "WARNING", "SKIPPED"})


class OutcomeEvaluator:
    """Pure verdict function over an already-fetched RunState."""

    def evaluate(self, run: RunState) -> Verdict:
        if not run.finished:
            if run.deletion_requested:
                return Verdict(
                    TestStatus.DELETED, "Test run was deleted before it finished"
                )
            return Verdict(TestStatus.IN_PROGRESS, "Test run is in progress")

        outputs, errors = self._parse_test_outputs(run)
        if errors:
            return Verdict(TestStatus.FAILED, "; ".join(errors))

        if run.succeeded and all(o["result"] in SUCCESS_RESULTS for o in outputs):
            return Verdict(TestStatus.PASSED, "test passed")
        return Verdict(TestStatus.FAILED, "test failed")

    def _parse_test_outputs(self, run: RunState) -> tuple[list[dict], list[str]]:
        """Decode and validate every TEST_OUTPUT result of a run."""
        raw_values = [
            value for name, value in run.results if name == TEST_OUTPUT_RESULT
        ]
        if not raw_values:
            return [], [f"{TEST_OUTPUT_RESULT}: required result is missing"]

        outputs: list[dict] = []
        errors: list[str] = []
        for raw in raw_values:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                errors.append(f"{TEST_OUTPUT_RESULT}: invalid JSON ({e.msg})")
                continue
            problems = validate_test_output(data)
            if problems:
                errors.extend(f"{TEST_OUTPUT_RESULT}: {p}" for p in problems)
                continue
            outputs.append(data)
        return outputs, errors
