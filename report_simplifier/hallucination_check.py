"""
Hallucination detection for extracted test results.
Validates that every extracted test name actually appears in the source report.
"""

from typing import Any, Sequence

from .errors import HallucinationDetected
from .models import TestResult
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)


def _test_name(test: TestResult | dict[str, Any]) -> str:
    if isinstance(test, dict):
        return str(test.get("name") or "")
    return test.name


def check_test_grounding(
    raw_text: str,
    tests: Sequence[TestResult | dict[str, Any]],
) -> dict[str, Any]:
    """
    Check whether each extracted test name occurs in the source text.

    Matching is a case-insensitive substring test against the raw report,
    so it catches fabricated test names only. Values, units and status are
    not verified.

    Args:
        raw_text: The report text the tests were extracted from
        tests: Extracted test records (models or plain dicts)

    Returns:
        Dict with 'has_hallucination', 'hallucinated_tests', 'warnings'
    """
    result = {
        "has_hallucination": False,
        "hallucinated_tests": [],
        "warnings": [],
    }

    source = raw_text.lower()

    for test in tests:
        name = _test_name(test)
        if name and name.lower() in source:
            continue

        result["has_hallucination"] = True
        result["hallucinated_tests"].append(name)
        warning = f"Potential hallucination: test '{name}' not found in original text"
        result["warnings"].append(warning)
        logger.warning(f"Hallucination detected: {warning}", test_name=name)

    return result


def guard_extracted_tests(raw_text: str, tests: Sequence[TestResult]) -> Sequence[TestResult]:
    """Pass tests through unchanged, or reject the whole batch.

    A single ungrounded name fails the whole batch; no record is dropped.

    Raises:
        HallucinationDetected: at least one test name is not in raw_text.
    """
    check = check_test_grounding(raw_text, tests)
    if check["has_hallucination"]:
        logger.warning(
            "Guardrail triggered",
            hallucinated_tests=check["hallucinated_tests"],
            hallucinated_count=len(check["hallucinated_tests"]),
            test_count=len(tests),
        )
        raise HallucinationDetected(check["hallucinated_tests"])
    return tests
