"""
Report Simplifier pipeline - structured extraction and patient summary.

Flow for one report:
  1. Pro model extracts and normalizes every test result in the raw text
  2. Guardrail rejects the batch if any test name is not in the raw text
  3. Flash model writes a plain-language, non-diagnostic summary

Stages run strictly in order; the summary prompt needs the extracted tests.
"""
import json
import time
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .config import Settings, DEFAULT_MODEL_TIMEOUT_SECONDS
from .errors import MalformedModelOutput, NoTestsFound
from .gemini_client import ContentModel, GeminiModel, call_gemini
from .hallucination_check import guard_extracted_tests
from .models import ExtractionResult, SummaryResult, SimplifyReportResponse
from .structured_logging import StructuredLogger
from .prompts import (
    EXTRACTION_PROMPT,
    EXTRACTION_EXAMPLE,
    SUMMARY_PROMPT,
    SUMMARY_EXAMPLE,
)

logger = StructuredLogger(__name__)


@dataclass
class ReportSimplifier:
    """Runs the extraction, guardrail and summary stages for one report.

    Holds no per-request state, so one instance serves every request.
    """
    flash_model: ContentModel
    pro_model: ContentModel
    model_timeout_seconds: float = DEFAULT_MODEL_TIMEOUT_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReportSimplifier":
        return cls(
            flash_model=GeminiModel(
                settings.gemini_api_key,
                settings.flash_model,
                settings.model_timeout_seconds,
            ),
            pro_model=GeminiModel(
                settings.gemini_pro_api_key,
                settings.pro_model,
                settings.model_timeout_seconds,
            ),
            model_timeout_seconds=settings.model_timeout_seconds,
        )

    async def extract_tests(self, raw_text: str) -> ExtractionResult:
        """Extract normalized test results from the raw report text.

        Raises:
            NoTestsFound: the model found no tests.
            MalformedModelOutput: a test record has no usable name.
        """
        logger.info("[Step 2+3] Extracting & normalizing test data...")
        prompt = EXTRACTION_PROMPT.format(raw_text=raw_text)
        data = await call_gemini(
            self.pro_model, prompt, EXTRACTION_EXAMPLE,
            timeout=self.model_timeout_seconds,
        )

        tests = data.get("tests")
        if not isinstance(tests, list) or not tests:
            logger.info("Extraction returned no tests", test_count=0)
            raise NoTestsFound()

        try:
            result = ExtractionResult(tests=tests)
        except ValidationError as e:
            logger.error("Extracted tests failed validation", errors=e.errors(include_url=False))
            raise MalformedModelOutput() from e

        logger.info(
            "Extracted tests",
            test_count=len(result.tests),
            test_names=[t.name for t in result.tests],
        )
        return result

    async def summarize_tests(self, extraction: ExtractionResult) -> SummaryResult:
        """Generate a patient-friendly summary of already-verified tests."""
        logger.info("[Step 5] Generating summary...")
        tests_json = json.dumps([t.model_dump() for t in extraction.tests])
        prompt = SUMMARY_PROMPT.format(tests_json=tests_json)
        data = await call_gemini(
            self.flash_model, prompt, SUMMARY_EXAMPLE,
            timeout=self.model_timeout_seconds,
        )

        try:
            return SummaryResult.model_validate(data)
        except ValidationError as e:
            logger.error("Summary failed validation", errors=e.errors(include_url=False))
            raise MalformedModelOutput("Model returned a malformed summary.") from e

    async def simplify(self, raw_text: str) -> SimplifyReportResponse:
        """Run every stage on one report and build the success payload."""
        start_time = time.time()

        extraction = await self.extract_tests(raw_text)

        logger.info("[Step 4] Checking for hallucinated tests...")
        guard_extracted_tests(raw_text, extraction.tests)

        summary = await self.summarize_tests(extraction)

        logger.info(
            "[SUCCESS] Report simplified",
            test_count=len(extraction.tests),
            explanation_count=len(summary.explanations),
            duration_s=round(time.time() - start_time, 2),
        )
        return SimplifyReportResponse(
            tests=extraction.tests,
            summary=summary.summary,
            explanations=summary.explanations,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------
_simplifier_instance: Optional[ReportSimplifier] = None


def init_simplifier(settings: Settings) -> ReportSimplifier:
    """Build the shared simplifier once at startup."""
    global _simplifier_instance
    _simplifier_instance = ReportSimplifier.from_settings(settings)
    return _simplifier_instance


def get_simplifier() -> ReportSimplifier:
    """Return the shared simplifier built by init_simplifier."""
    if _simplifier_instance is None:
        raise RuntimeError("Report simplifier not initialized. Call init_simplifier() first.")
    return _simplifier_instance


def is_initialized() -> bool:
    return _simplifier_instance is not None
