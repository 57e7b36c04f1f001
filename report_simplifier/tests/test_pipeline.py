"""Tests for the extraction -> guardrail -> summary pipeline."""
import asyncio
import json
import logging
from unittest.mock import patch

import pytest

from report_simplifier.config import Settings
from report_simplifier.errors import (
    HallucinationDetected,
    MalformedModelOutput,
    ModelInvocationFailed,
    NoTestsFound,
)
from report_simplifier.models import ExtractionResult
from report_simplifier.pipeline import ReportSimplifier

from conftest import EXTRACTION_OK, HEMOGLOBIN_TEXT, QUALITATIVE_TEXT, SUMMARY_OK, FakeModel


def run(coro):
    return asyncio.run(coro)


def _simplifier(flash: FakeModel, pro: FakeModel) -> ReportSimplifier:
    return ReportSimplifier(flash_model=flash, pro_model=pro, model_timeout_seconds=5.0)


class TestExtractTests:

    def test_uses_pro_model_and_quotes_raw_text(self):
        flash, pro = FakeModel(), FakeModel(EXTRACTION_OK)
        result = run(_simplifier(flash, pro).extract_tests(HEMOGLOBIN_TEXT))

        assert [t.name for t in result.tests] == ["Hemoglobin"]
        assert result.tests[0].ref_range.low == 12.0
        assert f'Text: "{HEMOGLOBIN_TEXT}"' in pro.prompts[0]
        assert flash.prompts == []

    def test_empty_tests(self):
        pro = FakeModel('{"tests": []}')
        with pytest.raises(NoTestsFound):
            run(_simplifier(FakeModel(), pro).extract_tests("patient feels fine"))

    def test_missing_tests_key(self):
        pro = FakeModel('{"results": [{"name": "x"}]}')
        with pytest.raises(NoTestsFound):
            run(_simplifier(FakeModel(), pro).extract_tests("patient feels fine"))

    def test_status_normalized(self):
        pro = FakeModel(json.dumps({"tests": [{
            "name": "Glucose", "value": "140", "unit": "mg/dL", "status": " HIGH ",
            "ref_range": {"low": 70, "high": 99},
        }]}))
        result = run(_simplifier(FakeModel(), pro).extract_tests("Glucose 140 mg/dL"))
        assert result.tests[0].status == "high"
        assert result.tests[0].value == 140.0

    def test_missing_ref_range_allowed(self):
        pro = FakeModel(json.dumps({"tests": [{
            "name": "Sodium", "value": 139, "unit": "mmol/L", "status": "normal",
            "ref_range": {"low": None, "high": None},
        }]}))
        result = run(_simplifier(FakeModel(), pro).extract_tests("Sodium 139"))
        assert result.tests[0].ref_range.low is None

    def test_qualitative_value_kept(self):
        pro = FakeModel(json.dumps({"tests": [
            {"name": "Urine Protein", "value": "Negative", "unit": None, "status": "normal", "ref_range": None},
            {"name": "Hemoglobin", "value": 10.2, "unit": "g/dL", "status": "low",
             "ref_range": {"low": 12.0, "high": 15.0}},
        ]}))
        result = run(_simplifier(FakeModel(), pro).extract_tests(QUALITATIVE_TEXT))

        protein, hemoglobin = result.tests
        assert protein.value == "Negative"
        assert protein.unit == ""
        assert protein.ref_range.low is None
        assert hemoglobin.value == 10.2

    def test_non_numeric_ref_bound_kept(self):
        pro = FakeModel(json.dumps({"tests": [{
            "name": "LDL", "value": "130", "unit": "mg/dL", "status": "high",
            "ref_range": {"low": None, "high": "<100"},
        }]}))
        result = run(_simplifier(FakeModel(), pro).extract_tests("LDL 130 mg/dL (<100)"))
        assert result.tests[0].value == 130.0
        assert result.tests[0].ref_range.high == "<100"

    def test_missing_value_and_unlisted_status_kept(self):
        pro = FakeModel('{"tests": [{"name": "Hemoglobin", "status": "Borderline"}]}')
        result = run(_simplifier(FakeModel(), pro).extract_tests(HEMOGLOBIN_TEXT))
        assert result.tests[0].value is None
        assert result.tests[0].status == "borderline"

    def test_record_without_name_is_malformed(self):
        pro = FakeModel('{"tests": [{"value": 10.2, "unit": "g/dL", "status": "low"}]}')
        with pytest.raises(MalformedModelOutput):
            run(_simplifier(FakeModel(), pro).extract_tests(HEMOGLOBIN_TEXT))

    def test_blank_name_is_malformed(self):
        pro = FakeModel('{"tests": [{"name": "  ", "value": 10.2, "status": "low"}]}')
        with pytest.raises(MalformedModelOutput):
            run(_simplifier(FakeModel(), pro).extract_tests(HEMOGLOBIN_TEXT))


class TestSummarizeTests:

    def test_uses_flash_model_with_serialized_tests(self):
        flash = FakeModel(SUMMARY_OK)
        extraction = ExtractionResult.model_validate(json.loads(EXTRACTION_OK))
        summary = run(_simplifier(flash, FakeModel()).summarize_tests(extraction))

        assert summary.summary.startswith("Your hemoglobin")
        assert '"name": "Hemoglobin"' in flash.prompts[0]
        assert "Do NOT give diagnosis" in flash.prompts[0]

    def test_explanation_count_not_tied_to_tests(self):
        flash = FakeModel('{"summary": "s", "explanations": ["a", "b", "c"]}')
        extraction = ExtractionResult.model_validate(json.loads(EXTRACTION_OK))
        summary = run(_simplifier(flash, FakeModel()).summarize_tests(extraction))
        assert len(summary.explanations) == 3

    def test_missing_summary_is_malformed(self):
        flash = FakeModel('{"explanations": []}')
        extraction = ExtractionResult.model_validate(json.loads(EXTRACTION_OK))
        with pytest.raises(MalformedModelOutput):
            run(_simplifier(flash, FakeModel()).summarize_tests(extraction))


class TestSimplify:

    def test_success(self):
        flash, pro = FakeModel(SUMMARY_OK), FakeModel(EXTRACTION_OK)
        payload = run(_simplifier(flash, pro).simplify(HEMOGLOBIN_TEXT))

        assert payload.status == "ok"
        assert payload.tests[0].name == "Hemoglobin"
        assert payload.explanations == json.loads(SUMMARY_OK)["explanations"]

    def test_no_tests_skips_summary(self):
        flash, pro = FakeModel(SUMMARY_OK), FakeModel('{"tests": []}')
        with pytest.raises(NoTestsFound):
            run(_simplifier(flash, pro).simplify("patient feels fine, no labs"))
        assert flash.prompts == []

    def test_hallucination_skips_summary(self):
        fabricated = EXTRACTION_OK.replace("Hemoglobin", "Ferritin")
        flash, pro = FakeModel(SUMMARY_OK), FakeModel(fabricated)
        with pytest.raises(HallucinationDetected):
            run(_simplifier(flash, pro).simplify(HEMOGLOBIN_TEXT))
        assert flash.prompts == []

    def test_success_logs_counts_and_duration(self, caplog):
        flash, pro = FakeModel(SUMMARY_OK), FakeModel(EXTRACTION_OK)
        with caplog.at_level(logging.INFO, logger="report_simplifier.pipeline"):
            run(_simplifier(flash, pro).simplify(HEMOGLOBIN_TEXT))

        done = next(r for r in caplog.records if r.getMessage() == "[SUCCESS] Report simplified")
        assert done.fields["test_count"] == 1
        assert done.fields["explanation_count"] == 1
        assert done.fields["duration_s"] >= 0

        extracted = next(r for r in caplog.records if r.getMessage() == "Extracted tests")
        assert extracted.fields == {"test_count": 1, "test_names": ["Hemoglobin"]}

    def test_summary_failure_propagates(self):
        flash, pro = FakeModel("no json here"), FakeModel(EXTRACTION_OK)
        with pytest.raises(ModelInvocationFailed):
            run(_simplifier(flash, pro).simplify(HEMOGLOBIN_TEXT))


class TestFromSettings:

    def test_builds_flash_and_pro_models(self):
        settings = Settings(
            gemini_api_key="flash-key",
            gemini_pro_api_key="pro-key",
            flash_model="gemini-flash-x",
            pro_model="gemini-pro-x",
            model_timeout_seconds=42.0,
        )
        with patch("report_simplifier.gemini_client.genai.Client") as client_cls:
            simplifier = ReportSimplifier.from_settings(settings)

        keys = [c.kwargs["api_key"] for c in client_cls.call_args_list]
        assert keys == ["flash-key", "pro-key"]
        assert simplifier.flash_model.model_name == "gemini-flash-x"
        assert simplifier.pro_model.model_name == "gemini-pro-x"
        assert simplifier.model_timeout_seconds == 42.0
