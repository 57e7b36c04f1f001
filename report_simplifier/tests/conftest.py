"""Shared fakes and fixtures for the report simplifier tests."""
import json

import pytest
from fastapi.testclient import TestClient

from report_simplifier.config import Settings
from report_simplifier.main import app, get_settings
from report_simplifier.pipeline import ReportSimplifier, get_simplifier


HEMOGLOBIN_TEXT = "Hemoglobin 10.2 g/dL (ref 12.0-15.0) LOW"

QUALITATIVE_TEXT = "Urine Protein: Negative. Hemoglobin 10.2 g/dL (ref 12.0-15.0) LOW"

EXTRACTION_OK = json.dumps({
    "tests": [
        {
            "name": "Hemoglobin",
            "value": 10.2,
            "unit": "g/dL",
            "status": "low",
            "ref_range": {"low": 12.0, "high": 15.0},
        }
    ]
})

SUMMARY_OK = json.dumps({
    "summary": "Your hemoglobin is a little below the usual range.",
    "explanations": ["Low hemoglobin can happen for many reasons; ask your doctor."],
})


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stand-in for GeminiModel that replays canned responses in order."""

    def __init__(self, *responses, model_name="fake-gemini"):
        self.model_name = model_name
        self.responses = list(responses)
        self.prompts = []

    async def generate_content(self, prompt):
        self.prompts.append(prompt)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return FakeResponse(item)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gemini_api_key="test-key",
        gemini_pro_api_key="test-key",
        upload_dir=str(tmp_path / "uploads"),
        model_timeout_seconds=5.0,
        ocr_timeout_seconds=5.0,
    )


@pytest.fixture
def make_client(settings):
    """Build a TestClient whose pipeline uses the given fake models."""
    def _make(flash: FakeModel, pro: FakeModel) -> TestClient:
        simplifier = ReportSimplifier(flash_model=flash, pro_model=pro, model_timeout_seconds=5.0)
        app.dependency_overrides[get_simplifier] = lambda: simplifier
        app.dependency_overrides[get_settings] = lambda: settings
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
