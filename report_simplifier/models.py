"""
Pydantic models for the report simplifier pipeline and API payloads.
"""
from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Literal, Optional, Union


def _number_or_text(v: Any) -> Any:
    """Numeric strings become floats; other text is kept as written."""
    if not isinstance(v, str):
        return v
    v = v.strip()
    if not v:
        return None
    try:
        return float(v)
    except ValueError:
        return v


# --- Extraction ---

class RefRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Null when the report prints no reference interval
    low: Optional[Union[float, str]] = None
    high: Optional[Union[float, str]] = None

    @field_validator("low", "high", mode="before")
    @classmethod
    def coerce_bound(cls, v):
        return _number_or_text(v)


class TestResult(BaseModel):
    """One extracted test. Only the name is required."""
    model_config = ConfigDict(frozen=True)

    # Keeps pytest from collecting this as a test class
    __test__ = False

    name: str
    # Qualitative results ("Negative", "Trace") stay strings
    value: Optional[Union[float, str]] = None
    unit: str = ""
    status: str = ""
    ref_range: RefRange = RefRange()

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Test name cannot be empty")
        return v.strip()

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v):
        return _number_or_text(v)

    @field_validator("unit", "status", mode="before")
    @classmethod
    def blank_if_missing(cls, v):
        return "" if v is None else v

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("ref_range", mode="before")
    @classmethod
    def ref_range_default(cls, v):
        return v if isinstance(v, (dict, RefRange)) else {}


class ExtractionResult(BaseModel):
    tests: list[TestResult]


# --- Summary ---

class SummaryResult(BaseModel):
    summary: str
    # No count relationship with the extracted tests is enforced
    explanations: list[str] = []


# --- API responses ---

class SimplifyReportResponse(BaseModel):
    status: Literal["ok"] = "ok"
    tests: list[TestResult]
    summary: str
    explanations: list[str]


class ErrorResponse(BaseModel):
    status: Literal["error", "unprocessed"]
    message: Optional[str] = None
    reason: Optional[str] = None
