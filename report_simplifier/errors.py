"""
Pipeline error types for the report simplifier.

Each error carries the HTTP status and payload status it maps to;
responses.error_response reads them when building the error body.
"""


class ReportPipelineError(Exception):
    """Base class for failures raised while processing a report."""

    status_code = 500
    payload_status = "error"
    default_message = "Report processing failed."

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class NoInputProvided(ReportPipelineError):
    """Neither text nor a usable image was supplied."""

    status_code = 400
    default_message = "No text or image provided."


class ModelInvocationFailed(ReportPipelineError):
    """A Gemini call did not yield a usable JSON object."""

    default_message = "Failed to get valid JSON from Gemini model."


class EmptyModelResponse(ReportPipelineError):
    default_message = "Empty response from model."


class InvalidModelOutput(ReportPipelineError):
    default_message = "No valid JSON block returned by model."


class MalformedModelOutput(ReportPipelineError):
    """Model JSON parsed but its records don't match the expected shape."""

    default_message = "Model returned malformed test records."


class NoTestsFound(ReportPipelineError):
    status_code = 400
    payload_status = "unprocessed"
    default_message = "No valid medical tests found."


class HallucinationDetected(ReportPipelineError):
    status_code = 500
    payload_status = "unprocessed"
    default_message = "AI generated tests not found in original text."

    def __init__(self, hallucinated_tests: list[str] = None, message: str = None):
        super().__init__(message)
        self.hallucinated_tests = hallucinated_tests or []


class ExternalServiceTimeout(ReportPipelineError):
    """OCR or Gemini did not answer within the configured bound."""

    def __init__(self, service: str, timeout: float):
        super().__init__(f"{service} call timed out after {timeout:g}s.")
        self.service = service
        self.timeout = timeout


class MissingConfigurationError(RuntimeError):
    """Required process configuration is absent or invalid."""
