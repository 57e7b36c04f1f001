"""
Map pipeline outcomes to HTTP responses.

| Outcome                | Code | status      | field   |
|------------------------|------|-------------|---------|
| NoInputProvided        | 400  | error       | message |
| NoTestsFound           | 400  | unprocessed | reason  |
| HallucinationDetected  | 500  | unprocessed | reason  |
| anything else          | 500  | error       | reason  |
"""
from fastapi.responses import JSONResponse

from .errors import NoInputProvided, ReportPipelineError
from .models import ErrorResponse, SimplifyReportResponse
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)


def success_response(payload: SimplifyReportResponse) -> JSONResponse:
    return JSONResponse(status_code=200, content=payload.model_dump())


def error_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, NoInputProvided):
        body = ErrorResponse(status=exc.payload_status, message=str(exc))
        status_code = exc.status_code
    elif isinstance(exc, ReportPipelineError):
        body = ErrorResponse(status=exc.payload_status, reason=str(exc))
        status_code = exc.status_code
    else:
        body = ErrorResponse(status="error", reason=str(exc))
        status_code = 500
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def log_failure(exc: Exception) -> None:
    error_type = type(exc).__name__
    if isinstance(exc, ReportPipelineError) and exc.status_code < 500:
        logger.info(f"Request not processed: {exc}", error_type=error_type)
    elif isinstance(exc, ReportPipelineError):
        logger.error(f"Error during AI processing: {exc}", error_type=error_type)
    else:
        logger.error(f"Error during AI processing: {exc}", exc_info=True, error_type=error_type)
