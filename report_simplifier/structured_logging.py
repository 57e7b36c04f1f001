"""
JSON logging for the report simplifier.

Every record carries the id of the HTTP request it was emitted under.
Keyword data passed to StructuredLogger is written under "data".
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

SERVICE_NAME = "report-simplifier"

# Third-party loggers that log every HTTP round trip at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "google_genai")

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, generating one if needed."""
    request_id = request_id or uuid.uuid4().hex[:8]
    request_id_var.set(request_id)
    return request_id


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        fields = getattr(record, "fields", None)
        if fields:
            entry["data"] = fields
        return json.dumps(entry, default=str)


class StructuredLogger:
    """Logger whose keyword arguments become the record's "data" payload."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        self.logger.log(level, message, exc_info=exc_info, extra={"fields": fields})

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **fields)


def setup_logging(
    level: int | str = logging.INFO,
    service_name: str = SERVICE_NAME,
    use_json: bool = True,
) -> None:
    """Replace the root handlers with a single stderr handler.

    Args:
        level: Root logging level
        service_name: Value of the "service" field in JSON output
        use_json: JSON lines when True, plain text otherwise
    """
    handler = logging.StreamHandler(sys.stderr)
    if use_json:
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_http_logger = StructuredLogger("report_simplifier.http")


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
) -> None:
    """Log one served request; 5xx responses are logged as errors."""
    fields = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
    }
    if client_ip:
        fields["client_ip"] = _mask_ip(client_ip)

    message = f"{method} {path} {status_code}"
    if status_code >= 500:
        _http_logger.error(message, **fields)
    else:
        _http_logger.info(message, **fields)


def _mask_ip(ip: str) -> str:
    """Keep the first two IPv4 octets; mask everything else."""
    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.xxx.xxx"
    return "xxx"
