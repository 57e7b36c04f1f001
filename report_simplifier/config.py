"""
Process configuration for the report simplifier.

Settings are read once from the environment (a local .env file is loaded
first) and resolved into a frozen Settings object at startup.
"""
import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import MissingConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_PRO_MODEL = "gemini-2.0-flash"
DEFAULT_PORT = 3000
DEFAULT_MODEL_TIMEOUT_SECONDS = 180.0
DEFAULT_OCR_TIMEOUT_SECONDS = 120.0


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str
    gemini_pro_api_key: str
    flash_model: str = DEFAULT_MODEL
    pro_model: str = DEFAULT_PRO_MODEL
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    upload_dir: str = "uploads"
    model_timeout_seconds: float = DEFAULT_MODEL_TIMEOUT_SECONDS
    ocr_timeout_seconds: float = DEFAULT_OCR_TIMEOUT_SECONDS
    log_level: str = "INFO"
    log_json: bool = True


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        raise MissingConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise MissingConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings from the environment.

    The default Gemini key is required. The pro key falls back to the
    default key with a warning, so both model handles are always usable.

    Raises:
        MissingConfigurationError: GEMINI_API_KEY is missing or a numeric
            setting can't be parsed.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    api_key = (env.get("GEMINI_API_KEY") or "").strip()
    if not api_key:
        raise MissingConfigurationError("GEMINI_API_KEY not defined in environment or .env")

    pro_key = (env.get("GEMINI_PRO_API_KEY") or "").strip()
    if not pro_key:
        logger.warning("GEMINI_PRO_API_KEY missing, using GEMINI_API_KEY instead")
        pro_key = api_key

    return Settings(
        gemini_api_key=api_key,
        gemini_pro_api_key=pro_key,
        flash_model=env.get("GEMINI_MODEL") or DEFAULT_MODEL,
        pro_model=env.get("GEMINI_PRO_MODEL") or DEFAULT_PRO_MODEL,
        host=env.get("HOST") or "0.0.0.0",
        port=_number(env, "PORT", DEFAULT_PORT, int),
        upload_dir=env.get("UPLOAD_DIR") or "uploads",
        model_timeout_seconds=_number(
            env, "MODEL_TIMEOUT_SECONDS", DEFAULT_MODEL_TIMEOUT_SECONDS, float
        ),
        ocr_timeout_seconds=_number(
            env, "OCR_TIMEOUT_SECONDS", DEFAULT_OCR_TIMEOUT_SECONDS, float
        ),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_json=(env.get("LOG_FORMAT") or "json").lower() != "text",
    )


def cors_origins(env: Optional[Mapping[str, str]] = None) -> list[str]:
    """Allowed CORS origins from CORS_ORIGINS (comma separated, default '*')."""
    if env is None:
        load_dotenv()
        env = os.environ
    origins = [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    return origins or ["*"]
