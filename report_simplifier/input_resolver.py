"""
Resolve the raw report text for a request.

Sources are tried in a fixed order and the first match wins:
  1. JSON body with a "text" field
  2. Form body with a non-empty "text" field
  3. Uploaded "reportImage" file, read through OCR
"""
import re
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional

from fastapi import Request
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from . import ocr
from .config import DEFAULT_OCR_TIMEOUT_SECONDS
from .errors import NoInputProvided
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)

TEXT_FIELD = "text"
IMAGE_FIELD = "reportImage"

Recognizer = Callable[..., Awaitable[ocr.OcrResult]]


def _is_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == "application/json"


async def _json_text(request: Request) -> Optional[str]:
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("Unreadable JSON body", error=str(e))
        return None
    if not isinstance(body, dict):
        return None
    text = body.get(TEXT_FIELD)
    return text if isinstance(text, str) else None


async def _read_form(request: Request) -> Optional[FormData]:
    try:
        return await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        logger.warning("Unreadable form body", error=str(e))
        return None


def upload_name(client_filename: Optional[str]) -> str:
    """Generate a unique stored name, keeping a short alphanumeric extension.

    The client filename contributes nothing but its extension.
    """
    basename = (client_filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, ext = basename.rpartition(".")
    if not (stem and dot and re.fullmatch(r"[A-Za-z0-9]{1,8}", ext)):
        return uuid.uuid4().hex
    return f"{uuid.uuid4().hex}.{ext.lower()}"


def _remove_upload(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error("File cleanup error", path=str(path), error=str(e))


async def ocr_upload(
    upload: UploadFile,
    upload_dir: str,
    recognize: Optional[Recognizer] = None,
    timeout: float = DEFAULT_OCR_TIMEOUT_SECONDS,
) -> str:
    """Store the upload under a fresh name, OCR it, and delete it.

    The stored file is removed whether OCR succeeds or fails. Cleanup
    errors are logged, never raised.
    """
    recognize = recognize or ocr.recognize
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / upload_name(upload.filename)

    try:
        path.write_bytes(await upload.read())
        logger.info("Saved upload", client_filename=upload.filename, stored_as=path.name)
        result = await recognize(str(path), ocr.OCR_LANGUAGE, timeout=timeout)
        return result.text.strip()
    finally:
        _remove_upload(path)
        await upload.close()


async def resolve_raw_input(
    request: Request,
    upload_dir: str,
    recognize: Optional[Recognizer] = None,
    ocr_timeout: float = DEFAULT_OCR_TIMEOUT_SECONDS,
) -> str:
    """Return the report text for this request.

    Raises:
        NoInputProvided: no source matched, or the text is blank.
    """
    raw_text = None
    input_source = None

    if _is_json(request):
        input_source = "json"
        raw_text = await _json_text(request)
    else:
        form = await _read_form(request)
        form_text = form.get(TEXT_FIELD) if form else None
        upload = form.get(IMAGE_FIELD) if form else None

        if isinstance(form_text, str) and form_text.strip():
            input_source = "form_text"
            raw_text = form_text
        elif isinstance(upload, UploadFile):
            input_source = "image"
            logger.info("[Step 1] Image input detected. Running OCR...")
            raw_text = await ocr_upload(upload, upload_dir, recognize, ocr_timeout)

    if not raw_text or not raw_text.strip():
        raise NoInputProvided()

    logger.info("[Step 1] Raw text resolved", input_source=input_source, raw_text_chars=len(raw_text))
    return raw_text
