"""
Tesseract OCR for uploaded report images.
"""
import asyncio
import logging
from dataclasses import dataclass

import pytesseract
from PIL import Image

from .config import DEFAULT_OCR_TIMEOUT_SECONDS
from .errors import ExternalServiceTimeout

logger = logging.getLogger(__name__)

OCR_LANGUAGE = "eng"


@dataclass(frozen=True)
class OcrResult:
    text: str


def _recognize_sync(file_path: str, language: str) -> OcrResult:
    with Image.open(file_path) as image:
        logger.info(f"Running Tesseract on {image.size[0]}x{image.size[1]} image")
        text = pytesseract.image_to_string(image, lang=language)
    return OcrResult(text=text)


async def recognize(
    file_path: str,
    language: str = OCR_LANGUAGE,
    timeout: float = DEFAULT_OCR_TIMEOUT_SECONDS,
) -> OcrResult:
    """Recognize text in an image file.

    Tesseract blocks, so it runs in a worker thread. Errors from Pillow or
    Tesseract propagate to the caller.

    Raises:
        ExternalServiceTimeout: recognition took longer than `timeout`.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_recognize_sync, file_path, language),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error(f"OCR timed out after {timeout}s for {file_path}")
        raise ExternalServiceTimeout("OCR", timeout)
