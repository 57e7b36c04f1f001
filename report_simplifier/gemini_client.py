"""
Gemini client wrapper and the single-shot JSON invoker used by every
pipeline stage.

A GeminiModel pairs one configured genai.Client with a model name. Two of
them (flash and pro) are built at startup and shared across requests.
"""
import asyncio
import inspect
import json
import logging
from typing import Any, Protocol

from google import genai
from google.genai import types

from .config import DEFAULT_MODEL_TIMEOUT_SECONDS
from .errors import (
    EmptyModelResponse,
    ExternalServiceTimeout,
    ModelInvocationFailed,
)
from .json_utils import extract_json
from .prompts import JSON_ONLY_PROMPT

logger = logging.getLogger(__name__)


class ContentModel(Protocol):
    model_name: str

    async def generate_content(self, prompt: str) -> Any: ...


class GeminiModel:
    """A Gemini model bound to one API key."""

    def __init__(self, api_key: str, model_name: str,
                 timeout_seconds: float = DEFAULT_MODEL_TIMEOUT_SECONDS):
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        timeout_ms = int(timeout_seconds * 1000)
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_ms),
        )
        logger.info(f"Gemini model ready: {model_name} (timeout: {timeout_seconds}s)")

    async def generate_content(self, prompt: str) -> types.GenerateContentResponse:
        return await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=prompt,
        )


async def _response_text(response: Any) -> str | None:
    """Read response.text whether it is a value, a method, or a coroutine."""
    text = getattr(response, "text", None)
    if callable(text):
        text = text()
    if inspect.isawaitable(text):
        text = await text
    return text


def build_json_prompt(task_prompt: str, example_json: dict) -> str:
    return JSON_ONLY_PROMPT.format(
        task_prompt=task_prompt,
        example_json=json.dumps(example_json),
    )


async def call_gemini(
    model: ContentModel,
    task_prompt: str,
    example_json: dict,
    timeout: float = DEFAULT_MODEL_TIMEOUT_SECONDS,
) -> dict:
    """Run one Gemini call and return the JSON object it produced.

    Args:
        model: Model handle exposing an async generate_content(prompt)
        task_prompt: The stage-specific instruction
        example_json: Example of the expected output shape
        timeout: Upper bound for the call in seconds

    Returns:
        The parsed JSON object.

    Raises:
        ExternalServiceTimeout: the model did not answer within `timeout`.
        ModelInvocationFailed: anything else went wrong. Empty text, missing
            braces and bad JSON are logged with their cause but not told
            apart here.
    """
    full_prompt = build_json_prompt(task_prompt, example_json)
    model_name = getattr(model, "model_name", "gemini")

    try:
        response = await asyncio.wait_for(
            model.generate_content(full_prompt), timeout=timeout
        )
        text = await _response_text(response)
        if not text:
            raise EmptyModelResponse()
        return extract_json(text)
    except asyncio.TimeoutError:
        logger.error(f"[call_gemini] {model_name} timed out after {timeout}s")
        raise ExternalServiceTimeout("Gemini", timeout)
    except Exception as e:
        logger.error(f"[call_gemini] {model_name} error: {e}", exc_info=True)
        raise ModelInvocationFailed() from e
