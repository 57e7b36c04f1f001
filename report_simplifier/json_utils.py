"""
JSON extraction for Gemini model output.

The model is asked for bare JSON but still wraps it in prose or markdown
fences now and then, so the object is cut out between the first "{" and
the last "}" before parsing.
"""
import json
import logging

from .errors import InvalidModelOutput

logger = logging.getLogger(__name__)


def extract_json_block(text: str) -> str:
    """Return the substring from the first '{' to the last '}' inclusive."""
    start = text.find('{')
    end = text.rfind('}')
    if start == -1 or end == -1 or end < start:
        logger.error(f"No JSON object found in response: {text[:200]}...")
        raise InvalidModelOutput()
    return text[start:end + 1]


def extract_json(text: str) -> dict:
    """Extract and parse the JSON object embedded in a model response.

    Raises:
        InvalidModelOutput: no brace pair, or the block is not valid JSON.
    """
    block = extract_json_block(text)
    try:
        return json.loads(block)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {e}\nRaw text: {block[:500]}...")
        raise InvalidModelOutput(f"Model returned invalid JSON: {e}") from e
