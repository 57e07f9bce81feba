"""Extract the structured JSON object from free-text analysis responses."""
import json
from typing import Any


class ExtractionError(Exception):
    """Base class for failures to pull structured content out of a response."""

    def __init__(self, message: str, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(message)


class NoStructuredContentError(ExtractionError):
    """Raised when the response contains no '{' ... '}' span at all."""

    def __init__(self, raw_text: str) -> None:
        super().__init__("Response contains no JSON object", raw_text)


class MalformedStructuredContentError(ExtractionError):
    """Raised when the '{' ... '}' span is not a valid JSON object."""

    def __init__(self, raw_text: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Response contains a malformed JSON object: {reason}", raw_text)


def extract_structured_content(text: str) -> dict[str, Any]:
    """
    Parse the JSON object embedded in a model response.

    The candidate is everything from the first '{' to the last '}' inclusive, which
    tolerates prose before and after the object as well as markdown code fences.
    Pure function: field values are returned exactly as parsed, with no defaults
    applied and no type coercion, so every field must be treated as optional.

    Args:
        text: Generated content returned by the analysis service.

    Returns:
        The parsed JSON object.

    Raises:
        NoStructuredContentError: If no '{' ... '}' span exists.
        MalformedStructuredContentError: If the span does not parse as a JSON object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise NoStructuredContentError(text)

    candidate = text[start:end + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedStructuredContentError(text, str(e)) from e

    if not isinstance(parsed, dict):
        raise MalformedStructuredContentError(text, "top-level value is not an object")
    return parsed
