"""Helpers for turning provider error responses into readable details."""

import json
from typing import Any


def extract_error_detail(body: Any) -> str:
    """Extract a human-readable error detail from a response body.

    Args:
        body: Parsed JSON body or raw text of an error response

    Returns:
        Human-readable error detail string
    """
    if isinstance(body, dict):
        # Standard OAuth error response
        if "error_description" in body:
            return str(body["error_description"])
        if "error" in body:
            error = body["error"]
            if isinstance(error, dict) and "message" in error:
                return str(error["message"])
            return str(error)
        # Generic message fields used by the API
        for key in ("message", "Message", "detail", "Detail", "title"):
            if key in body:
                return str(body[key])
        return truncate_error_text(json.dumps(body))

    if body is None:
        return "empty response"

    return truncate_error_text(str(body))


def truncate_error_text(text: str, max_length: int = 200) -> str:
    """Truncate error text to reasonable length.

    Args:
        text: Error text to truncate
        max_length: Maximum length (default 200)

    Returns:
        Truncated error text
    """
    if len(text) <= max_length:
        return text

    # For long errors, show beginning and end
    if len(text) > max_length * 2:
        return f"{text[:max_length]}...{text[-50:]}"
    else:
        return f"{text[:max_length]}..."
