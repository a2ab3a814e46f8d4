"""
Input sanitization for user-supplied chat text and search queries.
"""
import re

_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")
_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_URL = re.compile(r"javascript\s*:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"\bon\w+\s*=", re.IGNORECASE)


def sanitize(text: str, max_length: int = 1000) -> str:
    """
    Strip tag-like and script-like substrings, trim, and cap the length.

    Args:
        text: Raw input
        max_length: Maximum number of characters kept

    Returns:
        Sanitized text (possibly empty)
    """
    if not text:
        return ""
    cleaned = _SCRIPT_BLOCK.sub("", text)
    cleaned = _TAG.sub("", cleaned)
    cleaned = _ANGLE_BRACKETS.sub("", cleaned)
    cleaned = _JS_URL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    return cleaned.strip()[:max_length]
