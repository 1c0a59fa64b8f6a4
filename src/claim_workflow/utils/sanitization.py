"""Input sanitization for claimant and reviewer free text and uploaded filenames."""

import re

MAX_FILENAME = 255

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_UNSAFE_FILENAME_CHARS = re.compile(r"[\\/:\x00-\x1f]")


def sanitize_text(text: str | None, max_length: int | None = None) -> str:
    """Strip control characters and surrounding whitespace.

    Truncates to max_length when given. Callers that must reject over-long
    input check the length themselves before sanitizing.
    """
    if text is None or not isinstance(text, str):
        return ""
    # Remove control characters (0x00-0x1F except tab/newline/carriage return)
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = cleaned.strip()
    if max_length is not None and len(cleaned) > max_length:
        cleaned = cleaned[:max_length]
    return cleaned


def sanitize_filename(name: str | None) -> str:
    """Drop any directory part and path separators from a client-supplied filename."""
    if not name:
        return ""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    return sanitize_text(_UNSAFE_FILENAME_CHARS.sub("_", base), MAX_FILENAME)
