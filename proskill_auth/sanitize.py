"""
Input sanitization helpers.

Used for roster matching, the display-name fallback and registration input.
"""

import html
import re
from typing import Optional

_TAG_RE = re.compile(r"<[^>]*>")
_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"\s*on\w+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]*)", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_NAME_DISALLOWED_RE = re.compile(r"[^a-zA-Z\s\-'.]")
_PLACE_DISALLOWED_RE = re.compile(r"[^a-zA-Z0-9\s\-,.]")
_EMAIL_UNSAFE_RE = re.compile(r"[<>'\"&]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def sanitize_text(value: Optional[str]) -> str:
    """Strip markup, script handlers and control characters; collapse whitespace."""
    if not value or not isinstance(value, str):
        return ""

    cleaned = _SCRIPT_RE.sub("", value.strip())
    cleaned = _TAG_RE.sub("", cleaned)
    cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
    cleaned = _CONTROL_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def sanitize_name(value: Optional[str]) -> str:
    """
    Sanitize a person's name.

    Keeps ASCII letters, spaces, hyphens, apostrophes and periods.

    Examples:
        sanitize_name("<b>Asha</b> Rao") -> "Asha Rao"
        sanitize_name("Ravi_Kumar 2") -> "RaviKumar"
    """
    cleaned = _NAME_DISALLOWED_RE.sub("", sanitize_text(value))
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def sanitize_place(value: Optional[str]) -> str:
    """Sanitize a place name: letters, digits, spaces, hyphens, commas and periods."""
    cleaned = _PLACE_DISALLOWED_RE.sub("", sanitize_text(value))
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def sanitize_email(value: Optional[str]) -> str:
    """
    Sanitize and validate an email address.

    Returns:
        The lowercased address, or "" if nothing valid is left
    """
    if not value or not isinstance(value, str):
        return ""

    cleaned = _SCRIPT_RE.sub("", value)
    cleaned = _TAG_RE.sub("", cleaned).strip().lower()
    cleaned = _EMAIL_UNSAFE_RE.sub("", cleaned)
    cleaned = _WHITESPACE_RE.sub("", cleaned)
    return cleaned if _EMAIL_RE.match(cleaned) else ""


def escape_html(value: Optional[str]) -> str:
    """HTML-escape a value for output, including forward slashes."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True).replace("/", "&#x2F;")


def escape_regex(value: Optional[str]) -> str:
    """Escape a value for literal use inside a regular expression."""
    if not value:
        return ""
    return re.escape(value)
