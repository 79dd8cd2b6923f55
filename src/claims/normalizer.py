"""
Text normalization for raw first notifications.

Notifications arrive as forwarded emails or chat messages: mixed line
endings, tabs, non-breaking spaces and long quoted chains.
"""

import re
from typing import Optional

MAX_TEXT_CHARS = 20000
SUMMARY_CHARS = 400

_SPACES_RE = re.compile(r"[ \t\u00a0\u2007\u202f\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def normalize_text(raw: Optional[str], max_chars: int = MAX_TEXT_CHARS) -> str:
    """
    Clean and bound notification text.

    Unifies line endings, collapses horizontal whitespace, strips each line,
    squeezes runs of blank lines and truncates to max_chars.
    """
    if raw is None:
        return ""
    text = str(raw).replace("\r\n", "\n").replace("\r", "\n")
    lines = [_SPACES_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()
    if len(text) > max_chars:
        text = text[:max_chars].rstrip()
    return text


def summarize(text: str, limit: int = SUMMARY_CHARS) -> str:
    """First `limit` characters of the text, ellipsis-terminated when cut."""
    text = text or ""
    if len(text) <= limit:
        return text
    return f"{text[:limit].rstrip()}…"


def non_empty_lines(text: str) -> list:
    return [line for line in (text or "").split("\n") if line.strip()]
