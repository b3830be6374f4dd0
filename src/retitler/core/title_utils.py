"""Utility functions for title post-processing."""

import re

# Characters forbidden in filenames on common filesystems, plus control characters
_FORBIDDEN_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f-\x9f]')
_WHITESPACE_RE = re.compile(r"\s+")
_EDGE_SPACES_DOTS_RE = re.compile(r"^[ .]+|[ .]+$")

FALLBACK_TITLE = "Untitled"


def sanitize_filename(title: str) -> str:
    """Make a title safe to use as a filename.

    Removes forbidden and control characters, collapses whitespace, trims
    leading/trailing spaces and dots, and falls back to "Untitled" if
    nothing is left. Idempotent.

    Args:
        title: The title to sanitize.

    Returns:
        A filesystem-legal, non-empty name.
    """
    # Tabs and newlines are word separators, not control characters
    safe = _WHITESPACE_RE.sub(" ", title)
    safe = _FORBIDDEN_RE.sub("", safe)
    safe = _WHITESPACE_RE.sub(" ", safe).strip()
    safe = _EDGE_SPACES_DOTS_RE.sub("", safe)
    return safe or FALLBACK_TITLE


def truncate_title(title: str, max_length: int) -> str:
    """Truncate a title to max_length, preferring a word boundary.

    Args:
        title: The title to truncate.
        max_length: Maximum allowed length.

    Returns:
        The title unchanged if it fits. Otherwise it is cut at the last space
        at or before the limit, or hard-cut at the limit if there is none.
    """
    if max_length <= 0:
        return ""

    if len(title) <= max_length:
        return title

    # A space right after the limit means the cut already lands on a boundary
    if title[max_length] == " ":
        cut = title[:max_length].rstrip()
        if cut:
            return cut

    truncated = title[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        cut = truncated[:last_space].rstrip()
        if cut:
            return cut

    return truncated


def substitute(template: str, **values: object) -> str:
    """Fill {name} placeholders without str.format, so stray braces pass through."""
    for name, value in values.items():
        template = template.replace("{" + name + "}", str(value))
    return template
