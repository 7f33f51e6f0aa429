"""
Helper functions for formatting data into human-readable strings.
"""

import re
import unicodedata
from urllib.parse import quote


def format_clock(milliseconds: int) -> str:
    """Formats a position as ``M:SS``, or ``H:MM:SS`` from one hour on."""
    total_seconds = max(0, int(milliseconds)) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def slugify(text: str, fallback: str = "track") -> str:
    """
    Turns ``text`` into a stable, URL-safe path segment.

    Accents are folded, anything that is not a letter or digit becomes a
    single hyphen, and non-ASCII letters are percent-encoded.
    """
    normalized = unicodedata.normalize("NFKD", text)
    folded = "".join(c for c in normalized if not unicodedata.combining(c)).lower()
    slug = re.sub(r"[\W_]+", "-", folded).strip("-")
    return quote(slug, safe="-") or fallback
