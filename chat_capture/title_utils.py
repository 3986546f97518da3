"""
Title processing utilities for conversation capture.

Conversation titles arrive from API payloads and page markup. A usable
title is:
1. Free of control characters and runs of whitespace
2. Free of a trailing "| ChatGPT" / "| OpenAI" site suffix
3. Not generic (the platform name or the default title)
"""

import re
from typing import Optional

from .config import GENERIC_TITLES, TRANSLATOR_DEFAULTS

SITE_SUFFIX_PATTERN = re.compile(r'\s*\|\s*(?:ChatGPT|OpenAI)\s*$', re.IGNORECASE)


def trim_internal(text) -> str:
    """Collapse runs of whitespace and trim."""
    if not text or not isinstance(text, str):
        return ''
    return ' '.join(text.split())


def sanitize_title(title) -> str:
    """
    Sanitize title for display.

    - Removes null bytes
    - Removes control characters
    - Normalizes whitespace
    """
    if not title or not isinstance(title, str):
        return ''

    # Remove null bytes and control characters
    title = re.sub(r'[\x00-\x1f\x7f-\x9f]', ' ', title)

    return trim_internal(title)


def strip_site_suffix(title: str) -> str:
    """Remove a trailing "| ChatGPT" style suffix."""
    return SITE_SUFFIX_PATTERN.sub('', title).strip()


def is_generic_title(title) -> bool:
    """True if the title names the platform instead of the conversation."""
    if not title:
        return True
    lowered = trim_internal(title).lower()
    if lowered == TRANSLATOR_DEFAULTS['title'].lower():
        return True
    return lowered in GENERIC_TITLES


def normalize_title(title) -> Optional[str]:
    """
    Clean a raw title.

    Returns:
        The cleaned title, or None when nothing usable is left

    Examples:
        >>> normalize_title("  Trip   planning | ChatGPT")
        'Trip planning'

        >>> normalize_title("ChatGPT") is None
        True
    """
    title = sanitize_title(title)
    if not title:
        return None
    title = strip_site_suffix(title)
    if is_generic_title(title):
        return None
    return title
