"""Text normalization helpers shared by the preparation and indexing pipelines."""
from __future__ import annotations

import re
import unicodedata


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def clean_optional_text(value: str | None) -> str | None:
    """Trim and collapse whitespace; blank input becomes ``None``."""
    if value is None:
        return None
    text = normalize_whitespace(unicodedata.normalize('NFC', value))
    return text or None


def truncate(text: str, max_chars: int) -> str:
    return text[:max_chars]


def join_fields(*parts: str | None, separator: str = " | ") -> str:
    """Join optional text fields, rendering missing ones as empty strings."""
    return separator.join(part or "" for part in parts)
