"""
Input sanitization utilities for API payloads.
Provides functions to clean string inputs before they reach the services.
"""

import re
from typing import Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    # Remove leading/trailing whitespace and dangerous characters
    value = value.strip()
    # Remove control characters
    value = re.sub(r'[\x00-\x1F\x7F]', '', value)
    # Escape HTML
    value = value.replace('<', '&lt;').replace('>', '&gt;')
    return value


def escape_like(value: str) -> str:
    """Escape ``%`` and ``_`` so a search term matches literally in SQL LIKE."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
