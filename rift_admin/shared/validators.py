"""Shared validation utilities"""

import re
from typing import Optional


def clean_phone_number(raw: Optional[str]) -> str:
    """
    Normalize a phone number to E.164, assuming US/Canada when no country
    code is given. '(555) 123-4567' -> '+15551234567'

    Numbers already carrying a '+' country code keep it.
    """
    if not raw:
        return ""

    # Keep digits and the leading plus only
    cleaned = re.sub(r"[^\d+]", "", raw)
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    return f"+1{re.sub(r'^1', '', cleaned)}"


def is_deliverable_address(email: Optional[str]) -> bool:
    """Loose check used before bulk sends: a non-empty string containing '@'"""
    return isinstance(email, str) and "@" in email.strip()
