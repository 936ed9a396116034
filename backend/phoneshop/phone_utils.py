from __future__ import annotations

import re


# Local mobile format after normalization: 09 followed by 7-9 digits.
LOCAL_PHONE_RE = re.compile(r"^09\d{7,9}$")


def normalize_phone(phone: str) -> str:
    """
    Normalize a Myanmar phone number to the local 09... form.

    - "+95 9 123 456 789" / "959123456789" -> "09123456789"
    - "9123456789" (missing leading 0)     -> "09123456789"
    - "409274865" (7-9 digits, no prefix)   -> "09409274865"

    Non-digit characters are dropped. Anything else is returned as digits only.
    """
    cleaned = re.sub(r"\D", "", phone or "")

    if cleaned.startswith("959"):
        return "09" + cleaned[3:]
    if cleaned.startswith("9") and len(cleaned) >= 7:
        return "0" + cleaned
    if 7 <= len(cleaned) <= 9 and not cleaned.startswith("09"):
        return "09" + cleaned
    return cleaned


def is_valid_local_phone(phone: str) -> bool:
    return bool(LOCAL_PHONE_RE.match(phone or ""))
