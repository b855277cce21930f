"""Identifier helpers.

Rows use UUID4 strings. Courses imported from the legacy catalogue had
numeric ids; those map onto a reserved UUID prefix so old links keep working:

    "42"  <->  "00000000-0000-0000-0000-000000000042"
"""

import re
from uuid import uuid4

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
LEGACY_UUID_PREFIX = "00000000-0000-0000-0000-"
_DIGITS_RE = re.compile(r"^[0-9]+$")


def generate_id() -> str:
    """Generate a new row / client id."""
    return str(uuid4())


def is_uuid(value: str) -> bool:
    return bool(UUID_RE.match(value or ""))


def normalize_course_id(raw_id: str | None) -> str | None:
    """Normalize a course id to UUID form, accepting legacy numeric ids.

    Returns None for empty input. Non-UUID, non-numeric values (slugs) are
    only lowercased.
    """
    if not raw_id:
        return None
    trimmed = raw_id.strip()
    if not trimmed:
        return None

    if is_uuid(trimmed):
        return trimmed.lower()

    if _DIGITS_RE.match(trimmed):
        digits = trimmed[-12:].rjust(12, "0")
        return f"{LEGACY_UUID_PREFIX}{digits}"

    return trimmed.lower()


def denormalize_course_id(course_id: str | None) -> str:
    """Map a legacy-prefixed UUID back to its numeric id for frontend routes."""
    if not course_id:
        return ""
    lower = course_id.lower()
    if lower.startswith(LEGACY_UUID_PREFIX):
        suffix = lower[len(LEGACY_UUID_PREFIX):]
        if len(suffix) == 12 and suffix.isdigit():
            return str(int(suffix))
    return course_id
