from __future__ import annotations

"""
Helpers for HS / HTS code strings.

Codes are put in one dotted form (e.g. ``6109.10.00``) when the catalog loads
and when a collaborator returns them; after that deduplication is by the exact
code string.
"""

import re

_CODE_CHARS_RE = re.compile(r"^[0-9][0-9. ]*[0-9]$")


def clean_code(raw) -> str:
    """Trim a raw code value; non-strings become ''."""
    if raw is None:
        return ""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return ""  # numeric codes lose leading zeros; refuse them
    return str(raw).strip()


def code_digits(code: str) -> str:
    return re.sub(r"[^0-9]", "", code or "")


def is_well_formed_code(code: str) -> bool:
    """
    6 to 10 digits, optionally dot/space separated, chapter 01-99.

    >>> is_well_formed_code("6109.10.00")
    True
    >>> is_well_formed_code("61")
    False
    """
    if not code or not _CODE_CHARS_RE.match(code):
        return False
    digits = code_digits(code)
    if not 6 <= len(digits) <= 10:
        return False
    return digits[:2] != "00"


def chapter_of(code: str) -> str:
    """Two-digit chapter of a code, or '' if the code has fewer digits."""
    digits = code_digits(code)
    return digits[:2] if len(digits) >= 2 else ""


def format_code(code: str) -> str:
    """
    Dotted display form: 6109.10.00, 6109.10.0010.

    Codes that are not well formed are returned unchanged.
    """
    if not is_well_formed_code(code):
        return code
    d = code_digits(code)
    parts = [d[:4], d[4:6]]
    if len(d) > 6:
        parts.append(d[6:])
    return ".".join(p for p in parts if p)
