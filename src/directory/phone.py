"""Phone number normalization shared by request validation and directory matching."""

from __future__ import annotations

import re

PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """Strip everything that is not a digit.

    Idempotent: ``normalize_phone(normalize_phone(p)) == normalize_phone(p)``.
    """
    return _NON_DIGITS.sub("", raw or "")


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(phone))
