# FILE: app/utils/masking.py
from __future__ import annotations

from typing import Optional


def mask_id_card(value: Optional[str]) -> Optional[str]:
    """110101199001011234 -> 110101********1234"""
    if not value:
        return value
    if len(value) <= 10:
        return value[:2] + "*" * max(len(value) - 4, 0) + value[-2:]
    return value[:6] + "*" * (len(value) - 10) + value[-4:]


def mask_phone(value: Optional[str]) -> Optional[str]:
    """13812345678 -> 138****5678"""
    if not value:
        return value
    if len(value) < 7:
        return value
    return value[:3] + "*" * (len(value) - 7) + value[-4:]
