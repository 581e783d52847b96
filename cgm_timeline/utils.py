"""Shared helpers for boundary parsing and numeric hygiene."""
from __future__ import annotations

from typing import Any, Optional

import pandas as pd

from .models import is_finite_number


def clamp_non_negative(value: Any) -> Optional[float]:
    """Finite numbers clamped to >= 0; anything else reads as missing."""

    if not is_finite_number(value):
        return None
    return max(0.0, float(value))


def parse_timestamp_ms(value: Any) -> Optional[int]:
    """Epoch milliseconds from a numeric epoch or an ISO-8601 string.

    Strings without an offset are read as UTC. Unparseable input yields ``None``.
    """

    if is_finite_number(value):
        return int(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return int(parsed.value // 1_000_000)
