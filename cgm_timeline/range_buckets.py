"""Clinical range bucketing for CGM readings."""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np

from .models import GlucoseSample, RangeBucketResult, RangeThresholds, is_finite_number

_BUCKET_COUNT = 5


def _values_array(samples: Sequence[GlucoseSample] | None) -> np.ndarray:
    if not samples:
        return np.empty(0, dtype=float)
    return np.fromiter(
        (
            float(sample.value_mg_dl) if is_finite_number(sample.value_mg_dl) else np.nan
            for sample in samples
        ),
        dtype=float,
        count=len(samples),
    )


def bucketize(
    samples: Sequence[GlucoseSample] | None,
    thresholds: RangeThresholds,
) -> RangeBucketResult:
    """Classify readings into range buckets and return percentages of valid readings.

    Boundaries:
    - very_low: <= very_low_max
    - low: (very_low_max, target_min)
    - target: [target_min, target_max]
    - high: (target_max, high_max]
    - very_high: > high_max
    """

    bounds = (
        thresholds.very_low_max,
        thresholds.target_min,
        thresholds.target_max,
        thresholds.high_max,
    )
    if not all(is_finite_number(bound) for bound in bounds):
        return RangeBucketResult()

    values = _values_array(samples)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return RangeBucketResult()

    very_low_max, target_min, target_max, high_max = bounds
    codes = np.select(
        [
            values <= very_low_max,
            values < target_min,
            values <= target_max,
            values <= high_max,
        ],
        [0, 1, 2, 3],
        default=4,
    )
    counts = np.bincount(codes, minlength=_BUCKET_COUNT)
    valid_count = int(values.size)
    percentages = counts / valid_count * 100.0

    return RangeBucketResult(
        very_low=float(percentages[0]),
        low=float(percentages[1]),
        target=float(percentages[2]),
        high=float(percentages[3]),
        very_high=float(percentages[4]),
        valid_count=valid_count,
    )


def target_percentage(
    samples: Sequence[GlucoseSample] | None,
    thresholds: RangeThresholds,
) -> Optional[float]:
    """Target-bucket percentage, or ``None`` when there is no valid reading."""

    result = bucketize(samples, thresholds)
    return result.target if result.valid_count else None


def fraction_in_inclusive_range(
    values: Iterable[Optional[float]] | None,
    min_inclusive: float,
    max_inclusive: float,
) -> Optional[float]:
    """Fraction (0-1) of finite values within ``[min_inclusive, max_inclusive]``.

    Returns ``None`` rather than ``0.0`` when no finite value is available so callers
    can tell "no data" apart from "never in range".
    """

    if not is_finite_number(min_inclusive) or not is_finite_number(max_inclusive):
        return None

    total = 0
    in_range = 0
    for raw in values or ():
        if not is_finite_number(raw):
            continue
        total += 1
        if min_inclusive <= raw <= max_inclusive:
            in_range += 1

    if not total:
        return None
    return in_range / total
