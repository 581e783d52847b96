"""IOB/COB load bars for summary rows."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Iterable

from .models import GlucoseSample
from .utils import clamp_non_negative

PERCENT_MAX: Final[float] = 100.0

# Values above this always get a visible sliver of bar.
MIN_VISIBLE_VALUE: Final[float] = 0.3
MIN_VISIBLE_PERCENT: Final[float] = 5.0
MIN_VISIBLE_PX: Final[int] = 2


@dataclass(frozen=True)
class LoadReferences:
    """Largest IOB and COB over a data window, used as the full-bar reference."""

    max_iob_u: float = 0.0
    max_cob_g: float = 0.0


@dataclass(frozen=True)
class BarFill:
    percent: float
    min_width_px: int


def _as_load(value: Any) -> float:
    clamped = clamp_non_negative(value)
    return clamped if clamped is not None else 0.0


def load_references(samples: Iterable[GlucoseSample] | None) -> LoadReferences:
    """Compute the references once per window; missing or negative values count as 0."""

    max_iob = 0.0
    max_cob = 0.0
    for sample in samples or ():
        max_iob = max(max_iob, _as_load(sample.iob_total_u))
        max_cob = max(max_cob, _as_load(sample.cob_g))
    return LoadReferences(max_iob_u=max_iob, max_cob_g=max_cob)


def to_bar_percent(value: Any, reference_max: Any) -> BarFill:
    """Fill percentage of ``value`` against ``reference_max``.

    A missing reference falls back to the value itself (a full bar). Values above
    ``MIN_VISIBLE_VALUE`` are widened to at least ``MIN_VISIBLE_PERCENT``.
    """

    value = _as_load(value)
    reference_max = _as_load(reference_max)
    if value <= 0:
        return BarFill(percent=0.0, min_width_px=0)

    effective_reference = reference_max if reference_max > 0 else value
    percent = max(0.0, min(PERCENT_MAX, value / effective_reference * PERCENT_MAX))

    if value > MIN_VISIBLE_VALUE:
        return BarFill(percent=max(percent, MIN_VISIBLE_PERCENT), min_width_px=MIN_VISIBLE_PX)
    return BarFill(percent=percent, min_width_px=0)


def format_iob(value: Any) -> str:
    return f"{_as_load(value):.1f}u"


def format_cob(value: Any) -> str:
    # COB is shown as whole grams.
    return f"{round(_as_load(value))}g"
