"""Nearest-sample lookup over time-ordered CGM readings."""
from __future__ import annotations

import math
from bisect import bisect_left
from operator import attrgetter
from typing import Callable, Optional, Sequence

from .models import GlucoseSample, is_finite_number

_timestamp = attrgetter("timestamp_ms")


def is_ascending(samples: Sequence[GlucoseSample]) -> bool:
    """Detect orientation from the first two readings; short sequences count as ascending."""

    if len(samples) < 2:
        return True
    return samples[0].timestamp_ms < samples[1].timestamp_ms


def ascending(samples: Sequence[GlucoseSample] | None) -> list[GlucoseSample]:
    """Return an ascending copy of a strictly ordered sequence."""

    if not samples:
        return []
    if is_ascending(samples):
        return list(samples)
    return list(reversed(samples))


def nearest(target_ms: float, samples: Sequence[GlucoseSample]) -> Optional[GlucoseSample]:
    """Return the sample closest in time to ``target_ms``.

    ``samples`` must be ascending by ``timestamp_ms``. When the two neighbours of the
    insertion point are equidistant the later sample is returned.
    """

    count = len(samples)
    if count == 0:
        return None

    index = bisect_left(samples, target_ms, key=_timestamp)
    if index == 0:
        return samples[0]
    if index == count:
        return samples[count - 1]

    before = samples[index - 1]
    after = samples[index]
    if target_ms - before.timestamp_ms < after.timestamp_ms - target_ms:
        return before
    return after


class TimeSeriesIndex:
    """Ascending view over a sample sequence, built once per data refresh."""

    __slots__ = ("_samples",)

    def __init__(self, samples: Sequence[GlucoseSample] | None) -> None:
        self._samples: tuple[GlucoseSample, ...] = tuple(ascending(samples))

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[GlucoseSample, ...]:
        return self._samples

    @property
    def first(self) -> Optional[GlucoseSample]:
        return self._samples[0] if self._samples else None

    @property
    def last(self) -> Optional[GlucoseSample]:
        return self._samples[-1] if self._samples else None

    def nearest(self, target_ms: float) -> Optional[GlucoseSample]:
        return nearest(target_ms, self._samples)


def touch_time_ms(
    raw_x: float,
    plot_margin_left: float,
    plot_width: float,
    invert: Callable[[float], float],
) -> Optional[int]:
    """Convert a raw touch x-coordinate into epoch milliseconds.

    The coordinate is shifted by the plot margin and clamped into ``[0, plot_width]``
    before being passed through ``invert`` (the inverse of the chart's time scale).
    """

    if not is_finite_number(raw_x):
        return None
    local_x = min(max(raw_x - plot_margin_left, 0.0), max(0.0, plot_width))
    value = invert(local_x)
    if not is_finite_number(value):
        return None
    return int(math.floor(value))
