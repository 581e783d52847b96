"""Core data models for CGM timeline correlation."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, ClassVar, Mapping, Optional, Sequence, Union


@dataclass(frozen=True)
class GlucoseSample:
    """Single CGM reading, optionally enriched with device-status load values."""

    timestamp_ms: int
    value_mg_dl: Optional[float]
    iob_total_u: Optional[float] = None
    iob_bolus_u: Optional[float] = None
    iob_basal_u: Optional[float] = None
    cob_g: Optional[float] = None
    direction: Optional[str] = None
    extras: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_valid(self) -> bool:
        return is_finite_number(self.value_mg_dl)


@dataclass(frozen=True)
class BolusEvent:
    """Discrete insulin dose."""

    kind: ClassVar[str] = "bolus"

    amount_u: float
    at_ms: Optional[float]

    @property
    def is_valid(self) -> bool:
        return (
            is_finite_number(self.amount_u)
            and self.amount_u > 0
            and is_finite_number(self.at_ms)
        )


@dataclass(frozen=True)
class TempBasalEvent:
    """Temporary override of the scheduled basal rate."""

    kind: ClassVar[str] = "tempBasal"

    rate_u_per_hr: float
    start_ms: Optional[float]
    end_ms: Optional[float]


@dataclass(frozen=True)
class SuspendEvent:
    """Pump suspension interval."""

    kind: ClassVar[str] = "suspend"

    start_ms: Optional[float]
    end_ms: Optional[float]


InsulinEvent = Union[BolusEvent, TempBasalEvent, SuspendEvent]


@dataclass(frozen=True)
class CarbEvent:
    """Logged carbohydrate intake."""

    id: str
    at_ms: Optional[float]
    grams_carb: float

    @property
    def is_valid(self) -> bool:
        return (
            is_finite_number(self.grams_carb)
            and self.grams_carb > 0
            and is_finite_number(self.at_ms)
        )


class SnapshotFormat(str, Enum):
    """Uploader family a device-status payload was read from."""

    LOOP = "loop"
    OPENAPS = "openaps"
    FLAT = "flat"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DeviceLoad:
    """IOB/COB values reported by a device-status snapshot."""

    iob_total_u: Optional[float] = None
    iob_bolus_u: Optional[float] = None
    iob_basal_u: Optional[float] = None
    cob_g: Optional[float] = None

    def is_empty(self) -> bool:
        return (
            self.iob_total_u is None
            and self.iob_bolus_u is None
            and self.iob_basal_u is None
            and self.cob_g is None
        )


@dataclass(frozen=True)
class DeviceStatusSnapshot:
    """Device-status payload resolved once at ingestion."""

    source_format: SnapshotFormat
    timestamp_ms: Optional[int]
    load: DeviceLoad = field(default_factory=DeviceLoad)


class HypoDriver(str, Enum):
    """Insulin component dominating IOB at a hypo nadir."""

    BASAL = "basal"
    BOLUS = "bolus"


@dataclass(frozen=True)
class HypoEpisode:
    """Contiguous run of low readings."""

    id: str
    start_ms: int
    end_ms: int
    nadir_ms: int
    nadir_value_mg_dl: float
    driver: Optional[HypoDriver]
    iob_bolus_u: Optional[float]
    iob_basal_u: Optional[float]
    nadir_sample: Optional[GlucoseSample] = field(default=None, repr=False, compare=False)

    @property
    def duration_minutes(self) -> float:
        return (self.end_ms - self.start_ms) / 60_000.0


@dataclass(frozen=True)
class RangeThresholds:
    """Clinical range boundaries in mg/dL."""

    very_low_max: float
    target_min: float
    target_max: float
    high_max: float


@dataclass(frozen=True)
class RangeBucketResult:
    """Percentages (0-100) of valid readings per clinical range bucket."""

    very_low: float = 0.0
    low: float = 0.0
    target: float = 0.0
    high: float = 0.0
    very_high: float = 0.0
    valid_count: int = 0

    def as_dict(self) -> dict[str, float]:
        return {
            "very_low": self.very_low,
            "low": self.low,
            "target": self.target,
            "high": self.high,
            "very_high": self.very_high,
        }


def is_finite_number(value: Any) -> bool:
    """True for real, finite numbers (bools excluded)."""

    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


@dataclass(frozen=True)
class TimelineBundle:
    """Raw arrays held by a caller for one data-loading window."""

    samples: Sequence[GlucoseSample] = field(default_factory=tuple)
    insulin_events: Sequence[InsulinEvent] = field(default_factory=tuple)
    carb_events: Sequence[CarbEvent] = field(default_factory=tuple)
    device_status: Sequence[Any] = field(default_factory=tuple)
