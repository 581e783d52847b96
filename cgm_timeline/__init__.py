"""CGM timeline correlation and segmentation library."""

from .cache import AnalysisCache
from .device_status import merge, parse_device_status
from .engine import TimelineAnalyzer, TimelineReport
from .events import (
    closest_bolus,
    closest_carb_event,
    events_in_window,
    events_near_touch_point,
)
from .hypo import classify_driver, investigation_window, segment
from .load_bars import LoadReferences, load_references, to_bar_percent
from .models import (
    BolusEvent,
    CarbEvent,
    DeviceLoad,
    DeviceStatusSnapshot,
    GlucoseSample,
    HypoDriver,
    HypoEpisode,
    RangeBucketResult,
    RangeThresholds,
    SnapshotFormat,
    SuspendEvent,
    TempBasalEvent,
    TimelineBundle,
)
from .range_buckets import bucketize, fraction_in_inclusive_range
from .series_index import TimeSeriesIndex, nearest
from .settings import AnalysisSettings, HoverSettings
from .tooltip import TooltipModel, build_tooltip_model

__all__ = [
    "AnalysisCache",
    "AnalysisSettings",
    "BolusEvent",
    "CarbEvent",
    "DeviceLoad",
    "DeviceStatusSnapshot",
    "GlucoseSample",
    "HoverSettings",
    "HypoDriver",
    "HypoEpisode",
    "LoadReferences",
    "RangeBucketResult",
    "RangeThresholds",
    "SnapshotFormat",
    "SuspendEvent",
    "TempBasalEvent",
    "TimeSeriesIndex",
    "TimelineAnalyzer",
    "TimelineBundle",
    "TimelineReport",
    "TooltipModel",
    "bucketize",
    "build_tooltip_model",
    "classify_driver",
    "closest_bolus",
    "closest_carb_event",
    "events_in_window",
    "events_near_touch_point",
    "fraction_in_inclusive_range",
    "investigation_window",
    "load_references",
    "merge",
    "nearest",
    "parse_device_status",
    "segment",
    "to_bar_percent",
]
