"""Immutable analysis configuration threaded into every computation."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Final, Mapping

from .models import RangeThresholds

MINUTE_MS: Final[int] = 60_000
HOUR_MS: Final[int] = 60 * MINUTE_MS

CGM_SAMPLE_INTERVAL_MINUTES: Final[float] = 5.0

DEFAULT_RANGE_THRESHOLDS: Final[RangeThresholds] = RangeThresholds(
    very_low_max=55.0,
    target_min=70.0,
    target_max=140.0,
    high_max=200.0,
)


@dataclass(frozen=True)
class HoverSettings:
    """Hit-testing and tooltip windows for chart interaction."""

    detection_window_minutes: float = CGM_SAMPLE_INTERVAL_MINUTES
    max_focus_proximity_minutes: float = 30.0
    tooltip_window_minutes: float = 30.0
    spatial_detection_radius_px: float = 40.0
    max_events_in_tooltip: int = 5
    marker_display_value_mg_dl: float = 50.0
    extended_window_multiplier: float = 2.0

    @property
    def detection_window_ms(self) -> float:
        return self.detection_window_minutes * MINUTE_MS

    @property
    def extended_window_ms(self) -> float:
        return self.detection_window_ms * self.extended_window_multiplier

    @property
    def max_focus_proximity_ms(self) -> float:
        return self.max_focus_proximity_minutes * MINUTE_MS

    @property
    def tooltip_window_ms(self) -> float:
        return self.tooltip_window_minutes * MINUTE_MS


@dataclass(frozen=True)
class AnalysisSettings:
    """Single owner of glucose ranges, gap limits and interaction windows."""

    range_thresholds: RangeThresholds = DEFAULT_RANGE_THRESHOLDS
    low_threshold_mg_dl: float = 70.0
    hypo_max_gap_minutes: float = 20.0
    merge_max_distance_minutes: float = 10.0
    investigation_hours_before: float = 3.0
    investigation_hours_after: float = 3.0
    hover: HoverSettings = field(default_factory=HoverSettings)

    def __post_init__(self) -> None:
        thresholds = self.range_thresholds
        if not (
            thresholds.very_low_max
            <= thresholds.target_min
            <= thresholds.target_max
            <= thresholds.high_max
        ):
            raise ValueError(
                "range thresholds must satisfy very_low_max <= target_min <= target_max <= high_max"
            )
        if self.hypo_max_gap_minutes <= 0:
            raise ValueError("hypo_max_gap_minutes must be > 0")
        if self.merge_max_distance_minutes < 0:
            raise ValueError("merge_max_distance_minutes must be >= 0")
        if self.hover.max_events_in_tooltip < 0:
            raise ValueError("max_events_in_tooltip must be >= 0")

    @property
    def hypo_max_gap_ms(self) -> float:
        return self.hypo_max_gap_minutes * MINUTE_MS

    @property
    def merge_max_distance_ms(self) -> float:
        return self.merge_max_distance_minutes * MINUTE_MS

    def with_overrides(self, **changes: Any) -> "AnalysisSettings":
        """Return a copy with the provided fields replaced."""

        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "AnalysisSettings":
        """Resolve flat overrides (e.g. parsed flags or a JSON file) against defaults.

        Raises ``ValueError`` when an override is not a number.
        """

        values = values or {}
        defaults = cls()

        def _resolve(key: str, default: Any, cast: Callable[[Any], Any] = float) -> Any:
            value = values.get(key, default)
            if isinstance(value, bool):
                raise ValueError(f"{key} must be a number, got {value!r}")
            try:
                return cast(value)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be a number, got {value!r}") from None

        base_thresholds = defaults.range_thresholds
        thresholds = RangeThresholds(
            very_low_max=_resolve("very_low_max", base_thresholds.very_low_max),
            target_min=_resolve("target_min", base_thresholds.target_min),
            target_max=_resolve("target_max", base_thresholds.target_max),
            high_max=_resolve("high_max", base_thresholds.high_max),
        )
        base_hover = defaults.hover
        hover = HoverSettings(
            detection_window_minutes=_resolve("detection_window_minutes", base_hover.detection_window_minutes),
            max_focus_proximity_minutes=_resolve(
                "max_focus_proximity_minutes", base_hover.max_focus_proximity_minutes
            ),
            tooltip_window_minutes=_resolve("tooltip_window_minutes", base_hover.tooltip_window_minutes),
            spatial_detection_radius_px=_resolve(
                "spatial_detection_radius_px", base_hover.spatial_detection_radius_px
            ),
            max_events_in_tooltip=_resolve("max_events_in_tooltip", base_hover.max_events_in_tooltip, int),
            marker_display_value_mg_dl=_resolve(
                "marker_display_value_mg_dl", base_hover.marker_display_value_mg_dl
            ),
        )
        return cls(
            range_thresholds=thresholds,
            low_threshold_mg_dl=_resolve("low_threshold_mg_dl", defaults.low_threshold_mg_dl),
            hypo_max_gap_minutes=_resolve("hypo_max_gap_minutes", defaults.hypo_max_gap_minutes),
            merge_max_distance_minutes=_resolve(
                "merge_max_distance_minutes", defaults.merge_max_distance_minutes
            ),
            investigation_hours_before=_resolve(
                "investigation_hours_before", defaults.investigation_hours_before
            ),
            investigation_hours_after=_resolve("investigation_hours_after", defaults.investigation_hours_after),
            hover=hover,
        )


DEFAULT_SETTINGS: Final[AnalysisSettings] = AnalysisSettings()
