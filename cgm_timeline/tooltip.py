"""Derived tooltip state for a touch on the CGM chart."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .events import (
    bolus_events_in_tooltip_window,
    carb_events_in_tooltip_window,
    closest_bolus,
    closest_carb_event,
)
from .models import BolusEvent, CarbEvent, GlucoseSample, InsulinEvent
from .series_index import nearest
from .settings import DEFAULT_SETTINGS, AnalysisSettings


@dataclass(frozen=True)
class TooltipModel:
    """What the chart should show for the current touch.

    ``cgm_anchor_ms`` always follows the touch (or external cursor); only
    ``events_anchor_ms`` may snap to a nearby bolus or carb entry.
    """

    closest_sample: Optional[GlucoseSample]
    cgm_anchor_ms: Optional[float]
    events_anchor_ms: Optional[float]
    bolus_events: Sequence[BolusEvent] = field(default_factory=tuple)
    carb_events: Sequence[CarbEvent] = field(default_factory=tuple)
    uses_external_cursor: bool = False

    @property
    def focused_carb_ids(self) -> tuple[str, ...]:
        return tuple(event.id for event in self.carb_events)

    @property
    def focused_bolus_times_ms(self) -> tuple[float, ...]:
        return tuple(event.at_ms for event in self.bolus_events)

    @property
    def combined(self) -> bool:
        return self.closest_sample is not None and len(self.bolus_events) == 1

    @property
    def combined_multi(self) -> bool:
        return self.closest_sample is not None and len(self.bolus_events) > 1

    @property
    def bg_only(self) -> bool:
        return self.closest_sample is not None and not self.bolus_events

    @property
    def bolus_only(self) -> bool:
        return self.closest_sample is None and bool(self.bolus_events)


EMPTY_TOOLTIP = TooltipModel(closest_sample=None, cgm_anchor_ms=None, events_anchor_ms=None)


def build_tooltip_model(
    touch_ms: Optional[float],
    samples: Sequence[GlucoseSample],
    insulin_events: Iterable[InsulinEvent] | None = None,
    carb_events: Iterable[CarbEvent] | None = None,
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
    cursor_ms: Optional[float] = None,
) -> TooltipModel:
    """Assemble tooltip state for a touch at ``touch_ms``.

    ``samples`` must be ascending. When an external ``cursor_ms`` is supplied (stacked
    charts sharing one cursor) both anchors use it and no event snapping happens.
    """

    if touch_ms is None:
        return EMPTY_TOOLTIP

    hover = settings.hover
    insulin_events = list(insulin_events or ())
    carb_events = list(carb_events or ())
    uses_external_cursor = cursor_ms is not None

    closest_sample = nearest(touch_ms, samples)

    if uses_external_cursor:
        cgm_anchor_ms = cursor_ms
        events_anchor_ms = cursor_ms
    else:
        cgm_anchor_ms = touch_ms
        focused_bolus = closest_bolus(touch_ms, insulin_events, hover=hover)
        focused_carb = closest_carb_event(touch_ms, carb_events, hover=hover)
        if focused_bolus is not None:
            events_anchor_ms = focused_bolus.at_ms
        elif focused_carb is not None:
            events_anchor_ms = focused_carb.at_ms
        else:
            events_anchor_ms = touch_ms

    return TooltipModel(
        closest_sample=closest_sample,
        cgm_anchor_ms=cgm_anchor_ms,
        events_anchor_ms=events_anchor_ms,
        bolus_events=tuple(bolus_events_in_tooltip_window(events_anchor_ms, insulin_events, hover=hover)),
        carb_events=tuple(carb_events_in_tooltip_window(events_anchor_ms, carb_events, hover=hover)),
        uses_external_cursor=uses_external_cursor,
    )
