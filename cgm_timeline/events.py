"""Correlate insulin and carbohydrate events with a touch time or chart point."""
from __future__ import annotations

import math
from typing import Callable, Iterable, Optional, Sequence, TypeVar, Union

from .models import BolusEvent, CarbEvent, InsulinEvent
from .settings import DEFAULT_SETTINGS, HoverSettings

TimelineEvent = Union[InsulinEvent, CarbEvent]
EventT = TypeVar("EventT", BolusEvent, CarbEvent)

TimeScale = Callable[[float], float]
ValueScale = Callable[[float], float]


def event_time_ms(event: TimelineEvent) -> Optional[float]:
    """Timestamp of a correlatable event, ``None`` for anything that cannot be correlated."""

    if isinstance(event, (BolusEvent, CarbEvent)) and event.is_valid:
        return event.at_ms
    return None


def valid_boluses(insulin_events: Iterable[InsulinEvent] | None) -> list[BolusEvent]:
    return [
        event
        for event in insulin_events or ()
        if isinstance(event, BolusEvent) and event.is_valid
    ]


def valid_carb_events(carb_events: Iterable[CarbEvent] | None) -> list[CarbEvent]:
    return [event for event in carb_events or () if isinstance(event, CarbEvent) and event.is_valid]


def _closest(touch_ms: float, events: Sequence[EventT], max_proximity_ms: float) -> Optional[EventT]:
    if not events:
        return None

    closest = events[0]
    min_distance = abs(closest.at_ms - touch_ms)
    for event in events:
        distance = abs(event.at_ms - touch_ms)
        if distance < min_distance:
            min_distance = distance
            closest = event

    return closest if min_distance <= max_proximity_ms else None


def closest_bolus(
    touch_ms: float,
    insulin_events: Iterable[InsulinEvent] | None,
    *,
    hover: HoverSettings = DEFAULT_SETTINGS.hover,
) -> Optional[BolusEvent]:
    """Closest valid bolus within the focus proximity of ``touch_ms``."""

    return _closest(touch_ms, valid_boluses(insulin_events), hover.max_focus_proximity_ms)


def closest_carb_event(
    touch_ms: float,
    carb_events: Iterable[CarbEvent] | None,
    *,
    hover: HoverSettings = DEFAULT_SETTINGS.hover,
) -> Optional[CarbEvent]:
    """Closest valid carb entry within the focus proximity of ``touch_ms``."""

    return _closest(touch_ms, valid_carb_events(carb_events), hover.max_focus_proximity_ms)


def events_in_window(
    anchor_ms: float,
    events: Iterable[TimelineEvent] | None,
    window_ms: float,
    max_count: int,
) -> list[TimelineEvent]:
    """Valid events within ``window_ms`` of the anchor, ascending by time, capped at ``max_count``."""

    matches: list[tuple[float, TimelineEvent]] = []
    for event in events or ():
        at_ms = event_time_ms(event)
        if at_ms is None:
            continue
        if abs(at_ms - anchor_ms) <= window_ms:
            matches.append((at_ms, event))

    matches.sort(key=lambda item: item[0])
    return [event for _, event in matches[: max(0, max_count)]]


def bolus_events_in_tooltip_window(
    anchor_ms: float,
    insulin_events: Iterable[InsulinEvent] | None,
    *,
    hover: HoverSettings = DEFAULT_SETTINGS.hover,
) -> list[BolusEvent]:
    return events_in_window(
        anchor_ms,
        valid_boluses(insulin_events),
        hover.tooltip_window_ms,
        hover.max_events_in_tooltip,
    )


def carb_events_in_tooltip_window(
    anchor_ms: float,
    carb_events: Iterable[CarbEvent] | None,
    *,
    hover: HoverSettings = DEFAULT_SETTINGS.hover,
) -> list[CarbEvent]:
    return events_in_window(
        anchor_ms,
        valid_carb_events(carb_events),
        hover.tooltip_window_ms,
        hover.max_events_in_tooltip,
    )


def events_near_touch_point(
    touch_x: float,
    touch_y: float,
    touch_ms: float,
    events: Iterable[TimelineEvent] | None,
    x_scale: TimeScale,
    y_scale: ValueScale,
    *,
    hover: HoverSettings = DEFAULT_SETTINGS.hover,
) -> list[TimelineEvent]:
    """Hit-test event markers drawn on the chart.

    Markers sit on a fixed display row (``hover.marker_display_value_mg_dl``) rather than
    at a data value, so an event matches when it is inside the detection window, or
    when the touch lands within the pixel radius of its marker and the event is inside
    the extended window.
    """

    marker_y = y_scale(hover.marker_display_value_mg_dl)
    radius = hover.spatial_detection_radius_px
    detection_window = hover.detection_window_ms
    extended_window = hover.extended_window_ms

    matches: list[tuple[float, TimelineEvent]] = []
    for event in events or ():
        at_ms = event_time_ms(event)
        if at_ms is None:
            continue

        time_distance = abs(at_ms - touch_ms)
        if time_distance <= detection_window:
            matches.append((at_ms, event))
            continue
        if time_distance > extended_window:
            continue

        pixel_distance = math.hypot(touch_x - x_scale(at_ms), touch_y - marker_y)
        if pixel_distance <= radius:
            matches.append((at_ms, event))

    matches.sort(key=lambda item: item[0])
    return [event for _, event in matches[: max(0, hover.max_events_in_tooltip)]]


def closest_event_near_touch_point(
    touch_x: float,
    touch_y: float,
    touch_ms: float,
    events: Iterable[TimelineEvent] | None,
    x_scale: TimeScale,
    y_scale: ValueScale,
    *,
    hover: HoverSettings = DEFAULT_SETTINGS.hover,
) -> Optional[TimelineEvent]:
    """Time-closest event among the markers hit by a touch."""

    matches = events_near_touch_point(
        touch_x, touch_y, touch_ms, events, x_scale, y_scale, hover=hover
    )
    if not matches:
        return None

    closest = matches[0]
    min_distance = abs(event_time_ms(closest) - touch_ms)
    for event in matches:
        distance = abs(event_time_ms(event) - touch_ms)
        if distance < min_distance:
            min_distance = distance
            closest = event
    return closest
