from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import numpy as np

from cgm_timeline.events import (
    bolus_events_in_tooltip_window,
    carb_events_in_tooltip_window,
    closest_bolus,
    closest_carb_event,
    closest_event_near_touch_point,
    events_in_window,
    events_near_touch_point,
)
from cgm_timeline.models import BolusEvent, CarbEvent, SuspendEvent, TempBasalEvent
from cgm_timeline.settings import HoverSettings

MINUTE = 60_000
BASE = 1_700_000_000_000


def _x_scale(at_ms: float) -> float:
    # 1 px per minute relative to BASE
    return (at_ms - BASE) / MINUTE


def _y_scale(value: float) -> float:
    return 400.0 - value


def test_closest_bolus_within_proximity():
    events = [
        BolusEvent(amount_u=2.0, at_ms=BASE),
        BolusEvent(amount_u=1.0, at_ms=BASE + 20 * MINUTE),
        TempBasalEvent(rate_u_per_hr=0.5, start_ms=BASE + 11 * MINUTE, end_ms=BASE + 41 * MINUTE),
    ]
    assert closest_bolus(BASE + 12 * MINUTE, events) is events[1]


def test_closest_bolus_too_far_returns_none():
    events = [BolusEvent(amount_u=2.0, at_ms=BASE)]
    assert closest_bolus(BASE + 31 * MINUTE, events) is None
    assert closest_bolus(BASE + 30 * MINUTE, events) is events[0]


def test_closest_bolus_ignores_invalid_events():
    events = [
        BolusEvent(amount_u=0.0, at_ms=BASE),
        BolusEvent(amount_u=-1.0, at_ms=BASE),
        BolusEvent(amount_u=1.0, at_ms=None),
        BolusEvent(amount_u=1.0, at_ms=float("nan")),
        SuspendEvent(start_ms=BASE, end_ms=BASE + MINUTE),
    ]
    assert closest_bolus(BASE, events) is None
    assert closest_bolus(BASE, []) is None
    assert closest_bolus(BASE, None) is None


def test_closest_bolus_tie_keeps_first_seen():
    events = [
        BolusEvent(amount_u=1.0, at_ms=BASE - 5 * MINUTE),
        BolusEvent(amount_u=2.0, at_ms=BASE + 5 * MINUTE),
    ]
    assert closest_bolus(BASE, events) is events[0]


def test_closest_carb_event_policy():
    carbs = [
        CarbEvent(id="a", at_ms=BASE, grams_carb=30),
        CarbEvent(id="b", at_ms=BASE + 25 * MINUTE, grams_carb=0),
        CarbEvent(id="c", at_ms=BASE + 40 * MINUTE, grams_carb=15),
    ]
    assert closest_carb_event(BASE + 15 * MINUTE, carbs).id == "a"
    assert closest_carb_event(BASE + 36 * MINUTE, carbs).id == "c"
    assert closest_carb_event(BASE + 200 * MINUTE, carbs) is None


def test_custom_focus_proximity():
    hover = HoverSettings(max_focus_proximity_minutes=5)
    events = [BolusEvent(amount_u=1.0, at_ms=BASE)]
    assert closest_bolus(BASE + 6 * MINUTE, events, hover=hover) is None


def test_events_in_window_sorted_and_capped():
    rng = np.random.default_rng(11)
    offsets = rng.integers(-60, 60, size=300)
    events = [CarbEvent(id=str(i), at_ms=BASE + int(offset) * MINUTE, grams_carb=10) for i, offset in enumerate(offsets)]

    result = events_in_window(BASE, events, 30 * MINUTE, 5)

    assert len(result) == 5
    times = [event.at_ms for event in result]
    assert times == sorted(times)
    assert all(abs(t - BASE) <= 30 * MINUTE for t in times)


def test_events_in_window_filters_invalid_and_handles_empty():
    events = [
        BolusEvent(amount_u=1.0, at_ms=BASE + 10 * MINUTE),
        BolusEvent(amount_u=0.0, at_ms=BASE),
        TempBasalEvent(rate_u_per_hr=1.0, start_ms=BASE, end_ms=BASE + MINUTE),
        CarbEvent(id="x", at_ms=BASE - 10 * MINUTE, grams_carb=12),
    ]
    result = events_in_window(BASE, events, 30 * MINUTE, 10)
    assert result == [events[3], events[0]]
    assert events_in_window(BASE, [], 30 * MINUTE, 5) == []
    assert events_in_window(BASE, None, 30 * MINUTE, 5) == []
    assert events_in_window(BASE, events, 30 * MINUTE, 0) == []


def test_tooltip_window_wrappers():
    boluses = [BolusEvent(amount_u=1.0, at_ms=BASE + i * 10 * MINUTE) for i in range(-4, 5)]
    result = bolus_events_in_tooltip_window(BASE, boluses)
    assert [b.at_ms for b in result] == [BASE + i * 10 * MINUTE for i in range(-3, 2)]

    carbs = [CarbEvent(id="late", at_ms=BASE + 31 * MINUTE, grams_carb=10)]
    assert carb_events_in_tooltip_window(BASE, carbs) == []


def test_events_near_touch_point_time_window_match():
    bolus = BolusEvent(amount_u=1.0, at_ms=BASE + 4 * MINUTE)
    touch_y = 0.0  # far from the marker row
    result = events_near_touch_point(0.0, touch_y, BASE, [bolus], _x_scale, _y_scale)
    assert result == [bolus]


def test_events_near_touch_point_spatial_match_needs_extended_window():
    near_marker = BolusEvent(amount_u=1.0, at_ms=BASE + 8 * MINUTE)
    too_late = BolusEvent(amount_u=1.0, at_ms=BASE + 11 * MINUTE)
    marker_y = _y_scale(50.0)

    # Touch x sits on the marker position but touch time is reported at BASE.
    touch_x = _x_scale(BASE + 9 * MINUTE)
    result = events_near_touch_point(touch_x, marker_y, BASE, [near_marker, too_late], _x_scale, _y_scale)
    assert result == [near_marker]


def test_events_near_touch_point_spatial_miss():
    bolus = BolusEvent(amount_u=1.0, at_ms=BASE + 8 * MINUTE)
    result = events_near_touch_point(0.0, 0.0, BASE, [bolus], _x_scale, _y_scale)
    assert result == []


def test_events_near_touch_point_sorted_and_capped():
    events = [BolusEvent(amount_u=1.0, at_ms=BASE + offset * 30_000) for offset in (8, -8, 4, -4, 0, 2, -2)]
    result = events_near_touch_point(0.0, 0.0, BASE, events, _x_scale, _y_scale)
    assert len(result) == 5
    times = [event.at_ms for event in result]
    assert times == sorted(times)


def test_closest_event_near_touch_point():
    events = [
        BolusEvent(amount_u=1.0, at_ms=BASE - 3 * MINUTE),
        BolusEvent(amount_u=2.0, at_ms=BASE + MINUTE),
    ]
    assert closest_event_near_touch_point(0.0, 0.0, BASE, events, _x_scale, _y_scale) is events[1]
    assert closest_event_near_touch_point(0.0, 0.0, BASE, [], _x_scale, _y_scale) is None


def test_correlator_is_idempotent():
    events = [CarbEvent(id=str(i), at_ms=BASE + i * MINUTE, grams_carb=5) for i in range(20)]
    first = events_in_window(BASE, events, 10 * MINUTE, 5)
    second = events_in_window(BASE, events, 10 * MINUTE, 5)
    assert first == second
