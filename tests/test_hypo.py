from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cgm_timeline.hypo import classify_driver, investigation_window, segment
from cgm_timeline.models import (
    BolusEvent,
    CarbEvent,
    GlucoseSample,
    HypoDriver,
    TempBasalEvent,
)

MINUTE = 60_000
HOUR = 60 * MINUTE


def _samples(*pairs):
    return [GlucoseSample(timestamp_ms=minutes * MINUTE, value_mg_dl=value) for minutes, value in pairs]


def test_two_episodes_split_by_recovery_and_gap():
    samples = _samples((0, 100), (5, 58), (10, 55), (15, 62), (50, 59), (55, 57), (60, 80))

    episodes = segment(samples, 60)

    assert len(episodes) == 2
    assert [episode.nadir_value_mg_dl for episode in episodes] == [57, 55]
    newer, older = episodes
    assert (older.start_ms, older.end_ms, older.nadir_ms) == (5 * MINUTE, 10 * MINUTE, 10 * MINUTE)
    assert (newer.start_ms, newer.end_ms, newer.nadir_ms) == (50 * MINUTE, 55 * MINUTE, 55 * MINUTE)
    assert older.id == str(5 * MINUTE)


def test_threshold_is_inclusive():
    samples = _samples((0, 65), (5, 60), (10, 80), (40, 68), (45, 72))

    episodes = segment(samples, 70)

    assert len(episodes) == 2
    newer, older = episodes
    assert older.nadir_value_mg_dl == 60
    assert newer.nadir_value_mg_dl == 68
    assert segment(_samples((0, 70)), 70)[0].nadir_value_mg_dl == 70


def test_gap_splits_continuous_low_run():
    samples = _samples((0, 60), (5, 58), (30, 57), (35, 59))

    episodes = segment(samples, 70)

    assert len(episodes) == 2
    assert [(e.start_ms, e.end_ms) for e in episodes] == [
        (30 * MINUTE, 35 * MINUTE),
        (0, 5 * MINUTE),
    ]


def test_gap_of_exactly_max_keeps_episode_open():
    samples = _samples((0, 60), (20, 58))
    episodes = segment(samples, 70)
    assert len(episodes) == 1
    assert episodes[0].duration_minutes == 20


def test_custom_max_gap():
    samples = _samples((0, 60), (10, 58))
    assert len(segment(samples, 70, max_gap_ms=5 * MINUTE)) == 2


def test_nadir_tie_keeps_earliest():
    samples = _samples((0, 60), (5, 55), (10, 55), (15, 58))
    (episode,) = segment(samples, 70)
    assert episode.nadir_ms == 5 * MINUTE


def test_open_episode_closes_at_end_of_input():
    samples = _samples((0, 90), (5, 65), (10, 62))
    (episode,) = segment(samples, 70)
    assert (episode.start_ms, episode.end_ms) == (5 * MINUTE, 10 * MINUTE)
    assert episode.nadir_value_mg_dl == 62


def test_unsorted_input_and_invalid_samples():
    samples = [
        GlucoseSample(timestamp_ms=10 * MINUTE, value_mg_dl=55),
        GlucoseSample(timestamp_ms=0, value_mg_dl=100),
        GlucoseSample(timestamp_ms=5 * MINUTE, value_mg_dl=None),
        GlucoseSample(timestamp_ms=5 * MINUTE, value_mg_dl=float("nan")),
        GlucoseSample(timestamp_ms=15 * MINUTE, value_mg_dl=90),
    ]
    original = list(samples)

    (episode,) = segment(samples, 70)

    assert episode.start_ms == 10 * MINUTE
    assert samples == original


def test_no_lows_and_empty_input():
    assert segment(_samples((0, 100), (5, 120)), 70) == []
    assert segment([], 70) == []
    assert segment(None, 70) == []


def test_driver_classification():
    def sample(bolus, basal):
        return GlucoseSample(timestamp_ms=0, value_mg_dl=55, iob_bolus_u=bolus, iob_basal_u=basal)

    assert classify_driver(sample(None, None)) is None
    assert classify_driver(sample(1.2, 0.4)).driver is HypoDriver.BOLUS
    assert classify_driver(sample(0.4, 1.2)).driver is HypoDriver.BASAL
    assert classify_driver(sample(0.5, 0.5)).driver is HypoDriver.BASAL

    partial = classify_driver(sample(0.3, None))
    assert partial.driver is HypoDriver.BOLUS
    assert partial.iob_basal_u == 0.0

    clamped = classify_driver(sample(-1.0, 0.0))
    assert clamped.driver is HypoDriver.BASAL
    assert clamped.iob_bolus_u == 0.0


def test_episode_driver_uses_nadir_iob():
    samples = [
        GlucoseSample(timestamp_ms=0, value_mg_dl=65, iob_bolus_u=0.1, iob_basal_u=0.9),
        GlucoseSample(timestamp_ms=5 * MINUTE, value_mg_dl=52, iob_bolus_u=2.0, iob_basal_u=0.5),
        GlucoseSample(timestamp_ms=10 * MINUTE, value_mg_dl=75),
    ]
    (episode,) = segment(samples, 70)
    assert episode.driver is HypoDriver.BOLUS
    assert episode.iob_bolus_u == 2.0
    assert episode.iob_basal_u == 0.5
    assert episode.nadir_sample is samples[1]


def test_episode_without_split_iob_is_unclassified():
    (episode,) = segment(_samples((0, 60)), 70)
    assert episode.driver is None
    assert episode.iob_bolus_u is None
    assert episode.iob_basal_u is None


def test_investigation_window_collects_context():
    base = 10 * HOUR
    samples = [GlucoseSample(timestamp_ms=base + offset * MINUTE, value_mg_dl=value) for offset, value in (
        (-240, 110), (-120, 140), (0, 60), (5, 55), (10, 80), (200, 120), (300, 100),
    )]
    (episode,) = segment(samples, 70)
    insulin = [
        BolusEvent(amount_u=4.0, at_ms=base - 90 * MINUTE),
        BolusEvent(amount_u=1.0, at_ms=base - 5 * HOUR),
        TempBasalEvent(rate_u_per_hr=0.0, start_ms=base - 30 * MINUTE, end_ms=base),
    ]
    carbs = [
        CarbEvent(id="snack", at_ms=base + 15 * MINUTE, grams_carb=15),
        CarbEvent(id="old", at_ms=base - 4 * HOUR, grams_carb=40),
    ]

    window = investigation_window(episode, list(reversed(samples)), insulin, carbs)

    assert window.start_ms == base - 3 * HOUR
    assert window.end_ms == base + 5 * MINUTE + 3 * HOUR
    assert [s.timestamp_ms - base for s in window.samples] == [-120 * MINUTE, 0, 5 * MINUTE, 10 * MINUTE]
    assert window.boluses == (insulin[0],)
    assert [carb.id for carb in window.carb_events] == ["snack"]


def test_investigation_window_custom_hours():
    (episode,) = segment(_samples((60, 60)), 70)
    window = investigation_window(episode, [], hours_before=1, hours_after=0.5)
    assert window.start_ms == 0
    assert window.end_ms == 90 * MINUTE
    assert window.samples == ()
