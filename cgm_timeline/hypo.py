"""Segment CGM readings into hypoglycemia episodes and classify their driver."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .events import valid_boluses, valid_carb_events
from .models import (
    BolusEvent,
    CarbEvent,
    GlucoseSample,
    HypoDriver,
    HypoEpisode,
    InsulinEvent,
    is_finite_number,
)
from .settings import DEFAULT_SETTINGS, HOUR_MS


@dataclass(frozen=True)
class DriverClassification:
    """Split-IOB attribution at a hypo nadir."""

    driver: HypoDriver
    iob_bolus_u: float
    iob_basal_u: float


@dataclass(frozen=True)
class HypoInvestigationWindow:
    """Readings and events surrounding an episode, ascending by time."""

    episode: HypoEpisode
    start_ms: float
    end_ms: float
    samples: Sequence[GlucoseSample] = field(default_factory=tuple)
    boluses: Sequence[BolusEvent] = field(default_factory=tuple)
    carb_events: Sequence[CarbEvent] = field(default_factory=tuple)


@dataclass
class _OpenEpisode:
    start_ms: int
    end_ms: int
    nadir: GlucoseSample


def classify_driver(sample: GlucoseSample) -> Optional[DriverClassification]:
    """Attribute a low to bolus or basal insulin from the split IOB at the nadir.

    Returns ``None`` when the sample carries neither component. Equal components
    classify as basal.
    """

    bolus_raw = sample.iob_bolus_u if is_finite_number(sample.iob_bolus_u) else None
    basal_raw = sample.iob_basal_u if is_finite_number(sample.iob_basal_u) else None
    if bolus_raw is None and basal_raw is None:
        return None

    iob_bolus_u = max(0.0, float(bolus_raw or 0.0))
    iob_basal_u = max(0.0, float(basal_raw or 0.0))
    driver = HypoDriver.BOLUS if iob_bolus_u > iob_basal_u else HypoDriver.BASAL
    return DriverClassification(driver=driver, iob_bolus_u=iob_bolus_u, iob_basal_u=iob_basal_u)


def _build_episode(open_episode: _OpenEpisode) -> HypoEpisode:
    nadir = open_episode.nadir
    classification = classify_driver(nadir)
    return HypoEpisode(
        id=str(open_episode.start_ms),
        start_ms=open_episode.start_ms,
        end_ms=open_episode.end_ms,
        nadir_ms=nadir.timestamp_ms,
        nadir_value_mg_dl=float(nadir.value_mg_dl),
        driver=classification.driver if classification else None,
        iob_bolus_u=classification.iob_bolus_u if classification else None,
        iob_basal_u=classification.iob_basal_u if classification else None,
        nadir_sample=nadir,
    )


def segment(
    samples: Iterable[GlucoseSample] | None,
    low_threshold_mg_dl: float,
    *,
    max_gap_ms: float = DEFAULT_SETTINGS.hypo_max_gap_ms,
) -> list[HypoEpisode]:
    """Extract distinct hypo episodes, most recent first.

    An episode opens on the first reading at or below the threshold and closes at the
    last low reading before the glucose leaves the low range. A gap longer than
    ``max_gap_ms`` between consecutive readings closes any open episode before the
    next reading is evaluated. Within an episode the nadir only moves on a strictly
    lower value.
    """

    ordered = sorted(
        (
            sample
            for sample in samples or ()
            if is_finite_number(sample.timestamp_ms) and is_finite_number(sample.value_mg_dl)
        ),
        key=lambda sample: sample.timestamp_ms,
    )

    episodes: list[HypoEpisode] = []
    current: Optional[_OpenEpisode] = None
    last_ms: Optional[int] = None

    for sample in ordered:
        timestamp_ms = sample.timestamp_ms
        is_low = sample.value_mg_dl <= low_threshold_mg_dl

        if last_ms is not None and timestamp_ms - last_ms > max_gap_ms and current is not None:
            episodes.append(_build_episode(current))
            current = None

        if is_low:
            if current is None:
                current = _OpenEpisode(start_ms=timestamp_ms, end_ms=timestamp_ms, nadir=sample)
            else:
                current.end_ms = timestamp_ms
                if sample.value_mg_dl < current.nadir.value_mg_dl:
                    current.nadir = sample
        elif current is not None:
            episodes.append(_build_episode(current))
            current = None

        last_ms = timestamp_ms

    if current is not None:
        episodes.append(_build_episode(current))

    episodes.sort(key=lambda episode: episode.start_ms, reverse=True)
    return episodes


def investigation_window(
    episode: HypoEpisode,
    samples: Iterable[GlucoseSample] | None,
    insulin_events: Iterable[InsulinEvent] | None = None,
    carb_events: Iterable[CarbEvent] | None = None,
    *,
    hours_before: float = DEFAULT_SETTINGS.investigation_hours_before,
    hours_after: float = DEFAULT_SETTINGS.investigation_hours_after,
) -> HypoInvestigationWindow:
    """Collect the context around an episode for a hypo investigation report."""

    start_ms = episode.start_ms - hours_before * HOUR_MS
    end_ms = episode.end_ms + hours_after * HOUR_MS

    window_samples = sorted(
        (
            sample
            for sample in samples or ()
            if is_finite_number(sample.timestamp_ms) and start_ms <= sample.timestamp_ms <= end_ms
        ),
        key=lambda sample: sample.timestamp_ms,
    )
    boluses = sorted(
        (bolus for bolus in valid_boluses(insulin_events) if start_ms <= bolus.at_ms <= end_ms),
        key=lambda bolus: bolus.at_ms,
    )
    carbs = sorted(
        (carb for carb in valid_carb_events(carb_events) if start_ms <= carb.at_ms <= end_ms),
        key=lambda carb: carb.at_ms,
    )

    return HypoInvestigationWindow(
        episode=episode,
        start_ms=start_ms,
        end_ms=end_ms,
        samples=tuple(window_samples),
        boluses=tuple(boluses),
        carb_events=tuple(carbs),
    )
