"""Join device-status IOB/COB snapshots onto CGM samples by nearest timestamp."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from models.nightscout_models import NightscoutDeviceStatus

from .models import DeviceLoad, DeviceStatusSnapshot, GlucoseSample, SnapshotFormat, is_finite_number
from .series_index import is_ascending
from .settings import DEFAULT_SETTINGS
from .utils import clamp_non_negative, parse_timestamp_ms

SnapshotInput = Union[DeviceStatusSnapshot, NightscoutDeviceStatus, Mapping[str, Any]]


def _first_present(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_timestamp_ms(status: NightscoutDeviceStatus) -> Optional[int]:
    """Best-available timestamp for a device-status document.

    Loop values carry the time their IOB/COB were computed, so those win over the
    upload time: loop IOB -> loop COB -> loop cycle -> ``mills`` -> ``created_at``.
    """

    loop = status.loop
    if loop is not None:
        candidates = (
            loop.iob.timestamp if loop.iob is not None else None,
            loop.cob.timestamp if loop.cob is not None else None,
            loop.timestamp,
        )
        for candidate in candidates:
            parsed = parse_timestamp_ms(candidate)
            if parsed is not None:
                return parsed
    if status.mills is not None:
        return int(status.mills)
    return parse_timestamp_ms(status.created_at)


def extract_load(status: NightscoutDeviceStatus) -> tuple[DeviceLoad, SnapshotFormat]:
    """Read IOB/COB in priority order loop -> openaps -> flat, clamping negatives to 0."""

    loop = status.loop
    openaps = status.openaps
    loop_iob = loop.iob if loop is not None else None
    loop_cob = loop.cob if loop is not None else None
    aps_iob = openaps.iob if openaps is not None else None
    aps_meal = openaps.meal if openaps is not None else None
    aps_cob = openaps.cob if openaps is not None else None

    loop_values = (
        clamp_non_negative(loop_iob.iob) if loop_iob else None,
        clamp_non_negative(loop_iob.bolusIob) if loop_iob else None,
        clamp_non_negative(loop_iob.basalIob) if loop_iob else None,
        clamp_non_negative(loop_cob.cob) if loop_cob else None,
    )
    aps_values = (
        clamp_non_negative(aps_iob.iob) if aps_iob else None,
        clamp_non_negative(aps_iob.bolusiob) if aps_iob else None,
        clamp_non_negative(aps_iob.basaliob) if aps_iob else None,
        _first_present(
            clamp_non_negative(aps_meal.cob) if aps_meal else None,
            clamp_non_negative(aps_cob.cob) if aps_cob else None,
        ),
    )
    flat_values = (clamp_non_negative(status.iob), None, None, clamp_non_negative(status.cob))

    iob_total, iob_bolus, iob_basal, cob = (
        _first_present(loop_value, aps_value, flat_value)
        for loop_value, aps_value, flat_value in zip(loop_values, aps_values, flat_values)
    )

    if any(value is not None for value in loop_values):
        source_format = SnapshotFormat.LOOP
    elif any(value is not None for value in aps_values):
        source_format = SnapshotFormat.OPENAPS
    elif any(value is not None for value in flat_values):
        source_format = SnapshotFormat.FLAT
    else:
        source_format = SnapshotFormat.UNKNOWN

    if iob_total is not None and (iob_bolus is None or iob_basal is None):
        # Total-only uploaders: a partial split would read as zero basal IOB.
        return DeviceLoad(iob_total_u=iob_total, cob_g=cob), source_format

    if iob_total is None:
        split_total = (iob_bolus or 0.0) + (iob_basal or 0.0)
        iob_total = split_total if split_total > 0 else None

    return (
        DeviceLoad(iob_total_u=iob_total, iob_bolus_u=iob_bolus, iob_basal_u=iob_basal, cob_g=cob),
        source_format,
    )


def parse_device_status(payload: SnapshotInput) -> DeviceStatusSnapshot:
    """Resolve a raw device-status document into a snapshot once, at ingestion."""

    if isinstance(payload, DeviceStatusSnapshot):
        return payload
    if isinstance(payload, NightscoutDeviceStatus):
        status = payload
    elif isinstance(payload, Mapping):
        try:
            status = NightscoutDeviceStatus.model_validate(dict(payload))
        except ValidationError as e:
            logging.warning(f"Skipping unreadable devicestatus document: {e}")
            return DeviceStatusSnapshot(source_format=SnapshotFormat.UNKNOWN, timestamp_ms=None)
    else:
        return DeviceStatusSnapshot(source_format=SnapshotFormat.UNKNOWN, timestamp_ms=None)

    load, source_format = extract_load(status)
    return DeviceStatusSnapshot(
        source_format=source_format,
        timestamp_ms=resolve_timestamp_ms(status),
        load=load,
    )


def _timed_snapshots(snapshots: Iterable[SnapshotInput] | None) -> list[DeviceStatusSnapshot]:
    resolved = [parse_device_status(item) for item in snapshots or ()]
    timed = [snapshot for snapshot in resolved if is_finite_number(snapshot.timestamp_ms)]
    timed.sort(key=lambda snapshot: snapshot.timestamp_ms)
    return timed


def _apply_load(sample: GlucoseSample, load: DeviceLoad) -> GlucoseSample:
    return replace(
        sample,
        iob_total_u=load.iob_total_u,
        iob_bolus_u=load.iob_bolus_u,
        iob_basal_u=load.iob_basal_u,
        cob_g=load.cob_g,
    )


def merge(
    samples: Sequence[GlucoseSample] | None,
    snapshots: Iterable[SnapshotInput] | None,
    *,
    max_distance_ms: float = DEFAULT_SETTINGS.merge_max_distance_ms,
) -> list[GlucoseSample]:
    """Enrich samples with the load of the nearest snapshot within ``max_distance_ms``.

    Returns a new list with the same length and orientation as ``samples``; samples
    without a snapshot in tolerance are returned unchanged.
    """

    if not samples:
        return []
    timed = _timed_snapshots(snapshots)
    if not timed:
        return list(samples)

    # Samples without a usable timestamp keep their position and stay unchanged.
    positions = [i for i, sample in enumerate(samples) if is_finite_number(sample.timestamp_ms)]
    located = [samples[i] for i in positions]
    ascending_order = is_ascending(located)
    ordered = located if ascending_order else list(reversed(located))

    enriched: list[GlucoseSample] = []
    index = 0
    last_index = len(timed) - 1
    for sample in ordered:
        target_ms = sample.timestamp_ms
        while index < last_index and timed[index + 1].timestamp_ms <= target_ms:
            index += 1

        previous = timed[index]
        previous_distance = abs(target_ms - previous.timestamp_ms)
        if index < last_index:
            following = timed[index + 1]
            following_distance = abs(target_ms - following.timestamp_ms)
        else:
            following = None
            following_distance = float("inf")

        if previous_distance <= following_distance:
            best, best_distance = previous, previous_distance
        else:
            best, best_distance = following, following_distance

        if best_distance > max_distance_ms or best.load.is_empty():
            enriched.append(sample)
        else:
            enriched.append(_apply_load(sample, best.load))

    if not ascending_order:
        enriched.reverse()
    merged = list(samples)
    for position, sample in zip(positions, enriched):
        merged[position] = sample
    return merged
