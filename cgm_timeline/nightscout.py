"""Normalize raw Nightscout documents into the timeline data contract."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from models.nightscout_models import (
    NightscoutDeviceStatus,
    NightscoutEntry,
    NightscoutTreatment,
)

from .device_status import parse_device_status
from .models import (
    BolusEvent,
    CarbEvent,
    DeviceStatusSnapshot,
    GlucoseSample,
    InsulinEvent,
    SuspendEvent,
    TempBasalEvent,
)
from .utils import parse_timestamp_ms

BOLUS_EVENT_TYPES = frozenset({"Bolus", "Meal Bolus", "Correction Bolus", "Combo Bolus"})
TEMP_BASAL_EVENT_TYPE = "Temp Basal"
SUSPEND_EVENT_TYPE = "Suspend Pump"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate_documents(documents: Iterable[Any] | None, model: Type[ModelT]) -> list[ModelT]:
    parsed: list[ModelT] = []
    for document in documents or ():
        if not isinstance(document, dict):
            logging.warning(f"Skipping non-object {model.__name__} document: {document!r}")
            continue
        try:
            parsed.append(model.model_validate(document))
        except ValidationError as e:
            logging.warning(f"Skipping unreadable {model.__name__} document: {e}")
    return parsed


def convert_entries(documents: Iterable[Any] | None) -> list[GlucoseSample]:
    """Map `entries` documents to samples, ascending and de-duplicated by timestamp.

    Readings without a usable value are kept (they count as invalid downstream);
    readings without a timestamp are dropped.
    """

    by_timestamp: dict[int, GlucoseSample] = {}
    for entry in _validate_documents(documents, NightscoutEntry):
        if entry.type is not None and entry.type != "sgv":
            continue
        timestamp_ms = parse_timestamp_ms(entry.date) if entry.date is not None else None
        if timestamp_ms is None:
            timestamp_ms = parse_timestamp_ms(entry.dateString)
        if timestamp_ms is None or timestamp_ms in by_timestamp:
            continue
        extras = {key: value for key, value in (("id", entry.id), ("device", entry.device)) if value is not None}
        by_timestamp[timestamp_ms] = GlucoseSample(
            timestamp_ms=timestamp_ms,
            value_mg_dl=entry.sgv,
            direction=entry.direction,
            extras=extras,
        )
    return [by_timestamp[key] for key in sorted(by_timestamp)]


def _end_ms(start_ms: Optional[int], duration_minutes: Optional[float]) -> Optional[int]:
    if start_ms is None or duration_minutes is None or duration_minutes <= 0:
        return None
    return start_ms + int(duration_minutes * 60_000)


def convert_insulin_treatments(documents: Iterable[Any] | None) -> list[InsulinEvent]:
    """Map bolus, temp-basal and suspend treatments to insulin events."""

    events: list[InsulinEvent] = []
    for treatment in _validate_documents(documents, NightscoutTreatment):
        start_ms = parse_timestamp_ms(treatment.created_at)
        insulin = treatment.insulin if treatment.insulin is not None else treatment.amount
        if insulin and treatment.eventType in BOLUS_EVENT_TYPES:
            events.append(BolusEvent(amount_u=insulin, at_ms=start_ms))
        elif treatment.eventType == TEMP_BASAL_EVENT_TYPE:
            rate = treatment.rate if treatment.rate is not None else treatment.absolute
            events.append(
                TempBasalEvent(
                    rate_u_per_hr=rate or 0.0,
                    start_ms=start_ms,
                    end_ms=_end_ms(start_ms, treatment.duration),
                )
            )
        elif treatment.eventType == SUSPEND_EVENT_TYPE:
            events.append(SuspendEvent(start_ms=start_ms, end_ms=_end_ms(start_ms, treatment.duration)))
    return events


def convert_carb_treatments(documents: Iterable[Any] | None) -> list[CarbEvent]:
    """Map treatments carrying positive carbs and a parseable time to carb events."""

    events: list[CarbEvent] = []
    for treatment in _validate_documents(documents, NightscoutTreatment):
        carbs = treatment.carbs
        if carbs is None or carbs <= 0:
            continue
        at_ms = parse_timestamp_ms(treatment.created_at)
        if at_ms is None:
            continue
        event_id = treatment.id or f"carbs-{at_ms}-{carbs:g}"
        events.append(CarbEvent(id=event_id, at_ms=at_ms, grams_carb=carbs))
    return events


def convert_device_status(documents: Iterable[Any] | None) -> list[DeviceStatusSnapshot]:
    """Resolve `devicestatus` documents into snapshots."""

    return [
        parse_device_status(status)
        for status in _validate_documents(documents, NightscoutDeviceStatus)
    ]
