"""
Nightscout API document models.

Documents come from several uploaders and are validated leniently: a field with an
unexpected type is read as missing instead of failing the whole document.
"""
import math
from typing import Any, Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _mapping_or_none(value: Any) -> Any:
    return value if isinstance(value, dict) else None


LooseNumber = Annotated[Optional[float], BeforeValidator(_number_or_none)]
LooseString = Annotated[Optional[str], BeforeValidator(_string_or_none)]


class NightscoutEntry(BaseModel):
    """
    Model for a Nightscout `entries` document (sgv records).
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: LooseString = Field(default=None, alias="_id", description="Document id")
    type: LooseString = Field(default=None, description="Entry type, e.g. sgv")
    sgv: LooseNumber = Field(default=None, description="Sensor glucose value in mg/dL")
    date: LooseNumber = Field(default=None, description="Epoch milliseconds")
    dateString: LooseString = Field(default=None, description="ISO-8601 timestamp")
    direction: LooseString = Field(default=None, description="Trend arrow")
    device: LooseString = Field(default=None, description="Uploading device")


class NightscoutTreatment(BaseModel):
    """
    Model for a Nightscout `treatments` document.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: LooseString = Field(default=None, alias="_id", description="Document id")
    eventType: LooseString = Field(default=None, description="Treatment event type")
    created_at: LooseString = Field(default=None, description="ISO-8601 timestamp")
    insulin: LooseNumber = Field(default=None, description="Bolus units")
    amount: LooseNumber = Field(default=None, description="Alternative bolus units")
    carbs: LooseNumber = Field(default=None, description="Carbohydrates in grams")
    rate: LooseNumber = Field(default=None, description="Temp basal rate U/hr")
    absolute: LooseNumber = Field(default=None, description="Absolute temp basal rate U/hr")
    duration: LooseNumber = Field(default=None, description="Duration in minutes")


class LoopIob(BaseModel):
    """
    Model for the `loop.iob` block.
    """
    model_config = ConfigDict(extra="allow")

    iob: LooseNumber = Field(default=None, description="Total insulin on board")
    bolusIob: LooseNumber = Field(default=None, description="Bolus insulin on board")
    basalIob: LooseNumber = Field(default=None, description="Basal insulin on board")
    timestamp: LooseString = Field(default=None, description="Computation time")


class LoopCob(BaseModel):
    """
    Model for the `loop.cob` block.
    """
    model_config = ConfigDict(extra="allow")

    cob: LooseNumber = Field(default=None, description="Carbs on board")
    timestamp: LooseString = Field(default=None, description="Computation time")


class LoopPayload(BaseModel):
    """
    Model for the Loop uploader payload.
    """
    model_config = ConfigDict(extra="allow")

    iob: Annotated[Optional[LoopIob], BeforeValidator(_mapping_or_none)] = None
    cob: Annotated[Optional[LoopCob], BeforeValidator(_mapping_or_none)] = None
    timestamp: LooseString = Field(default=None, description="Loop cycle time")


class OpenApsIob(BaseModel):
    """
    Model for the `openaps.iob` block.
    """
    model_config = ConfigDict(extra="allow")

    iob: LooseNumber = Field(default=None, description="Total insulin on board")
    bolusiob: LooseNumber = Field(default=None, description="Bolus insulin on board")
    basaliob: LooseNumber = Field(default=None, description="Basal insulin on board")


class OpenApsCob(BaseModel):
    """
    Model for `openaps.cob` / `openaps.meal` blocks.
    """
    model_config = ConfigDict(extra="allow")

    cob: LooseNumber = Field(default=None, description="Carbs on board")


class OpenApsPayload(BaseModel):
    """
    Model for the OpenAPS uploader payload.
    """
    model_config = ConfigDict(extra="allow")

    iob: Annotated[Optional[OpenApsIob], BeforeValidator(_mapping_or_none)] = None
    cob: Annotated[Optional[OpenApsCob], BeforeValidator(_mapping_or_none)] = None
    meal: Annotated[Optional[OpenApsCob], BeforeValidator(_mapping_or_none)] = None


class NightscoutDeviceStatus(BaseModel):
    """
    Model for a Nightscout `devicestatus` document.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: LooseString = Field(default=None, alias="_id", description="Document id")
    created_at: LooseString = Field(default=None, description="ISO-8601 upload time")
    mills: LooseNumber = Field(default=None, description="Epoch milliseconds")
    loop: Annotated[Optional[LoopPayload], BeforeValidator(_mapping_or_none)] = None
    openaps: Annotated[Optional[OpenApsPayload], BeforeValidator(_mapping_or_none)] = None
    iob: LooseNumber = Field(default=None, description="Top-level insulin on board")
    cob: LooseNumber = Field(default=None, description="Top-level carbs on board")
