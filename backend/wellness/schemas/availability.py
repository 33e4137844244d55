# backend/wellness/schemas/availability.py
"""Therapist availability schemas."""

from datetime import date as date_type
from typing import Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from .base import StandardizedModel, ensure_date_only, ensure_hhmm
from ._strict_base import StrictRequestModel


class SlotCreate(StrictRequestModel):
    """Publish one bookable slot on a specific date."""

    date: date_type
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM, after start_time")

    @field_validator("date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "date")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, v: object) -> object:
        return ensure_hhmm(v, "time")

    @model_validator(mode="after")
    def _end_after_start(self) -> "SlotCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SlotResponse(StandardizedModel):
    id: str
    therapist_id: str
    date: date_type
    start_time: str
    end_time: str
    status: str


class TimeWindow(StrictRequestModel):
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, v: object) -> object:
        return ensure_hhmm(v, "time")


class WeeklyAvailabilityUpdate(StrictRequestModel):
    """Weekly template keyed by day name, e.g. {"Monday": [{"start_time": "09:00", ...}]}."""

    weekly_availability: Dict[str, List[TimeWindow]]


class WeeklyAvailabilityResponse(StandardizedModel):
    therapist_id: str
    weekly_availability: Dict[str, List[Dict[str, str]]]


class AvailableSlotResponse(StandardizedModel):
    start_time: str
    end_time: str
    is_available: bool
    status: str


class AvailableSlotsResponse(StandardizedModel):
    service_id: str
    date: date_type
    therapist_id: Optional[str] = None
    slots: List[AvailableSlotResponse]
