from pydantic import BaseModel, Field, field_validator
import uuid
from datetime import date as Date, time as Time
from typing import Optional

from storeshift.services.store_hours_service import TimeRange, validate_time_ranges


class TimeRangeSchema(BaseModel):
    open_time: Time
    close_time: Time

    model_config = {"from_attributes": True}


def _check_ranges(ranges: list[TimeRangeSchema]) -> list[TimeRangeSchema]:
    validate_time_ranges(TimeRange(r.open_time, r.close_time) for r in ranges)
    return sorted(ranges, key=lambda r: r.open_time)


class StoreScheduleIn(BaseModel):
    is_open: bool
    time_ranges: list[TimeRangeSchema] = []

    @field_validator("time_ranges")
    @classmethod
    def _ranges(cls, v):
        return _check_ranges(v)


class StoreScheduleOut(BaseModel):
    day_of_week: int  # 0=Mon ... 6=Sun, 7=holiday hours
    is_open: bool
    time_ranges: list[TimeRangeSchema]


class StoreExceptionIn(BaseModel):
    date: Date
    is_open: bool = False
    time_ranges: list[TimeRangeSchema] = []
    reason: Optional[str] = Field(None, max_length=255)
    is_holiday: bool = False

    @field_validator("time_ranges")
    @classmethod
    def _ranges(cls, v):
        return _check_ranges(v)


class StoreExceptionOut(BaseModel):
    id: uuid.UUID
    date: Date
    is_open: bool
    time_ranges: list[TimeRangeSchema]
    reason: Optional[str]
    is_holiday: bool


class CalendarDayOut(BaseModel):
    date: Date
    is_open: bool
    is_holiday: bool
    reason: Optional[str] = None
    ranges: list[TimeRangeSchema]


class HolidayImportRequest(BaseModel):
    year: int = Field(ge=2000, le=2100)
    country: Optional[str] = None  # defaults to HOLIDAY_COUNTRY
    overwrite: bool = False
