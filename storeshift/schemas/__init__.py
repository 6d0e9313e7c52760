from storeshift.schemas.shift import (
    ShiftCreate, ShiftUpdate, ShiftOut, ValidationErrorOut, BatchResultOut, ShiftCheckOut, PublishRequest, PublishOut,
    DuplicateDayRequest, DuplicateWeekRequest, HoursSummaryOut,
    BlueprintIn, BlueprintOut, ShiftTemplateCreate, ShiftTemplateOut, ApplyTemplateRequest, CaptureTemplateRequest,
)
from storeshift.schemas.store_hours import (
    TimeRangeSchema, StoreScheduleIn, StoreScheduleOut, StoreExceptionIn, StoreExceptionOut,
    CalendarDayOut, HolidayImportRequest,
)

__all__ = [
    "ShiftCreate", "ShiftUpdate", "ShiftOut", "ValidationErrorOut", "BatchResultOut", "ShiftCheckOut", "PublishRequest", "PublishOut",
    "DuplicateDayRequest", "DuplicateWeekRequest", "HoursSummaryOut",
    "BlueprintIn", "BlueprintOut", "ShiftTemplateCreate", "ShiftTemplateOut", "ApplyTemplateRequest",
    "CaptureTemplateRequest",
    "TimeRangeSchema", "StoreScheduleIn", "StoreScheduleOut", "StoreExceptionIn", "StoreExceptionOut",
    "CalendarDayOut", "HolidayImportRequest",
]
