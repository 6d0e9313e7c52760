from pydantic import BaseModel, Field, model_validator
import uuid
from datetime import date as Date, datetime as DateTime, time as Time
from typing import Optional


class ShiftCreate(BaseModel):
    employee_id: uuid.UUID
    date: Date
    # Plain strings so malformed times come back as validation errors, not 422 parse errors
    start_time: str
    end_time: str


class ShiftUpdate(BaseModel):
    employee_id: Optional[uuid.UUID] = None
    date: Optional[Date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    version: Optional[int] = None  # expected version; 409 when the shift changed meanwhile


class ShiftOut(BaseModel):
    id: uuid.UUID
    location_id: uuid.UUID
    employee_id: uuid.UUID
    template_id: Optional[uuid.UUID]
    source_shift_id: Optional[uuid.UUID]
    date: Date
    start_time: Time
    end_time: Time
    hours: float
    is_published: bool
    version: int
    created_at: DateTime
    updated_at: DateTime

    model_config = {"from_attributes": True}


class ValidationErrorOut(BaseModel):
    type: str
    message: str
    shift_id: Optional[uuid.UUID] = None
    index: Optional[int] = None
    date: Optional[Date] = None

    @classmethod
    def from_error(cls, error) -> "ValidationErrorOut":
        return cls(**error.as_dict())


class BatchResultOut(BaseModel):
    """Outcome of a batch: every created shift plus every per-item error."""
    shifts: list[ShiftOut] = []
    errors: list[ValidationErrorOut] = []

    @classmethod
    def from_result(cls, result) -> "BatchResultOut":
        return cls(
            shifts=[ShiftOut.model_validate(s) for s in result.shifts],
            errors=[ValidationErrorOut.from_error(e) for e in result.errors],
        )


class ShiftCheckOut(BaseModel):
    """Dry-run outcome: empty errors means the shift would be accepted."""
    valid: bool
    errors: list[ValidationErrorOut] = []


class PublishRequest(BaseModel):
    shift_ids: list[uuid.UUID]


class PublishOut(BaseModel):
    published: list[uuid.UUID]


class DuplicateDayRequest(BaseModel):
    source_date: Date


class DuplicateWeekRequest(BaseModel):
    week_start: Date


class HoursSummaryOut(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    assigned_hours: float
    weekly_limit: Optional[float]
    over_limit: bool

    model_config = {"from_attributes": True}


# ── Templates ────────────────────────────────────────────────────────────────

class BlueprintIn(BaseModel):
    employee_id: uuid.UUID
    day_offset: Optional[int] = Field(None, ge=0)
    weekday: Optional[int] = Field(None, ge=0, le=6)  # 0=Mon ... 6=Sun
    start_time: Time
    end_time: Time

    @model_validator(mode="after")
    def _check(self):
        if (self.day_offset is None) == (self.weekday is None):
            raise ValueError("Set exactly one of day_offset or weekday")
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BlueprintOut(BaseModel):
    id: uuid.UUID
    position: int
    employee_id: uuid.UUID
    day_offset: Optional[int]
    weekday: Optional[int]
    start_time: Time
    end_time: Time

    model_config = {"from_attributes": True}


class ShiftTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    blueprints: list[BlueprintIn]


class ShiftTemplateOut(BaseModel):
    id: uuid.UUID
    location_id: uuid.UUID
    name: str
    blueprints: list[BlueprintOut]
    created_at: DateTime

    model_config = {"from_attributes": True}


class ApplyTemplateRequest(BaseModel):
    anchor_date: Date


class CaptureTemplateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    from_date: Date
    days: int = Field(7, ge=1, le=31)
