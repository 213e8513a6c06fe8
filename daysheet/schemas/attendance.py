from datetime import date, datetime, timezone
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator

EventType = Literal["IN", "OUT"]
Classification = Literal["WEEKEND_OFF", "WORKED", "NO_DATA"]
ArrivalStatus = Literal["ON_TIME", "LATE", "NONE"]
LogStatus = Literal["COMPLETE", "OPEN", "EMPTY"]


class LocationAddress(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    address_line1: str | None = Field(
        default=None, validation_alias=AliasChoices("address_line1", "addressLine1")
    )
    address_line2: str | None = Field(
        default=None, validation_alias=AliasChoices("address_line2", "addressLine2")
    )
    city: str | None = None
    state: str | None = None
    country_code: str | None = Field(
        default=None, validation_alias=AliasChoices("country_code", "countryCode")
    )
    zip: str | None = None
    free_form_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("free_form_address", "freeFormAddress"),
    )


class ClockEvent(BaseModel):
    timestamp: datetime
    event: EventType
    has_address: bool = Field(
        default=False, validation_alias=AliasChoices("has_address", "hasAddress")
    )
    location_address: LocationAddress | None = Field(
        default=None,
        validation_alias=AliasChoices("location_address", "locationAddress"),
    )

    @field_validator("timestamp")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are UTC on the wire
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class AttendanceSegment(BaseModel):
    in_time: datetime
    out_time: datetime | None = None
    duration_minutes: int = Field(ge=0)


class Arrival(BaseModel):
    status: ArrivalStatus = "NONE"
    first_in_time: datetime | None = None
    late_minutes: int = 0


class DaySummary(BaseModel):
    date: date
    classification: Classification
    segments: list[AttendanceSegment] = []
    total_minutes: int = 0
    # closed segments only
    effective_minutes: int = 0
    break_minutes: int = 0
    arrival: Arrival = Field(default_factory=Arrival)
    log_status: LogStatus = "EMPTY"
    events: list[ClockEvent] = []


class RangeStats(BaseModel):
    days: int
    worked_days: int
    late_days: int
    open_days: int
    total_minutes: int
    break_minutes: int = 0
    avg_minutes_per_worked_day: float | None


class TimelineBar(BaseModel):
    label: str
    in_time: datetime
    out_time: datetime | None
    duration_minutes: int
    offset_pct: float
    width_pct: float
    is_open: bool


class DayReport(DaySummary):
    gross_hours: str
    late_label: str | None = None
    break_label: str = "0:00"
    # break time beyond the shift allowance
    excess_break_minutes: int = 0
    timeline: list[TimelineBar] = []


class DaysResponse(BaseModel):
    employee_id: UUID | None = None
    start: date
    end: date
    timezone: str
    shift_start: str
    shift_end: str | None = None
    shift_break_minutes: int | None = None
    days: list[DayReport]
    stats: RangeStats


class ComputeDaysRequest(BaseModel):
    events: list[ClockEvent]
    start: date
    end: date
    timezone: str | None = None
    shift_start: str | None = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    shift_end: str | None = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    shift_break_minutes: int | None = Field(default=None, ge=0, le=720)
    now: datetime | None = None


class ClockRequest(BaseModel):
    note: str | None = Field(default=None, max_length=500)
    location_address: LocationAddress | None = Field(
        default=None,
        validation_alias=AliasChoices("location_address", "locationAddress"),
    )


class AttendanceLogResponse(BaseModel):
    id: int
    employee_id: UUID
    event: EventType
    timestamp: datetime
    punch_type: str
    has_address: bool
    location_address: dict | None
    is_remote: bool
    device: str | None
    note: str | None

    model_config = {"from_attributes": True}


class AttendanceStatusResponse(BaseModel):
    status: EventType | None
    last_punch_time: datetime | None
    message: str


class PunchRecord(BaseModel):
    raw_name: str
    timestamp: datetime
    event: EventType
    device: str = ""

    @field_validator("raw_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field must not be empty")
        return v.strip()


class ImportResultResponse(BaseModel):
    filename: str
    total: int
    inserted_count: int
    skipped: int
    error_count: int
    errors: list[str]
    status: Literal["success", "partial", "failed"]
