from pydantic import BaseModel, Field

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class ShiftCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_time: str = Field(..., pattern=_HHMM)
    end_time: str = Field(..., pattern=_HHMM)
    break_minutes: int = Field(default=0, ge=0)
    is_active: bool = True


class ShiftResponse(BaseModel):
    id: int
    name: str
    start_time: str
    end_time: str
    break_minutes: int
    is_active: bool

    model_config = {"from_attributes": True}
