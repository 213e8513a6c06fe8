from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    username: str
    password: str = Field(..., min_length=6)
    role: Literal["admin", "manager", "employee"] = "employee"
    full_name: str | None = None
    email: str | None = None
    shift_id: int | None = None
    timezone: str | None = None


class UserUpdate(BaseModel):
    role: Literal["admin", "manager", "employee"] | None = None
    is_active: bool | None = None
    full_name: str | None = None
    email: str | None = None
    shift_id: int | None = None
    timezone: str | None = None


class UserResponse(BaseModel):
    id: UUID
    username: str
    role: str
    full_name: str | None
    email: str | None
    is_active: bool
    shift_id: int | None
    timezone: str | None

    model_config = {"from_attributes": True}
