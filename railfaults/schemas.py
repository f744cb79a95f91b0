"""Pydantic schemas for every request and response body of the API.

Field names are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import FaultStatus, RoleEnum


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class LoginRequest(CamelModel):
    username: str
    password: str


class MessageResponse(CamelModel):
    message: str


# --- Organisation -----------------------------------------------------------


class RegionBrief(CamelModel):
    id: int
    name: str


class ProjectBrief(CamelModel):
    id: int
    name: str
    region_id: Optional[int] = None


class ChiefdomBrief(CamelModel):
    id: int
    name: str
    project_id: Optional[int] = None


class UserBrief(CamelModel):
    id: int
    username: str
    full_name: str
    role: RoleEnum
    chiefdom_id: Optional[int] = None


class RegionCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)


class RegionUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class RegionRead(RegionBrief):
    projects: List[ProjectBrief] = []


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    region_id: Optional[int] = None


class ProjectUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    region_id: Optional[int] = None


class ProjectRead(ProjectBrief):
    region: Optional[RegionBrief] = None
    chiefdoms: List[ChiefdomBrief] = []


class ChiefdomCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    project_id: Optional[int] = None


class ChiefdomUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    project_id: Optional[int] = None


class ChiefdomRead(ChiefdomBrief):
    project: Optional[ProjectBrief] = None
    users: List[UserBrief] = []


# --- Users ------------------------------------------------------------------


class UserBase(CamelModel):
    username: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=100)
    role: RoleEnum = RoleEnum.WORKER
    chiefdom_id: Optional[int] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("chiefdom_id", "email", "phone", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)


class UserCreate(UserBase):
    password: str = Field(..., min_length=3)


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=1, max_length=50)
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[RoleEnum] = None
    chiefdom_id: Optional[int] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    password: Optional[str] = Field(None, min_length=3)

    @field_validator("chiefdom_id", "email", "phone", "password", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)


class UserRead(UserBase):
    id: int
    created_at: datetime
    chiefdom: Optional[ChiefdomBrief] = None


# --- Faults -----------------------------------------------------------------


class ClosureFields(CamelModel):
    fault_date: Optional[str] = Field(None, max_length=10, description="DD.MM.YYYY")
    fault_time: Optional[str] = Field(None, max_length=5, description="HH:MM")
    reporter_name: Optional[str] = Field(None, max_length=100)
    line_info: Optional[str] = None
    closure_fault_info: Optional[str] = None
    solution: Optional[str] = None
    working_personnel: Optional[str] = None
    tcdd_personnel: Optional[str] = None


class FaultCreate(ClosureFields):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    chiefdom_id: int
    reported_by_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    status: FaultStatus = FaultStatus.OPEN


class FaultUpdate(ClosureFields):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    status: Optional[FaultStatus] = None
    assigned_to_id: Optional[int] = None


class FaultImageRead(CamelModel):
    id: int
    fault_id: int
    url: str
    created_at: datetime


class FaultRead(ClosureFields):
    id: int
    title: str
    description: str
    status: FaultStatus
    chiefdom_id: int
    reported_by_id: int
    assigned_to_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    chiefdom: ChiefdomBrief
    reported_by: UserBrief
    assigned_to: Optional[UserBrief] = None
    images: List[FaultImageRead] = []


class ImageUploadResult(CamelModel):
    filename: str
    ok: bool
    url: Optional[str] = None
    error: Optional[str] = None


class FaultMutationRead(FaultRead):
    uploads: List[ImageUploadResult] = []
