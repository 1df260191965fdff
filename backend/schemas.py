"""
Pydantic schemas for the backend service.

Insert and update models double as the column constraints of each table:
unknown columns, missing required fields and malformed identifiers are
rejected before anything reaches the store.
"""

from __future__ import annotations

import datetime as dt
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.types import Table

AADHAAR_PATTERN = r"^\d{12}$"


def _not_null(value):
    if value is None:
        raise ValueError("may not be null")
    return value


def _in_future(value: dt.date) -> dt.date:
    if value <= dt.date.today():
        raise ValueError("unavailable date must be in the future")
    return value


class _Insert(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: Optional[str] = None


class _Update(BaseModel):
    """
    Partial update. Fields may be omitted, but NOT NULL columns reject an
    explicit null.
    """

    model_config = ConfigDict(extra="forbid")


class ChildInsert(_Insert):
    name: str = Field(..., min_length=1, max_length=200)
    mother_name: str = Field(..., max_length=200)
    father_name: str = Field(..., max_length=200)
    age_group: int = Field(..., ge=0)
    aadhaar_number: Optional[str] = Field(default=None, pattern=AADHAAR_PATTERN)
    school_name: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[list[str]] = None
    # Counters start at zero; the server bumps them on each join row.
    attendance_count: Literal[0] = 0
    photo_url: Optional[str] = None


class ChildUpdate(_Update):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    mother_name: Optional[str] = Field(default=None, max_length=200)
    father_name: Optional[str] = Field(default=None, max_length=200)
    age_group: Optional[int] = Field(default=None, ge=0)
    aadhaar_number: Optional[str] = Field(default=None, pattern=AADHAAR_PATTERN)
    school_name: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[list[str]] = None
    photo_url: Optional[str] = None

    @field_validator("name", "mother_name", "father_name", "age_group")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


class RobinInsert(_Insert):
    name: str = Field(..., min_length=1, max_length=200)
    assigned_location: str = Field(..., min_length=1)
    assigned_date: dt.date
    home_location: Optional[str] = None
    drive_count: Literal[0] = 0
    status: Optional[Literal["active", "inactive"]] = "active"
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    skills: Optional[list[str]] = None
    availability_preferences: Optional[str] = None
    registration_completed: bool = False
    profile_created_by: Optional[str] = None
    photo_url: Optional[str] = None


class RobinUpdate(_Update):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    assigned_location: Optional[str] = Field(default=None, min_length=1)
    assigned_date: Optional[dt.date] = None
    home_location: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    skills: Optional[list[str]] = None
    availability_preferences: Optional[str] = None
    registration_completed: Optional[bool] = None
    photo_url: Optional[str] = None

    @field_validator("name", "assigned_location", "assigned_date", "registration_completed")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


class DriveInsert(_Insert):
    name: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    location: str = Field(..., min_length=1)
    summary: Optional[str] = None
    robin_group_photo_url: Optional[str] = None
    children_group_photo_url: Optional[str] = None
    combined_group_photo_url: Optional[str] = None
    items_distributed: Optional[list[str]] = None


class DriveUpdate(_Update):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[dt.date] = None
    location: Optional[str] = Field(default=None, min_length=1)
    summary: Optional[str] = None
    robin_group_photo_url: Optional[str] = None
    children_group_photo_url: Optional[str] = None
    combined_group_photo_url: Optional[str] = None
    items_distributed: Optional[list[str]] = None

    @field_validator("name", "date", "location")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


class ChildAttendanceInsert(_Insert):
    child_id: UUID
    location: str = Field(..., min_length=1)
    date: dt.date = Field(default_factory=dt.date.today)
    drive_id: Optional[UUID] = None


class ChildAttendanceUpdate(_Update):
    location: Optional[str] = Field(default=None, min_length=1)
    date: Optional[dt.date] = None
    drive_id: Optional[UUID] = None

    @field_validator("location", "date")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


class RobinDriveInsert(_Insert):
    robin_id: UUID
    location: str = Field(..., min_length=1)
    date: dt.date = Field(default_factory=dt.date.today)
    drive_id: Optional[UUID] = None
    attendance_marked: Optional[bool] = None
    commute_method: Optional[str] = None
    contribution_message: Optional[str] = None
    items_brought: Optional[list[str]] = None


class RobinDriveUpdate(_Update):
    location: Optional[str] = Field(default=None, min_length=1)
    date: Optional[dt.date] = None
    drive_id: Optional[UUID] = None
    attendance_marked: Optional[bool] = None
    commute_method: Optional[str] = None
    contribution_message: Optional[str] = None
    items_brought: Optional[list[str]] = None

    @field_validator("location", "date")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


class RobinUnavailabilityInsert(_Insert):
    robin_id: UUID
    unavailable_date: dt.date
    reason: Optional[str] = None

    @field_validator("unavailable_date")
    @classmethod
    def _future(cls, value):
        return _in_future(value)


class RobinUnavailabilityUpdate(_Update):
    unavailable_date: Optional[dt.date] = None
    reason: Optional[str] = None

    @field_validator("unavailable_date")
    @classmethod
    def _required_future(cls, value):
        return _in_future(_not_null(value))


class EducationalContentInsert(_Insert):
    age_group: int = Field(..., ge=3, le=20)
    subject: str = Field(..., min_length=1)
    content_type: Literal[
        "story",
        "practice questions",
        "simple explanation",
        "fun activities",
        "learning games",
    ]
    content: str = Field(..., min_length=1)


class EducationalContentUpdate(_Update):
    content: Optional[str] = Field(default=None, min_length=1)

    @field_validator("content")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


TABLE_SCHEMAS: dict[str, tuple[type[_Insert], type[_Update]]] = {
    Table.CHILDREN: (ChildInsert, ChildUpdate),
    Table.ROBINS: (RobinInsert, RobinUpdate),
    Table.DRIVES: (DriveInsert, DriveUpdate),
    Table.CHILD_ATTENDANCE: (ChildAttendanceInsert, ChildAttendanceUpdate),
    Table.ROBIN_DRIVES: (RobinDriveInsert, RobinDriveUpdate),
    Table.ROBIN_UNAVAILABILITY: (
        RobinUnavailabilityInsert,
        RobinUnavailabilityUpdate,
    ),
    Table.EDUCATIONAL_CONTENT: (
        EducationalContentInsert,
        EducationalContentUpdate,
    ),
}


class UploadResponse(BaseModel):
    url: str


class SetInitialDriveCountRequest(BaseModel):
    robin_id: UUID
    previous_count: int = Field(..., ge=0)


class RobinIdRequest(BaseModel):
    robin_id: UUID


class TodaysAssignedRobinsRequest(BaseModel):
    date: Optional[dt.date] = None


class GenerateContentResponse(BaseModel):
    content: str
    success: Literal[True] = True


class FunctionErrorResponse(BaseModel):
    error: str
    success: Literal[False] = False
