"""
Typed form records.

Each form validates its fields when constructed (localities, commute
methods, content options and date rules), so repositories only ever send
well-formed records. Blank optional strings are treated as absent.
"""

from __future__ import annotations

import datetime as dt
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.types import (
    MAX_AGE_GROUP,
    MIN_AGE_GROUP,
    CommuteMethod,
    ContentType,
    Language,
    Locality,
    Tone,
)

AADHAAR_PATTERN = r"^\d{12}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _unique(values: list[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


class _Form(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_record(self) -> dict:
        """Fields as the backend expects them, omitting absent values."""
        return self.model_dump(mode="json", exclude_none=True)

    # Columns an edit cannot clear: left blank, they stay unchanged.
    required_on_edit: ClassVar[frozenset[str]] = frozenset()

    def to_changes(self) -> dict:
        """Only the fields the caller set, for partial updates."""
        changes = self.model_dump(mode="json", exclude_unset=True)
        return {
            name: value
            for name, value in changes.items()
            if value is not None or name not in self.required_on_edit
        }


class ChildForm(_Form):
    name: str = Field(..., min_length=1, max_length=200)
    mother_name: str = Field(..., min_length=1, max_length=200)
    father_name: str = Field(..., min_length=1, max_length=200)
    age_group: int = Field(..., ge=MIN_AGE_GROUP, le=MAX_AGE_GROUP)
    aadhaar_number: Optional[str] = Field(default=None, pattern=AADHAAR_PATTERN)
    school_name: Optional[str] = None
    location: Optional[Locality] = None
    tags: list[str] = Field(default_factory=list)
    photo_url: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        return _unique(tags)


class ChildEditForm(_Form):
    required_on_edit: ClassVar[frozenset[str]] = frozenset(
        {"name", "mother_name", "father_name", "age_group"}
    )

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    mother_name: Optional[str] = Field(default=None, max_length=200)
    father_name: Optional[str] = Field(default=None, max_length=200)
    age_group: Optional[int] = Field(default=None, ge=MIN_AGE_GROUP, le=MAX_AGE_GROUP)
    aadhaar_number: Optional[str] = Field(default=None, pattern=AADHAAR_PATTERN)
    school_name: Optional[str] = None
    location: Optional[Locality] = None
    tags: Optional[list[str]] = None
    photo_url: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: Optional[list[str]]) -> Optional[list[str]]:
        return None if tags is None else _unique(tags)


class RobinForm(_Form):
    """Registration of a new volunteer."""

    name: str = Field(..., min_length=1, max_length=200)
    assigned_location: Locality
    assigned_date: dt.date
    home_location: Optional[Locality] = None
    photo_url: Optional[str] = None


class RobinProfileForm(_Form):
    """The contact details that complete a volunteer's registration."""

    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, max_length=20)
    emergency_contact: Optional[str] = Field(default=None, max_length=200)
    skills: list[str] = Field(default_factory=list)
    availability_preferences: Optional[str] = None
    home_location: Optional[Locality] = None
    photo_url: Optional[str] = None

    @field_validator("skills")
    @classmethod
    def _dedupe_skills(cls, skills: list[str]) -> list[str]:
        return _unique(skills)


class DriveForm(_Form):
    name: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    location: Locality
    summary: Optional[str] = None
    robin_group_photo_url: Optional[str] = None
    children_group_photo_url: Optional[str] = None
    combined_group_photo_url: Optional[str] = None
    items_distributed: list[str] = Field(default_factory=list)

    @field_validator("items_distributed")
    @classmethod
    def _dedupe_items(cls, items: list[str]) -> list[str]:
        return _unique(items)


class DriveEditForm(_Form):
    required_on_edit: ClassVar[frozenset[str]] = frozenset({"name", "date", "location"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[dt.date] = None
    location: Optional[Locality] = None
    summary: Optional[str] = None
    robin_group_photo_url: Optional[str] = None
    children_group_photo_url: Optional[str] = None
    combined_group_photo_url: Optional[str] = None
    items_distributed: Optional[list[str]] = None


class AttendanceForm(_Form):
    child_id: str = Field(..., min_length=1)
    location: Locality
    drive_id: Optional[str] = None
    date: Optional[dt.date] = None


class RobinDriveForm(_Form):
    robin_id: str = Field(..., min_length=1)
    location: Locality
    drive_id: Optional[str] = None
    date: Optional[dt.date] = None
    commute_method: Optional[CommuteMethod] = None
    contribution_message: Optional[str] = Field(default=None, max_length=1000)
    items_brought: list[str] = Field(default_factory=list)

    @field_validator("items_brought")
    @classmethod
    def _dedupe_items(cls, items: list[str]) -> list[str]:
        return _unique(items)


class UnavailabilityForm(_Form):
    robin_id: str = Field(..., min_length=1)
    unavailable_date: dt.date
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("unavailable_date")
    @classmethod
    def _in_future(cls, value: dt.date) -> dt.date:
        if value <= dt.date.today():
            raise ValueError("unavailable date must be in the future")
        return value


class ContentRequestForm(_Form):
    age_group: int = Field(..., ge=MIN_AGE_GROUP, le=MAX_AGE_GROUP)
    subject: str = Field(..., min_length=1)
    content_type: ContentType
    tone: Tone = Tone.FORMAL
    language: Language = Language.ENGLISH
    include_quiz: bool = False
    custom_instructions: Optional[str] = Field(default=None, max_length=1000)

    def to_payload(self, user_id: str) -> dict:
        """The camelCase request body of the `generate-content` function."""
        payload = {
            "ageGroup": self.age_group,
            "subject": self.subject,
            "contentType": self.content_type.value,
            "userId": user_id,
            "tone": self.tone.value,
            "language": self.language.value,
            "includeQuiz": self.include_quiz,
        }
        if self.custom_instructions:
            payload["customInstructions"] = self.custom_instructions
        return payload
