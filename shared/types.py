# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import dataclass
from enum import StrEnum
from typing import List, Optional


class Locality(StrEnum):
    """The named places drives are held in."""

    RAGHUBIR_NAGAR = "Raghubir Nagar"
    DELHI_CANTT = "Delhi Cantt"
    JANAKPURI = "Janakpuri"
    DWARKA = "Dwarka"
    ROHINI = "Rohini"
    LAJPAT_NAGAR = "Lajpat Nagar"
    CONNAUGHT_PLACE = "Connaught Place"
    KAROL_BAGH = "Karol Bagh"
    UTTAM_NAGAR = "Uttam Nagar"


class CommuteMethod(StrEnum):
    METRO = "Metro"
    CAR = "4-Wheeler (Car)"
    TWO_WHEELER = "2-Wheeler (Bike/Scooter)"
    BUS = "Bus"
    WALKING = "Walking"
    CYCLE = "Cycle"
    AUTO_RICKSHAW = "Auto-Rickshaw"


class RobinStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ContentType(StrEnum):
    STORY = "Story"
    PRACTICE_QUESTIONS = "Practice Questions"
    SIMPLE_EXPLANATION = "Simple Explanation"
    FUN_ACTIVITIES = "Fun Activities"
    LEARNING_GAMES = "Learning Games"


class Tone(StrEnum):
    FORMAL = "Formal"
    FUN = "Fun"
    PLAYFUL = "Playful"
    ACADEMIC = "Academic"
    STORY_BASED = "Story-based"


class Language(StrEnum):
    ENGLISH = "English"
    HINDI = "Hindi"


class ChangeEventType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Table(StrEnum):
    """Tables of the remote store. Every row carries an owning `user_id`."""

    CHILDREN = "children"
    ROBINS = "robins"
    DRIVES = "drives"
    CHILD_ATTENDANCE = "child_attendance"
    ROBIN_DRIVES = "robin_drives"
    ROBIN_UNAVAILABILITY = "robin_unavailability"
    EDUCATIONAL_CONTENT = "educational_content"


PHOTOS_BUCKET = "photos"

MIN_AGE_GROUP = 3
MAX_AGE_GROUP = 20


@dataclass
class Child:
    """A child served at drives."""

    id: str
    user_id: str
    name: str
    mother_name: str
    father_name: str
    age_group: int
    created_at: str
    updated_at: str
    aadhaar_number: Optional[str] = None
    school_name: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[List[str]] = None
    attendance_count: int = 0
    photo_url: Optional[str] = None


@dataclass
class Robin:
    """A volunteer."""

    id: str
    user_id: str
    name: str
    assigned_location: str
    assigned_date: str
    created_at: str
    updated_at: str
    home_location: Optional[str] = None
    drive_count: int = 0
    status: Optional[str] = RobinStatus.ACTIVE.value
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    skills: Optional[List[str]] = None
    availability_preferences: Optional[str] = None
    registration_completed: bool = False
    profile_created_by: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass
class Drive:
    id: str
    user_id: str
    name: str
    date: str
    location: str
    created_at: str
    updated_at: str
    summary: Optional[str] = None
    robin_group_photo_url: Optional[str] = None
    children_group_photo_url: Optional[str] = None
    combined_group_photo_url: Optional[str] = None
    items_distributed: Optional[List[str]] = None


@dataclass
class ChildAttendance:
    """A child was present at a locality (and optionally a drive) on a date."""

    id: str
    user_id: str
    child_id: str
    date: str
    location: str
    created_at: str
    drive_id: Optional[str] = None


@dataclass
class RobinDrive:
    """A volunteer took part in a drive."""

    id: str
    user_id: str
    robin_id: str
    date: str
    location: str
    created_at: str
    drive_id: Optional[str] = None
    attendance_marked: Optional[bool] = None
    commute_method: Optional[str] = None
    contribution_message: Optional[str] = None
    items_brought: Optional[List[str]] = None


@dataclass
class RobinUnavailability:
    id: str
    user_id: str
    robin_id: str
    unavailable_date: str
    created_at: str
    reason: Optional[str] = None


@dataclass
class EducationalContent:
    """Generated text, never authored by users."""

    id: str
    user_id: str
    age_group: int
    subject: str
    content_type: str
    content: str
    created_at: str


@dataclass
class TodayAssignment:
    """A volunteer assigned for today and whether they declared themselves unavailable."""

    robin_id: str
    name: str
    assigned_location: str
    is_unavailable: bool = False
    reason: Optional[str] = None


@dataclass
class ChangeEvent:
    table: str
    event_type: ChangeEventType
    user_id: str
    record_id: Optional[str] = None
    record: Optional[dict] = None


class Function(StrEnum):
    """Remote procedures exposed under `/functions/{name}`."""

    GENERATE_CONTENT = "generate-content"
    SET_INITIAL_DRIVE_COUNT = "set_initial_drive_count"
    CAN_EDIT_ROBIN_PROFILE = "can_edit_robin_profile"
    TODAYS_ASSIGNED_ROBINS = "todays_assigned_robins"
