"""
Entity repositories.

Each repository caches one table's rows for the session's user, newest
first as delivered by the last fetch, and merges the server's response into
that cache after every acknowledged write. Public operations return a
`Result` and never raise.
"""

from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Any, ClassVar, Generic, Iterator, Optional, TypeVar

from dacite import Config, DaciteError, from_dict

from client.errors import GatewayError, ValidationError
from client.forms import (
    AttendanceForm,
    ChildEditForm,
    ChildForm,
    ContentRequestForm,
    DriveEditForm,
    DriveForm,
    RobinDriveForm,
    RobinForm,
    RobinProfileForm,
    UnavailabilityForm,
)
from client.gateway import Gateway
from client.result import Result
from client.session import SessionContext
from shared.types import (
    PHOTOS_BUCKET,
    Child,
    ChildAttendance,
    Drive,
    EducationalContent,
    Function,
    Locality,
    Robin,
    RobinDrive,
    RobinStatus,
    RobinUnavailability,
    Table,
    TodayAssignment,
)

logger = logging.getLogger(__name__)

E = TypeVar("E")

DACITE_CONFIG = Config(check_types=False)


def _convert(data_class: type, rows: list[dict]) -> list:
    return [from_dict(data_class=data_class, data=row, config=DACITE_CONFIG) for row in rows]


class Repository(Generic[E]):
    """Cached collection of one table, scoped to the session's user."""

    table: ClassVar[str]
    entity_type: ClassVar[type]

    def __init__(self, gateway: Gateway, session: SessionContext):
        self.gateway = gateway
        self.session = session
        self.items: list[E] = []
        self.loading = False

    def __iter__(self) -> Iterator[E]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def get(self, record_id: str) -> Optional[E]:
        return next((item for item in self.items if item.id == record_id), None)

    def _entities(self, result: Result, action: str) -> Result[list[E]]:
        if not result.ok:
            logger.error("Error %s %s: %s", action, self.table, result.error)
            return Result.failure(result.error)
        rows = result.data if isinstance(result.data, list) else [result.data]
        try:
            return Result.success(_convert(self.entity_type, rows))
        except DaciteError as e:
            logger.error("Malformed %s row from backend: %s", self.table, e)
            return Result.failure(ValidationError(f"Malformed {self.table} record: {e}"))

    def fetch_all(self) -> Result[list[E]]:
        """Replaces the cache with the user's rows; on failure it is left as is."""
        self.loading = True
        try:
            result = self._entities(
                self.gateway.query(self.session, self.table), "fetching"
            )
        finally:
            self.loading = False
        if result.ok:
            self.items = list(result.data)
        return result

    def create(self, record: dict) -> Result[E]:
        """Inserts a row and puts the server's copy at the front of the cache."""
        result = self._entities(
            self.gateway.insert(self.session, self.table, record), "creating"
        )
        if not result.ok:
            return Result.failure(result.error)
        entity = result.data[0]
        self.items.insert(0, entity)
        return Result.success(entity)

    def mutate(self, record_id: str, changes: dict) -> Result[E]:
        """Applies a partial update and swaps the server's copy into place."""
        result = self._entities(
            self.gateway.update(self.session, self.table, record_id, changes),
            "updating",
        )
        if not result.ok:
            return Result.failure(result.error)
        entity = result.data[0]
        self._replace(entity)
        return Result.success(entity)

    def _replace(self, entity: E) -> None:
        for index, item in enumerate(self.items):
            if item.id == entity.id:
                self.items[index] = entity
                return

    def _invoke(self, name: str, payload: dict) -> Result[Any]:
        result = self.gateway.invoke_function(self.session, name, payload)
        if not result.ok:
            logger.error("Error calling %s: %s", name, result.error)
        return result

    def _refresh_parent(self, parent: "Repository") -> None:
        """Re-reads a collection whose counter the server bumped for a new row."""
        if not parent.fetch_all().ok:
            # The counter moved; the next fetch or change event reconciles.
            logger.warning(
                "Could not refresh %s after recording %s", parent.table, self.table
            )


class ChildRepository(Repository[Child]):
    table = Table.CHILDREN
    entity_type = Child

    def add_child(self, form: ChildForm) -> Result[Child]:
        return self.create(form.to_record())

    def update_child(self, child_id: str, form: ChildEditForm) -> Result[Child]:
        return self.mutate(child_id, form.to_changes())


class RobinRepository(Repository[Robin]):
    table = Table.ROBINS
    entity_type = Robin

    def register(self, form: RobinForm) -> Result[Robin]:
        record = {
            **form.to_record(),
            "drive_count": 0,
            "status": RobinStatus.ACTIVE.value,
            "registration_completed": False,
            "profile_created_by": self.session.user_id,
        }
        return self.create(record)

    def complete_registration(
        self, robin_id: str, profile: RobinProfileForm
    ) -> Result[Robin]:
        return self.mutate(
            robin_id, {**profile.to_record(), "registration_completed": True}
        )

    def update_location(self, robin_id: str, location: Locality) -> Result[Robin]:
        return self.mutate(robin_id, {"assigned_location": Locality(location).value})

    def set_initial_drive_count(self, robin_id: str, previous_count: int) -> Result[Robin]:
        """Counts drives done before tracking began; the server adds recorded ones."""
        result = self._entities(
            self._invoke(
                Function.SET_INITIAL_DRIVE_COUNT,
                {"robin_id": robin_id, "previous_count": previous_count},
            ),
            "correcting",
        )
        if not result.ok:
            return Result.failure(result.error)
        robin = result.data[0]
        self._replace(robin)
        return Result.success(robin)

    def can_edit_profile(self, robin_id: str) -> Result[bool]:
        return self._invoke(Function.CAN_EDIT_ROBIN_PROFILE, {"robin_id": robin_id}).map(
            bool
        )

    def todays_assignments(
        self, day: Optional[dt.date] = None
    ) -> Result[list[TodayAssignment]]:
        """Volunteers assigned for `day` (today by default) with availability."""
        payload = {"date": day.isoformat()} if day else {}
        result = self._invoke(Function.TODAYS_ASSIGNED_ROBINS, payload)
        if not result.ok:
            return result
        try:
            return Result.success(_convert(TodayAssignment, result.data))
        except DaciteError as e:
            return Result.failure(ValidationError(f"Malformed assignment: {e}"))

    def own_profile(self) -> Optional[Robin]:
        """The volunteer profile this user registered for themselves, if any."""
        return next(
            (r for r in self.items if r.profile_created_by == self.session.user_id),
            None,
        )

    def can_add_new_robins(self) -> bool:
        """A user may register volunteers until their own profile is complete."""
        own = self.own_profile()
        return own is None or not own.registration_completed


class DriveRepository(Repository[Drive]):
    table = Table.DRIVES
    entity_type = Drive

    def add_drive(self, form: DriveForm) -> Result[Drive]:
        return self.create(form.to_record())

    def update_drive(self, drive_id: str, form: DriveEditForm) -> Result[Drive]:
        return self.mutate(drive_id, form.to_changes())


class ChildAttendanceRepository(Repository[ChildAttendance]):
    table = Table.CHILD_ATTENDANCE
    entity_type = ChildAttendance

    def __init__(
        self, gateway: Gateway, session: SessionContext, children: ChildRepository
    ):
        super().__init__(gateway, session)
        self.children = children

    def mark_attendance(self, form: AttendanceForm) -> Result[ChildAttendance]:
        """
        Records a child's presence. The server bumps the child's
        `attendance_count` with the same write; the children cache is then
        re-read.
        """
        created = self.create(form.to_record())
        if created.ok:
            self._refresh_parent(self.children)
        return created


class RobinDriveRepository(Repository[RobinDrive]):
    table = Table.ROBIN_DRIVES
    entity_type = RobinDrive

    def __init__(
        self, gateway: Gateway, session: SessionContext, robins: RobinRepository
    ):
        super().__init__(gateway, session)
        self.robins = robins

    def record_drive(self, form: RobinDriveForm) -> Result[RobinDrive]:
        created = self.create({**form.to_record(), "attendance_marked": True})
        if created.ok:
            self._refresh_parent(self.robins)
        return created


class UnavailabilityRepository(Repository[RobinUnavailability]):
    table = Table.ROBIN_UNAVAILABILITY
    entity_type = RobinUnavailability

    def add_unavailability(self, form: UnavailabilityForm) -> Result[RobinUnavailability]:
        return self.create(form.to_record())


class ContentRepository(Repository[EducationalContent]):
    table = Table.EDUCATIONAL_CONTENT
    entity_type = EducationalContent

    def generate(self, form: ContentRequestForm) -> Result[str]:
        """
        Asks the generation function for new material. The function stores
        the row itself, so the cache is refreshed rather than prepended.
        """
        try:
            user_id = self.session.require_user()
        except GatewayError as e:
            return Result.failure(e)
        result = self._invoke(Function.GENERATE_CONTENT, form.to_payload(user_id))
        if not result.ok:
            return result
        refreshed = self.fetch_all()
        if not refreshed.ok:
            logger.warning("Could not refresh %s after generation", self.table)
        return Result.success(result.data["content"])


def photo_path(user_id: str, folder: str, filename: str, now_ms: Optional[int] = None) -> str:
    """Object key `{user_id}/{folder}/{timestamp_ms}.{extension}`."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{user_id}/{folder}/{timestamp}.{extension}"


def upload_photo(
    gateway: Gateway,
    session: SessionContext,
    data: bytes,
    filename: str,
    folder: str,
    content_type: Optional[str] = None,
) -> Result[str]:
    """Stores a photo in the user's folder and returns its public URL."""
    try:
        path = photo_path(session.require_user(), folder, filename)
    except GatewayError as e:
        return Result.failure(e)
    result = gateway.upload_binary(session, PHOTOS_BUCKET, path, data, content_type)
    if not result.ok:
        logger.error("Error uploading photo to %s: %s", path, result.error)
    return result
