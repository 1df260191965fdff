"""
Record store abstraction for Postgres and an in-memory test implementation.

Rows are plain dictionaries keyed by column name. Every row carries an
owning `user_id`; passing `user_id=None` to a read is reserved for the
privileged procedures that need a cross-user view.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Boolean, Column, Integer, String, create_engine, func, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.types import Table

TABLES_WITH_UPDATED_AT = {Table.CHILDREN, Table.ROBINS, Table.DRIVES}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StoreClient(Protocol):
    """Interface for record access."""

    def select(
        self,
        table: str,
        *,
        user_id: Optional[str],
        filters: Optional[dict] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[dict]:
        ...

    def get(
        self, table: str, record_id: str, *, user_id: Optional[str]
    ) -> Optional[dict]:
        ...

    def insert(self, table: str, record: dict) -> dict:
        ...

    def update(
        self, table: str, record_id: str, changes: dict, *, user_id: str
    ) -> Optional[dict]:
        ...

    def increment(
        self,
        table: str,
        record_id: str,
        column: str,
        amount: int = 1,
        *,
        user_id: str,
    ) -> Optional[dict]:
        ...


def _new_row(table: str, record: dict) -> dict:
    now = utc_now()
    row = dict(record)
    row["id"] = str(uuid.uuid4())
    row["created_at"] = now
    if table in TABLES_WITH_UPDATED_AT:
        row["updated_at"] = now
    return row


class InMemoryStoreClient:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.tables: Dict[str, list[dict]] = {table.value: [] for table in Table}

    def _rows(self, table: str) -> list[dict]:
        if table not in self.tables:
            raise ValueError(f"Unknown table: {table}")
        return self.tables[table]

    def reset(self) -> None:
        """Clear all stored rows (useful in tests)."""
        for rows in self.tables.values():
            rows.clear()

    def select(
        self,
        table: str,
        *,
        user_id: Optional[str],
        filters: Optional[dict] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[dict]:
        filters = filters or {}
        matches = [
            row
            for row in self._rows(table)
            if (user_id is None or row.get("user_id") == user_id)
            and all(row.get(key) == value for key, value in filters.items())
        ]
        key = lambda row: (row.get(order_by) is not None, row.get(order_by))
        if descending:
            # Newest insert wins ties on the ordering column.
            ordered = sorted(reversed(matches), key=key, reverse=True)
        else:
            ordered = sorted(matches, key=key)
        return [copy.deepcopy(row) for row in ordered]

    def get(
        self, table: str, record_id: str, *, user_id: Optional[str]
    ) -> Optional[dict]:
        for row in self._rows(table):
            if row["id"] == record_id and (user_id is None or row["user_id"] == user_id):
                return copy.deepcopy(row)
        return None

    def insert(self, table: str, record: dict) -> dict:
        row = _new_row(table, record)
        self._rows(table).append(row)
        return copy.deepcopy(row)

    def _find(self, table: str, record_id: str, user_id: str) -> Optional[dict]:
        for row in self._rows(table):
            if row["id"] == record_id and row["user_id"] == user_id:
                return row
        return None

    def update(
        self, table: str, record_id: str, changes: dict, *, user_id: str
    ) -> Optional[dict]:
        row = self._find(table, record_id, user_id)
        if row is None:
            return None
        row.update(changes)
        if table in TABLES_WITH_UPDATED_AT:
            row["updated_at"] = utc_now()
        return copy.deepcopy(row)

    def increment(
        self,
        table: str,
        record_id: str,
        column: str,
        amount: int = 1,
        *,
        user_id: str,
    ) -> Optional[dict]:
        row = self._find(table, record_id, user_id)
        if row is None:
            return None
        row[column] = (row.get(column) or 0) + amount
        if table in TABLES_WITH_UPDATED_AT:
            row["updated_at"] = utc_now()
        return copy.deepcopy(row)


class SqlStoreClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlStoreClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _model(table: str) -> type["Base"]:
        model = ROW_MODELS.get(table)
        if model is None:
            raise ValueError(f"Unknown table: {table}")
        return model

    @staticmethod
    def _column(model, column: str):
        if column not in model.__table__.columns:
            raise ValueError(f"Unknown column: {column}")
        return getattr(model, column)

    @staticmethod
    def _to_dict(row) -> dict:
        return {column.name: getattr(row, column.name) for column in row.__table__.columns}

    def select(
        self,
        table: str,
        *,
        user_id: Optional[str],
        filters: Optional[dict] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[dict]:
        model = self._model(table)
        order_column = self._column(model, order_by)
        stmt = select(model)
        if user_id is not None:
            stmt = stmt.where(model.user_id == user_id)
        for key, value in (filters or {}).items():
            stmt = stmt.where(self._column(model, key) == value)
        stmt = stmt.order_by(order_column.desc() if descending else order_column.asc())
        with self.Session() as session:
            return [self._to_dict(row) for row in session.execute(stmt).scalars()]

    def get(
        self, table: str, record_id: str, *, user_id: Optional[str]
    ) -> Optional[dict]:
        model = self._model(table)
        with self.Session() as session:
            row = session.get(model, record_id)
            if not row or (user_id is not None and row.user_id != user_id):
                return None
            return self._to_dict(row)

    def insert(self, table: str, record: dict) -> dict:
        model = self._model(table)
        with self.Session() as session:
            row = model(**_new_row(table, record))
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def update(
        self, table: str, record_id: str, changes: dict, *, user_id: str
    ) -> Optional[dict]:
        model = self._model(table)
        with self.Session() as session:
            row = session.get(model, record_id)
            if not row or row.user_id != user_id:
                return None
            for key, value in changes.items():
                self._column(model, key)
                setattr(row, key, value)
            if table in TABLES_WITH_UPDATED_AT:
                row.updated_at = utc_now()
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def increment(
        self,
        table: str,
        record_id: str,
        column: str,
        amount: int = 1,
        *,
        user_id: str,
    ) -> Optional[dict]:
        model = self._model(table)
        target = self._column(model, column)
        values = {target: func.coalesce(target, 0) + amount}
        if table in TABLES_WITH_UPDATED_AT:
            values[model.updated_at] = utc_now()
        with self.Session() as session:
            updated = (
                session.query(model)
                .filter(model.id == record_id, model.user_id == user_id)
                .update(values, synchronize_session=False)
            )
            session.commit()
        if not updated:
            return None
        return self.get(table, record_id, user_id=user_id)


Base = declarative_base()


class ChildRow(Base):
    __tablename__ = "children"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    mother_name = Column(String, nullable=False)
    father_name = Column(String, nullable=False)
    aadhaar_number = Column(String, nullable=True)
    school_name = Column(String, nullable=True)
    age_group = Column(Integer, nullable=False)
    location = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    attendance_count = Column(Integer, nullable=False, default=0)
    photo_url = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class RobinRow(Base):
    __tablename__ = "robins"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    assigned_location = Column(String, nullable=False)
    assigned_date = Column(String, nullable=False, index=True)
    home_location = Column(String, nullable=True)
    drive_count = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    emergency_contact = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)
    availability_preferences = Column(String, nullable=True)
    registration_completed = Column(Boolean, nullable=False, default=False)
    profile_created_by = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class DriveRow(Base):
    __tablename__ = "drives"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    date = Column(String, nullable=False)
    location = Column(String, nullable=False)
    summary = Column(String, nullable=True)
    robin_group_photo_url = Column(String, nullable=True)
    children_group_photo_url = Column(String, nullable=True)
    combined_group_photo_url = Column(String, nullable=True)
    items_distributed = Column(JSON, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class ChildAttendanceRow(Base):
    __tablename__ = "child_attendance"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    child_id = Column(String, nullable=False, index=True)
    drive_id = Column(String, nullable=True, index=True)
    date = Column(String, nullable=False)
    location = Column(String, nullable=False)
    created_at = Column(String, nullable=False)


class RobinDriveRow(Base):
    __tablename__ = "robin_drives"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    robin_id = Column(String, nullable=False, index=True)
    drive_id = Column(String, nullable=True, index=True)
    date = Column(String, nullable=False)
    location = Column(String, nullable=False)
    attendance_marked = Column(Boolean, nullable=True)
    commute_method = Column(String, nullable=True)
    contribution_message = Column(String, nullable=True)
    items_brought = Column(JSON, nullable=True)
    created_at = Column(String, nullable=False)


class RobinUnavailabilityRow(Base):
    __tablename__ = "robin_unavailability"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    robin_id = Column(String, nullable=False, index=True)
    unavailable_date = Column(String, nullable=False, index=True)
    reason = Column(String, nullable=True)
    created_at = Column(String, nullable=False)


class EducationalContentRow(Base):
    __tablename__ = "educational_content"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    age_group = Column(Integer, nullable=False)
    subject = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    content = Column(String, nullable=False)
    created_at = Column(String, nullable=False)


ROW_MODELS: dict[str, type] = {
    Table.CHILDREN: ChildRow,
    Table.ROBINS: RobinRow,
    Table.DRIVES: DriveRow,
    Table.CHILD_ATTENDANCE: ChildAttendanceRow,
    Table.ROBIN_DRIVES: RobinDriveRow,
    Table.ROBIN_UNAVAILABILITY: RobinUnavailabilityRow,
    Table.EDUCATIONAL_CONTENT: EducationalContentRow,
}
