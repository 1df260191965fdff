"""
User-scoped record access shared by the HTTP routes and in-process callers.

Validates writes against the table schemas, pins every row to the caller's
user id and publishes a change event after each successful write. Recording
a join row (a child's attendance, a volunteer's drive) also bumps the
matching counter on its parent, so counters only ever move with their rows.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError
from redis import exceptions as redis_exceptions
from sqlalchemy.exc import IntegrityError

from backend.changes import ChangeBroker
from backend.db import StoreClient
from backend.schemas import TABLE_SCHEMAS
from shared.types import ChangeEvent, ChangeEventType, Table

logger = logging.getLogger(__name__)

# join table -> (parent table, parent key column, parent counter column)
COUNTED_JOINS = {
    Table.CHILD_ATTENDANCE: (Table.CHILDREN, "child_id", "attendance_count"),
    Table.ROBIN_DRIVES: (Table.ROBINS, "robin_id", "drive_count"),
}


class RecordValidationError(ValueError):
    """The record violates a column constraint of its table."""


class RecordNotFoundError(LookupError):
    """No row with that id belongs to the caller."""


class UnknownTableError(LookupError):
    pass


def format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "record"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


class RecordService:
    def __init__(self, db: StoreClient, broker: ChangeBroker):
        self.db = db
        self.broker = broker

    @staticmethod
    def _schemas(table: str):
        schemas = TABLE_SCHEMAS.get(table)
        if schemas is None:
            raise UnknownTableError(f"Unknown table: {table}")
        return schemas

    def _publish(self, table: str, event_type: ChangeEventType, row: dict) -> None:
        event = ChangeEvent(
            table=table,
            event_type=event_type,
            user_id=row["user_id"],
            record_id=row["id"],
            record=row,
        )
        try:
            self.broker.publish(event)
        except redis_exceptions.RedisError:
            # The write already happened; subscribers resync on their next event.
            logger.exception("Failed to publish %s event for %s", event_type, table)

    def query(
        self,
        table: str,
        user_id: str,
        *,
        filters: Optional[dict] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[dict]:
        self._schemas(table)
        try:
            return self.db.select(
                table,
                user_id=user_id,
                filters=filters,
                order_by=order_by,
                descending=descending,
            )
        except ValueError as e:
            raise RecordValidationError(str(e)) from e

    def insert(self, table: str, user_id: str, record: dict) -> dict:
        insert_schema, _ = self._schemas(table)
        try:
            validated = insert_schema.model_validate(record)
        except ValidationError as e:
            raise RecordValidationError(format_validation_error(e)) from e
        if validated.user_id is not None and validated.user_id != user_id:
            raise RecordValidationError("user_id: must match the authenticated user")
        values = validated.model_dump(mode="json")
        values["user_id"] = user_id

        counted = COUNTED_JOINS.get(table)
        if counted is not None:
            parent_table, key, _ = counted
            if self.db.get(parent_table, values[key], user_id=user_id) is None:
                raise RecordValidationError(f"{key}: no {parent_table} record {values[key]}")

        try:
            row = self.db.insert(table, values)
        except IntegrityError as e:
            raise RecordValidationError(str(e.orig)) from e
        self._publish(table, ChangeEventType.INSERT, row)

        if counted is not None:
            parent_table, key, column = counted
            self.increment(parent_table, user_id, row[key], column)
        return row

    def update(self, table: str, user_id: str, record_id: str, changes: dict) -> dict:
        _, update_schema = self._schemas(table)
        try:
            validated = update_schema.model_validate(changes)
        except ValidationError as e:
            raise RecordValidationError(format_validation_error(e)) from e
        return self._write(
            table,
            user_id,
            record_id,
            validated.model_dump(mode="json", exclude_unset=True),
        )

    def set_counter(
        self, table: str, user_id: str, record_id: str, column: str, value: int
    ) -> dict:
        """Overwrites a counter column that regular updates may not touch."""
        self._schemas(table)
        return self._write(table, user_id, record_id, {column: value})

    def _write(self, table: str, user_id: str, record_id: str, changes: dict) -> dict:
        try:
            row = self.db.update(table, record_id, changes, user_id=user_id)
        except IntegrityError as e:
            raise RecordValidationError(str(e.orig)) from e
        if row is None:
            raise RecordNotFoundError(f"No {table} record {record_id}")
        self._publish(table, ChangeEventType.UPDATE, row)
        return row

    def increment(
        self, table: str, user_id: str, record_id: str, column: str, amount: int = 1
    ) -> dict:
        self._schemas(table)
        row = self.db.increment(table, record_id, column, amount, user_id=user_id)
        if row is None:
            raise RecordNotFoundError(f"No {table} record {record_id}")
        self._publish(table, ChangeEventType.UPDATE, row)
        return row
