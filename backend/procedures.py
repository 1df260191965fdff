"""
Privileged remote procedures.

These run with a cross-user view of the store (the caller's row scope is not
enough to answer them) and are invoked by name through `/functions/{name}`.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from backend import content
from backend.config import Settings
from backend.records import RecordNotFoundError, RecordService, format_validation_error
from backend.schemas import (
    RobinIdRequest,
    SetInitialDriveCountRequest,
    TodaysAssignedRobinsRequest,
)
from shared.types import Function, Table

logger = logging.getLogger(__name__)


class ProcedureError(Exception):
    """A procedure failed; the message is returned to the caller as-is."""


class UnknownProcedureError(LookupError):
    pass


def _parse(model: type[BaseModel], payload: Optional[dict]) -> Any:
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise ProcedureError(format_validation_error(e)) from e


class ProcedureRunner:
    def __init__(
        self,
        records: RecordService,
        settings: Settings,
        predict: Optional[Callable[..., str]] = None,
    ):
        self.records = records
        self.settings = settings
        self.predict = predict
        self._handlers: dict[str, Callable[[str, dict], Any]] = {
            Function.GENERATE_CONTENT: self.generate_content,
            Function.SET_INITIAL_DRIVE_COUNT: self.set_initial_drive_count,
            Function.CAN_EDIT_ROBIN_PROFILE: self.can_edit_robin_profile,
            Function.TODAYS_ASSIGNED_ROBINS: self.todays_assigned_robins,
        }

    @property
    def names(self) -> list[str]:
        return sorted(self._handlers)

    def invoke(self, name: str, caller_id: str, payload: Optional[dict]) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownProcedureError(f"Unknown function: {name}")
        logger.info("Invoking %s for %s", name, caller_id)
        return handler(caller_id, payload or {})

    def _is_admin(self, user_id: str) -> bool:
        return user_id in self.settings.admin_user_ids

    def generate_content(self, caller_id: str, payload: dict) -> dict:
        try:
            return content.generate_content(
                payload,
                caller_id,
                records=self.records,
                settings=self.settings,
                predict=self.predict,
            )
        except content.ContentError as e:
            raise ProcedureError(str(e)) from e

    def set_initial_drive_count(self, caller_id: str, payload: dict) -> dict:
        """
        Corrects a volunteer's drive counter with drives done before they were
        tracked: the counter becomes `previous_count` plus recorded drives.
        """
        request = _parse(SetInitialDriveCountRequest, payload)
        robin_id = str(request.robin_id)
        db = self.records.db
        robin = db.get(Table.ROBINS, robin_id, user_id=None)
        if not robin or (robin["user_id"] != caller_id and not self._is_admin(caller_id)):
            raise ProcedureError("Robin not found")
        recorded = len(
            db.select(Table.ROBIN_DRIVES, user_id=None, filters={"robin_id": robin_id})
        )
        try:
            return self.records.set_counter(
                Table.ROBINS,
                robin["user_id"],
                robin_id,
                "drive_count",
                request.previous_count + recorded,
            )
        except RecordNotFoundError as e:
            raise ProcedureError("Robin not found") from e

    def can_edit_robin_profile(self, caller_id: str, payload: dict) -> bool:
        request = _parse(RobinIdRequest, payload)
        robin = self.records.db.get(Table.ROBINS, str(request.robin_id), user_id=None)
        if robin is None:
            return False
        if self._is_admin(caller_id):
            return True
        return caller_id in (robin.get("profile_created_by"), robin["user_id"])

    def todays_assigned_robins(self, caller_id: str, payload: dict) -> list[dict]:
        request = _parse(TodaysAssignedRobinsRequest, payload)
        day = (request.date or dt.date.today()).isoformat()
        db = self.records.db
        robins = db.select(
            Table.ROBINS,
            user_id=None,
            filters={"assigned_date": day},
            order_by="name",
            descending=False,
        )
        reasons = {
            row["robin_id"]: row.get("reason")
            for row in db.select(
                Table.ROBIN_UNAVAILABILITY,
                user_id=None,
                filters={"unavailable_date": day},
            )
        }
        return [
            {
                "robin_id": robin["id"],
                "name": robin["name"],
                "assigned_location": robin["assigned_location"],
                "is_unavailable": robin["id"] in reasons,
                "reason": reasons.get(robin["id"]),
            }
            for robin in robins
        ]

