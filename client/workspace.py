"""
A signed-in user's view of the data layer.

`Workspace.login()` creates the session, opens the change feed and loads the
collections; `close()` (or leaving a `with` block) tears the subscriptions
down and ends the session, so nothing outlives a logout.
"""

from __future__ import annotations

import logging
from typing import Optional

from client.change_feed import ChangeFeedListener
from client.gateway import Gateway
from client.repositories import (
    ChildAttendanceRepository,
    ChildRepository,
    ContentRepository,
    DriveRepository,
    Repository,
    RobinDriveRepository,
    RobinRepository,
    UnavailabilityRepository,
    upload_photo,
)
from client.result import Result
from client.session import SessionContext

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(self, gateway: Gateway, session: SessionContext):
        self.gateway = gateway
        self.session = session
        self.children = ChildRepository(gateway, session)
        self.robins = RobinRepository(gateway, session)
        self.drives = DriveRepository(gateway, session)
        self.attendance = ChildAttendanceRepository(gateway, session, self.children)
        self.robin_drives = RobinDriveRepository(gateway, session, self.robins)
        self.unavailability = UnavailabilityRepository(gateway, session)
        self.content = ContentRepository(gateway, session)
        self.listener = ChangeFeedListener(
            gateway,
            session,
            {
                self.children.table: self.children,
                self.robins.table: self.robins,
                self.content.table: self.content,
            },
        )

    @classmethod
    def login(
        cls, gateway: Gateway, user_id: str, access_token: Optional[str] = None
    ) -> "Workspace":
        workspace = cls(gateway, SessionContext(user_id, access_token))
        workspace.open()
        return workspace

    @property
    def repositories(self) -> list[Repository]:
        return [
            self.children,
            self.robins,
            self.drives,
            self.attendance,
            self.robin_drives,
            self.unavailability,
            self.content,
        ]

    def open(self) -> dict[str, Result]:
        """Subscribes to changes and loads every collection."""
        logger.info("Opening workspace for %s", self.session.user_id)
        subscribed = self.listener.start()
        if not subscribed.ok:
            logger.warning("Change feed unavailable: %s", subscribed.error)
        return self.refresh()

    def refresh(self) -> dict[str, Result]:
        return {repo.table: repo.fetch_all() for repo in self.repositories}

    def pump(self) -> list[str]:
        return self.listener.pump()

    def upload_photo(
        self,
        data: bytes,
        filename: str,
        folder: str,
        content_type: Optional[str] = None,
    ) -> Result[str]:
        return upload_photo(
            self.gateway, self.session, data, filename, folder, content_type
        )

    def close(self) -> None:
        self.listener.close()
        self.session.end()

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
