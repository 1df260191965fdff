from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from client.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """
    The signed-in user, created on login and ended on logout.

    Repositories and the change feed listener receive the session explicitly;
    once `end()` is called every operation made through it fails with
    `AuthError`.
    """

    user_id: str
    access_token: Optional[str] = None
    _active: bool = True

    def __post_init__(self):
        if not self.user_id or not self.user_id.strip():
            raise AuthError("A session needs a user id")

    @property
    def active(self) -> bool:
        return self._active

    def require_user(self) -> str:
        if not self._active:
            raise AuthError("Session has ended")
        return self.user_id

    def end(self) -> None:
        if self._active:
            logger.info("Ending session for %s", self.user_id)
        self._active = False
        self.access_token = None
