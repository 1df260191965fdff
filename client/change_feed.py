"""
Push invalidation for cached collections.

The listener holds one subscription per watched table, filtered to the
session's user. Events are queued on the subscription handles and delivered
by `pump()` on the caller's thread; the only reaction to an event is a full
`fetch_all()` of the matching repository.
"""

from __future__ import annotations

import logging
from typing import Mapping

from backend.changes import Subscription
from client.errors import GatewayError
from client.gateway import Gateway
from client.repositories import Repository
from client.result import Result
from client.session import SessionContext
from shared.types import Table

logger = logging.getLogger(__name__)

WATCHED_TABLES = (Table.CHILDREN, Table.ROBINS, Table.EDUCATIONAL_CONTENT)


class ChangeFeedListener:
    def __init__(
        self,
        gateway: Gateway,
        session: SessionContext,
        repositories: Mapping[str, Repository],
    ):
        self.gateway = gateway
        self.session = session
        self.repositories = dict(repositories)
        self.subscriptions: dict[str, Subscription] = {}

    @property
    def active(self) -> bool:
        return bool(self.subscriptions)

    def start(self) -> Result[list[str]]:
        """
        Opens a subscription for every watched table not yet subscribed.

        Tables that fail to subscribe are skipped; the first error is
        returned and the others stay open.
        """
        first_error: GatewayError | None = None
        for table in self.repositories:
            if table in self.subscriptions:
                continue
            result = self.gateway.subscribe(self.session, table)
            if result.ok:
                self.subscriptions[table] = result.data
                logger.info("Subscribed to %s changes", table)
            else:
                logger.error("Error subscribing to %s changes: %s", table, result.error)
                first_error = first_error or result.error
        if first_error is not None:
            return Result.failure(first_error)
        return Result.success(list(self.subscriptions))

    def pump(self) -> list[str]:
        """
        Delivers queued events. Each table with at least one pending event is
        re-fetched once; returns the tables that were refreshed.
        """
        refreshed = []
        for table, subscription in list(self.subscriptions.items()):
            events = subscription.drain()
            if not events:
                continue
            logger.info(
                "%s change received (%s)",
                table,
                ", ".join(event.event_type for event in events),
            )
            result = self.repositories[table].fetch_all()
            if result.ok:
                refreshed.append(table)
        return refreshed

    def close(self) -> None:
        for table, subscription in self.subscriptions.items():
            subscription.close()
            logger.info("Unsubscribed from %s changes", table)
        self.subscriptions.clear()

    def __enter__(self) -> "ChangeFeedListener":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
