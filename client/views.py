"""
Derived views over cached collections.

Plain functions of their arguments, recomputed on every call: leaderboards,
drive rosters, search filters and the drive and volunteer summaries.
"""

from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Iterable, Optional, Sequence, TypeVar

from shared.types import (
    Child,
    ChildAttendance,
    Drive,
    Robin,
    RobinDrive,
    RobinStatus,
    TodayAssignment,
)

E = TypeVar("E")

UPCOMING_DRIVES_LIMIT = 5
PAST_DRIVES_LIMIT = 10


def leaderboard(entities: Sequence[E], counter_field: str, n: int = 10) -> list[E]:
    """
    Top `n` entities by `counter_field`, highest first. Equal counts keep
    their order in `entities`; a missing counter counts as zero.
    """
    ranked = sorted(
        entities, key=lambda entity: getattr(entity, counter_field) or 0, reverse=True
    )
    return ranked[:n]


def participants(
    joins: Iterable, parents: Iterable[E], drive_id: str, parent_field: str
) -> list[E]:
    """
    Parents referenced by the join records of `drive_id`, in join order.
    Joins whose parent is no longer in `parents` are dropped.
    """
    by_id = {parent.id: parent for parent in parents}
    matched = []
    for join in joins:
        if join.drive_id != drive_id:
            continue
        parent = by_id.get(getattr(join, parent_field))
        if parent is not None:
            matched.append(parent)
    return matched


def drive_robins(
    robin_drives: Iterable[RobinDrive], robins: Iterable[Robin], drive_id: str
) -> list[Robin]:
    return participants(robin_drives, robins, drive_id, "robin_id")


def drive_children(
    attendance: Iterable[ChildAttendance], children: Iterable[Child], drive_id: str
) -> list[Child]:
    return participants(attendance, children, drive_id, "child_id")


def search_filter(
    entities: Iterable[E],
    name: str = "",
    locality: Optional[str] = "",
    locality_field: str = "location",
) -> list[E]:
    """
    Entities whose name or one of whose tags contains `name` (ignoring
    case), restricted to `locality` when one is given.
    """
    needle = (name or "").lower()

    def matches(entity) -> bool:
        tags = getattr(entity, "tags", None) or []
        named = needle in entity.name.lower() or any(needle in t.lower() for t in tags)
        if not named:
            return False
        return not locality or getattr(entity, locality_field) == locality

    return [entity for entity in entities if matches(entity)]


def search_robins(
    robins: Iterable[Robin], name: str = "", locality: Optional[str] = ""
) -> list[Robin]:
    """Volunteers by name, at `locality` as either their assigned or home place."""
    needle = (name or "").lower()
    return [
        robin
        for robin in robins
        if needle in robin.name.lower()
        and (not locality or locality in (robin.assigned_location, robin.home_location))
    ]


def _today(today: Optional[dt.date]) -> str:
    return (today or dt.date.today()).isoformat()


def todays_drives(drives: Iterable[Drive], today: Optional[dt.date] = None) -> list[Drive]:
    day = _today(today)
    return [drive for drive in drives if drive.date == day]


def upcoming_drives(
    drives: Iterable[Drive], today: Optional[dt.date] = None
) -> list[Drive]:
    day = _today(today)
    return [drive for drive in drives if drive.date > day][:UPCOMING_DRIVES_LIMIT]


def past_drives(drives: Iterable[Drive], today: Optional[dt.date] = None) -> list[Drive]:
    day = _today(today)
    return [drive for drive in drives if drive.date < day][:PAST_DRIVES_LIMIT]


def is_first_time_robin(robin: Robin) -> bool:
    return (robin.drive_count or 0) <= 1


def active_robins(robins: Iterable[Robin]) -> list[Robin]:
    return [robin for robin in robins if robin.status == RobinStatus.ACTIVE]


def location_counts(
    entities: Iterable, locality_field: str = "location"
) -> dict[str, int]:
    """Number of entities per locality; entities without one are skipped."""
    counts = Counter(getattr(entity, locality_field) for entity in entities)
    counts.pop(None, None)
    return dict(counts)


def availability_counts(assignments: Iterable[TodayAssignment]) -> tuple[int, int]:
    """(available, unavailable) among today's assigned volunteers."""
    assignments = list(assignments)
    unavailable = sum(1 for a in assignments if a.is_unavailable)
    return len(assignments) - unavailable, unavailable
