import datetime as dt
import unittest

from client import views
from shared.types import Child, Drive, Robin, RobinDrive, TodayAssignment


def _robin(robin_id, name="Robin", drive_count=0, **overrides):
    fields = {
        "id": robin_id,
        "user_id": "alice",
        "name": name,
        "assigned_location": "Dwarka",
        "assigned_date": "2024-01-07",
        "created_at": "",
        "updated_at": "",
        "drive_count": drive_count,
        **overrides,
    }
    return Robin(**fields)


def _child(child_id, name, location=None, tags=None):
    return Child(
        id=child_id,
        user_id="alice",
        name=name,
        mother_name="M",
        father_name="F",
        age_group=8,
        created_at="",
        updated_at="",
        location=location,
        tags=tags,
    )


def _robin_drive(robin_id, drive_id):
    return RobinDrive(
        id=f"{robin_id}-{drive_id}",
        user_id="alice",
        robin_id=robin_id,
        date="2024-01-07",
        location="Dwarka",
        created_at="",
        drive_id=drive_id,
    )


def _drive(drive_id, date):
    return Drive(
        id=drive_id,
        user_id="alice",
        name=drive_id,
        date=date,
        location="Dwarka",
        created_at="",
        updated_at="",
    )


class LeaderboardTests(unittest.TestCase):
    def test_sorted_descending_and_truncated(self):
        robins = [_robin(str(i), drive_count=i) for i in range(12)]
        top = views.leaderboard(robins, "drive_count", 10)
        self.assertEqual([r.drive_count for r in top], list(range(11, 1, -1)))

    def test_ties_keep_collection_order(self):
        robins = [
            _robin("a", drive_count=2),
            _robin("b", drive_count=5),
            _robin("c", drive_count=2),
            _robin("d", drive_count=5),
        ]
        top = views.leaderboard(robins, "drive_count", 10)
        self.assertEqual([r.id for r in top], ["b", "d", "a", "c"])
        self.assertEqual(views.leaderboard(robins, "drive_count", 10), top)

    def test_missing_counter_counts_as_zero(self):
        children = [_child("a", "A"), _child("b", "B")]
        children[0].attendance_count = None
        children[1].attendance_count = 1
        self.assertEqual(
            [c.id for c in views.leaderboard(children, "attendance_count", 5)],
            ["b", "a"],
        )


class ParticipantsTests(unittest.TestCase):
    def test_orphaned_join_is_dropped(self):
        joins = [_robin_drive("R1", "D1"), _robin_drive("R2", "D1")]
        robins = [_robin("R1", "Asha")]
        participants = views.drive_robins(joins, robins, "D1")
        self.assertEqual([r.id for r in participants], ["R1"])

    def test_other_drives_are_ignored(self):
        joins = [_robin_drive("R1", "D1"), _robin_drive("R2", "D2"), _robin_drive("R3", None)]
        robins = [_robin("R1"), _robin("R2"), _robin("R3")]
        self.assertEqual([r.id for r in views.drive_robins(joins, robins, "D2")], ["R2"])


class SearchTests(unittest.TestCase):
    def setUp(self):
        self.children = [
            _child("1", "Ravi Kumar", "Dwarka", ["football"]),
            _child("2", "Meera", "Rohini", ["Art", "reading"]),
            _child("3", "Kiran", "Dwarka", None),
        ]

    def test_name_or_tag_case_insensitive(self):
        self.assertEqual([c.id for c in views.search_filter(self.children, "ravi")], ["1"])
        self.assertEqual([c.id for c in views.search_filter(self.children, "ART")], ["2"])

    def test_locality_narrows_results(self):
        self.assertEqual(
            [c.id for c in views.search_filter(self.children, "", "Dwarka")], ["1", "3"]
        )
        self.assertEqual(views.search_filter(self.children, "meera", "Dwarka"), [])

    def test_is_pure(self):
        first = views.search_filter(self.children, "a", "Dwarka")
        second = views.search_filter(self.children, "a", "Dwarka")
        self.assertEqual(first, second)
        self.assertEqual(len(self.children), 3)

    def test_robins_match_assigned_or_home_locality(self):
        robins = [
            _robin("1", "Asha", assigned_location="Dwarka"),
            _robin("2", "Ravi", assigned_location="Rohini", home_location="Dwarka"),
            _robin("3", "Meera", assigned_location="Rohini"),
        ]
        self.assertEqual(
            [r.id for r in views.search_robins(robins, "", "Dwarka")], ["1", "2"]
        )
        self.assertEqual([r.id for r in views.search_robins(robins, "MEE")], ["3"])


class DriveListTests(unittest.TestCase):
    def test_today_upcoming_and_past(self):
        today = dt.date(2024, 6, 15)
        drives = [_drive(f"up{i}", f"2024-07-{i + 10}") for i in range(7)]
        drives += [_drive("today", "2024-06-15")]
        drives += [_drive(f"past{i}", f"2024-05-{i + 10}") for i in range(12)]

        self.assertEqual([d.id for d in views.todays_drives(drives, today)], ["today"])
        self.assertEqual(len(views.upcoming_drives(drives, today)), 5)
        past = views.past_drives(drives, today)
        self.assertEqual(len(past), 10)
        self.assertEqual(past[0].id, "past0")


class SummaryTests(unittest.TestCase):
    def test_first_time_and_active(self):
        robins = [
            _robin("1", drive_count=0),
            _robin("2", drive_count=1),
            _robin("3", drive_count=4, status="inactive"),
        ]
        self.assertEqual([r.id for r in robins if views.is_first_time_robin(r)], ["1", "2"])
        self.assertEqual([r.id for r in views.active_robins(robins)], ["1", "2"])

    def test_location_counts(self):
        children = [
            _child("1", "A", "Dwarka"),
            _child("2", "B", "Dwarka"),
            _child("3", "C", "Rohini"),
            _child("4", "D"),
        ]
        self.assertEqual(views.location_counts(children), {"Dwarka": 2, "Rohini": 1})
        robins = [_robin("1"), _robin("2", assigned_location="Janakpuri")]
        self.assertEqual(
            views.location_counts(robins, "assigned_location"),
            {"Dwarka": 1, "Janakpuri": 1},
        )

    def test_availability_counts(self):
        assignments = [
            TodayAssignment("1", "A", "Dwarka"),
            TodayAssignment("2", "B", "Dwarka", is_unavailable=True, reason="Ill"),
            TodayAssignment("3", "C", "Rohini"),
        ]
        self.assertEqual(views.availability_counts(assignments), (2, 1))


if __name__ == "__main__":
    unittest.main()
