import unittest

from backend.changes import InMemoryChangeBroker
from backend.db import SqlStoreClient
from backend.records import RecordService, RecordValidationError


def _child(user_id="alice", **overrides):
    return {
        "user_id": user_id,
        "name": "Ravi",
        "mother_name": "Sita",
        "father_name": "Ram",
        "age_group": 8,
        "tags": ["reader"],
        **overrides,
    }


class SqlStoreClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store logic.
    """

    def setUp(self):
        self.db = SqlStoreClient("sqlite+pysqlite:///:memory:")

    def test_insert_assigns_id_and_timestamps(self):
        row = self.db.insert("children", _child())
        self.assertTrue(row["id"])
        self.assertTrue(row["created_at"])
        self.assertEqual(row["created_at"], row["updated_at"])
        self.assertEqual(row["tags"], ["reader"])
        self.assertEqual(row["attendance_count"], 0)

    def test_join_tables_have_no_updated_at(self):
        row = self.db.insert(
            "robin_unavailability",
            {"user_id": "alice", "robin_id": "r1", "unavailable_date": "2030-01-01"},
        )
        self.assertNotIn("updated_at", row)

    def test_select_is_scoped_and_filtered(self):
        self.db.insert("children", _child(name="Ravi", location="Dwarka"))
        self.db.insert("children", _child(name="Meera", location="Rohini"))
        self.db.insert("children", _child(user_id="bob", name="Kiran", location="Dwarka"))

        rows = self.db.select("children", user_id="alice", filters={"location": "Dwarka"})
        self.assertEqual([r["name"] for r in rows], ["Ravi"])

        everyone = self.db.select("children", user_id=None, order_by="name", descending=False)
        self.assertEqual([r["name"] for r in everyone], ["Kiran", "Meera", "Ravi"])

    def test_select_rejects_unknown_column(self):
        with self.assertRaises(ValueError):
            self.db.select("children", user_id="alice", order_by="height")

    def test_get_respects_owner(self):
        row = self.db.insert("children", _child())
        self.assertIsNotNone(self.db.get("children", row["id"], user_id="alice"))
        self.assertIsNone(self.db.get("children", row["id"], user_id="bob"))
        self.assertIsNotNone(self.db.get("children", row["id"], user_id=None))

    def test_update_only_own_rows(self):
        row = self.db.insert("children", _child())
        self.assertIsNone(
            self.db.update("children", row["id"], {"name": "X"}, user_id="bob")
        )
        updated = self.db.update(
            "children", row["id"], {"school_name": "Govt School"}, user_id="alice"
        )
        self.assertEqual(updated["school_name"], "Govt School")
        self.assertEqual(updated["name"], "Ravi")

    def test_increment_is_relative_to_stored_value(self):
        row = self.db.insert("children", _child(attendance_count=4))
        self.db.increment("children", row["id"], "attendance_count", user_id="alice")
        bumped = self.db.increment(
            "children", row["id"], "attendance_count", 2, user_id="alice"
        )
        self.assertEqual(bumped["attendance_count"], 7)

    def test_increment_of_missing_row_returns_none(self):
        self.assertIsNone(
            self.db.increment("robins", "missing", "drive_count", user_id="alice")
        )


class SqlRecordServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = SqlStoreClient("sqlite+pysqlite:///:memory:")
        self.records = RecordService(self.db, InMemoryChangeBroker())
        child = _child()
        del child["user_id"]
        self.child = self.records.insert("children", "alice", child)

    def test_null_required_column_is_rejected(self):
        with self.assertRaises(RecordValidationError):
            self.records.update(
                "children", "alice", self.child["id"], {"name": None, "mother_name": None}
            )
        stored = self.db.get("children", self.child["id"], user_id="alice")
        self.assertEqual(stored["name"], "Ravi")

    def test_store_constraint_violation_is_validation_error(self):
        with self.assertRaises(RecordValidationError):
            self.records.set_counter(
                "children", "alice", self.child["id"], "attendance_count", None
            )

    def test_attendance_bumps_counter(self):
        self.records.insert(
            "child_attendance",
            "alice",
            {"child_id": self.child["id"], "location": "Dwarka"},
        )
        stored = self.db.get("children", self.child["id"], user_id="alice")
        self.assertEqual(stored["attendance_count"], 1)


if __name__ == "__main__":
    unittest.main()
