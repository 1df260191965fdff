import datetime as dt
import re
import unittest
from unittest import mock

from backend.config import Settings
from client import views
from client.errors import AuthError, RemoteError, StoreConnectionError, ValidationError
from client.forms import (
    AttendanceForm,
    ChildEditForm,
    ChildForm,
    ContentRequestForm,
    RobinDriveForm,
    RobinForm,
    RobinProfileForm,
    UnavailabilityForm,
)
from client.gateway import InProcessGateway
from client.repositories import (
    ChildAttendanceRepository,
    ChildRepository,
    ContentRepository,
    RobinDriveRepository,
    RobinRepository,
    UnavailabilityRepository,
    photo_path,
    upload_photo,
)
from client.result import Result
from client.session import SessionContext


def _child_form(**overrides):
    fields = {
        "name": "Ravi",
        "mother_name": "Sita",
        "father_name": "Ram",
        "age_group": 8,
        "location": "Dwarka",
        **overrides,
    }
    return ChildForm(**fields)


class RepositoryTestCase(unittest.TestCase):
    def setUp(self):
        self.predict = mock.Mock(return_value="A story about numbers.")
        self.gateway = InProcessGateway.in_memory(
            Settings(
                gemini_api_key="test-key",
                admin_user_ids=["admin"],
                use_in_memory_backends=True,
            ),
            predict=self.predict,
        )
        self.session = SessionContext("alice")
        self.children = ChildRepository(self.gateway, self.session)
        self.robins = RobinRepository(self.gateway, self.session)


class RobinRepositoryTests(RepositoryTestCase):
    def test_register_prepends_server_record(self):
        self.robins.register(
            RobinForm(name="Ravi", assigned_location="Rohini", assigned_date="2024-01-01")
        )

        result = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        )

        self.assertTrue(result.ok)
        robin = result.data
        self.assertTrue(robin.id)
        self.assertEqual(robin.drive_count, 0)
        self.assertEqual(robin.name, "Asha")
        self.assertEqual(robin.assigned_location, "Dwarka")
        self.assertEqual(robin.assigned_date, "2024-01-07")
        self.assertEqual(robin.status, "active")
        self.assertFalse(robin.registration_completed)
        self.assertEqual(robin.profile_created_by, "alice")
        self.assertIs(self.robins.items[0], robin)
        self.assertEqual(len(self.robins), 2)

    def test_create_twice_makes_two_records(self):
        form = RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        first = self.robins.register(form).data
        second = self.robins.register(form).data
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(len(self.robins), 2)

    def test_complete_registration_replaces_in_place(self):
        older = self.robins.register(
            RobinForm(name="Ravi", assigned_location="Rohini", assigned_date="2024-01-01")
        ).data
        self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        )

        result = self.robins.complete_registration(
            older.id,
            RobinProfileForm(email="ravi@example.org", phone="9999999999", skills=["art"]),
        )

        self.assertTrue(result.ok)
        self.assertEqual(self.robins.items[1].id, older.id)
        self.assertTrue(self.robins.items[1].registration_completed)
        self.assertEqual(self.robins.items[1].skills, ["art"])

    def test_update_location(self):
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        ).data
        result = self.robins.update_location(robin.id, "Janakpuri")
        self.assertEqual(result.data.assigned_location, "Janakpuri")
        self.assertEqual(self.robins.get(robin.id).assigned_location, "Janakpuri")

    def test_mutate_unknown_record_leaves_cache(self):
        self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        )
        before = list(self.robins.items)
        result = self.robins.mutate("missing", {"name": "X"})
        self.assertFalse(result.ok)
        self.assertEqual(result.error.status, 404)
        self.assertEqual(self.robins.items, before)

    def test_own_profile_and_can_add_new_robins(self):
        self.assertTrue(self.robins.can_add_new_robins())
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        ).data
        self.assertEqual(self.robins.own_profile().id, robin.id)
        self.robins.complete_registration(robin.id, RobinProfileForm())
        self.assertFalse(self.robins.can_add_new_robins())

    def test_set_initial_drive_count(self):
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        ).data
        RobinDriveRepository(self.gateway, self.session, self.robins).record_drive(
            RobinDriveForm(robin_id=robin.id, location="Dwarka")
        )

        result = self.robins.set_initial_drive_count(robin.id, 4)

        self.assertTrue(result.ok)
        self.assertEqual(result.data.drive_count, 5)
        self.assertEqual(self.robins.get(robin.id).drive_count, 5)

    def test_can_edit_profile(self):
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        ).data
        self.assertTrue(self.robins.can_edit_profile(robin.id).data)
        other = RobinRepository(self.gateway, SessionContext("bob"))
        self.assertFalse(other.can_edit_profile(robin.id).data)
        admin = RobinRepository(self.gateway, SessionContext("admin"))
        self.assertTrue(admin.can_edit_profile(robin.id).data)

    def test_todays_assignments(self):
        today = dt.date.today()
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date=today)
        ).data
        # Declared before today, so written straight to the store.
        self.gateway.records.db.insert(
            "robin_unavailability",
            {
                "user_id": "alice",
                "robin_id": robin.id,
                "unavailable_date": today.isoformat(),
                "reason": "Ill",
            },
        )

        result = self.robins.todays_assignments()

        self.assertTrue(result.ok)
        self.assertEqual(len(result.data), 1)
        self.assertEqual(result.data[0].robin_id, robin.id)
        self.assertTrue(result.data[0].is_unavailable)
        self.assertEqual(result.data[0].reason, "Ill")


class FetchTests(RepositoryTestCase):
    def test_fetch_all_overwrites_cache(self):
        self.children.add_child(_child_form(name="Ravi"))
        self.children.items.append("stale")
        other_session = ChildRepository(self.gateway, self.session)
        other_session.add_child(_child_form(name="Meera"))

        result = self.children.fetch_all()

        self.assertTrue(result.ok)
        self.assertEqual([c.name for c in self.children], ["Meera", "Ravi"])

    def test_fetch_failure_leaves_prior_state(self):
        self.children.add_child(_child_form())
        before = list(self.children.items)
        failing = mock.Mock()
        failing.query.return_value = Result.failure(StoreConnectionError("offline"))
        self.children.gateway = failing

        result = self.children.fetch_all()

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, StoreConnectionError)
        self.assertEqual(self.children.items, before)
        self.assertFalse(self.children.loading)

    def test_only_own_rows_are_visible(self):
        ChildRepository(self.gateway, SessionContext("bob")).add_child(_child_form())
        self.children.fetch_all()
        self.assertEqual(len(self.children), 0)

    def test_create_failure_leaves_cache(self):
        result = self.children.create({"name": "No guardians"})
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, ValidationError)
        self.assertEqual(len(self.children), 0)

    def test_update_child_partial(self):
        child = self.children.add_child(_child_form(school_name="Govt School")).data
        result = self.children.update_child(child.id, ChildEditForm(tags=["art", "art"]))
        self.assertEqual(result.data.tags, ["art"])
        self.assertEqual(result.data.school_name, "Govt School")

    def test_blank_required_fields_are_left_unchanged(self):
        child = self.children.add_child(_child_form(school_name="Govt School")).data

        result = self.children.update_child(
            child.id, ChildEditForm(name="   ", mother_name="", school_name="")
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.data.name, "Ravi")
        self.assertEqual(result.data.mother_name, "Sita")
        self.assertIsNone(result.data.school_name)
        self.assertEqual(
            [c.id for c in views.search_filter(self.children.items, "ravi")], [child.id]
        )

    def test_null_required_field_is_validation_error(self):
        child = self.children.add_child(_child_form()).data
        result = self.children.mutate(child.id, {"name": None})
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, ValidationError)
        self.assertEqual(self.children.get(child.id).name, "Ravi")

    def test_ended_session_fails_with_auth_error(self):
        self.session.end()
        result = self.children.fetch_all()
        self.assertIsInstance(result.error, AuthError)


class CompoundOperationTests(RepositoryTestCase):
    def test_mark_attendance_increments_by_one(self):
        child = self.children.add_child(_child_form()).data
        self.gateway.records.increment("children", "alice", child.id, "attendance_count", 2)
        self.children.fetch_all()
        before = self.children.get(child.id).attendance_count
        attendance = ChildAttendanceRepository(self.gateway, self.session, self.children)

        result = attendance.mark_attendance(
            AttendanceForm(child_id=child.id, location="Dwarka")
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.data.child_id, child.id)
        self.assertEqual(result.data.date, dt.date.today().isoformat())
        self.assertEqual(self.children.get(child.id).attendance_count, before + 1)
        self.assertEqual(len(attendance), 1)

    def test_mark_attendance_for_unknown_child_writes_nothing(self):
        attendance = ChildAttendanceRepository(self.gateway, self.session, self.children)
        result = attendance.mark_attendance(
            AttendanceForm(child_id="8f7c1a52-0000-4000-8000-000000000000", location="Dwarka")
        )
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, ValidationError)
        self.assertEqual(len(attendance), 0)
        self.assertEqual(attendance.fetch_all().data, [])

    def test_mark_attendance_survives_failed_refresh(self):
        child = self.children.add_child(_child_form()).data
        attendance = ChildAttendanceRepository(self.gateway, self.session, self.children)
        with mock.patch.object(
            self.children,
            "fetch_all",
            return_value=Result.failure(StoreConnectionError("offline")),
        ):
            result = attendance.mark_attendance(
                AttendanceForm(child_id=child.id, location="Dwarka")
            )
        self.assertTrue(result.ok)
        self.children.fetch_all()
        self.assertEqual(self.children.get(child.id).attendance_count, 1)

    def test_record_drive_increments_drive_count(self):
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        ).data
        robin_drives = RobinDriveRepository(self.gateway, self.session, self.robins)

        result = robin_drives.record_drive(
            RobinDriveForm(
                robin_id=robin.id,
                location="Dwarka",
                commute_method="Metro",
                items_brought=["books"],
            )
        )

        self.assertTrue(result.ok)
        self.assertTrue(result.data.attendance_marked)
        self.assertEqual(self.robins.get(robin.id).drive_count, 1)

    def test_add_unavailability(self):
        robin = self.robins.register(
            RobinForm(name="Asha", assigned_location="Dwarka", assigned_date="2024-01-07")
        ).data
        repo = UnavailabilityRepository(self.gateway, self.session)
        tomorrow = dt.date.today() + dt.timedelta(days=1)
        result = repo.add_unavailability(
            UnavailabilityForm(robin_id=robin.id, unavailable_date=tomorrow, reason="Exam")
        )
        self.assertTrue(result.ok)
        self.assertEqual(repo.items[0].unavailable_date, tomorrow.isoformat())


class ContentRepositoryTests(RepositoryTestCase):
    def test_generate_refreshes_collection(self):
        content = ContentRepository(self.gateway, self.session)
        result = content.generate(
            ContentRequestForm(age_group=9, subject="Numbers", content_type="Story")
        )
        self.assertEqual(result.data, "A story about numbers.")
        self.assertEqual(len(content), 1)
        self.assertEqual(content.items[0].content_type, "story")

    def test_generation_error_is_surfaced_verbatim(self):
        content = ContentRepository(self.gateway, self.session)
        result = self.gateway.invoke_function(
            self.session,
            "generate-content",
            {"ageGroup": "25", "subject": "Math", "contentType": "Story"},
        )
        self.assertIsInstance(result.error, RemoteError)
        self.assertEqual(
            result.error.message,
            "Invalid age group: 25. Age group must be between 3 and 20.",
        )
        self.predict.assert_not_called()
        self.assertEqual(len(content), 0)

    def test_unexpected_model_failure_is_a_result(self):
        self.predict.side_effect = RuntimeError("network down")
        content = ContentRepository(self.gateway, self.session)

        result = content.generate(
            ContentRequestForm(age_group=9, subject="Numbers", content_type="Story")
        )

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, RemoteError)
        self.assertEqual(result.error.message, "Content generation failed: network down")
        self.assertEqual(len(content), 0)


class PhotoUploadTests(RepositoryTestCase):
    def test_photo_path(self):
        self.assertEqual(
            photo_path("alice", "children", "Ravi.JPG", now_ms=1700000000000),
            "alice/children/1700000000000.jpg",
        )

    def test_upload_photo(self):
        result = upload_photo(self.gateway, self.session, b"img", "face.png", "robins")
        self.assertTrue(result.ok)
        self.assertRegex(result.data, r"/photos/alice/robins/\d+\.png$")
        stored = list(self.gateway.storage.stored_objects)
        self.assertTrue(re.match(r"photos/alice/robins/\d+\.png", stored[0]))


if __name__ == "__main__":
    unittest.main()
