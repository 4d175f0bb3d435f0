"""
Integration tests for the HTTP API using Flask's test client
"""
import os
import sys
import tempfile
import unittest
from datetime import datetime, timezone
from unittest import mock

from app import create_app


def at(hour, minute=0, day=6):
    return datetime(2024, 5, day, hour, minute, tzinfo=timezone.utc)


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.app = create_app({
            "DATABASE": os.path.join(self.tmpdir.name, "test.db"),
            "TESTING": True,
            "FACE_MATCH_THRESHOLD": 0.6,
            "FACE_EMBEDDING_DIMENSION": 2,
            "LATE_CUTOFF": "09:00",
            "APP_TIMEZONE": "UTC",
            "DEFAULT_ADMIN_USERNAME": "admin",
            "DEFAULT_ADMIN_PASSWORD": "admin123",
        })
        self.client = self.app.test_client()

    def tearDown(self):
        self.tmpdir.cleanup()

    def create_employee(self, n, descriptor=None, **fields):
        payload = {
            "first_name": "Employee",
            "last_name": f"Number{chr(65 + n)}",
            "email": f"employee{n}@example.com",
            "department": "Operations",
            "position": "Analyst",
        }
        payload.update(fields)
        if descriptor is not None:
            payload["descriptor"] = descriptor
        response = self.client.post("/api/employees", json=payload)
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()

    def recognize(self, descriptor, when=None):
        with mock.patch("blueprints.api.now_local", return_value=when or at(8, 30)):
            return self.client.post("/api/face/recognize", json={"descriptor": descriptor})


class TestAuth(ApiTestCase):

    def test_login_success(self):
        response = self.client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertTrue(data["success"])
        self.assertTrue(data["token"])
        self.assertEqual(data["user"]["username"], "admin")
        self.assertEqual(data["user"]["role"], "admin")

    def test_login_username_is_case_insensitive(self):
        response = self.client.post("/api/auth/login", json={"username": " Admin ", "password": "admin123"})
        self.assertEqual(response.status_code, 200)

    def test_login_wrong_password(self):
        response = self.client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.get_json()["success"])

    def test_login_missing_fields(self):
        response = self.client.post("/api/auth/login", json={"username": "admin"})
        self.assertEqual(response.status_code, 400)


class TestEmployees(ApiTestCase):

    def test_create_and_get(self):
        created = self.create_employee(0, descriptor=[0.0, 0.0])
        self.assertEqual(created["full_name"], "Employee NumberA")
        self.assertEqual(created["status"], "active")
        self.assertTrue(created["has_face_template"])
        self.assertNotIn("face_embedding", created)

        response = self.client.get(f"/api/employees/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["email"], "employee0@example.com")

    def test_list_filters_by_status(self):
        self.create_employee(0)
        self.create_employee(1, status="inactive")
        self.assertEqual(len(self.client.get("/api/employees").get_json()), 2)
        active = self.client.get("/api/employees?status=active").get_json()
        self.assertEqual([e["email"] for e in active], ["employee0@example.com"])

    def test_create_missing_fields(self):
        response = self.client.post("/api/employees", json={"first_name": "Solo"})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.get_json()["errors"])

    def test_create_duplicate_email(self):
        self.create_employee(0)
        response = self.client.post("/api/employees", json={
            "first_name": "Other",
            "last_name": "Person",
            "email": "EMPLOYEE0@example.com",
            "department": "Sales",
            "position": "Rep",
        })
        self.assertEqual(response.status_code, 409)

    def test_create_with_wrong_dimension(self):
        response = self.client.post("/api/employees", json={
            "first_name": "Wrong",
            "last_name": "Size",
            "email": "wrong@example.com",
            "department": "Sales",
            "position": "Rep",
            "descriptor": [0.1, 0.2, 0.3],
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/api/employees").get_json(), [])

    def test_update(self):
        created = self.create_employee(0)
        response = self.client.patch(f"/api/employees/{created['id']}", json={"position": "Director"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["position"], "Director")

    def test_update_unknown(self):
        response = self.client.patch("/api/employees/999", json={"position": "Director"})
        self.assertEqual(response.status_code, 404)

    def test_update_email_taken(self):
        self.create_employee(0)
        second = self.create_employee(1)
        response = self.client.patch(f"/api/employees/{second['id']}", json={"email": "employee0@example.com"})
        self.assertEqual(response.status_code, 409)

    def test_delete_removes_attendance(self):
        created = self.create_employee(0, descriptor=[0.0, 0.0])
        self.recognize([0.0, 0.0])

        response = self.client.delete(f"/api/employees/{created['id']}")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(f"/api/employees/{created['id']}").status_code, 404)
        self.assertEqual(self.client.get("/api/attendance?date=2024-05-06").get_json(), [])
        self.assertEqual(self.client.delete(f"/api/employees/{created['id']}").status_code, 404)

    def test_enroll_and_clear_face(self):
        created = self.create_employee(0)
        self.assertFalse(created["has_face_template"])

        response = self.client.put(f"/api/employees/{created['id']}/face", json={"descriptor": [0.2, 0.3]})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["employee"]["has_face_template"])

        self.assertEqual(self.client.delete(f"/api/employees/{created['id']}/face").status_code, 204)
        employee = self.client.get(f"/api/employees/{created['id']}").get_json()
        self.assertFalse(employee["has_face_template"])

    def test_enroll_requires_descriptor_or_photo(self):
        created = self.create_employee(0)
        response = self.client.put(f"/api/employees/{created['id']}/face", json={})
        self.assertEqual(response.status_code, 400)

    def test_enroll_unknown_employee(self):
        response = self.client.put("/api/employees/999/face", json={"descriptor": [0.2, 0.3]})
        self.assertEqual(response.status_code, 404)

    def test_face_embedding_endpoint(self):
        created = self.create_employee(0)
        response = self.client.post("/api/face/embedding", json={"employeeId": created["id"], "descriptor": [0.5, 0.5]})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["success"])

        self.assertEqual(
            self.client.post("/api/face/embedding", json={"descriptor": [0.5, 0.5]}).status_code, 400
        )
        self.assertEqual(
            self.client.post("/api/face/embedding", json={"employeeId": 999, "descriptor": [0.5, 0.5]}).status_code,
            404,
        )


class TestRecognize(ApiTestCase):

    def test_no_enrolled_employees(self):
        self.create_employee(0)
        data = self.recognize([0.1, 0.1]).get_json()
        self.assertFalse(data["success"])
        self.assertEqual(data["reason"], "no_face_detected")

    def test_check_in_check_out_then_complete(self):
        alice = self.create_employee(0, descriptor=[0.0, 0.0])
        self.create_employee(1, descriptor=[1.0, 1.0])

        data = self.recognize([0.1, 0.1], at(8, 30)).get_json()
        self.assertTrue(data["success"])
        self.assertEqual(data["event"], "check_in")
        self.assertEqual(data["employee"]["id"], alice["id"])
        self.assertAlmostEqual(data["distance"], 0.1414, places=4)
        self.assertAlmostEqual(data["confidence"], 1 - 0.1414214 / 0.6, places=4)
        self.assertEqual(data["attendance"]["check_in"], "08:30:00")
        self.assertEqual(data["attendance"]["status"], "present")

        data = self.recognize([0.0, 0.05], at(17, 15)).get_json()
        self.assertTrue(data["success"])
        self.assertEqual(data["event"], "check_out")
        self.assertEqual(data["attendance"]["check_out"], "17:15:00")
        self.assertEqual(data["attendance"]["status"], "present")

        data = self.recognize([0.0, 0.0], at(18, 0)).get_json()
        self.assertFalse(data["success"])
        self.assertEqual(data["reason"], "already_complete")
        self.assertEqual(data["attendance"]["check_out"], "17:15:00")

    def test_late_check_in(self):
        self.create_employee(0, descriptor=[0.0, 0.0])
        data = self.recognize([0.0, 0.0], at(9, 20)).get_json()
        self.assertEqual(data["attendance"]["status"], "late")
        self.assertIn("Late", data["message"])

    def test_not_recognized(self):
        self.create_employee(0, descriptor=[0.0, 0.0])
        self.create_employee(1, descriptor=[1.0, 1.0])
        data = self.recognize([5.0, 5.0]).get_json()
        self.assertFalse(data["success"])
        self.assertEqual(data["reason"], "not_recognized")
        self.assertEqual(self.client.get("/api/attendance?date=2024-05-06").get_json(), [])

    def test_ambiguous_match_records_nothing(self):
        self.create_employee(0, descriptor=[0.0, 0.0])
        self.create_employee(1, descriptor=[0.0, 0.0])
        data = self.recognize([0.1, 0.1]).get_json()
        self.assertFalse(data["success"])
        self.assertEqual(data["reason"], "ambiguous_match")
        self.assertEqual(self.client.get("/api/attendance?date=2024-05-06").get_json(), [])

    def test_invalid_descriptor(self):
        self.create_employee(0, descriptor=[0.0, 0.0])
        for descriptor in ("sample_embedding_1", [], [0.1, "x"]):
            response = self.recognize(descriptor)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.get_json()["reason"], "invalid_input")

    def test_missing_descriptor(self):
        response = self.client.post("/api/face/recognize", json={})
        self.assertEqual(response.status_code, 400)

    def test_inactive_employee_is_not_matched(self):
        alice = self.create_employee(0, descriptor=[0.0, 0.0])
        self.assertTrue(self.recognize([0.0, 0.0]).get_json()["success"])

        self.client.patch(f"/api/employees/{alice['id']}", json={"status": "inactive"})
        data = self.recognize([0.0, 0.0], at(17, 0)).get_json()
        self.assertEqual(data["reason"], "no_face_detected")

    def test_re_enrollment_is_seen_immediately(self):
        alice = self.create_employee(0, descriptor=[0.0, 0.0])
        self.assertEqual(self.recognize([3.0, 3.0]).get_json()["reason"], "not_recognized")

        self.client.put(f"/api/employees/{alice['id']}/face", json={"descriptor": [3.0, 3.0]})
        self.assertTrue(self.recognize([3.0, 3.0]).get_json()["success"])

    def test_profile_changes_are_seen_immediately(self):
        alice = self.create_employee(0, descriptor=[0.0, 0.0])
        self.assertEqual(self.recognize([0.0, 0.0]).get_json()["employee"]["first_name"], "Employee")

        response = self.client.patch(f"/api/employees/{alice['id']}", json={"first_name": "Renamed"})
        self.assertEqual(response.status_code, 200)

        data = self.recognize([0.0, 0.0], at(17, 0)).get_json()
        self.assertEqual(data["event"], "check_out")
        self.assertEqual(data["employee"]["first_name"], "Renamed")
        self.assertEqual(data["employee"]["full_name"], "Renamed NumberA")

    def test_raw_descriptor_body_is_invalid_input(self):
        self.create_employee(0, descriptor=[0.0, 0.0])
        response = self.client.post("/api/face/recognize", json=[0.1, 0.2])
        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertFalse(data["success"])
        self.assertEqual(data["reason"], "invalid_input")

    def test_photo_without_embedding_provider(self):
        self.create_employee(0, descriptor=[0.0, 0.0])
        with mock.patch.dict(sys.modules, {"face_recognition": None}):
            response = self.client.post("/api/face/recognize", json={"photo": "aGVsbG8="})
        self.assertEqual(response.status_code, 503)
        data = response.get_json()
        self.assertFalse(data["success"])
        self.assertEqual(data["reason"], "embedding_unavailable")

    def test_enrollment_photo_without_embedding_provider(self):
        alice = self.create_employee(0)
        with mock.patch.dict(sys.modules, {"face_recognition": None}):
            response = self.client.put(f"/api/employees/{alice['id']}/face", json={"photo": "aGVsbG8="})
        self.assertEqual(response.status_code, 503)


class TestNonObjectBodies(ApiTestCase):
    """JSON bodies that are not objects are rejected with 400, never 500"""

    def test_list_bodies_rejected(self):
        alice = self.create_employee(0)
        requests = [
            ("post", "/api/auth/login"),
            ("post", "/api/employees"),
            ("patch", f"/api/employees/{alice['id']}"),
            ("put", f"/api/employees/{alice['id']}/face"),
            ("post", "/api/face/embedding"),
            ("post", "/api/attendance"),
        ]
        for method, path in requests:
            response = getattr(self.client, method)(path, json=[0.1, 0.2])
            self.assertEqual(response.status_code, 400, path)
            data = response.get_json()
            self.assertFalse(data["success"], path)
            self.assertEqual(data["message"], "Request body must be a JSON object", path)

    def test_scalar_body_rejected(self):
        response = self.client.post("/api/auth/login", json="admin")
        self.assertEqual(response.status_code, 400)


class TestAttendance(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.alice = self.create_employee(0, descriptor=[0.0, 0.0])
        self.bob = self.create_employee(1, descriptor=[1.0, 1.0])
        self.carol = self.create_employee(2)

    def test_attendance_for_date(self):
        self.recognize([0.0, 0.0], at(8, 0))
        records = self.client.get("/api/attendance?date=2024-05-06").get_json()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["employee"]["id"], self.alice["id"])
        self.assertEqual(records[0]["verification_method"], "face")

    def test_attendance_bad_date(self):
        self.assertEqual(self.client.get("/api/attendance?date=06/05/2024").status_code, 400)

    def test_recent(self):
        self.recognize([0.0, 0.0], at(8, 0, day=5))
        self.recognize([0.0, 0.0], at(8, 0, day=6))
        records = self.client.get("/api/attendance/recent?limit=1").get_json()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["date"], "2024-05-06")
        self.assertEqual(self.client.get("/api/attendance/recent?limit=0").status_code, 400)

    def test_range(self):
        self.recognize([0.0, 0.0], at(8, 0, day=5))
        self.recognize([1.0, 1.0], at(8, 0, day=6))
        self.recognize([0.0, 0.0], at(8, 0, day=7))
        records = self.client.get("/api/attendance/range?startDate=2024-05-05&endDate=2024-05-06").get_json()
        self.assertEqual(sorted(r["date"] for r in records), ["2024-05-05", "2024-05-06"])

    def test_range_validation(self):
        self.assertEqual(self.client.get("/api/attendance/range?startDate=2024-05-05").status_code, 400)
        response = self.client.get("/api/attendance/range?startDate=2024-05-07&endDate=2024-05-05")
        self.assertEqual(response.status_code, 400)

    def test_manual_entry(self):
        response = self.client.post("/api/attendance", json={
            "employee_id": self.carol["id"],
            "date": "2024-05-06",
            "check_in": "09:15",
            "check_out": "17:00",
        })
        self.assertEqual(response.status_code, 201)
        record = response.get_json()
        self.assertEqual(record["status"], "late")
        self.assertEqual(record["check_in"], "09:15:00")
        self.assertEqual(record["check_out"], "17:00:00")
        self.assertEqual(record["verification_method"], "manual")

        again = self.client.post("/api/attendance", json={
            "employee_id": self.carol["id"],
            "date": "2024-05-06",
            "check_in": "08:00",
        })
        self.assertEqual(again.status_code, 409)

    def test_manual_entry_validation(self):
        base = {"employee_id": self.carol["id"], "date": "2024-05-06", "check_in": "09:00"}
        self.assertEqual(self.client.post("/api/attendance", json={**base, "check_out": "08:00"}).status_code, 400)
        self.assertEqual(self.client.post("/api/attendance", json={**base, "status": "absent"}).status_code, 400)
        self.assertEqual(self.client.post("/api/attendance", json={**base, "employee_id": 999}).status_code, 404)

    def test_absences_are_derived(self):
        self.recognize([0.0, 0.0], at(8, 0))
        with mock.patch("blueprints.reports.now_local", return_value=at(12, 0)):
            data = self.client.get("/api/reports/absences").get_json()
        self.assertEqual(data["date"], "2024-05-06")
        self.assertEqual(data["count"], 2)
        self.assertEqual({e["id"] for e in data["employees"]}, {self.bob["id"], self.carol["id"]})

    def test_absences_exclude_inactive(self):
        self.client.patch(f"/api/employees/{self.carol['id']}", json={"status": "inactive"})
        data = self.client.get("/api/reports/absences?date=2024-05-06").get_json()
        self.assertEqual(data["count"], 2)

    def test_dashboard_stats(self):
        self.recognize([0.0, 0.0], at(8, 0))
        self.recognize([1.0, 1.0], at(9, 30))
        with mock.patch("blueprints.reports.now_local", return_value=at(12, 0)):
            stats = self.client.get("/api/dashboard/stats").get_json()
            weekly = self.client.get("/api/dashboard/weekly-stats").get_json()
            monthly = self.client.get("/api/dashboard/monthly-stats").get_json()

        self.assertEqual(stats, {"presentToday": 2, "lateArrivals": 1, "absences": 1, "onTimePercentage": 50})
        self.assertEqual(len(weekly), 7)
        self.assertEqual(weekly[-1], {"date": "2024-05-06", "present": 1, "late": 1, "absent": 1})
        self.assertEqual(weekly[0]["absent"], 3)
        self.assertEqual(len(monthly), 30)


if __name__ == '__main__':
    unittest.main()
