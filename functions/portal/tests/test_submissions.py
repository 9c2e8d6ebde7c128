import base64
import unittest
from datetime import datetime, timezone

from portal.errors import ValidationError
from portal.realtime import InMemoryRealtimeDatabase
from portal.storage import InMemoryStorageClient
from portal.submissions import (
    FileUpload,
    record_visit,
    safe_filename,
    save_feedback,
    save_team_application,
)
from shared.api import CommunityFeedback, TeamApplication
from shared.constants import MAX_ATTACHMENT_BYTES

NOW = datetime(2024, 5, 10, 15, 0, tzinfo=timezone.utc)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def _application(**overrides):
    values = dict(
        name="Grace Hopper",
        phone="555-0100",
        email="grace@example.com",
        address="Arlington, VA",
        skills=["COBOL", " ", "compilers "],
    )
    values.update(overrides)
    return TeamApplication(**values)


class TeamApplicationTests(unittest.TestCase):
    def setUp(self):
        self.rtdb = InMemoryRealtimeDatabase()
        self.storage = InMemoryStorageClient()

    def test_saves_application_with_files(self):
        key = save_team_application(
            self.rtdb,
            self.storage,
            _application(),
            photo=FileUpload("me.png", _b64(b"png"), "image/png"),
            resume=FileUpload("../../My CV.pdf", _b64(b"pdf"), "application/pdf"),
            now=NOW,
        )
        record = self.rtdb.get(f"team_applications/{key}")
        self.assertEqual(record["skills"], ["COBOL", "compilers"])
        self.assertEqual(record["submittedAt"], NOW.isoformat())
        self.assertTrue(record["photoPath"].endswith("/photo-me.png"))
        self.assertTrue(record["resumePath"].endswith("/resume-My_CV.pdf"))
        self.assertNotIn("photoURL", record)
        self.assertEqual(
            self.storage.stored_objects[record["photoPath"]], (b"png", "image/png")
        )

    def test_requires_fields(self):
        for overrides in (
            {"name": ""},
            {"phone": " "},
            {"email": "not-an-email"},
            {"address": ""},
            {"skills": []},
            {"skills": ["", "  "]},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    save_team_application(
                        self.rtdb, self.storage, _application(**overrides)
                    )
        self.assertIsNone(self.rtdb.get("team_applications"))

    def test_rejects_bad_uploads(self):
        with self.assertRaises(ValidationError):
            save_team_application(
                self.rtdb,
                self.storage,
                _application(),
                photo=FileUpload("me.png", "***not base64***"),
            )
        too_big = FileUpload("big.iso", _b64(b"x" * (MAX_ATTACHMENT_BYTES + 1)))
        with self.assertRaises(ValidationError):
            too_big.decode()
        self.assertEqual(self.storage.stored_objects, {})

    def test_bad_resume_leaves_no_uploaded_photo(self):
        with self.assertRaises(ValidationError):
            save_team_application(
                self.rtdb,
                self.storage,
                _application(),
                photo=FileUpload("me.png", _b64(b"png"), "image/png"),
                resume=FileUpload("cv.pdf", "***not base64***", "application/pdf"),
            )
        self.assertEqual(self.storage.stored_objects, {})
        self.assertIsNone(self.rtdb.get("team_applications"))


class FeedbackTests(unittest.TestCase):
    def setUp(self):
        self.rtdb = InMemoryRealtimeDatabase()
        self.storage = InMemoryStorageClient()

    def test_saves_feedback(self):
        key = save_feedback(
            self.rtdb,
            self.storage,
            CommunityFeedback(email="a@example.com", message="Nice", type=""),
            now=NOW,
        )
        record = self.rtdb.get(f"community_feedback/{key}")
        self.assertEqual(record["type"], "general")
        self.assertEqual(record["timestamp"], int(NOW.timestamp() * 1000))
        self.assertNotIn("name", record)

    def test_saves_attachment(self):
        key = save_feedback(
            self.rtdb,
            self.storage,
            CommunityFeedback(email="a@example.com", message="Crash", type="bug"),
            attachment=FileUpload("log.txt", _b64(b"trace"), "text/plain"),
        )
        record = self.rtdb.get(f"community_feedback/{key}")
        self.assertEqual(record["fileName"], "log.txt")
        self.assertTrue(record["filePath"].startswith("community_feedback/"))
        self.assertEqual(self.storage.get_bytes(record["filePath"]), b"trace")

    def test_validation(self):
        for feedback in (
            CommunityFeedback(email="", message="hi"),
            CommunityFeedback(email="a@example.com", message="   "),
            CommunityFeedback(email="a@example.com", message="hi", type="spam"),
        ):
            with self.subTest(feedback=feedback):
                with self.assertRaises(ValidationError):
                    save_feedback(self.rtdb, self.storage, feedback)


class MiscTests(unittest.TestCase):
    def test_record_visit(self):
        rtdb = InMemoryRealtimeDatabase()
        self.assertEqual(record_visit(rtdb), 1)
        self.assertEqual(record_visit(rtdb), 2)
        self.assertEqual(rtdb.get("meta/visitorCounter"), {"count": 2})

    def test_safe_filename(self):
        self.assertEqual(safe_filename("résumé final.pdf"), "r_sum_final.pdf")
        self.assertEqual(safe_filename("../.."), "file")
        self.assertEqual(safe_filename("a/b/c.png"), "c.png")


if __name__ == "__main__":
    unittest.main()
