import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from portal.analytics import ClientContext, InMemoryEventSink
from portal.auth import AuthenticatedUser, InMemoryTokenVerifier
from portal.config import Settings
from portal.documents import InMemoryDocumentStore
from portal.downloads import (
    DOWNLOAD_FAILED,
    EMAIL_NOT_VERIFIED,
    LIMIT_CHECK_FAILED,
    USER_NOT_FOUND,
    check_download_limit,
    open_session,
    resolve_download,
    start_download,
    start_of_day,
    refresh_verification,
    validate_details,
)
from portal.errors import DownloadNotAllowedError, PortalError, ValidationError
from portal.profiles import create_or_update_user
from portal.realtime import InMemoryRealtimeDatabase
from shared.api import UserDetails
from shared.types import DownloadStep, OpenMode

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _details(**overrides):
    values = dict(
        full_name="Ada Lovelace",
        email="ada@example.com",
        country="GB",
        use_case="development",
        subscription_type="free",
        terms_accepted=True,
    )
    values.update(overrides)
    return UserDetails(**values)


class DownloadLimitTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.settings = Settings(use_in_memory_backends=True)
        self.user = AuthenticatedUser(
            uid="u1", email="ada@example.com", email_verified=True
        )

    def _add_download(self, uid, when):
        self.db.add("downloads", {"uid": uid, "timestamp": when})

    def test_missing_profile(self):
        status = check_download_limit(self.db, "nobody", self.settings, NOW)
        self.assertFalse(status.can_download)
        self.assertEqual(status.remaining_downloads, 0)
        self.assertEqual(status.error, USER_NOT_FOUND)

    def test_unverified_email(self):
        create_or_update_user(
            self.db, AuthenticatedUser(uid="u2", email="b@example.com"), NOW
        )
        status = check_download_limit(self.db, "u2", self.settings, NOW)
        self.assertFalse(status.can_download)
        self.assertEqual(status.error, EMAIL_NOT_VERIFIED)

    def test_counts_only_todays_downloads(self):
        create_or_update_user(self.db, self.user, NOW)
        self._add_download("u1", NOW - timedelta(hours=2))
        self._add_download("u1", NOW - timedelta(hours=1))
        self._add_download("u1", NOW - timedelta(days=1))
        self._add_download("someone-else", NOW)

        status = check_download_limit(self.db, "u1", self.settings, NOW)
        self.assertTrue(status.can_download)
        self.assertEqual(status.remaining_downloads, 1)
        self.assertIsNone(status.error)

    def test_limit_reached(self):
        create_or_update_user(self.db, self.user, NOW)
        for _ in range(4):
            self._add_download("u1", NOW)
        status = check_download_limit(self.db, "u1", self.settings, NOW)
        self.assertFalse(status.can_download)
        self.assertEqual(status.remaining_downloads, 0)

    def test_premium_limit(self):
        create_or_update_user(self.db, self.user, NOW)
        self.db.update("users", "u1", {"role": "premium"})
        self._add_download("u1", NOW)
        status = check_download_limit(self.db, "u1", self.settings, NOW)
        self.assertEqual(status.remaining_downloads, 9)

    def test_backend_failure_blocks_download(self):
        create_or_update_user(self.db, self.user, NOW)
        with patch.object(self.db, "query", side_effect=RuntimeError("offline")):
            status = check_download_limit(self.db, "u1", self.settings, NOW)
        self.assertFalse(status.can_download)
        self.assertEqual(status.error, LIMIT_CHECK_FAILED)

    def test_start_of_day_uses_quota_timezone(self):
        now = datetime(2024, 5, 1, 16, 30, tzinfo=timezone.utc)
        self.assertEqual(
            start_of_day(now, "Asia/Tokyo"),
            datetime(2024, 5, 1, 15, 0, tzinfo=timezone.utc),
        )
        self.assertEqual(
            start_of_day(now, "UTC"), datetime(2024, 5, 1, tzinfo=timezone.utc)
        )


class DownloadFlowTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.rtdb = InMemoryRealtimeDatabase()
        self.sink = InMemoryEventSink()
        self.settings = Settings(use_in_memory_backends=True)
        self.user = AuthenticatedUser(
            uid="u1", email="ada@example.com", email_verified=True
        )
        self.context = ClientContext(user_agent="pytest", language="en-GB")
        create_or_update_user(self.db, self.user, NOW)

    def test_open_session(self):
        self.assertEqual(open_session(None).step, DownloadStep.LOGIN)
        session = open_session(
            AuthenticatedUser(uid="u1", email="a@example.com", display_name="Ada")
        )
        self.assertEqual(session.step, DownloadStep.DETAILS)
        self.assertEqual(session.details.full_name, "Ada")
        self.assertEqual(session.details.email, "a@example.com")

    def test_validate_details(self):
        validate_details(_details())
        with self.assertRaisesRegex(ValidationError, "terms and conditions"):
            validate_details(_details(terms_accepted=False, full_name=""))
        with self.assertRaises(ValidationError):
            validate_details(_details(full_name="  "))
        with self.assertRaises(ValidationError):
            validate_details(_details(country="Atlantis"))
        with self.assertRaises(ValidationError):
            validate_details(_details(use_case=""))
        with self.assertRaises(ValidationError):
            validate_details(_details(subscription_type="platinum"))

    def test_resolve_download(self):
        default = resolve_download(None)
        self.assertEqual(default.mirror, "default_mirror")
        self.assertEqual(default.open_mode, OpenMode.NEW_TAB)
        self.assertIsNone(default.filename)

        github = resolve_download("https://github.com/henu-os/releases/latest")
        self.assertEqual(github.mirror, "custom_mirror")
        self.assertEqual(github.open_mode, OpenMode.NEW_TAB)

        direct = resolve_download(
            "https://eu.releases.henu-os.org/latest/henu-os-2.0.iso"
        )
        self.assertEqual(direct.open_mode, OpenMode.DIRECT)
        self.assertEqual(direct.filename, "henu-os-2.0.iso")

        with self.assertRaises(ValidationError):
            resolve_download("https://attacker.example/henu-os-2.0.iso")

    def test_start_download_records_everything(self):
        ticket = start_download(
            self.db,
            self.rtdb,
            self.sink,
            self.settings,
            self.user,
            _details(subscription_type="premium"),
            self.context,
            now=NOW,
        )
        millis = int(NOW.timestamp() * 1000)
        self.assertEqual(ticket.download_hash, f"henu-os-2.0-{millis}-u1")
        self.assertEqual(ticket.remaining_downloads, 2)
        self.assertEqual(ticket.step, DownloadStep.DOWNLOAD_SUCCESS)

        attempt = next(iter(self.db.collections["download_attempts"].values()))
        self.assertEqual(attempt["mirror"], "default_mirror")
        self.assertEqual(attempt["userEmail"], "ada@example.com")
        self.assertEqual(attempt["downloadCount"], 0)
        self.assertEqual(attempt["trialExpiry"], NOW + timedelta(days=30))
        self.assertEqual(attempt["userAgent"], "pytest")

        success = next(iter(self.db.collections["download_successes"].values()))
        self.assertEqual(success["downloadSize"], "2.8 GB")
        self.assertEqual(success["downloadHash"], ticket.download_hash)
        self.assertEqual(
            success["downloadMetadata"]["completedAt"], NOW.isoformat()
        )

        self.assertEqual(self.db.get("users", "u1")["downloadCount"], 1)
        self.assertEqual(self.db.get("users", "u1")["lastDownloadDate"], NOW)
        form = self.rtdb.get(f"Downloads/{millis}")
        self.assertEqual(form["subscriptionType"], "premium")
        self.assertTrue(form["termsAccepted"])

        names = [event[0] for event in self.sink.events]
        self.assertEqual(
            names, ["download_attempt", "download_success", "user_engagement"]
        )

    def test_start_download_over_quota(self):
        for _ in range(3):
            self.db.add("downloads", {"uid": "u1", "timestamp": NOW})
        with self.assertRaises(DownloadNotAllowedError):
            start_download(
                self.db,
                self.rtdb,
                self.sink,
                self.settings,
                self.user,
                _details(),
                self.context,
                now=NOW,
            )
        self.assertEqual(self.sink.events, [])

    def test_start_download_failure_is_reported(self):
        rtdb = MagicMock()
        rtdb.set.side_effect = RuntimeError("rtdb down")
        with self.assertRaises(PortalError) as ctx:
            start_download(
                self.db,
                rtdb,
                self.sink,
                self.settings,
                self.user,
                _details(),
                self.context,
                now=NOW,
            )
        self.assertEqual(ctx.exception.message, DOWNLOAD_FAILED)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_tracking_failures_do_not_block_download(self):
        self.sink.log_event = MagicMock(side_effect=RuntimeError("ga down"))
        ticket = start_download(
            self.db,
            self.rtdb,
            self.sink,
            self.settings,
            self.user,
            _details(),
            self.context,
            now=NOW,
        )
        self.assertEqual(ticket.remaining_downloads, 2)
        self.assertEqual(len(self.db.collections["download_attempts"]), 1)

    def test_refresh_verification(self):
        verifier = InMemoryTokenVerifier()
        unverified = AuthenticatedUser(uid="u2", email="b@example.com")
        verifier.register("t", unverified)
        create_or_update_user(self.db, unverified, NOW)

        status = refresh_verification(
            self.db, self.sink, verifier, self.settings, unverified, self.context, NOW
        )
        self.assertEqual(status.error, EMAIL_NOT_VERIFIED)

        verifier.set_email_verified("u2")
        status = refresh_verification(
            self.db, self.sink, verifier, self.settings, unverified, self.context, NOW
        )
        self.assertTrue(status.can_download)
        actions = [
            doc["action"] for doc in self.db.collections["user_engagement"].values()
        ]
        self.assertEqual(
            actions, ["status_refresh_requested", "email_verification_success"]
        )


if __name__ == "__main__":
    unittest.main()
