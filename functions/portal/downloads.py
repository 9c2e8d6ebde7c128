"""
Download gating: daily quota, the download modal steps, and the download
hand-off itself.

The quota is a count-and-compare over the `downloads` collection. It is not
atomic: two concurrent requests can both pass the check.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from portal.analytics import (
    ClientContext,
    EventSink,
    track_download_attempt,
    track_download_success,
    track_user_engagement,
)
from portal.auth import AuthenticatedUser, TokenVerifier
from portal.config import Settings
from portal.documents import DocumentStore
from portal.errors import DownloadNotAllowedError, PortalError, ValidationError
from portal.profiles import create_or_update_user, get_user_data
from portal.realtime import RealtimeDatabase
from shared.api import (
    DownloadAttemptData,
    DownloadStatus,
    DownloadSuccessData,
    UserDetails,
)
from shared.constants import (
    COUNTRY_OPTIONS,
    DEFAULT_DOWNLOAD_URL,
    DOWNLOAD_DETAILS_PATH,
    DOWNLOAD_HASH_PREFIX,
    DOWNLOAD_MIRRORS,
    DOWNLOADS_COLLECTION,
    ISO_FILENAME,
    NEW_TAB_HOSTS,
    PREMIUM_TRIAL_DAYS,
    RELEASE_SIZE,
    USE_CASE_OPTIONS,
    USERS_COLLECTION,
)
from shared.json_utils import convert_keys
from shared.types import DownloadStep, OpenMode, SubscriptionType, UserRole

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User data not found"
EMAIL_NOT_VERIFIED = "Please verify your email address first"
LIMIT_CHECK_FAILED = "Failed to check download limit"
LIMIT_REACHED = "Daily download limit reached. Please try again tomorrow."
DOWNLOAD_FAILED = "Download failed. Please try again."


def start_of_day(now: datetime, tz_name: str) -> datetime:
    """Midnight of `now`'s calendar day in the given zone."""
    local = now.astimezone(ZoneInfo(tz_name))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def daily_limit(role: str, settings: Settings) -> int:
    if role == UserRole.PREMIUM:
        return settings.premium_daily_downloads
    return settings.free_daily_downloads


def count_downloads_since(db: DocumentStore, uid: str, since: datetime) -> int:
    docs = db.query(
        DOWNLOADS_COLLECTION,
        where=[("uid", "==", uid), ("timestamp", ">=", since)],
    )
    return len(docs)


def check_download_limit(
    db: DocumentStore, uid: str, settings: Settings, now: datetime | None = None
) -> DownloadStatus:
    now = now or datetime.now(timezone.utc)
    try:
        profile = get_user_data(db, uid)
        if profile is None:
            return DownloadStatus(False, 0, USER_NOT_FOUND)
        if not profile.email_verified:
            return DownloadStatus(False, 0, EMAIL_NOT_VERIFIED)

        used = count_downloads_since(
            db, uid, start_of_day(now, settings.quota_timezone)
        )
        remaining = max(0, daily_limit(profile.role, settings) - used)
        return DownloadStatus(can_download=remaining > 0, remaining_downloads=remaining)
    except Exception as e:
        logger.error("Error checking download limit for %s: %s", uid, e)
        return DownloadStatus(False, 0, LIMIT_CHECK_FAILED)


def record_download(
    db: DocumentStore,
    uid: str,
    user_agent: str,
    ip: str,
    now: datetime | None = None,
) -> str:
    """Bumps the profile counter, then logs the download. Two separate writes."""
    now = now or datetime.now(timezone.utc)
    db.update(
        USERS_COLLECTION,
        uid,
        {"lastDownloadDate": now},
        increments={"downloadCount": 1},
    )
    return db.add(
        DOWNLOADS_COLLECTION,
        {"uid": uid, "timestamp": now, "userAgent": user_agent, "ip": ip},
    )


@dataclass
class DownloadSession:
    step: DownloadStep
    details: UserDetails


def open_session(user: Optional[AuthenticatedUser]) -> DownloadSession:
    """Where the download modal starts, with the form prefilled from the account."""
    if user is None:
        return DownloadSession(step=DownloadStep.LOGIN, details=UserDetails())
    return DownloadSession(
        step=DownloadStep.DETAILS,
        details=UserDetails(email=user.email or "", full_name=user.display_name or ""),
    )


def validate_details(details: UserDetails) -> None:
    if not details.terms_accepted:
        raise ValidationError("Please accept the terms and conditions")
    if not details.full_name.strip():
        raise ValidationError("Full name is required")
    if not details.email.strip() or "@" not in details.email:
        raise ValidationError("A valid email is required")
    if details.country not in COUNTRY_OPTIONS:
        raise ValidationError("Please select your country")
    if details.use_case not in USE_CASE_OPTIONS:
        raise ValidationError("Please select your use case")
    if details.subscription_type not in {s.value for s in SubscriptionType}:
        raise ValidationError("Unknown subscription type")


def submit_details(
    db: DocumentStore,
    sink: EventSink,
    user: AuthenticatedUser,
    details: UserDetails,
    context: ClientContext,
    now: datetime | None = None,
) -> DownloadStep:
    validate_details(details)
    track_user_engagement(
        db,
        sink,
        user.uid,
        "download_form_submitted",
        context,
        action_data={
            "subscriptionType": details.subscription_type,
            "useCase": details.use_case,
            "country": details.country,
            "newsletter": details.newsletter,
        },
        user_email=user.email,
        now=now,
    )
    return DownloadStep.DOWNLOAD


@dataclass
class DownloadTarget:
    url: str
    mirror: str
    open_mode: OpenMode
    filename: Optional[str] = None


def resolve_download(url: str | None) -> DownloadTarget:
    """
    Maps a requested mirror URL to what the browser should open. Only URLs
    from the mirror list are accepted.
    """
    if url:
        known = {m["url"] for m in DOWNLOAD_MIRRORS}
        if url not in known:
            raise ValidationError("Unknown download mirror.")
        mirror = "custom_mirror"
    else:
        url = DEFAULT_DOWNLOAD_URL
        mirror = "default_mirror"

    host = (urlparse(url).hostname or "").lower()
    if any(host == h or host.endswith("." + h) for h in NEW_TAB_HOSTS):
        return DownloadTarget(url=url, mirror=mirror, open_mode=OpenMode.NEW_TAB)
    return DownloadTarget(
        url=url, mirror=mirror, open_mode=OpenMode.DIRECT, filename=ISO_FILENAME
    )


@dataclass
class DownloadTicket:
    url: str
    open_mode: OpenMode
    mirror: str
    download_hash: str
    remaining_downloads: int
    step: DownloadStep = DownloadStep.DOWNLOAD_SUCCESS
    filename: Optional[str] = None


def start_download(
    db: DocumentStore,
    rtdb: RealtimeDatabase,
    sink: EventSink,
    settings: Settings,
    user: AuthenticatedUser,
    details: UserDetails,
    context: ClientContext,
    url: str | None = None,
    now: datetime | None = None,
) -> DownloadTicket:
    """
    Runs the final step of the download modal.

    Raises:
        ValidationError: The form or mirror is invalid.
        DownloadNotAllowedError: The quota check refused the download.
        PortalError: A backend write failed.
    """
    validate_details(details)
    target = resolve_download(url)
    now = now or datetime.now(timezone.utc)

    status = check_download_limit(db, user.uid, settings, now)
    if not status.can_download:
        raise DownloadNotAllowedError(status.error or LIMIT_REACHED)

    logger.info("Starting download for %s via %s", user.uid, target.url)
    started = time.monotonic()
    millis = int(now.timestamp() * 1000)
    trial_expiry = (
        now + timedelta(days=PREMIUM_TRIAL_DAYS)
        if details.subscription_type == SubscriptionType.PREMIUM
        else None
    )
    try:
        profile = get_user_data(db, user.uid)
        track_download_attempt(
            db,
            sink,
            user.uid,
            DownloadAttemptData(
                mirror=target.mirror,
                user_role=details.subscription_type,
                email_verified=user.email_verified,
                download_count=profile.download_count if profile else 0,
                user_email=user.email,
                subscription_status=details.subscription_type,
                trial_expiry=trial_expiry,
            ),
            context,
            now=now,
        )
        record_download(db, user.uid, context.user_agent, context.ip_info.ip, now)

        download_time = int((time.monotonic() - started) * 1000)
        download_hash = f"{DOWNLOAD_HASH_PREFIX}-{millis}-{user.uid}"
        track_download_success(
            db,
            sink,
            user.uid,
            DownloadSuccessData(
                mirror=target.mirror,
                user_role=details.subscription_type,
                download_size=RELEASE_SIZE,
                download_time=download_time,
                user_email=user.email,
                subscription_status=details.subscription_type,
                trial_expiry=trial_expiry,
                download_hash=download_hash,
            ),
            context,
            now=now,
        )
        track_user_engagement(
            db,
            sink,
            user.uid,
            "download_completed",
            context,
            action_data={
                "subscriptionType": details.subscription_type,
                "downloadTime": download_time,
                "downloadSize": RELEASE_SIZE,
            },
            user_email=user.email,
            now=now,
        )
        rtdb.set(
            f"{DOWNLOAD_DETAILS_PATH}/{millis}",
            convert_keys(asdict(details), "snake_to_camel"),
        )
    except Exception as e:
        logger.error("Download error for %s: %s", user.uid, e)
        raise PortalError(DOWNLOAD_FAILED) from e

    return DownloadTicket(
        url=target.url,
        open_mode=target.open_mode,
        mirror=target.mirror,
        filename=target.filename,
        download_hash=download_hash,
        remaining_downloads=max(0, status.remaining_downloads - 1),
    )


def refresh_verification(
    db: DocumentStore,
    sink: EventSink,
    verifier: TokenVerifier,
    settings: Settings,
    user: AuthenticatedUser,
    context: ClientContext,
    now: datetime | None = None,
) -> DownloadStatus:
    """
    Reloads the account from Firebase Auth, syncs the profile and returns a
    fresh quota status. Records whether the email became verified.
    """
    before = get_user_data(db, user.uid)
    account = verifier.lookup(user.uid)
    create_or_update_user(db, account, now)

    if account.email_verified and not (before and before.email_verified):
        action = "email_verification_success"
        data = {"verificationMethod": "reload_check"}
    else:
        action = "status_refresh_requested"
        data = {"refreshMethod": "manual_refresh"}
    track_user_engagement(
        db,
        sink,
        user.uid,
        action,
        context,
        action_data=data,
        user_email=account.email,
        now=now,
    )
    return check_download_limit(db, user.uid, settings, now)
