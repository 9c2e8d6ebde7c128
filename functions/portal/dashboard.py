"""
Admin dashboard rollups over the event collections.

Everything here is a handful of queries followed by in-memory counting;
nothing is pre-aggregated.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from portal.documents import Document, DocumentStore
from portal.downloads import start_of_day
from portal.realtime import RealtimeDatabase
from portal.storage import StorageClient
from shared.api import DownloadRecord, UserDetail, UserLocation
from shared.constants import (
    COMMUNITY_FEEDBACK_PATH,
    DOWNLOAD_ATTEMPTS_COLLECTION,
    DOWNLOAD_SUCCESSES_COLLECTION,
    DOWNLOADS_COLLECTION,
    PAGE_VIEWS_COLLECTION,
    RECENT_ACTIVITY_LIMIT,
    TEAM_APPLICATIONS_PATH,
    TOP_ENTRIES_LIMIT,
    UNKNOWN,
    USER_DETAILS_QUERY_LIMIT,
    USER_ENGAGEMENT_COLLECTION,
    VISITOR_COUNTER_PATH,
)
from shared.types import ActivityType, TimeRange

logger = logging.getLogger(__name__)

_RANGE_DAYS = {TimeRange.WEEK: 7, TimeRange.MONTH: 30}


@dataclass
class ActivityEntry:
    type: str
    timestamp: datetime
    details: dict


@dataclass
class AnalyticsSummary:
    time_range: str
    total_downloads: int
    total_page_views: int
    unique_users: int
    downloads_today: int
    page_views_today: int
    top_mirrors: list[dict] = field(default_factory=list)
    user_engagement: list[dict] = field(default_factory=list)
    recent_activity: list[ActivityEntry] = field(default_factory=list)


def range_start(time_range: TimeRange, now: datetime, tz_name: str = "UTC") -> datetime:
    if time_range == TimeRange.TODAY:
        return start_of_day(now, tz_name)
    return now - timedelta(days=_RANGE_DAYS[time_range])


def _fetch_since(db: DocumentStore, collection: str, since: datetime) -> list[dict]:
    docs = db.query(
        collection,
        where=[("timestamp", ">=", since)],
        order_by="timestamp",
        descending=True,
    )
    return [doc.data for doc in docs]


def _top_counts(values: Iterable[str], key: str) -> list[dict]:
    counts = Counter(values)
    return [
        {key: value, "count": count}
        for value, count in counts.most_common(TOP_ENTRIES_LIMIT)
    ]


def compute_analytics(
    db: DocumentStore,
    time_range: TimeRange = TimeRange.TODAY,
    now: datetime | None = None,
    tz_name: str = "UTC",
) -> AnalyticsSummary:
    now = now or datetime.now(timezone.utc)
    since = range_start(time_range, now, tz_name)
    today = start_of_day(now, tz_name)

    downloads = _fetch_since(db, DOWNLOADS_COLLECTION, since)
    page_views = _fetch_since(db, PAGE_VIEWS_COLLECTION, since)
    attempts = _fetch_since(db, DOWNLOAD_ATTEMPTS_COLLECTION, since)
    engagement = _fetch_since(db, USER_ENGAGEMENT_COLLECTION, since)

    unique_users = {
        record.get("uid")
        for record in (*downloads, *page_views, *attempts, *engagement)
        if record.get("uid")
    }

    activity = [
        *(ActivityEntry(ActivityType.DOWNLOAD, d["timestamp"], d) for d in downloads),
        *(ActivityEntry(ActivityType.PAGE_VIEW, p["timestamp"], p) for p in page_views),
        *(
            ActivityEntry(ActivityType.DOWNLOAD_ATTEMPT, a["timestamp"], a)
            for a in attempts
        ),
        *(ActivityEntry(ActivityType.ENGAGEMENT, e["timestamp"], e) for e in engagement),
    ]
    activity.sort(key=lambda entry: entry.timestamp, reverse=True)

    return AnalyticsSummary(
        time_range=time_range.value,
        total_downloads=len(downloads),
        total_page_views=len(page_views),
        unique_users=len(unique_users),
        downloads_today=sum(1 for d in downloads if d["timestamp"] >= today),
        page_views_today=sum(1 for p in page_views if p["timestamp"] >= today),
        top_mirrors=_top_counts(
            (a.get("mirror") or UNKNOWN for a in attempts), "mirror"
        ),
        user_engagement=_top_counts(
            (e.get("action") or UNKNOWN for e in engagement), "action"
        ),
        recent_activity=activity[:RECENT_ACTIVITY_LIMIT],
    )


def _as_datetime(value: Any) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


def _new_user_detail(data: dict, download_count: int, with_dates: bool) -> UserDetail:
    stamp = _as_datetime(data.get("timestamp"))
    return UserDetail(
        uid=data["uid"],
        user_email=data["userEmail"],
        user_role=data.get("userRole") or "free",
        email_verified=bool(data.get("emailVerified")),
        download_count=download_count,
        subscription_status=data.get("subscriptionStatus") or "free",
        trial_expiry=_as_datetime(data.get("trialExpiry")) if with_dates else None,
        last_download_date=stamp if with_dates else None,
        created_at=stamp or datetime.now(timezone.utc),
        ip_info=data.get("ipInfo")
        or {"ip": UNKNOWN, "ipVersion": UNKNOWN, "timestamp": "", "source": ""},
        device_info=data.get("deviceInfo") or {"platform": UNKNOWN, "vendor": UNKNOWN},
        network_info=data.get("networkInfo")
        or {
            "connectionType": UNKNOWN,
            "downlink": UNKNOWN,
            "rtt": UNKNOWN,
            "saveData": False,
        },
        location=UserLocation(
            timezone=data.get("timezone") or UNKNOWN,
            language=data.get("language") or UNKNOWN,
            screen_resolution=data.get("screenResolution") or UNKNOWN,
        ),
    )


def _refresh_activity(existing: UserDetail, data: dict) -> None:
    stamp = _as_datetime(data.get("timestamp"))
    if stamp and (
        existing.last_download_date is None or stamp > existing.last_download_date
    ):
        existing.last_download_date = stamp
    ip_info = data.get("ipInfo") or {}
    if ip_info.get("timestamp") and (
        not existing.ip_info.get("timestamp")
        or ip_info["timestamp"] > existing.ip_info["timestamp"]
    ):
        existing.ip_info = ip_info


def _has_identity(data: dict) -> bool:
    uid, email = data.get("uid"), data.get("userEmail")
    return isinstance(uid, str) and isinstance(email, str) and bool(uid and email)


def build_user_details(
    attempts: Iterable[Document],
    successes: Iterable[Document],
    page_views: Iterable[Document],
) -> tuple[list[UserDetail], list[DownloadRecord]]:
    """
    Deduplicates event records into one row per uid.

    Records without both uid and userEmail as strings are skipped. Attempts and
    successes create or update users; page views only create them.
    """
    successes = list(successes)
    users: dict[str, UserDetail] = {}

    for doc in attempts:
        data = doc.data
        if not _has_identity(data):
            logger.debug("Skipping attempt %s without uid or email", doc.id)
            continue
        existing = users.get(data["uid"])
        if existing is None:
            users[data["uid"]] = _new_user_detail(
                data, data.get("downloadCount") or 0, with_dates=True
            )
            continue
        existing.download_count = max(
            existing.download_count, data.get("downloadCount") or 0
        )
        _refresh_activity(existing, data)

    for doc in successes:
        data = doc.data
        if not _has_identity(data):
            continue
        existing = users.get(data["uid"])
        if existing is None:
            users[data["uid"]] = _new_user_detail(data, 1, with_dates=True)
            continue
        existing.download_count += 1
        _refresh_activity(existing, data)

    for doc in page_views:
        data = doc.data
        if _has_identity(data) and data["uid"] not in users:
            users[data["uid"]] = _new_user_detail(data, 0, with_dates=False)

    records = [
        DownloadRecord(
            id=doc.id,
            uid=doc.data.get("uid"),
            timestamp=_as_datetime(doc.data.get("timestamp")),
            mirror=doc.data.get("mirror"),
            download_size=doc.data.get("downloadSize"),
            download_time=doc.data.get("downloadTime"),
            download_hash=doc.data.get("downloadHash"),
            ip_info=doc.data.get("ipInfo"),
            device_info=doc.data.get("deviceInfo"),
            network_info=doc.data.get("networkInfo"),
            user_agent=doc.data.get("userAgent"),
        )
        for doc in successes
    ]
    return list(users.values()), records


def fetch_recent(
    db: DocumentStore, collection: str, limit: int = USER_DETAILS_QUERY_LIMIT
) -> list[Document]:
    """
    Newest documents first. Falls back to an unordered query when the
    ordered one fails (e.g. a missing index), and to nothing after that.
    """
    try:
        return db.query(collection, order_by="timestamp", descending=True, limit=limit)
    except Exception as e:
        logger.warning(
            "Ordered query on %s failed (%s), trying without ordering", collection, e
        )
    try:
        return db.query(collection, limit=limit)
    except Exception as e:
        logger.error("Query on %s failed: %s", collection, e)
        return []


def fetch_user_details(
    db: DocumentStore, limit: int = USER_DETAILS_QUERY_LIMIT
) -> tuple[list[UserDetail], list[DownloadRecord]]:
    attempts = fetch_recent(db, DOWNLOAD_ATTEMPTS_COLLECTION, limit)
    successes = fetch_recent(db, DOWNLOAD_SUCCESSES_COLLECTION, limit)
    page_views = fetch_recent(db, PAGE_VIEWS_COLLECTION, limit)
    logger.info(
        "Fetched %d attempts, %d successes, %d page views",
        len(attempts),
        len(successes),
        len(page_views),
    )
    return build_user_details(attempts, successes, page_views)


def filter_users(
    users: Iterable[UserDetail],
    search: str = "",
    role: str = "all",
    status: str = "all",
) -> list[UserDetail]:
    term = search.lower()
    return [
        user
        for user in users
        if (term in user.user_email.lower() or term in user.uid.lower())
        and (role == "all" or user.user_role == role)
        and (status == "all" or user.subscription_status == status)
    ]


def _submitted_millis(value: Any) -> float:
    if not value:
        return 0
    try:
        return datetime.fromisoformat(str(value)).timestamp() * 1000
    except ValueError:
        return 0


def _sign(storage: StorageClient, item: dict, path_key: str, url_key: str) -> None:
    path = item.get(path_key)
    if not path:
        return
    try:
        item[url_key] = storage.signed_url(path)
    except Exception as e:
        logger.error("Error signing %s: %s", path, e)


def list_team_applications(
    rtdb: RealtimeDatabase, storage: Optional[StorageClient] = None
) -> list[dict]:
    """Applications newest first, with signed links for uploaded files."""
    data = rtdb.get(TEAM_APPLICATIONS_PATH) or {}
    applications = [{"id": key, **value} for key, value in data.items()]
    applications.sort(key=lambda a: _submitted_millis(a.get("submittedAt")), reverse=True)
    if storage is not None:
        for app in applications:
            _sign(storage, app, "photoPath", "photoURL")
            _sign(storage, app, "resumePath", "resumeURL")
    return applications


def list_feedback(
    rtdb: RealtimeDatabase, storage: Optional[StorageClient] = None
) -> list[dict]:
    data = rtdb.get(COMMUNITY_FEEDBACK_PATH) or {}
    feedback = [{"id": key, **value} for key, value in data.items()]
    feedback.sort(key=lambda f: f.get("timestamp") or 0, reverse=True)
    if storage is not None:
        for item in feedback:
            _sign(storage, item, "filePath", "fileURL")
    return feedback


def get_visitor_count(rtdb: RealtimeDatabase) -> int:
    counter = rtdb.get(VISITOR_COUNTER_PATH)
    if not isinstance(counter, dict):
        return 0
    return counter.get("count") or 0


def increment_visitor_count(rtdb: RealtimeDatabase) -> int:
    return rtdb.increment(VISITOR_COUNTER_PATH)
