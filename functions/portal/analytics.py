"""
Event tracking: page views, download attempts and successes, engagement.

Each tracked event is written twice: as a Firestore document for the admin
dashboard, and as an Analytics event (GA4 Measurement Protocol when
configured). Tracking is best-effort and never raises into the caller.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol

import requests

from portal.documents import DocumentStore
from shared.api import DownloadAttemptData, DownloadSuccessData, IpInfo, UserProfile
from shared.constants import (
    DOWNLOAD_ATTEMPTS_COLLECTION,
    DOWNLOAD_SUCCESSES_COLLECTION,
    PAGE_VIEWS_COLLECTION,
    UNKNOWN,
    USER_ENGAGEMENT_COLLECTION,
)
from shared.json_utils import convert_keys

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5  # seconds
MEASUREMENT_PROTOCOL_URL = "https://www.google-analytics.com/mp/collect"


class EventSink(Protocol):
    def log_event(
        self, name: str, params: Mapping[str, Any], user_id: str | None = None
    ) -> None:
        ...

    def set_user(self, uid: str, properties: Mapping[str, Any]) -> None:
        ...


@dataclass
class InMemoryEventSink:
    """Keeps events in a list; used when no GA4 stream is configured."""

    events: list = field(default_factory=list)
    user_properties: dict = field(default_factory=dict)

    def log_event(
        self, name: str, params: Mapping[str, Any], user_id: str | None = None
    ) -> None:
        self.events.append((name, dict(params), user_id))
        logger.debug("Analytics event %s for %s: %s", name, user_id, params)

    def set_user(self, uid: str, properties: Mapping[str, Any]) -> None:
        self.user_properties[uid] = dict(properties)

    def reset(self) -> None:
        self.events.clear()
        self.user_properties.clear()


class DeferredEventSink:
    """
    Queues sink calls during a request; `flush` replays them against the real
    sink once the response has gone out. Failures are logged per call.
    """

    def __init__(self, sink: EventSink):
        self.sink = sink
        self.pending: list[tuple[str, tuple]] = []

    def log_event(
        self, name: str, params: Mapping[str, Any], user_id: str | None = None
    ) -> None:
        self.pending.append(("log_event", (name, dict(params), user_id)))

    def set_user(self, uid: str, properties: Mapping[str, Any]) -> None:
        self.pending.append(("set_user", (uid, dict(properties))))

    def flush(self) -> None:
        pending, self.pending = self.pending, []
        for method, args in pending:
            try:
                getattr(self.sink, method)(*args)
            except Exception as e:
                logger.error("Error sending analytics %s %s: %s", method, args[0], e)


def _ga_value(value: Any) -> Any:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class MeasurementProtocolSink:
    """Sends events to a GA4 data stream through the Measurement Protocol."""

    def __init__(
        self,
        measurement_id: str,
        api_secret: str,
        session: requests.Session | None = None,
    ):
        self.measurement_id = measurement_id
        self.api_secret = api_secret
        self.session = session or requests.Session()
        self._user_properties: dict[str, dict] = {}

    def log_event(
        self, name: str, params: Mapping[str, Any], user_id: str | None = None
    ) -> None:
        body: dict[str, Any] = {
            "client_id": user_id or "server",
            "events": [
                {
                    "name": name,
                    "params": {
                        k: _ga_value(v) for k, v in params.items() if v is not None
                    },
                }
            ],
        }
        if user_id:
            body["user_id"] = user_id
            properties = self._user_properties.get(user_id)
            if properties:
                body["user_properties"] = {
                    k: {"value": _ga_value(v)} for k, v in properties.items()
                }
        response = self.session.post(
            MEASUREMENT_PROTOCOL_URL,
            params={
                "measurement_id": self.measurement_id,
                "api_secret": self.api_secret,
            },
            json=body,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()

    def set_user(self, uid: str, properties: Mapping[str, Any]) -> None:
        self._user_properties[uid] = dict(properties)


@dataclass
class ClientContext:
    """Browser facts attached to every tracked document."""

    user_agent: str = UNKNOWN
    screen_resolution: str = UNKNOWN
    language: str = UNKNOWN
    timezone: str = UNKNOWN
    referrer: str = ""
    ip_info: IpInfo = field(default_factory=IpInfo)
    device_info: Optional[dict] = None
    network_info: Optional[dict] = None
    session_duration: Optional[int] = None

    def base_fields(self) -> dict:
        return {
            "userAgent": self.user_agent,
            "screenResolution": self.screen_resolution,
            "language": self.language,
            "timezone": self.timezone,
        }


def ip_info_for(ip: str | None, now: datetime | None = None) -> IpInfo:
    now = now or datetime.now(timezone.utc)
    if not ip:
        return IpInfo(timestamp=now.isoformat(), source="fallback")
    try:
        version = ipaddress.ip_address(ip).version
    except ValueError:
        return IpInfo(ip=ip, timestamp=now.isoformat(), source="request")
    return IpInfo(
        ip=ip,
        ip_version=f"IPv{version}",
        timestamp=now.isoformat(),
        source="request",
    )


def client_ip(headers: Mapping[str, str], peer: str | None) -> str | None:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or peer
    return peer


def _record(
    db: DocumentStore,
    sink: EventSink,
    collection: str,
    doc: dict,
    event_name: str,
    params: dict,
    uid: str | None,
) -> Optional[str]:
    try:
        sink.log_event(event_name, params, user_id=uid)
    except Exception as e:
        logger.error("Error sending %s analytics event: %s", event_name, e)
    try:
        doc_id = db.add(collection, doc)
    except Exception as e:
        logger.error("Error tracking %s: %s", event_name, e)
        return None
    logger.info("Tracked %s (%s)", event_name, doc_id)
    return doc_id


def track_page_view(
    db: DocumentStore,
    sink: EventSink,
    page_name: str,
    context: ClientContext,
    *,
    page_title: str = "",
    page_url: str = "",
    page_data: Optional[Mapping[str, Any]] = None,
    uid: str | None = None,
    user_email: str | None = None,
    now: datetime | None = None,
) -> Optional[str]:
    page_data = {
        k: v for k, v in (page_data or {}).items() if k not in ("uid", "userEmail")
    }
    doc = {
        **page_data,
        "pageName": page_name,
        "pageTitle": page_title,
        "pageUrl": page_url,
        "timestamp": now or datetime.now(timezone.utc),
        **context.base_fields(),
        "referrer": page_data.get("referrer") or context.referrer,
        "ipInfo": convert_keys(asdict(context.ip_info), "snake_to_camel"),
    }
    if uid:
        doc["uid"] = uid
    if user_email:
        doc["userEmail"] = user_email
    params = {
        **page_data,
        "page_name": page_name,
        "page_title": page_title,
        "page_location": page_url,
    }
    return _record(db, sink, PAGE_VIEWS_COLLECTION, doc, "page_view", params, uid)


def download_page_data(
    user, profile: Optional[UserProfile], query: Mapping[str, str], referrer: str
) -> dict:
    """Page-view fields recorded for the download page."""
    return {
        "userAuthenticated": user is not None,
        "userRole": profile.role if profile else "anonymous",
        "emailVerified": bool(profile.email_verified) if profile else False,
        "referrer": referrer or "direct",
        "utmSource": query.get("utm_source") or "none",
        "utmMedium": query.get("utm_medium") or "none",
        "utmCampaign": query.get("utm_campaign") or "none",
    }


# Page-view fields the server sets; the browser cannot supply these.
RESERVED_PAGE_FIELDS = frozenset(
    {
        "uid",
        "userEmail",
        "timestamp",
        "pageName",
        "pageTitle",
        "pageUrl",
        "ipInfo",
        "userAgent",
        "screenResolution",
        "language",
        "timezone",
        "referrer",
        "userAuthenticated",
        "userRole",
        "emailVerified",
        "utmSource",
        "utmMedium",
        "utmCampaign",
    }
)


def client_page_data(data: Optional[Mapping[str, Any]]) -> dict:
    """Browser-supplied page-view extras minus the server-owned fields."""
    return {k: v for k, v in (data or {}).items() if k not in RESERVED_PAGE_FIELDS}


def _device_fields(context: ClientContext) -> dict:
    return {
        "ipInfo": convert_keys(asdict(context.ip_info), "snake_to_camel"),
        "deviceInfo": context.device_info or {"platform": UNKNOWN, "vendor": UNKNOWN},
        "networkInfo": context.network_info
        or {
            "connectionType": UNKNOWN,
            "downlink": UNKNOWN,
            "rtt": UNKNOWN,
            "saveData": False,
        },
    }


def track_download_attempt(
    db: DocumentStore,
    sink: EventSink,
    uid: str,
    data: DownloadAttemptData,
    context: ClientContext,
    now: datetime | None = None,
) -> Optional[str]:
    doc = {
        "uid": uid,
        **convert_keys(asdict(data), "snake_to_camel"),
        "timestamp": now or datetime.now(timezone.utc),
        **context.base_fields(),
        **_device_fields(context),
    }
    params = {
        "mirror": data.mirror,
        "user_role": data.user_role,
        "email_verified": data.email_verified,
        "download_count": data.download_count,
        "subscription_status": data.subscription_status,
    }
    return _record(
        db, sink, DOWNLOAD_ATTEMPTS_COLLECTION, doc, "download_attempt", params, uid
    )


def track_download_success(
    db: DocumentStore,
    sink: EventSink,
    uid: str,
    data: DownloadSuccessData,
    context: ClientContext,
    now: datetime | None = None,
) -> Optional[str]:
    now = now or datetime.now(timezone.utc)
    doc = {
        "uid": uid,
        **convert_keys(asdict(data), "snake_to_camel"),
        "timestamp": now,
        **context.base_fields(),
        **_device_fields(context),
        "downloadMetadata": {
            "completedAt": now.isoformat(),
            "sessionDuration": context.session_duration,
        },
    }
    params = {
        "mirror": data.mirror,
        "user_role": data.user_role,
        "download_size": data.download_size,
        "download_time": data.download_time,
        "subscription_status": data.subscription_status,
    }
    return _record(
        db, sink, DOWNLOAD_SUCCESSES_COLLECTION, doc, "download_success", params, uid
    )


def track_user_engagement(
    db: DocumentStore,
    sink: EventSink,
    uid: str,
    action: str,
    context: ClientContext,
    action_data: Optional[Mapping[str, Any]] = None,
    user_email: str | None = None,
    now: datetime | None = None,
) -> Optional[str]:
    doc = {
        "uid": uid,
        "action": action,
        "actionData": dict(action_data) if action_data is not None else None,
        "timestamp": now or datetime.now(timezone.utc),
        **context.base_fields(),
    }
    if user_email:
        doc["userEmail"] = user_email
    params = {**(action_data or {}), "action": action}
    return _record(
        db, sink, USER_ENGAGEMENT_COLLECTION, doc, "user_engagement", params, uid
    )


def set_analytics_user(
    sink: EventSink, uid: str, properties: Mapping[str, Any]
) -> None:
    try:
        sink.set_user(uid, properties)
        logger.debug("Analytics user set: %s", uid)
    except Exception as e:
        logger.error("Error setting analytics user: %s", e)
