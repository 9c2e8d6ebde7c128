"""Per-user export of the tracked events as CSV or JSON."""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from portal.documents import DocumentStore
from shared.constants import (
    DOWNLOAD_ATTEMPTS_COLLECTION,
    DOWNLOAD_SUCCESSES_COLLECTION,
    EXPORT_FILENAME_PREFIX,
    PAGE_VIEWS_COLLECTION,
    UNKNOWN,
    USER_ENGAGEMENT_COLLECTION,
)
from shared.types import ExportFormat

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.JSON: "application/json",
}


@dataclass
class ExportResult:
    content: str
    filename: str
    media_type: str


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return None


def _row_from_attempt(data: dict) -> dict:
    ip_info = data.get("ipInfo") or {}
    device_info = data.get("deviceInfo") or {}
    network_info = data.get("networkInfo") or {}
    return {
        "uid": data["uid"],
        "userEmail": data["userEmail"],
        "userRole": data.get("userRole") or "free",
        "emailVerified": bool(data.get("emailVerified")),
        "downloadCount": data.get("downloadCount") or 0,
        "subscriptionStatus": data.get("subscriptionStatus") or "free",
        "trialExpiry": _iso(data.get("trialExpiry")),
        "createdAt": _iso(data.get("timestamp")),
        "lastDownloadDate": _iso(data.get("timestamp")),
        "ipAddress": ip_info.get("ip") or UNKNOWN,
        "ipVersion": ip_info.get("ipVersion") or UNKNOWN,
        "platform": device_info.get("platform") or UNKNOWN,
        "vendor": device_info.get("vendor") or UNKNOWN,
        "timezone": data.get("timezone") or UNKNOWN,
        "language": data.get("language") or UNKNOWN,
        "screenResolution": data.get("screenResolution") or UNKNOWN,
        "connectionType": network_info.get("connectionType") or UNKNOWN,
        "downloadAttempts": 1,
        "downloadSuccesses": 0,
        "pageViews": 0,
        "totalEngagement": 0,
    }


def collect_user_rows(db: DocumentStore) -> list[dict]:
    """
    Joins the four event collections by uid.

    Only download attempts carrying both uid and userEmail create a row;
    the other collections add to rows that already exist.
    """
    rows: dict[str, dict] = {}

    for doc in db.query(DOWNLOAD_ATTEMPTS_COLLECTION):
        data = doc.data
        if not (data.get("uid") and data.get("userEmail")):
            continue
        row = rows.get(data["uid"])
        if row is None:
            rows[data["uid"]] = _row_from_attempt(data)
        else:
            row["downloadAttempts"] += 1
            row["lastDownloadDate"] = _iso(data.get("timestamp"))

    for doc in db.query(DOWNLOAD_SUCCESSES_COLLECTION):
        row = rows.get(doc.data.get("uid"))
        if row is None:
            continue
        row["downloadSuccesses"] += 1
        row["lastDownloadDate"] = _iso(doc.data.get("timestamp"))
        row["downloadHash"] = doc.data.get("downloadHash")
        row["downloadSize"] = doc.data.get("downloadSize")
        row["downloadTime"] = doc.data.get("downloadTime")

    for collection, counter in (
        (PAGE_VIEWS_COLLECTION, "pageViews"),
        (USER_ENGAGEMENT_COLLECTION, "totalEngagement"),
    ):
        for doc in db.query(collection):
            row = rows.get(doc.data.get("uid"))
            if row is not None:
                row[counter] += 1

    return list(rows.values())


def to_csv(rows: list[dict]) -> str:
    if not rows:
        return ""
    header: list[str] = []
    for row in rows:
        header.extend(key for key in row if key not in header)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=header, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: "" if v is None else v for k, v in row.items()})
    return buffer.getvalue()


def to_json(rows: list[dict]) -> str:
    return json.dumps(rows, indent=2)


def export_filename(fmt: ExportFormat, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{EXPORT_FILENAME_PREFIX}-{now.date().isoformat()}.{fmt.value}"


def export_user_data(
    db: DocumentStore,
    fmt: ExportFormat = ExportFormat.CSV,
    now: datetime | None = None,
) -> ExportResult:
    try:
        rows = collect_user_rows(db)
    except Exception as e:
        logger.error("Error exporting user data: %s", e)
        raise
    content = to_csv(rows) if fmt == ExportFormat.CSV else to_json(rows)
    logger.info("Exported %d users as %s", len(rows), fmt.value)
    return ExportResult(
        content=content,
        filename=export_filename(fmt, now),
        media_type=MEDIA_TYPES[fmt],
    )
