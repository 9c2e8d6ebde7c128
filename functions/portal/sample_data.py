"""
Sample users and events for trying out the admin dashboard.

Every sample document carries a uid starting with SAMPLE_UID_PREFIX, which
is how clear_sample_data finds them again.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from portal.documents import DocumentStore
from shared.constants import (
    DOWNLOAD_ATTEMPTS_COLLECTION,
    DOWNLOAD_HASH_PREFIX,
    DOWNLOAD_SUCCESSES_COLLECTION,
    PAGE_VIEWS_COLLECTION,
    PREMIUM_TRIAL_DAYS,
    RELEASE_SIZE,
    USER_ENGAGEMENT_COLLECTION,
)

logger = logging.getLogger(__name__)

SAMPLE_UID_PREFIX = "test-user-"
SAMPLE_USER_AGENT = "Mozilla/5.0 (Test Browser)"
SAMPLE_MIRROR = "google_drive"
SAMPLE_COLLECTIONS = (
    DOWNLOAD_ATTEMPTS_COLLECTION,
    DOWNLOAD_SUCCESSES_COLLECTION,
    PAGE_VIEWS_COLLECTION,
    USER_ENGAGEMENT_COLLECTION,
)
ENGAGEMENT_ACTIONS = (
    "mirror_selected",
    "checksum_copied",
    "email_verification_requested",
    "status_refreshed",
)

SAMPLE_USERS = (
    {
        "uid": "test-user-1",
        "userEmail": "john.doe@example.com",
        "userRole": "free",
        "emailVerified": True,
        "downloadCount": 2,
        "subscriptionStatus": "free",
        "ip": "192.168.1.100",
        "deviceInfo": {
            "platform": "Win32",
            "vendor": "Google Inc.",
            "hardwareConcurrency": 8,
            "deviceMemory": 8,
        },
        "networkInfo": {
            "connectionType": "4g",
            "downlink": "10",
            "rtt": "50",
            "saveData": False,
        },
        "timezone": "America/New_York",
        "language": "en-US",
        "screenResolution": "1920x1080",
    },
    {
        "uid": "test-user-2",
        "userEmail": "jane.smith@example.com",
        "userRole": "premium",
        "emailVerified": True,
        "downloadCount": 5,
        "subscriptionStatus": "premium",
        "ip": "10.0.0.50",
        "deviceInfo": {
            "platform": "MacIntel",
            "vendor": "Apple Inc.",
            "hardwareConcurrency": 12,
            "deviceMemory": 16,
        },
        "networkInfo": {
            "connectionType": "5g",
            "downlink": "25",
            "rtt": "20",
            "saveData": False,
        },
        "timezone": "Europe/London",
        "language": "en-GB",
        "screenResolution": "2560x1440",
    },
    {
        "uid": "test-user-3",
        "userEmail": "bob.wilson@example.com",
        "userRole": "free",
        "emailVerified": False,
        "downloadCount": 1,
        "subscriptionStatus": "free",
        "ip": "172.16.0.100",
        "deviceInfo": {
            "platform": "Linux x86_64",
            "vendor": "Mozilla Foundation",
            "hardwareConcurrency": 4,
            "deviceMemory": 4,
        },
        "networkInfo": {
            "connectionType": "3g",
            "downlink": "5",
            "rtt": "100",
            "saveData": True,
        },
        "timezone": "Asia/Tokyo",
        "language": "ja-JP",
        "screenResolution": "1366x768",
    },
)


def _client_fields(user: dict, now: datetime) -> dict:
    return {
        "userAgent": SAMPLE_USER_AGENT,
        "screenResolution": user["screenResolution"],
        "language": user["language"],
        "timezone": user["timezone"],
        "ipInfo": {
            "ip": user["ip"],
            "ipVersion": "IPv4",
            "timestamp": now.isoformat(),
            "source": "test",
        },
        "deviceInfo": dict(user["deviceInfo"]),
        "networkInfo": dict(user["networkInfo"]),
    }


def create_sample_data(
    db: DocumentStore,
    now: datetime | None = None,
    rng: Optional[random.Random] = None,
) -> dict[str, int]:
    """Writes the sample events and returns how many went to each collection."""
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    created = dict.fromkeys(SAMPLE_COLLECTIONS, 0)

    for user in SAMPLE_USERS:
        client = _client_fields(user, now)
        trial_expiry = (
            now + timedelta(days=PREMIUM_TRIAL_DAYS)
            if user["subscriptionStatus"] == "premium"
            else None
        )
        identity = {
            "uid": user["uid"],
            "userEmail": user["userEmail"],
            "userRole": user["userRole"],
            "subscriptionStatus": user["subscriptionStatus"],
        }

        db.add(
            DOWNLOAD_ATTEMPTS_COLLECTION,
            {
                **identity,
                "emailVerified": user["emailVerified"],
                "downloadCount": user["downloadCount"],
                "trialExpiry": trial_expiry,
                "timestamp": now,
                "mirror": SAMPLE_MIRROR,
                **client,
            },
        )
        created[DOWNLOAD_ATTEMPTS_COLLECTION] += 1

        if user["downloadCount"] > 0:
            millis = int(now.timestamp() * 1000)
            db.add(
                DOWNLOAD_SUCCESSES_COLLECTION,
                {
                    **identity,
                    "trialExpiry": trial_expiry,
                    "timestamp": now,
                    "mirror": SAMPLE_MIRROR,
                    "downloadSize": RELEASE_SIZE,
                    "downloadTime": rng.randint(1000, 6000),
                    "downloadHash": f"{DOWNLOAD_HASH_PREFIX}-{millis}-{user['uid']}",
                    **client,
                    "downloadMetadata": {
                        "completedAt": now.isoformat(),
                        "sessionDuration": rng.randint(60000, 360000),
                    },
                },
            )
            created[DOWNLOAD_SUCCESSES_COLLECTION] += 1

        db.add(
            PAGE_VIEWS_COLLECTION,
            {
                **identity,
                "emailVerified": user["emailVerified"],
                "timestamp": now,
                "pageName": "Download Page",
                "userAuthenticated": True,
                "referrer": "google.com",
                "utmSource": "search",
                "utmMedium": "organic",
                **client,
            },
        )
        created[PAGE_VIEWS_COLLECTION] += 1

        for action in ENGAGEMENT_ACTIONS:
            db.add(
                USER_ENGAGEMENT_COLLECTION,
                {
                    "uid": user["uid"],
                    "userEmail": user["userEmail"],
                    "action": action,
                    "timestamp": now,
                    "actionData": {
                        "mirrorName": "Google Drive",
                        "mirrorLocation": "Google",
                        "isRecommended": True,
                    },
                    **client,
                },
            )
            created[USER_ENGAGEMENT_COLLECTION] += 1

    logger.info("Created sample data: %s", created)
    return created


def clear_sample_data(db: DocumentStore) -> dict[str, int]:
    """Deletes every event document whose uid has the sample prefix."""
    deleted = dict.fromkeys(SAMPLE_COLLECTIONS, 0)
    for collection in SAMPLE_COLLECTIONS:
        for doc in db.query(
            collection,
            where=[
                ("uid", ">=", SAMPLE_UID_PREFIX),
                ("uid", "<", SAMPLE_UID_PREFIX + "\uf8ff"),
            ],
        ):
            db.delete(collection, doc.id)
            deleted[collection] += 1
    logger.info("Cleared sample data: %s", deleted)
    return deleted
