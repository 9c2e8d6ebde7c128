"""
User profile documents (`users/{uid}`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from dacite import Config, from_dict

from portal.auth import AuthenticatedUser
from portal.documents import DocumentStore
from shared.api import UserProfile
from shared.constants import USERS_COLLECTION
from shared.json_utils import convert_keys
from shared.types import UserRole

logger = logging.getLogger(__name__)


def profile_from_doc(data: dict) -> UserProfile:
    return from_dict(
        data_class=UserProfile,
        data=convert_keys(data, "camel_to_snake"),
        config=Config(check_types=False),
    )


def create_or_update_user(
    db: DocumentStore, user: AuthenticatedUser, now: datetime | None = None
) -> UserProfile:
    """
    Creates the profile on first sign-in, otherwise refreshes the account
    fields. Role and download counters are never touched on update.

    `None` display names and photo URLs are left out of the write.
    """
    now = now or datetime.now(timezone.utc)
    logger.info("Creating/updating user: %s", user.uid)
    try:
        existing = db.get(USERS_COLLECTION, user.uid)
        if existing is None:
            data = {
                "uid": user.uid,
                "email": user.email or "",
                "role": UserRole.FREE.value,
                "emailVerified": user.email_verified,
                "downloadCount": 0,
                "createdAt": now,
                "updatedAt": now,
            }
            if user.display_name is not None:
                data["displayName"] = user.display_name
            if user.photo_url is not None:
                data["photoURL"] = user.photo_url
            db.set(USERS_COLLECTION, user.uid, data)
            logger.info("User data created for %s", user.uid)
            return profile_from_doc(data)

        payload = {
            "email": user.email or "",
            "emailVerified": user.email_verified,
            "updatedAt": now,
        }
        if user.display_name is not None:
            payload["displayName"] = user.display_name
        if user.photo_url is not None:
            payload["photoURL"] = user.photo_url
        db.update(USERS_COLLECTION, user.uid, payload)
        logger.info("User data updated for %s", user.uid)
        return profile_from_doc({**existing, **payload})
    except Exception as e:
        logger.error("Error creating/updating user %s: %s", user.uid, e)
        raise


def get_user_data(db: DocumentStore, uid: str) -> Optional[UserProfile]:
    try:
        data = db.get(USERS_COLLECTION, uid)
    except Exception as e:
        logger.error("Error getting user data for %s: %s", uid, e)
        return None
    if data is None:
        logger.info("No user data found for UID: %s", uid)
        return None
    return profile_from_doc(data)
