"""
Public form submissions: team applications, community feedback and the
visitor counter. All three land in the Realtime Database; uploaded files go
to object storage and only their paths are kept in the database.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from portal.errors import ValidationError
from portal.realtime import RealtimeDatabase
from portal.storage import StorageClient
from shared.api import CommunityFeedback, TeamApplication
from shared.constants import (
    COMMUNITY_FEEDBACK_PATH,
    FEEDBACK_TYPES,
    MAX_ATTACHMENT_BYTES,
    MAX_FEEDBACK_MESSAGE_LENGTH,
    MAX_NAME_LENGTH,
    TEAM_APPLICATIONS_PATH,
    VISITOR_COUNTER_PATH,
)
from shared.json_utils import convert_keys

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class FileUpload:
    """A file sent inline with a form, base64 encoded."""

    name: str
    content_base64: str
    content_type: str = "application/octet-stream"

    def decode(self) -> bytes:
        try:
            data = base64.b64decode(self.content_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"File {self.name!r} is not valid base64.") from e
        if len(data) > MAX_ATTACHMENT_BYTES:
            raise ValidationError(f"File {self.name!r} is larger than 10 MB.")
        return data


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", os.path.basename(name)).strip("._")
    return cleaned or "file"


def _require(value: Optional[str], message: str) -> str:
    if not value or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _check_email(email: Optional[str]) -> str:
    email = _require(email, "Email is required")
    if "@" not in email:
        raise ValidationError("A valid email is required")
    return email


def _upload(
    storage: StorageClient, path: str, upload: FileUpload, data: bytes
) -> str:
    storage.upload_bytes(path, data, upload.content_type)
    logger.info("Uploaded %s", path)
    return path


def validate_team_application(application: TeamApplication) -> None:
    name = _require(application.name, "Name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("Name is too long")
    _require(application.phone, "Phone is required")
    _check_email(application.email)
    _require(application.address, "Address is required")
    if not [s for s in application.skills if s and s.strip()]:
        raise ValidationError("Please list at least one skill")


def save_team_application(
    rtdb: RealtimeDatabase,
    storage: StorageClient,
    application: TeamApplication,
    photo: Optional[FileUpload] = None,
    resume: Optional[FileUpload] = None,
    now: datetime | None = None,
) -> str:
    """Stores a "join the team" application and returns its key."""
    validate_team_application(application)
    application.skills = [s.strip() for s in application.skills if s and s.strip()]

    application_id = uuid.uuid4().hex
    prefix = f"{TEAM_APPLICATIONS_PATH}/{application_id}"
    # Every attachment is decoded before the first upload.
    photo_data = photo.decode() if photo is not None else None
    resume_data = resume.decode() if resume is not None else None
    if photo is not None:
        application.photo_path = _upload(
            storage,
            f"{prefix}/photo-{safe_filename(photo.name)}",
            photo,
            photo_data,
        )
    if resume is not None:
        application.resume_path = _upload(
            storage,
            f"{prefix}/resume-{safe_filename(resume.name)}",
            resume,
            resume_data,
        )
    if not application.submitted_at:
        application.submitted_at = (now or datetime.now(timezone.utc)).isoformat()

    record = {
        k: v
        for k, v in convert_keys(asdict(application), "snake_to_camel").items()
        if v is not None
    }
    key = rtdb.push(TEAM_APPLICATIONS_PATH, record)
    logger.info("Saved team application %s", key)
    return key


def validate_feedback(feedback: CommunityFeedback) -> None:
    _check_email(feedback.email)
    message = _require(feedback.message, "Message is required")
    if len(message) > MAX_FEEDBACK_MESSAGE_LENGTH:
        raise ValidationError("Message is too long")
    if feedback.type not in FEEDBACK_TYPES:
        raise ValidationError(f"Unknown feedback type: {feedback.type}")


def save_feedback(
    rtdb: RealtimeDatabase,
    storage: StorageClient,
    feedback: CommunityFeedback,
    attachment: Optional[FileUpload] = None,
    now: datetime | None = None,
) -> str:
    feedback.type = feedback.type or "general"
    validate_feedback(feedback)

    if attachment is not None:
        filename = safe_filename(attachment.name)
        feedback.file_name = attachment.name
        feedback.file_path = _upload(
            storage,
            f"{COMMUNITY_FEEDBACK_PATH}/{uuid.uuid4().hex}/{filename}",
            attachment,
            attachment.decode(),
        )
    if feedback.timestamp is None:
        feedback.timestamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)

    record = {
        k: v
        for k, v in convert_keys(asdict(feedback), "snake_to_camel").items()
        if v is not None
    }
    key = rtdb.push(COMMUNITY_FEEDBACK_PATH, record)
    logger.info("Saved %s feedback %s", feedback.type, key)
    return key


def record_visit(rtdb: RealtimeDatabase) -> int:
    count = rtdb.increment(VISITOR_COUNTER_PATH)
    logger.debug("Visitor count is now %d", count)
    return count
