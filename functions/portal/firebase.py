"""
Lazy initialisation of the Firebase Admin app shared by the backend clients.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from portal.config import Settings, get_settings

logger = logging.getLogger(__name__)


def get_firebase_app(settings: Settings | None = None) -> firebase_admin.App:
    """
    Return the default Firebase app, initialising it on first use.

    Credentials come from FIREBASE_CREDENTIALS_PATH when set, otherwise from
    Application Default Credentials.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    settings = settings or get_settings()
    if settings.firebase_credentials_path:
        cred = credentials.Certificate(settings.firebase_credentials_path)
    else:
        cred = credentials.ApplicationDefault()

    options = {"projectId": settings.firebase_project_id}
    if settings.firebase_database_url:
        options["databaseURL"] = settings.firebase_database_url
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket

    logger.info("Initialising Firebase app for project %s", settings.firebase_project_id)
    return firebase_admin.initialize_app(cred, options)
