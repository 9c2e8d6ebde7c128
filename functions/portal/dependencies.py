"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.analytics import (
    ClientContext,
    DeferredEventSink,
    EventSink,
    InMemoryEventSink,
    MeasurementProtocolSink,
    client_ip,
    ip_info_for,
)
from portal.auth import (
    AuthenticatedUser,
    FirebaseTokenVerifier,
    InMemoryTokenVerifier,
    TokenVerifier,
)
from portal.config import Settings, get_settings
from portal.documents import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from portal.errors import AuthenticationError
from portal.realtime import (
    FirebaseRealtimeDatabase,
    InMemoryRealtimeDatabase,
    RealtimeDatabase,
)
from portal.schemas import ClientInfo
from portal.storage import (
    FirebaseStorageClient,
    InMemoryStorageClient,
    S3StorageClient,
    StorageClient,
)
from shared.constants import UNKNOWN

logger = logging.getLogger(__name__)

_document_store: DocumentStore | None = None
_realtime_db: RealtimeDatabase | None = None
_storage_client: StorageClient | None = None
_event_sink: EventSink | None = None
_token_verifier: TokenVerifier | None = None

_bearer = HTTPBearer(auto_error=False)


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so in-memory state persists across
    requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.in_memory:
        _document_store = InMemoryDocumentStore()
    else:
        _document_store = FirestoreDocumentStore()
    return _document_store


def get_realtime_db() -> RealtimeDatabase:
    global _realtime_db
    if _realtime_db:
        return _realtime_db

    settings = get_settings()
    if settings.in_memory or not settings.firebase_database_url:
        _realtime_db = InMemoryRealtimeDatabase()
    else:
        _realtime_db = FirebaseRealtimeDatabase()
    return _realtime_db


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.s3_bucket and not settings.use_in_memory_backends:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    elif settings.in_memory or not settings.firebase_storage_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = FirebaseStorageClient(settings.firebase_storage_bucket)
    return _storage_client


def get_event_sink() -> EventSink:
    global _event_sink
    if _event_sink:
        return _event_sink

    settings = get_settings()
    if settings.ga_measurement_id and settings.ga_api_secret:
        _event_sink = MeasurementProtocolSink(
            settings.ga_measurement_id, settings.ga_api_secret
        )
    else:
        _event_sink = InMemoryEventSink()
    return _event_sink


def get_request_event_sink(
    background_tasks: BackgroundTasks, sink: EventSink = Depends(get_event_sink)
) -> EventSink:
    """Per-request sink whose calls are sent after the response goes out."""
    deferred = DeferredEventSink(sink)
    background_tasks.add_task(deferred.flush)
    return deferred


def get_token_verifier() -> TokenVerifier:
    global _token_verifier
    if _token_verifier:
        return _token_verifier

    settings = get_settings()
    if settings.in_memory:
        _token_verifier = InMemoryTokenVerifier()
    else:
        _token_verifier = FirebaseTokenVerifier()
    return _token_verifier


def reset_backends() -> None:
    """Drop the cached clients so the next request builds them again."""
    global _document_store, _realtime_db, _storage_client, _event_sink
    global _token_verifier
    _document_store = None
    _realtime_db = None
    _storage_client = None
    _event_sink = None
    _token_verifier = None


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Optional[AuthenticatedUser]:
    """The signed-in user, or None for anonymous and invalid tokens."""
    if credentials is None:
        return None
    try:
        return verifier.verify(credentials.credentials)
    except AuthenticationError as e:
        logger.debug("Ignoring invalid token on optional route: %s", e.message)
        return None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthenticatedUser:
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Sign in required.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return verifier.verify(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    if (user.email or "").lower() not in settings.admin_email_list:
        logger.warning("Admin access denied for %s", user.uid)
        raise HTTPException(status_code=403, detail="Unauthorized: Admin access only.")
    return user


def build_client_context(
    request: Request, client: Optional[ClientInfo] = None
) -> ClientContext:
    """Combines request headers with what the browser reported about itself."""
    client = client or ClientInfo()
    peer = request.client.host if request.client else None
    return ClientContext(
        user_agent=request.headers.get("user-agent") or UNKNOWN,
        screen_resolution=client.screen_resolution or UNKNOWN,
        language=client.language
        or (request.headers.get("accept-language") or "").split(",")[0]
        or UNKNOWN,
        timezone=client.timezone or UNKNOWN,
        referrer=client.referrer or request.headers.get("referer") or "",
        ip_info=ip_info_for(client_ip(request.headers, peer)),
        device_info=client.device_info,
        network_info=client.network_info,
        session_duration=client.session_duration,
    )
