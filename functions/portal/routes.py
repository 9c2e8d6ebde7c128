"""
HTTP routes for the portal API.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from portal import dashboard, downloads, sample_data, submissions
from portal.analytics import (
    EventSink,
    client_page_data,
    download_page_data,
    set_analytics_user,
    track_page_view,
    track_user_engagement,
)
from portal.auth import AuthenticatedUser, TokenVerifier
from portal.config import Settings, get_settings
from portal.dependencies import (
    build_client_context,
    get_current_user,
    get_document_store,
    get_optional_user,
    get_realtime_db,
    get_request_event_sink,
    get_storage_client,
    get_token_verifier,
    require_admin,
)
from portal.documents import DocumentStore
from portal.errors import NotFoundError, PortalError
from portal.export import export_user_data
from portal.profiles import create_or_update_user, get_user_data
from portal.realtime import RealtimeDatabase
from portal.schemas import (
    AnalyticsResponse,
    CounterResponse,
    DownloadDetailsRequest,
    DownloadSessionResponse,
    DownloadStatusResponse,
    DownloadStepResponse,
    DownloadTicketResponse,
    EngagementRequest,
    FeedbackRequest,
    FileUploadPayload,
    HealthResponse,
    ListResponse,
    PageViewRequest,
    RefreshRequest,
    ReleaseResponse,
    SampleDataResponse,
    StartDownloadRequest,
    SubmissionResponse,
    TeamApplicationRequest,
    TrackResponse,
    UserDetailsPayload,
    UserProfileResponse,
    UsersResponse,
)
from portal.storage import StorageClient
from shared.api import CommunityFeedback, TeamApplication, UserDetails
from shared.constants import (
    CHECKSUMS,
    DOWNLOAD_MIRRORS,
    INSTALLATION_STEPS,
    ISO_FILENAME,
    RELEASE_DATE,
    RELEASE_NAME,
    RELEASE_SIZE,
    RELEASE_VERSION,
    SYSTEM_REQUIREMENTS,
)
from shared.types import ExportFormat, TimeRange

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(e: PortalError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def _details(payload: UserDetailsPayload) -> UserDetails:
    return UserDetails(**payload.model_dump())


def _upload(payload: Optional[FileUploadPayload]) -> Optional[submissions.FileUpload]:
    if payload is None:
        return None
    return submissions.FileUpload(**payload.model_dump())


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.get("/releases/latest", response_model=ReleaseResponse)
def latest_release():
    return ReleaseResponse(
        name=RELEASE_NAME,
        version=RELEASE_VERSION,
        size=RELEASE_SIZE,
        release_date=RELEASE_DATE,
        iso_filename=ISO_FILENAME,
        mirrors=DOWNLOAD_MIRRORS,
        checksums=CHECKSUMS,
        system_requirements=SYSTEM_REQUIREMENTS,
        installation_steps=INSTALLATION_STEPS,
    )


@router.post("/users/me/sync", response_model=UserProfileResponse)
def sync_user(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
    sink: EventSink = Depends(get_request_event_sink),
):
    """
    Called by the browser after every sign-in to keep `users/{uid}` in step
    with the Firebase account.
    """
    profile = create_or_update_user(db, user)
    set_analytics_user(
        sink,
        user.uid,
        {
            "user_role": profile.role,
            "email_verified": profile.email_verified,
            "sign_in_provider": user.provider or "unknown",
        },
    )
    return UserProfileResponse(**asdict(profile))


@router.get("/users/me", response_model=UserProfileResponse)
def read_user(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
):
    profile = get_user_data(db, user.uid)
    if profile is None:
        raise HTTPException(status_code=404, detail=downloads.USER_NOT_FOUND)
    return UserProfileResponse(**asdict(profile))


@router.post("/users/me/refresh", response_model=DownloadStatusResponse)
def refresh_user(
    request: Request,
    payload: Optional[RefreshRequest] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
    sink: EventSink = Depends(get_request_event_sink),
    verifier: TokenVerifier = Depends(get_token_verifier),
    settings: Settings = Depends(get_settings),
):
    context = build_client_context(request, payload.client if payload else None)
    try:
        status = downloads.refresh_verification(
            db, sink, verifier, settings, user, context
        )
    except NotFoundError as e:
        raise _http_error(e)
    return DownloadStatusResponse(**asdict(status))


@router.get("/download/session", response_model=DownloadSessionResponse)
def download_session(user: Optional[AuthenticatedUser] = Depends(get_optional_user)):
    session = downloads.open_session(user)
    return DownloadSessionResponse(
        step=session.step, details=UserDetailsPayload(**asdict(session.details))
    )


@router.get("/download/status", response_model=DownloadStatusResponse)
def download_status(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
):
    status = downloads.check_download_limit(db, user.uid, settings)
    return DownloadStatusResponse(**asdict(status))


@router.post("/download/details", response_model=DownloadStepResponse)
def download_details(
    payload: DownloadDetailsRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
    sink: EventSink = Depends(get_request_event_sink),
):
    context = build_client_context(request, payload.client)
    try:
        step = downloads.submit_details(db, sink, user, _details(payload.details), context)
    except PortalError as e:
        raise _http_error(e)
    return DownloadStepResponse(step=step)


@router.post("/download/start", response_model=DownloadTicketResponse)
def download_start(
    payload: StartDownloadRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
    sink: EventSink = Depends(get_request_event_sink),
    settings: Settings = Depends(get_settings),
):
    context = build_client_context(request, payload.client)
    try:
        ticket = downloads.start_download(
            db,
            rtdb,
            sink,
            settings,
            user,
            _details(payload.details),
            context,
            url=payload.url,
        )
    except PortalError as e:
        raise _http_error(e)
    return DownloadTicketResponse(**asdict(ticket))


@router.post("/analytics/page-view", response_model=TrackResponse)
def page_view(
    payload: PageViewRequest,
    request: Request,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    db: DocumentStore = Depends(get_document_store),
    sink: EventSink = Depends(get_request_event_sink),
):
    context = build_client_context(request, payload.client)
    profile = get_user_data(db, user.uid) if user else None
    page_data = {
        **download_page_data(user, profile, payload.query, context.referrer),
        **client_page_data(payload.page_data),
    }
    doc_id = track_page_view(
        db,
        sink,
        payload.page_name,
        context,
        page_title=payload.page_title,
        page_url=payload.page_url,
        page_data=page_data,
        uid=user.uid if user else None,
        user_email=user.email if user else None,
    )
    return TrackResponse(id=doc_id)


@router.post("/analytics/engagement", response_model=TrackResponse)
def engagement(
    payload: EngagementRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DocumentStore = Depends(get_document_store),
    sink: EventSink = Depends(get_request_event_sink),
):
    context = build_client_context(request, payload.client)
    doc_id = track_user_engagement(
        db,
        sink,
        user.uid,
        payload.action,
        context,
        action_data=payload.action_data,
        user_email=user.email,
    )
    return TrackResponse(id=doc_id)


@router.post("/visits", response_model=CounterResponse)
def visit(rtdb: RealtimeDatabase = Depends(get_realtime_db)):
    return CounterResponse(count=submissions.record_visit(rtdb))


@router.post("/team-applications", response_model=SubmissionResponse, status_code=201)
def team_application(
    payload: TeamApplicationRequest,
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
    storage: StorageClient = Depends(get_storage_client),
):
    application = TeamApplication(
        name=payload.name,
        phone=payload.phone,
        email=payload.email,
        address=payload.address,
        skills=list(payload.skills),
    )
    try:
        key = submissions.save_team_application(
            rtdb,
            storage,
            application,
            photo=_upload(payload.photo),
            resume=_upload(payload.resume),
        )
    except PortalError as e:
        raise _http_error(e)
    return SubmissionResponse(id=key)


@router.post("/feedback", response_model=SubmissionResponse, status_code=201)
def feedback(
    payload: FeedbackRequest,
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
    storage: StorageClient = Depends(get_storage_client),
):
    item = CommunityFeedback(
        email=payload.email,
        message=payload.message,
        type=payload.type,
        subject=payload.subject,
        name=payload.name,
    )
    try:
        key = submissions.save_feedback(
            rtdb, storage, item, attachment=_upload(payload.attachment)
        )
    except PortalError as e:
        raise _http_error(e)
    return SubmissionResponse(id=key)


@router.get("/admin/analytics", response_model=AnalyticsResponse)
def admin_analytics(
    time_range: TimeRange = Query(TimeRange.TODAY, alias="range"),
    _: AuthenticatedUser = Depends(require_admin),
    db: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
):
    summary = dashboard.compute_analytics(
        db, time_range, tz_name=settings.quota_timezone
    )
    return AnalyticsResponse(**asdict(summary))


@router.get("/admin/users", response_model=UsersResponse)
def admin_users(
    search: str = "",
    role: str = "all",
    status: str = "all",
    _: AuthenticatedUser = Depends(require_admin),
    db: DocumentStore = Depends(get_document_store),
):
    users, records = dashboard.fetch_user_details(db)
    users = dashboard.filter_users(users, search, role, status)
    return UsersResponse(
        total=len(users),
        users=[asdict(u) for u in users],
        downloads=[asdict(r) for r in records],
    )


@router.get("/admin/export")
def admin_export(
    fmt: ExportFormat = Query(ExportFormat.CSV, alias="format"),
    _: AuthenticatedUser = Depends(require_admin),
    db: DocumentStore = Depends(get_document_store),
):
    result = export_user_data(db, fmt)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.get("/admin/team-applications", response_model=ListResponse)
def admin_team_applications(
    _: AuthenticatedUser = Depends(require_admin),
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
    storage: StorageClient = Depends(get_storage_client),
):
    return ListResponse(items=dashboard.list_team_applications(rtdb, storage))


@router.get("/admin/feedback", response_model=ListResponse)
def admin_feedback(
    _: AuthenticatedUser = Depends(require_admin),
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
    storage: StorageClient = Depends(get_storage_client),
):
    return ListResponse(items=dashboard.list_feedback(rtdb, storage))


@router.get("/admin/visitor-counter", response_model=CounterResponse)
def admin_visitor_counter(
    _: AuthenticatedUser = Depends(require_admin),
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
):
    return CounterResponse(count=dashboard.get_visitor_count(rtdb))


@router.post("/admin/visitor-counter/increment", response_model=CounterResponse)
def admin_increment_visitor_counter(
    _: AuthenticatedUser = Depends(require_admin),
    rtdb: RealtimeDatabase = Depends(get_realtime_db),
):
    return CounterResponse(count=dashboard.increment_visitor_count(rtdb))


@router.post("/admin/sample-data", response_model=SampleDataResponse, status_code=201)
def admin_create_sample_data(
    _: AuthenticatedUser = Depends(require_admin),
    db: DocumentStore = Depends(get_document_store),
):
    return SampleDataResponse(counts=sample_data.create_sample_data(db))


@router.delete("/admin/sample-data", response_model=SampleDataResponse)
def admin_clear_sample_data(
    _: AuthenticatedUser = Depends(require_admin),
    db: DocumentStore = Depends(get_document_store),
):
    return SampleDataResponse(counts=sample_data.clear_sample_data(db))
