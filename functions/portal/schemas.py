"""
Pydantic schemas for the portal HTTP API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from shared.constants import MAX_FEEDBACK_MESSAGE_LENGTH, MAX_NAME_LENGTH


class HealthResponse(BaseModel):
    status: Literal["ok"]


class Mirror(BaseModel):
    name: str
    url: str
    location: str
    speed: str
    recommended: bool = False


class SystemRequirement(BaseModel):
    label: str
    minimum: str
    recommended: str


class InstallationStep(BaseModel):
    step: int
    title: str
    description: str


class ReleaseResponse(BaseModel):
    name: str
    version: str
    size: str
    release_date: str
    iso_filename: str
    mirrors: list[Mirror]
    checksums: dict[str, str]
    system_requirements: list[SystemRequirement]
    installation_steps: list[InstallationStep]


class ClientInfo(BaseModel):
    """Browser facts the page sends along with tracked actions."""

    screen_resolution: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None
    referrer: Optional[str] = None
    device_info: Optional[dict[str, Any]] = None
    network_info: Optional[dict[str, Any]] = None
    session_duration: Optional[int] = None


class UserProfileResponse(BaseModel):
    uid: str
    email: str
    role: str
    email_verified: bool
    download_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    last_download_date: Optional[datetime] = None


class DownloadStatusResponse(BaseModel):
    can_download: bool
    remaining_downloads: int
    error: Optional[str] = None


class RefreshRequest(BaseModel):
    client: Optional[ClientInfo] = None


class UserDetailsPayload(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    country: str = ""
    use_case: str = ""
    subscription_type: str = "free"
    company: str = ""
    job_title: str = ""
    newsletter: bool = False
    terms_accepted: bool = False


class DownloadSessionResponse(BaseModel):
    step: str
    details: UserDetailsPayload


class DownloadDetailsRequest(BaseModel):
    details: UserDetailsPayload
    client: Optional[ClientInfo] = None


class DownloadStepResponse(BaseModel):
    step: str


class StartDownloadRequest(BaseModel):
    details: UserDetailsPayload
    url: Optional[str] = None
    client: Optional[ClientInfo] = None


class DownloadTicketResponse(BaseModel):
    url: str
    open_mode: str
    mirror: str
    download_hash: str
    remaining_downloads: int
    step: str
    filename: Optional[str] = None


class PageViewRequest(BaseModel):
    page_name: str = Field(..., max_length=200)
    page_title: str = ""
    page_url: str = ""
    query: dict[str, str] = Field(default_factory=dict)
    page_data: dict[str, Any] = Field(default_factory=dict)
    client: Optional[ClientInfo] = None


class EngagementRequest(BaseModel):
    action: str = Field(..., max_length=100)
    action_data: Optional[dict[str, Any]] = None
    client: Optional[ClientInfo] = None


class TrackResponse(BaseModel):
    id: Optional[str] = None


class CounterResponse(BaseModel):
    count: int


class FileUploadPayload(BaseModel):
    name: str = Field(..., max_length=255)
    content_base64: str
    content_type: str = "application/octet-stream"


class TeamApplicationRequest(BaseModel):
    name: str = Field(..., max_length=MAX_NAME_LENGTH)
    phone: str
    email: str
    address: str
    skills: list[str]
    photo: Optional[FileUploadPayload] = None
    resume: Optional[FileUploadPayload] = None


class FeedbackRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=MAX_NAME_LENGTH)
    email: str
    type: str = "general"
    subject: str = ""
    message: str = Field(..., max_length=MAX_FEEDBACK_MESSAGE_LENGTH)
    attachment: Optional[FileUploadPayload] = None


class SubmissionResponse(BaseModel):
    id: str


class CountEntry(BaseModel):
    count: int


class MirrorCount(CountEntry):
    mirror: str


class ActionCount(CountEntry):
    action: str


class ActivityEntryResponse(BaseModel):
    type: str
    timestamp: datetime
    details: dict[str, Any]


class AnalyticsResponse(BaseModel):
    time_range: str
    total_downloads: int
    total_page_views: int
    unique_users: int
    downloads_today: int
    page_views_today: int
    top_mirrors: list[MirrorCount]
    user_engagement: list[ActionCount]
    recent_activity: list[ActivityEntryResponse]


class UserLocationResponse(BaseModel):
    timezone: str
    language: str
    screen_resolution: str


class UserDetailResponse(BaseModel):
    uid: str
    user_email: str
    user_role: str
    email_verified: bool
    download_count: int
    subscription_status: str
    created_at: datetime
    trial_expiry: Optional[datetime] = None
    last_download_date: Optional[datetime] = None
    ip_info: dict[str, Any]
    device_info: dict[str, Any]
    network_info: dict[str, Any]
    location: UserLocationResponse


class DownloadRecordResponse(BaseModel):
    id: str
    uid: Optional[str] = None
    timestamp: Optional[datetime] = None
    mirror: Optional[str] = None
    download_size: Optional[str] = None
    download_time: Optional[int] = None
    download_hash: Optional[str] = None
    ip_info: Optional[dict[str, Any]] = None
    device_info: Optional[dict[str, Any]] = None
    network_info: Optional[dict[str, Any]] = None
    user_agent: Optional[str] = None


class UsersResponse(BaseModel):
    total: int
    users: list[UserDetailResponse]
    downloads: list[DownloadRecordResponse]


class ListResponse(BaseModel):
    items: list[dict[str, Any]]


class SampleDataResponse(BaseModel):
    counts: dict[str, int]
