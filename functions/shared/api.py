# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from shared.constants import UNKNOWN
from shared.types import SubscriptionType, UserRole


@dataclass
class UserProfile:
    """Schema for documents in the `users` collection."""

    uid: str
    email: str
    role: str = UserRole.FREE
    email_verified: bool = False
    download_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    last_download_date: Optional[datetime] = None


@dataclass
class DownloadStatus:
    """Result of a daily quota check."""

    can_download: bool
    remaining_downloads: int
    error: Optional[str] = None


@dataclass
class IpInfo:
    ip: str = UNKNOWN
    ip_version: str = UNKNOWN
    timestamp: str = ""
    source: str = ""


@dataclass
class DeviceInfo:
    platform: str = UNKNOWN
    vendor: str = UNKNOWN
    hardware_concurrency: Optional[int] = None
    max_touch_points: Optional[int] = None
    device_memory: Optional[float] = None


@dataclass
class NetworkInfo:
    connection_type: str = UNKNOWN
    downlink: str = UNKNOWN
    rtt: str = UNKNOWN
    save_data: bool = False


@dataclass
class DownloadAttemptData:
    """What the download flow knows about a user when a download starts."""

    mirror: str
    user_role: str
    email_verified: bool
    download_count: int
    user_email: Optional[str] = None
    subscription_status: Optional[str] = None
    trial_expiry: Optional[datetime] = None


@dataclass
class DownloadSuccessData:
    mirror: str
    user_role: str
    download_size: str
    download_time: int
    user_email: Optional[str] = None
    subscription_status: Optional[str] = None
    trial_expiry: Optional[datetime] = None
    download_hash: Optional[str] = None


@dataclass
class UserDetails:
    """Fields of the download details form."""

    full_name: str = ""
    email: str = ""
    phone: str = ""
    country: str = ""
    use_case: str = ""
    subscription_type: str = SubscriptionType.FREE
    company: str = ""
    job_title: str = ""
    newsletter: bool = False
    terms_accepted: bool = False


@dataclass
class TeamApplication:
    """Schema for entries under `team_applications` in the Realtime Database."""

    name: str
    phone: str
    email: str
    address: str
    skills: List[str]
    photo_path: Optional[str] = None
    resume_path: Optional[str] = None
    photo_url: Optional[str] = None
    resume_url: Optional[str] = None
    submitted_at: Optional[str] = None


@dataclass
class CommunityFeedback:
    """Schema for entries under `community_feedback` in the Realtime Database."""

    email: str
    message: str
    type: str = "general"
    subject: str = ""
    name: Optional[str] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    timestamp: Optional[int] = None


@dataclass
class UserLocation:
    timezone: str = UNKNOWN
    language: str = UNKNOWN
    screen_resolution: str = UNKNOWN


@dataclass
class UserDetail:
    """One row of the admin user-details dashboard, deduplicated by uid."""

    uid: str
    user_email: str
    user_role: str
    email_verified: bool
    download_count: int
    subscription_status: str
    created_at: datetime
    trial_expiry: Optional[datetime] = None
    last_download_date: Optional[datetime] = None
    ip_info: Dict[str, Any] = field(default_factory=dict)
    device_info: Dict[str, Any] = field(default_factory=dict)
    network_info: Dict[str, Any] = field(default_factory=dict)
    location: UserLocation = field(default_factory=UserLocation)


@dataclass
class DownloadRecord:
    id: str
    uid: Optional[str]
    timestamp: Optional[datetime]
    mirror: Optional[str]
    download_size: Optional[str]
    download_time: Optional[int]
    download_hash: Optional[str]
    ip_info: Optional[Dict[str, Any]] = None
    device_info: Optional[Dict[str, Any]] = None
    network_info: Optional[Dict[str, Any]] = None
    user_agent: Optional[str] = None
