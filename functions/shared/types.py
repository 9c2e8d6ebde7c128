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

from enum import StrEnum


class UserRole(StrEnum):
    FREE = "free"
    PREMIUM = "premium"


class SubscriptionType(StrEnum):
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class DownloadStep(StrEnum):
    """Steps of the download modal, in the order a user walks through them."""

    LOGIN = "login"
    DETAILS = "details"
    DOWNLOAD = "download"
    DOWNLOAD_SUCCESS = "download_success"


class TimeRange(StrEnum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class ExportFormat(StrEnum):
    CSV = "csv"
    JSON = "json"


class OpenMode(StrEnum):
    """How the client should open a download URL."""

    # Hosted pages (Google Drive, GitHub) that the user finishes in a new tab.
    NEW_TAB = "new_tab"
    # Plain file URLs that can be fetched with a download attribute.
    DIRECT = "direct"


class ActivityType(StrEnum):
    DOWNLOAD = "download"
    PAGE_VIEW = "page_view"
    DOWNLOAD_ATTEMPT = "download_attempt"
    ENGAGEMENT = "engagement"
