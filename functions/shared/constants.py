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

# Firestore collections
USERS_COLLECTION = "users"
DOWNLOADS_COLLECTION = "downloads"
DOWNLOAD_ATTEMPTS_COLLECTION = "download_attempts"
DOWNLOAD_SUCCESSES_COLLECTION = "download_successes"
PAGE_VIEWS_COLLECTION = "page_views"
USER_ENGAGEMENT_COLLECTION = "user_engagement"

# Realtime Database paths
DOWNLOAD_DETAILS_PATH = "Downloads"
TEAM_APPLICATIONS_PATH = "team_applications"
COMMUNITY_FEEDBACK_PATH = "community_feedback"
VISITOR_COUNTER_PATH = "meta/visitorCounter"

# Daily download quota per role.
FREE_DAILY_DOWNLOADS = 3
PREMIUM_DAILY_DOWNLOADS = 10

PREMIUM_TRIAL_DAYS = 30

UNKNOWN = "unknown"

# Admin dashboard
TOP_ENTRIES_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10
USER_DETAILS_QUERY_LIMIT = 100

# Form limits
MAX_NAME_LENGTH = 200
MAX_FEEDBACK_MESSAGE_LENGTH = 5000
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

RELEASE_NAME = "HENU OS 2.0 LTS"
RELEASE_VERSION = "2.0"
RELEASE_SIZE = "2.8 GB"
RELEASE_DATE = "January 2024"
ISO_FILENAME = "henu-os-2.0.iso"
DOWNLOAD_HASH_PREFIX = "henu-os-2.0"
EXPORT_FILENAME_PREFIX = "henu-os-user-data"

DEFAULT_DOWNLOAD_URL = (
    "https://drive.google.com/uc?export=download&id=1_qA5yiDP0l0nYQRA6qlPxBuAMD7rl0rL"
)

DOWNLOAD_MIRRORS = [
    {
        "name": "Google Drive (Primary)",
        "url": DEFAULT_DOWNLOAD_URL,
        "location": "Google Drive",
        "speed": "Fast",
        "recommended": True,
    },
    {
        "name": "GitHub Releases",
        "url": "https://github.com/henu-os/releases/latest",
        "location": "GitHub",
        "speed": "Good",
        "recommended": False,
    },
    {
        "name": "European Mirror",
        "url": "https://eu.releases.henu-os.org/latest/henu-os-2.0.iso",
        "location": "Europe",
        "speed": "Fast",
        "recommended": False,
    },
]

# Hosts whose links are landing pages rather than raw files.
NEW_TAB_HOSTS = ("drive.google.com", "github.com")

CHECKSUMS = {
    "md5": "a1b2c3d4e5f6789012345678901234567890abcd",
    "sha256": "1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef12",
}

SYSTEM_REQUIREMENTS = [
    {
        "label": "Processor",
        "minimum": "64-bit x86 processor",
        "recommended": "Multi-core 2GHz+",
    },
    {"label": "Memory", "minimum": "2 GB RAM", "recommended": "4 GB RAM or more"},
    {
        "label": "Storage",
        "minimum": "20 GB free space",
        "recommended": "50 GB SSD storage",
    },
    {
        "label": "Graphics",
        "minimum": "Integrated graphics",
        "recommended": "Dedicated GPU",
    },
]

INSTALLATION_STEPS = [
    {
        "step": 1,
        "title": "Download ISO",
        "description": "Download the HENU OS ISO file from one of our mirrors",
    },
    {
        "step": 2,
        "title": "Create Bootable USB",
        "description": "Use Rufus (Windows) or Etcher (Linux/Mac) to create installation media",
    },
    {
        "step": 3,
        "title": "Boot & Install",
        "description": "Boot from USB and follow the guided installation process",
    },
    {
        "step": 4,
        "title": "Enjoy HENU OS",
        "description": "Experience voice-powered Linux with multi-language support",
    },
]

# Options offered by the download details form.
COUNTRY_OPTIONS = ("US", "GB", "DE", "FR", "JP", "IN", "BR", "CA", "AU", "Other")
USE_CASE_OPTIONS = (
    "personal",
    "development",
    "business",
    "education",
    "gaming",
    "testing",
    "other",
)

FEEDBACK_TYPES = ("general", "bug", "feature", "question")
