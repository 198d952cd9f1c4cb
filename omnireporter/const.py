"""Constants shared by the reporter."""

import re

DEFAULT_BASE_URL = "https://omni-dashboard-inky.vercel.app/api/v1"
DEFAULT_ENVIRONMENT = "production"

# Number of days of build history the dashboard returns alongside a new build.
BUILD_HISTORY_DAYS = 7

API_KEY_HEADER = "x-api-key"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 300.0
DEFAULT_FINISH_TIMEOUT_SECONDS = 600.0

PRIORITY_TAG_PATTERN = re.compile(r"^P[0-3]$")
DEFAULT_MODULE = "General"

CONTENT_TYPE_MAPPING = {
    "screenshot": "image/png",
    "trace": "application/zip",
}
DEFAULT_TRACE_NAME = "trace.zip"

CONFIG_DIR_NAME = ".omnireporter"
