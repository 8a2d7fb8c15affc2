"""Configuration for the e-CD web API"""

import os

from ecd_core.config import config

API_VERSION = "1.0.0"

WEB_HOST = os.getenv("ECD_WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("ECD_WEB_PORT", str(config.api_port)))

# Request bodies are small JSON documents
MAX_CONTENT_LENGTH = 1 * 1024 * 1024

SUBMIT_ENDPOINT = "/api/submit-customs"
