"""Google Drive service factory."""

import logging
from typing import Any

from googleapiclient.discovery import build

from ..auth import get_credentials

logger = logging.getLogger(__name__)


def get_drive_service(creds: Any = None) -> Any:
    """
    Build and return a Google Drive API service object.

    Args:
        creds: Credentials to use. Loaded from the configured auth mode when omitted.

    Returns:
        Google Drive API service object
    """
    if creds is None:
        creds, source = get_credentials()
        logger.debug(f"Building Drive service using credentials from: {source}")
    return build("drive", "v3", credentials=creds, cache_discovery=False)
