"""Remote file metadata lookup."""

from typing import Any

from ..timing import time_api_call
from .service import get_drive_service

# Fields needed to verify an upload against its source
FILE_FIELDS = "id, name, mimeType, size, md5Checksum, webViewLink"


@time_api_call
def get_file_metadata(file_id: str, service: Any = None) -> dict:
    """
    Fetch the metadata Drive reports for a file.

    Args:
        file_id: The Drive file ID
        service: Drive service object. Built from the configured credentials if omitted.

    Returns:
        Dict with id, name, mimeType, size, md5Checksum and webViewLink
        (size and md5Checksum are absent for Google-native documents)
    """
    service = service or get_drive_service()
    return service.files().get(
        fileId=file_id,
        fields=FILE_FIELDS,
        supportsAllDrives=True,
    ).execute()
