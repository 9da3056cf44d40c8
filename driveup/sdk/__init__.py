"""driveup SDK - resumable uploads to Google Drive.

Example usage:
    from driveup.sdk import upload

    result = upload.upload_file("backup.tar", folder_id="1AbC...")
    if result["status"] == "interrupted":
        # later, possibly from another process
        result = upload.resume_upload("backup.tar")
"""

from . import config
from . import auth
from . import drive
from . import upload

__all__ = ["config", "auth", "drive", "upload"]
