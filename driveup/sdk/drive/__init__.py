"""Google Drive metadata operations used to verify finished uploads."""

from .service import get_drive_service
from .files import get_file_metadata, FILE_FIELDS

__all__ = [
    "get_drive_service",
    "get_file_metadata",
    "FILE_FIELDS",
]
