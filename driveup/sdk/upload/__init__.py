"""Resumable chunked uploads."""

from .models import (
    DEFAULT_CHUNK_SIZE,
    SessionStatus,
    OutcomeKind,
    ChunkOutcome,
    ChunkAttempt,
    OffsetStatus,
    UploadSession,
)
from .engine import ResumableUploadEngine, RetryPolicy
from .transport import SessionTransport, DriveSessionTransport
from .source import SourceReader, FileSourceReader, BytesSourceReader, compute_md5
from .store import SessionStore, session_key
from .service import (
    get_upload_engine,
    upload_file,
    resume_upload,
    cancel_upload,
    list_uploads,
    verify_upload,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "SessionStatus",
    "OutcomeKind",
    "ChunkOutcome",
    "ChunkAttempt",
    "OffsetStatus",
    "UploadSession",
    "ResumableUploadEngine",
    "RetryPolicy",
    "SessionTransport",
    "DriveSessionTransport",
    "SourceReader",
    "FileSourceReader",
    "BytesSourceReader",
    "compute_md5",
    "SessionStore",
    "session_key",
    "get_upload_engine",
    "upload_file",
    "resume_upload",
    "cancel_upload",
    "list_uploads",
    "verify_upload",
]
