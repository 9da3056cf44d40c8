"""High-level upload operations used by the CLI and SDK callers.

These functions wire the engine to the Drive transport, the configured
credentials and the checkpoint store. Every call builds its own engine from
explicit configuration; nothing is cached at module level.
"""

import os
import logging
import mimetypes
from typing import Any, Optional, Tuple

from ..auth import get_credentials, CredentialsRefresher
from ..config import load_config
from ..drive.files import get_file_metadata
from ..exceptions import CredentialsError, TransportError, ValidationError
from .engine import ResumableUploadEngine, RetryPolicy
from .integrity import verify_remote_file
from .models import SessionStatus, UploadSession
from .source import FileSourceReader
from .store import SessionStore, session_key
from .transport import DriveSessionTransport

logger = logging.getLogger(__name__)


def load_retry_policy(config: Optional[dict] = None) -> RetryPolicy:
    """Build the retry policy from the upload section of the config."""
    upload = (config or load_config())["upload"]
    return RetryPolicy(
        max_attempts=int(upload["max_attempts"]),
        base_delay=float(upload["base_delay"]),
        max_delay=float(upload["max_delay"]),
    )


def get_upload_engine(creds: Any = None, config: Optional[dict] = None) -> ResumableUploadEngine:
    """
    Build an engine that uploads to Google Drive.

    Args:
        creds: Credentials to use. Loaded from the configured auth mode when omitted.
        config: Configuration dict (defaults to load_config())

    Returns:
        ResumableUploadEngine over a DriveSessionTransport
    """
    config = config or load_config()
    upload = config["upload"]
    if creds is None:
        creds, source = get_credentials()
        logger.debug(f"Uploading with credentials from: {source}")
    transport = DriveSessionTransport(credentials=creds, timeout=float(upload["timeout"]))
    return ResumableUploadEngine(
        transport,
        retry_policy=load_retry_policy(config),
        credentials=CredentialsRefresher(creds),
        chunk_size=int(upload["chunk_size"]),
        verify_checksum=bool(upload["verify_checksum"]),
    )


def _result(session: UploadSession, local_path: str) -> dict:
    resource = session.resource or {}
    return {
        "status": session.status.value,
        "local_path": local_path,
        "confirmed_offset": session.confirmed_offset,
        "total_size": session.total_size,
        "reason": session.reason,
        "id": resource.get("id"),
        "name": resource.get("name") or session.metadata.get("name"),
        "url": resource.get("webViewLink"),
    }


def _settle(store: SessionStore, key: str, session: UploadSession, local_path: str):
    """Keep the checkpoint only while the session can still be resumed."""
    if session.is_terminal:
        store.delete(key)
    else:
        store.save(key, session, local_path)


def _resume_checkpoint(
    engine: ResumableUploadEngine,
    store: SessionStore,
    key: str,
    reader: FileSourceReader,
) -> Optional[UploadSession]:
    """Resume the stored session for a source, or discard it if it cannot be used."""
    loaded = store.load(key)
    if loaded is None:
        return None
    session, _ = loaded

    if session.is_terminal:
        store.delete(key)
        return None
    if session.total_size != reader.size:
        logger.warning(f"{reader.path} changed size since the last attempt "
                       f"({session.total_size} -> {reader.size}); starting over")
        engine.cancel(session)
        store.delete(key)
        return None

    try:
        return engine.resume_session(session)
    except TransportError as e:
        if e.retryable:
            raise
        logger.warning(f"Stored upload session can no longer be resumed ({e}); starting over")
        store.delete(key)
        return None


def upload_file(
    local_path: str,
    folder_id: Optional[str] = None,
    name: Optional[str] = None,
    chunk_size: Optional[int] = None,
    fresh: bool = False,
    engine: Optional[ResumableUploadEngine] = None,
    store: Optional[SessionStore] = None,
) -> dict:
    """
    Upload a file to Google Drive, resuming a stored session when one exists.

    Args:
        local_path: Path to the local file to upload
        folder_id: Destination folder ID. Use 'root' or None for My Drive root.
        name: Name for the file in Drive. Defaults to local filename.
        chunk_size: Chunk size for a new session (defaults to config)
        fresh: Abandon any stored session for this file and start over
        engine: Engine to use (defaults to get_upload_engine())
        store: Checkpoint store (defaults to SessionStore())

    Returns:
        Dict with status, confirmed_offset, total_size, reason, id, name and url
    """
    if not os.path.isfile(local_path):
        raise ValidationError(f"Local file not found: {local_path}")
    store = store or SessionStore()
    engine = engine or get_upload_engine()
    key = session_key(local_path)

    filename = name or os.path.basename(local_path)
    mime_type, _ = mimetypes.guess_type(local_path)
    if not mime_type:
        mime_type = "application/octet-stream"

    with FileSourceReader(local_path) as reader:
        session = None
        if fresh:
            _discard_checkpoint(engine, store, key)
        else:
            session = _resume_checkpoint(engine, store, key, reader)

        if session is None:
            metadata = {"name": filename}
            if folder_id and folder_id != "root":
                metadata["parents"] = [folder_id]
            session = engine.start_session(reader.size, mime_type, metadata, chunk_size)
            store.save(key, session, local_path)

        engine.drive(session, reader, on_progress=lambda s: store.save(key, s, local_path))

    _settle(store, key, session, local_path)
    return _result(session, local_path)


def resume_upload(
    local_path: str,
    engine: Optional[ResumableUploadEngine] = None,
    store: Optional[SessionStore] = None,
) -> dict:
    """
    Continue a stored upload session for a file.

    Raises:
        ValidationError: If there is no resumable checkpoint for the file
    """
    store = store or SessionStore()
    key = session_key(local_path)
    if store.load(key) is None:
        raise ValidationError(f"No unfinished upload recorded for {local_path}")
    engine = engine or get_upload_engine()

    with FileSourceReader(local_path) as reader:
        session = _resume_checkpoint(engine, store, key, reader)
        if session is None:
            raise ValidationError(f"Stored upload for {local_path} can no longer be resumed")
        engine.drive(session, reader, on_progress=lambda s: store.save(key, s, local_path))

    _settle(store, key, session, local_path)
    return _result(session, local_path)


def _discard_checkpoint(engine: ResumableUploadEngine, store: SessionStore,
                        key: str) -> Optional[Tuple[UploadSession, str]]:
    loaded = store.load(key)
    if loaded is None:
        return None
    session, _ = loaded
    if session.status is not SessionStatus.COMPLETED:
        engine.cancel(session)
    store.delete(key)
    return session, loaded[1]


def cancel_upload(
    local_path: str,
    engine: Optional[ResumableUploadEngine] = None,
    store: Optional[SessionStore] = None,
) -> dict:
    """
    Abandon the stored upload session for a file and forget its checkpoint.

    Raises:
        ValidationError: If there is no checkpoint for the file
    """
    store = store or SessionStore()
    key = session_key(local_path)
    loaded = store.load(key)
    if loaded is None:
        raise ValidationError(f"No unfinished upload recorded for {local_path}")

    if engine is None:
        try:
            engine = get_upload_engine()
        except CredentialsError as e:
            logger.warning(f"Cannot reach Drive to abandon the upload session ({e}); "
                           f"discarding the local checkpoint only")
            session, source_path = loaded
            if session.status is not SessionStatus.COMPLETED:
                session.request_cancel()
                session.mark_failed("cancelled")
            store.delete(key)
            return _result(session, source_path)

    session, source_path = _discard_checkpoint(engine, store, key)
    return _result(session, source_path)


def list_uploads(store: Optional[SessionStore] = None) -> list:
    """Summaries of every stored, unfinished upload."""
    return (store or SessionStore()).list()


def verify_upload(file_id: str, local_path: str, service: Any = None) -> dict:
    """
    Compare a Drive file with a local file by size and MD5.

    Returns:
        Report dict from verify_remote_file (with "match" at the top level)
    """
    if not os.path.isfile(local_path):
        raise ValidationError(f"Local file not found: {local_path}")
    resource = get_file_metadata(file_id, service=service)
    with FileSourceReader(local_path) as reader:
        report = verify_remote_file(resource, reader)
    report["local_path"] = local_path
    return report
