"""Verification of finished uploads against their source."""

import logging
from typing import Any, Dict, Optional

from ..exceptions import IntegrityError
from .models import UploadSession
from .source import SourceReader, compute_md5

logger = logging.getLogger(__name__)


def _reported_size(resource: Dict[str, Any]) -> Optional[int]:
    size = resource.get("size")
    if size is None:
        return None
    try:
        return int(size)
    except (TypeError, ValueError):
        raise IntegrityError(f"Remote file reported a non-numeric size: {size!r}")


def verify_completion(
    session: UploadSession,
    resource: Optional[Dict[str, Any]],
    reader: Optional[SourceReader] = None,
    verify_checksum: bool = True,
):
    """
    Check the terminal response of an upload against the session.

    Args:
        session: Session whose whole source has been confirmed
        resource: File resource returned by the remote end (may be None)
        reader: Source, needed only for checksum verification
        verify_checksum: Compare md5Checksum with the source when both are available

    Raises:
        IntegrityError: If the confirmed offset, reported size or checksum disagree
    """
    if session.confirmed_offset != session.total_size:
        raise IntegrityError(
            f"Completion signalled at offset {session.confirmed_offset}, "
            f"expected {session.total_size}"
        )
    resource = resource or {}
    size = _reported_size(resource)
    if size is not None and size != session.total_size:
        raise IntegrityError(
            f"Remote file size {size} does not match source size {session.total_size}"
        )

    remote_md5 = resource.get("md5Checksum")
    if verify_checksum and remote_md5 and reader is not None:
        local_md5 = compute_md5(reader)
        if local_md5 != remote_md5:
            raise IntegrityError(
                f"Remote MD5 {remote_md5} does not match source MD5 {local_md5}"
            )
        logger.debug(f"Checksum verified for session {session.session_id}: {local_md5}")


def verify_remote_file(resource: Dict[str, Any], reader: SourceReader) -> dict:
    """
    Compare a Drive file resource with a local source.

    Returns:
        Dict with:
            - match: True when every reported property matches
            - size: {"remote": ..., "local": ..., "match": ...}
            - md5: {"remote": ..., "local": ..., "match": ...}
              (match is None when Drive reports no checksum)
    """
    remote_size = _reported_size(resource)
    size_match = remote_size == reader.size if remote_size is not None else None

    remote_md5 = resource.get("md5Checksum")
    local_md5 = compute_md5(reader)
    md5_match = remote_md5 == local_md5 if remote_md5 else None

    checks = [m for m in (size_match, md5_match) if m is not None]
    return {
        "id": resource.get("id"),
        "name": resource.get("name"),
        "match": bool(checks) and all(checks),
        "size": {"remote": remote_size, "local": reader.size, "match": size_match},
        "md5": {"remote": remote_md5, "local": local_md5, "match": md5_match},
    }
