"""Session transports for resumable uploads.

SessionTransport is the narrow interface the engine drives. The Drive
implementation speaks the Drive v3 resumable upload protocol:

- POST .../upload/drive/v3/files?uploadType=resumable opens a session and
  returns its URI in the Location header
- PUT <session uri> with Content-Range sends a chunk; 308 means more bytes
  are expected and the Range header reports what was persisted, 200/201
  carries the finished file resource
- PUT <session uri> with "Content-Range: bytes */*" and no body queries
  the persisted range
- DELETE <session uri> abandons the session
"""

import re
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from google.auth.transport.requests import AuthorizedSession

from ..drive.files import FILE_FIELDS
from ..exceptions import TransportError
from ..timing import time_api_call
from .classify import classify_response, transport_error_for
from .models import ChunkOutcome, OffsetStatus

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

# Drive requires every non-final chunk to be a multiple of 256 KiB
DRIVE_CHUNK_ALIGNMENT = 256 * 1024

RESUME_INCOMPLETE = 308

RANGE_HEADER_REGEX = re.compile(r'^bytes=(\d+)-(\d+)$')


class SessionTransport(ABC):
    """Remote side of an upload session."""

    # Required divisor of the chunk size
    chunk_alignment = 1

    @abstractmethod
    def open_session(self, metadata: Dict[str, Any], content_type: str, total_size: int) -> str:
        """Open a session and return its identifier. Raises TransportError."""

    @abstractmethod
    def send_chunk(self, session_id: str, offset: int, data: bytes, is_final: bool) -> ChunkOutcome:
        """Send one chunk and report what the remote end accepted."""

    @abstractmethod
    def query_offset(self, session_id: str) -> OffsetStatus:
        """Ask the remote end how many bytes it holds. Raises TransportError."""

    @abstractmethod
    def abandon(self, session_id: str) -> None:
        """Ask the remote end to discard the session (best effort)."""


def parse_range_header(value: Optional[str]) -> int:
    """
    Convert a Range response header into the next expected offset.

    "bytes=0-1048575" means bytes 0..1048575 are persisted, so the next
    offset is 1048576. A missing header means nothing has been persisted.
    """
    if not value:
        return 0
    match = RANGE_HEADER_REGEX.match(value.strip())
    if not match or int(match.group(1)) != 0:
        raise TransportError(f"Unexpected Range header in upload response: {value!r}")
    return int(match.group(2)) + 1


def _json_body(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        logger.warning(f"Upload response {response.status_code} carried no JSON body")
        return {}
    return body if isinstance(body, dict) else {}


def _completed_offset(resource: Dict[str, Any]) -> Optional[int]:
    size = resource.get("size")
    if size is None:
        return None
    try:
        return int(size)
    except (TypeError, ValueError):
        return None


class DriveSessionTransport(SessionTransport):
    """Google Drive v3 resumable upload endpoint."""

    chunk_alignment = DRIVE_CHUNK_ALIGNMENT

    def __init__(
        self,
        credentials: Any = None,
        session: Optional[requests.Session] = None,
        timeout: float = 60,
        upload_url: str = UPLOAD_URL,
        fields: str = FILE_FIELDS,
    ):
        if session is None:
            if credentials is None:
                raise ValueError("Either credentials or an HTTP session is required")
            session = AuthorizedSession(credentials)
        self._session = session
        self.timeout = timeout
        self.upload_url = upload_url
        self.fields = fields

    @time_api_call
    def open_session(self, metadata: Dict[str, Any], content_type: str, total_size: int) -> str:
        params = {
            "uploadType": "resumable",
            "fields": self.fields,
            "supportsAllDrives": "true",
        }
        headers = {
            "Content-Type": "application/json; charset=UTF-8",
            "X-Upload-Content-Type": content_type,
            "X-Upload-Content-Length": str(total_size),
        }
        try:
            response = self._session.request(
                "POST", self.upload_url, params=params, json=metadata,
                headers=headers, timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise TransportError(f"Opening upload session failed: {e}", retryable=True) from e

        if response.status_code != 200:
            raise transport_error_for(response, "Opening upload session")
        location = response.headers.get("Location")
        if not location:
            raise TransportError("Upload session response carried no Location header",
                                 status_code=response.status_code)
        logger.debug(f"Opened upload session for {total_size} bytes of {content_type}")
        return location

    @time_api_call
    def send_chunk(self, session_id: str, offset: int, data: bytes, is_final: bool) -> ChunkOutcome:
        end = offset + len(data)
        total = str(end) if is_final else "*"
        if data:
            content_range = f"bytes {offset}-{end - 1}/{total}"
        else:
            content_range = f"bytes */{total}"
        headers = {
            "Content-Range": content_range,
            "Content-Length": str(len(data)),
        }
        try:
            response = self._session.request(
                "PUT", session_id, data=data, headers=headers, timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            return ChunkOutcome.retryable(f"{type(e).__name__}: {e}")

        if response.status_code == RESUME_INCOMPLETE:
            new_offset = parse_range_header(response.headers.get("Range"))
            if new_offset < end:
                return ChunkOutcome.partial(new_offset)
            return ChunkOutcome.accepted(new_offset)
        if response.status_code in (200, 201):
            resource = _json_body(response)
            reported = _completed_offset(resource)
            return ChunkOutcome.accepted(
                end if reported is None else reported, complete=True, resource=resource,
            )
        return classify_response(response)

    @time_api_call
    def query_offset(self, session_id: str) -> OffsetStatus:
        headers = {
            "Content-Range": "bytes */*",
            "Content-Length": "0",
        }
        try:
            response = self._session.request(
                "PUT", session_id, headers=headers, timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise TransportError(f"Querying upload status failed: {e}", retryable=True) from e

        if response.status_code == RESUME_INCOMPLETE:
            return OffsetStatus(parse_range_header(response.headers.get("Range")))
        if response.status_code in (200, 201):
            resource = _json_body(response)
            return OffsetStatus(_completed_offset(resource), complete=True, resource=resource)
        raise transport_error_for(response, "Querying upload status")

    def abandon(self, session_id: str) -> None:
        try:
            response = self._session.request("DELETE", session_id, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Could not abandon upload session: {e}")
            return
        # Drive acknowledges a cancelled session with 499
        logger.debug(f"Abandon request answered with HTTP {response.status_code}")
