"""Upload session state model.

An UploadSession is mutated only through its methods, and every mutation
checks the session invariants:

- 0 <= confirmed_offset <= total_size
- confirmed_offset never moves backwards, except through reset_offset(),
  which is reserved for resuming from the server's authoritative answer
- status is completed only when the whole source is confirmed and a
  terminal success response was observed
- completed and failed are final
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

from ..exceptions import InvalidSessionStateError

DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})


class OutcomeKind(str, Enum):
    ACCEPTED = "accepted"
    PARTIAL = "partial"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class ChunkOutcome:
    """What the remote end said about one chunk send.

    For accepted and partial outcomes, offset is the server-confirmed
    offset after the send. complete is set when the response is the
    terminal success of the whole upload; resource then holds the file
    resource the server returned.
    """

    kind: OutcomeKind
    offset: Optional[int] = None
    complete: bool = False
    resource: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    retry_after: Optional[float] = None

    @classmethod
    def accepted(cls, offset: int, complete: bool = False,
                 resource: Optional[Dict[str, Any]] = None) -> "ChunkOutcome":
        return cls(OutcomeKind.ACCEPTED, offset=offset, complete=complete, resource=resource)

    @classmethod
    def partial(cls, offset: int) -> "ChunkOutcome":
        return cls(OutcomeKind.PARTIAL, offset=offset)

    @classmethod
    def retryable(cls, reason: str, retry_after: Optional[float] = None) -> "ChunkOutcome":
        return cls(OutcomeKind.RETRYABLE, reason=reason, retry_after=retry_after)

    @classmethod
    def fatal(cls, reason: str) -> "ChunkOutcome":
        return cls(OutcomeKind.FATAL, reason=reason)

    @property
    def advanced(self) -> bool:
        return self.kind in (OutcomeKind.ACCEPTED, OutcomeKind.PARTIAL)


@dataclass(frozen=True)
class OffsetStatus:
    """Answer to a status query against an upload session.

    offset is None when the session is complete and the server did not
    report the file size.
    """

    offset: Optional[int]
    complete: bool = False
    resource: Optional[Dict[str, Any]] = None


@dataclass
class ChunkAttempt:
    offset: int
    length: int
    attempt_count: int = 1
    outcome: Optional[ChunkOutcome] = None

    @property
    def end(self) -> int:
        return self.offset + self.length


class UploadSession:
    """Client-side view of one remote upload session."""

    def __init__(
        self,
        session_id: str,
        total_size: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        content_type: str = DEFAULT_CONTENT_TYPE,
        metadata: Optional[Dict[str, Any]] = None,
        confirmed_offset: int = 0,
        status: SessionStatus = SessionStatus.PENDING,
        attempt_count: int = 0,
        reason: Optional[str] = None,
        resource: Optional[Dict[str, Any]] = None,
        completion_observed: bool = False,
    ):
        if not session_id:
            raise InvalidSessionStateError("session_id must not be empty")
        if total_size < 0:
            raise InvalidSessionStateError(f"total_size must be >= 0, got {total_size}")
        if chunk_size <= 0:
            raise InvalidSessionStateError(f"chunk_size must be > 0, got {chunk_size}")
        if not 0 <= confirmed_offset <= total_size:
            raise InvalidSessionStateError(
                f"confirmed_offset {confirmed_offset} outside [0, {total_size}]"
            )
        self.session_id = session_id
        self.total_size = total_size
        self.chunk_size = chunk_size
        self.content_type = content_type
        self.metadata = dict(metadata or {})
        self.attempt_count = attempt_count
        self.reason = reason
        self.resource = resource
        self.completion_observed = completion_observed
        self._confirmed_offset = confirmed_offset
        self._status = SessionStatus(status)
        if self._status is SessionStatus.COMPLETED and not self._is_fully_confirmed():
            raise InvalidSessionStateError("completed session must be fully confirmed")
        self._drive_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()

    def __repr__(self):
        return (f"UploadSession(session_id={self.session_id!r}, status={self._status.value}, "
                f"confirmed_offset={self._confirmed_offset}, total_size={self.total_size})")

    @property
    def confirmed_offset(self) -> int:
        return self._confirmed_offset

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    @property
    def remaining(self) -> int:
        return self.total_size - self._confirmed_offset

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _is_fully_confirmed(self) -> bool:
        return self._confirmed_offset == self.total_size and self.completion_observed

    def next_length(self) -> int:
        """Length of the next chunk to send from the confirmed offset."""
        return min(self.chunk_size, self.remaining)

    # -- offset transitions -------------------------------------------------

    def advance(self, offset: int):
        """Move the confirmed offset forward to a server-acknowledged value."""
        if offset < self._confirmed_offset:
            raise InvalidSessionStateError(
                f"confirmed offset cannot regress from {self._confirmed_offset} to {offset}"
            )
        if offset > self.total_size:
            raise InvalidSessionStateError(
                f"confirmed offset {offset} exceeds total size {self.total_size}"
            )
        self._confirmed_offset = offset

    def reset_offset(self, offset: int):
        """Replace the confirmed offset with the server's answer to a status query."""
        if not 0 <= offset <= self.total_size:
            raise InvalidSessionStateError(
                f"reported offset {offset} outside [0, {self.total_size}]"
            )
        self._confirmed_offset = offset

    def begin_attempt(self, offset: int, length: int) -> ChunkAttempt:
        """Create the attempt record for the next send.

        Only the byte range starting at the confirmed offset may be sent.
        """
        if offset != self._confirmed_offset:
            raise InvalidSessionStateError(
                f"chunk offset {offset} does not match confirmed offset {self._confirmed_offset}"
            )
        if length < 0 or offset + length > self.total_size:
            raise InvalidSessionStateError(
                f"chunk [{offset}, {offset + length}) exceeds total size {self.total_size}"
            )
        return ChunkAttempt(offset=offset, length=length, attempt_count=self.attempt_count + 1)

    # -- concurrency ----------------------------------------------------------

    @contextmanager
    def exclusive(self):
        """Hold the session for one driver; a second concurrent driver is rejected."""
        if not self._drive_lock.acquire(blocking=False):
            raise InvalidSessionStateError(f"session {self.session_id} is already being driven")
        try:
            yield self
        finally:
            self._drive_lock.release()

    def request_cancel(self):
        self._cancel_event.set()

    def wait_cancelled(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; return early with True if cancelled."""
        return self._cancel_event.wait(timeout)

    def record_completion(self, resource: Optional[Dict[str, Any]]):
        self.completion_observed = True
        self.resource = resource

    # -- status transitions -------------------------------------------------

    def _set_status(self, status: SessionStatus, reason: Optional[str] = None):
        with self._state_lock:
            if self.is_terminal and self.cancelled:
                # cancel() may settle the session while a driver is finishing
                return
            if self.is_terminal and status is not self._status:
                raise InvalidSessionStateError(
                    f"session {self.session_id} is {self._status.value}; cannot move to {status.value}"
                )
            self._status = status
            self.reason = reason

    def mark_in_progress(self):
        self._set_status(SessionStatus.IN_PROGRESS)

    def mark_interrupted(self, reason: str):
        self._set_status(SessionStatus.INTERRUPTED, reason)

    def mark_failed(self, reason: str):
        self._set_status(SessionStatus.FAILED, reason)

    def mark_completed(self):
        if not self._is_fully_confirmed():
            raise InvalidSessionStateError(
                f"session {self.session_id} not complete: {self._confirmed_offset}/{self.total_size} "
                f"confirmed, terminal response observed: {self.completion_observed}"
            )
        self._set_status(SessionStatus.COMPLETED)

    # -- persistence --------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "total_size": self.total_size,
            "chunk_size": self.chunk_size,
            "content_type": self.content_type,
            "metadata": self.metadata,
            "confirmed_offset": self._confirmed_offset,
            "status": self._status.value,
            "attempt_count": self.attempt_count,
            "reason": self.reason,
            "resource": self.resource,
            "completion_observed": self.completion_observed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadSession":
        try:
            return cls(
                session_id=data["session_id"],
                total_size=int(data["total_size"]),
                chunk_size=int(data.get("chunk_size", DEFAULT_CHUNK_SIZE)),
                content_type=data.get("content_type", DEFAULT_CONTENT_TYPE),
                metadata=data.get("metadata"),
                confirmed_offset=int(data.get("confirmed_offset", 0)),
                status=SessionStatus(data.get("status", SessionStatus.PENDING.value)),
                attempt_count=int(data.get("attempt_count", 0)),
                reason=data.get("reason"),
                resource=data.get("resource"),
                completion_observed=bool(data.get("completion_observed", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidSessionStateError(f"Malformed session record: {e}") from e
