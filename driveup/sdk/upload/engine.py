"""Resumable upload engine.

Drives an UploadSession to completion over a SessionTransport. Iteration is
keyed on the server-confirmed offset, never on a local count of bytes sent:
every chunk is read from the source at the confirmed offset, and the offset
only moves when the remote end acknowledges bytes.

Retryable failures are retried with exponential backoff and full jitter,
and the authoritative offset is re-queried before each resend because the
outcome of a send that died mid-flight is unknown. When the retry budget
for one offset is spent the session is left interrupted, ready for
resume_session() + drive() later. Fatal failures end the session.
"""

import random
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..exceptions import IntegrityError, InvalidSessionStateError, ValidationError
from .classify import classify_exception
from .integrity import verify_completion
from .models import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_TYPE,
    ChunkAttempt,
    ChunkOutcome,
    OffsetStatus,
    OutcomeKind,
    SessionStatus,
    UploadSession,
)
from .source import SourceReader
from .transport import SessionTransport

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadSession], None]


@dataclass
class RetryPolicy:
    """Bounds for retrying a single offset."""

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 32.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValidationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValidationError("retry delays must be >= 0")

    def backoff(self, attempt: int, retry_after: Optional[float] = None,
                rng: Optional[random.Random] = None) -> float:
        """Seconds to wait before retry number `attempt` (1-based).

        A server-provided hint wins over the computed delay; both are capped
        at max_delay.
        """
        if retry_after is not None:
            return min(self.max_delay, retry_after)
        ceiling = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return (rng or random).uniform(0, ceiling)


class ResumableUploadEngine:
    """Chunked upload driver with resume, bounded retry and verification.

    An engine carries its own transport, retry policy and credentials; it
    holds no per-session state, so one engine may drive several sessions
    from different threads as long as each session has one driver.
    """

    def __init__(
        self,
        transport: SessionTransport,
        retry_policy: Optional[RetryPolicy] = None,
        credentials: Any = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        verify_checksum: bool = True,
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            transport: Remote side of the upload sessions
            retry_policy: Retry bounds (defaults to RetryPolicy())
            credentials: Refresh collaborator exposing ensure_valid(); called
                         before every remote operation when given
            chunk_size: Default chunk size for new sessions
            verify_checksum: Compare the remote MD5 with the source on completion
            sleep: Replacement for the backoff wait. By default the wait is
                   interruptible by cancel().
            rng: Random source for jitter
        """
        self.transport = transport
        self.retry_policy = retry_policy or RetryPolicy()
        self.credentials = credentials
        self.verify_checksum = verify_checksum
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.chunk_size = self._validate_chunk_size(chunk_size)

    def _validate_chunk_size(self, chunk_size: int) -> int:
        alignment = getattr(self.transport, "chunk_alignment", 1) or 1
        if chunk_size <= 0 or chunk_size % alignment:
            raise ValidationError(
                f"chunk_size {chunk_size} must be a positive multiple of {alignment} bytes"
            )
        return chunk_size

    def _ensure_credentials(self):
        if self.credentials is not None:
            self.credentials.ensure_valid()

    # -- session lifecycle --------------------------------------------------

    def start_session(
        self,
        source_size: int,
        content_type: str = DEFAULT_CONTENT_TYPE,
        destination_metadata: Optional[Dict[str, Any]] = None,
        chunk_size: Optional[int] = None,
    ) -> UploadSession:
        """
        Open a new remote session.

        Raises:
            ValidationError: If source_size is negative or chunk_size misaligned
            TransportError: If the remote end rejects the session
        """
        if source_size < 0:
            raise ValidationError(f"source_size must be >= 0, got {source_size}")
        chunk_size = self._validate_chunk_size(chunk_size or self.chunk_size)
        metadata = dict(destination_metadata or {})

        self._ensure_credentials()
        session_id = self.transport.open_session(metadata, content_type, source_size)
        session = UploadSession(
            session_id=session_id,
            total_size=source_size,
            chunk_size=chunk_size,
            content_type=content_type,
            metadata=metadata,
        )
        logger.info(f"Started upload session for {source_size} bytes "
                    f"({content_type}, chunk size {chunk_size})")
        return session

    def resume_session(self, session: UploadSession) -> UploadSession:
        """
        Re-synchronise a session with the server's authoritative offset.

        Raises:
            InvalidSessionStateError: If the session is completed or failed
            TransportError: If the status query is rejected
        """
        if session.is_terminal:
            raise InvalidSessionStateError(
                f"cannot resume a {session.status.value} session"
            )
        self._ensure_credentials()
        status = self.transport.query_offset(session.session_id)
        offset = self._reported_offset(session, status)
        previous = session.confirmed_offset
        session.reset_offset(offset)
        if status.complete:
            session.record_completion(status.resource)
        session.attempt_count = 0
        session.mark_in_progress()
        logger.info(f"Resumed upload session at offset {offset}/{session.total_size} "
                    f"(checkpoint was {previous})")
        return session

    def cancel(self, session: UploadSession) -> UploadSession:
        """
        Abandon a session. Local state becomes failed whatever the remote
        end answers; a running drive() stops at its next chunk boundary or
        backoff wait.
        """
        if session.status is SessionStatus.COMPLETED:
            raise InvalidSessionStateError("cannot cancel a completed upload")
        session.request_cancel()
        try:
            self._ensure_credentials()
            self.transport.abandon(session.session_id)
        except Exception as e:
            logger.warning(f"Best-effort abandon of upload session failed: {e}")
        session.mark_failed("cancelled")
        logger.info(f"Cancelled upload session at offset {session.confirmed_offset}/{session.total_size}")
        return session

    # -- driving ------------------------------------------------------------

    def drive(
        self,
        session: UploadSession,
        reader: SourceReader,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadSession:
        """
        Send the rest of the source and return the session in its new state.

        on_progress is called after every advance of the confirmed offset so
        the caller can checkpoint the session.

        Raises:
            InvalidSessionStateError: If the session is terminal or already being driven
        """
        if session.is_terminal:
            raise InvalidSessionStateError(f"cannot drive a {session.status.value} session")
        with session.exclusive():
            return self._drive(session, reader, on_progress)

    def _drive(self, session, reader, on_progress):
        reader_size = getattr(reader, "size", None)
        if reader_size is not None and reader_size != session.total_size:
            return self._fail(
                session,
                f"source size mismatch: source has {reader_size} bytes, "
                f"session expects {session.total_size}",
            )
        if session.status is not SessionStatus.IN_PROGRESS:
            # an interrupted session gets a fresh retry budget
            session.attempt_count = 0
            session.mark_in_progress()

        while True:
            if session.cancelled:
                return session
            if session.completion_observed:
                return self._complete(session, reader)

            offset = session.confirmed_offset
            attempt = session.begin_attempt(offset, session.next_length())
            is_final = attempt.end == session.total_size
            attempt.outcome = self._send(session, reader, attempt, is_final)
            if session.cancelled:
                return session

            outcome = attempt.outcome
            if outcome.advanced and outcome.offset == offset and not outcome.complete:
                outcome = ChunkOutcome.retryable(f"no bytes accepted at offset {offset}")

            if outcome.advanced:
                try:
                    self._accept(session, attempt, outcome)
                except IntegrityError as e:
                    return self._fail(session, str(e))
                if on_progress is not None:
                    on_progress(session)
            elif outcome.kind is OutcomeKind.RETRYABLE:
                if not self._retry(session, outcome, on_progress):
                    return session
            else:
                return self._fail(session, outcome.reason or "fatal transport error")

    def _send(self, session: UploadSession, reader: SourceReader,
              attempt: ChunkAttempt, is_final: bool) -> ChunkOutcome:
        try:
            self._ensure_credentials()
            data = reader.read_range(attempt.offset, attempt.length)
            logger.debug(f"Sending bytes [{attempt.offset}, {attempt.end}) of {session.total_size} "
                         f"(attempt {attempt.attempt_count}, final={is_final})")
            return self.transport.send_chunk(session.session_id, attempt.offset, data, is_final)
        except Exception as e:
            outcome = classify_exception(e)
            logger.debug(f"Chunk send at offset {attempt.offset} raised {type(e).__name__}: "
                         f"classified {outcome.kind.value}", exc_info=True)
            return outcome

    def _accept(self, session: UploadSession, attempt: ChunkAttempt, outcome: ChunkOutcome):
        new_offset = outcome.offset
        if new_offset is None or not attempt.offset <= new_offset <= attempt.end:
            raise IntegrityError(
                f"server acknowledged offset {new_offset} outside the sent range "
                f"[{attempt.offset}, {attempt.end}]"
            )
        if new_offset < attempt.end:
            logger.warning(f"Server accepted {new_offset - attempt.offset} of {attempt.length} bytes "
                           f"at offset {attempt.offset}; continuing from {new_offset}")
        session.advance(new_offset)
        session.attempt_count = 0
        if outcome.complete:
            session.record_completion(outcome.resource)
        logger.debug(f"Confirmed {new_offset}/{session.total_size} bytes")

    def _retry(self, session: UploadSession, outcome: ChunkOutcome,
               on_progress: Optional[ProgressCallback]) -> bool:
        """Account for a retryable failure; return False when the drive loop must stop."""
        policy = self.retry_policy
        session.attempt_count += 1
        if session.attempt_count >= policy.max_attempts:
            reason = (f"gave up at offset {session.confirmed_offset} after "
                      f"{session.attempt_count} attempts: {outcome.reason}")
            logger.warning(f"Upload interrupted, {reason}")
            session.mark_interrupted(reason)
            return False

        delay = policy.backoff(session.attempt_count, outcome.retry_after, self._rng)
        logger.warning(f"Retryable failure at offset {session.confirmed_offset} "
                       f"(attempt {session.attempt_count}/{policy.max_attempts}): {outcome.reason}; "
                       f"retrying in {delay:.2f}s")
        if self._wait(session, delay):
            return False
        return self._resync(session, on_progress)

    def _wait(self, session: UploadSession, delay: float) -> bool:
        """Back off; return True if the session was cancelled meanwhile."""
        if session.cancelled:
            return True
        if self._sleep is not None:
            self._sleep(delay)
            return session.cancelled
        return session.wait_cancelled(delay)

    def _resync(self, session: UploadSession, on_progress: Optional[ProgressCallback]) -> bool:
        """Re-read the authoritative offset before resending after a failure."""
        try:
            self._ensure_credentials()
            status = self.transport.query_offset(session.session_id)
            offset = self._reported_offset(session, status)
        except Exception as e:
            outcome = classify_exception(e)
            if outcome.kind is OutcomeKind.FATAL:
                self._fail(session, f"status query failed: {outcome.reason}")
                return False
            logger.debug(f"Status query failed ({outcome.reason}); resending from checkpoint")
            return self._retry(session, outcome, on_progress)

        previous = session.confirmed_offset
        if offset < previous:
            self._fail(session, f"server reported offset {offset} below confirmed offset {previous}")
            return False
        session.advance(offset)
        if status.complete:
            session.record_completion(status.resource)
        if offset > previous or status.complete:
            logger.info(f"Server had persisted {offset - previous} more bytes than acknowledged")
            session.attempt_count = 0
            if on_progress is not None:
                on_progress(session)
        return True

    def _reported_offset(self, session: UploadSession, status: OffsetStatus) -> int:
        if status.offset is None:
            if status.complete:
                return session.total_size
            raise IntegrityError("status query reported neither an offset nor completion")
        if not 0 <= status.offset <= session.total_size:
            raise IntegrityError(
                f"status query reported offset {status.offset} outside [0, {session.total_size}]"
            )
        return status.offset

    # -- terminal transitions -----------------------------------------------

    def _complete(self, session: UploadSession, reader: SourceReader) -> UploadSession:
        try:
            verify_completion(session, session.resource, reader, self.verify_checksum)
        except IntegrityError as e:
            return self._fail(session, str(e))
        if session.cancelled:
            return session
        session.mark_completed()
        file_id = (session.resource or {}).get("id")
        logger.info(f"Upload complete: {session.total_size} bytes"
                    + (f", file id {file_id}" if file_id else ""))
        return session

    def _fail(self, session: UploadSession, reason: str) -> UploadSession:
        logger.error(f"Upload failed at offset {session.confirmed_offset}/{session.total_size}: {reason}")
        session.mark_failed(reason)
        return session
