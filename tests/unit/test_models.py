"""Unit tests for the upload session state model."""

import pytest

from driveup.sdk.exceptions import InvalidSessionStateError
from driveup.sdk.upload.models import ChunkOutcome, OutcomeKind, SessionStatus, UploadSession


def test_new_session_is_pending_at_zero():
    session = UploadSession("s", 100, chunk_size=30)
    assert session.status is SessionStatus.PENDING
    assert session.confirmed_offset == 0
    assert session.remaining == 100
    assert session.next_length() == 30


@pytest.mark.parametrize("kwargs", [
    {"session_id": "", "total_size": 10},
    {"session_id": "s", "total_size": -1},
    {"session_id": "s", "total_size": 10, "chunk_size": 0},
    {"session_id": "s", "total_size": 10, "confirmed_offset": 11},
    {"session_id": "s", "total_size": 10, "confirmed_offset": 5, "status": SessionStatus.COMPLETED},
])
def test_invalid_construction_rejected(kwargs):
    with pytest.raises(InvalidSessionStateError):
        UploadSession(**kwargs)


class TestOffsets:

    def test_advance_moves_forward(self):
        session = UploadSession("s", 100)
        session.advance(40)
        session.advance(40)
        assert session.confirmed_offset == 40
        assert session.next_length() == 60

    def test_advance_cannot_regress(self):
        session = UploadSession("s", 100, confirmed_offset=50)
        with pytest.raises(InvalidSessionStateError):
            session.advance(49)
        assert session.confirmed_offset == 50

    def test_advance_cannot_pass_total(self):
        session = UploadSession("s", 100)
        with pytest.raises(InvalidSessionStateError):
            session.advance(101)

    def test_reset_offset_may_move_backwards(self):
        session = UploadSession("s", 100, confirmed_offset=50)
        session.reset_offset(20)
        assert session.confirmed_offset == 20
        with pytest.raises(InvalidSessionStateError):
            session.reset_offset(101)

    def test_attempt_must_start_at_confirmed_offset(self):
        session = UploadSession("s", 100, confirmed_offset=10)
        with pytest.raises(InvalidSessionStateError):
            session.begin_attempt(0, 10)
        with pytest.raises(InvalidSessionStateError):
            session.begin_attempt(10, 91)

        attempt = session.begin_attempt(10, 90)
        assert attempt.end == 100
        assert attempt.attempt_count == 1


class TestStatus:

    def test_completed_requires_full_confirmation_and_terminal_response(self):
        session = UploadSession("s", 10)
        session.advance(10)
        with pytest.raises(InvalidSessionStateError):
            session.mark_completed()

        session.record_completion({"id": "f"})
        session.mark_completed()
        assert session.status is SessionStatus.COMPLETED
        assert session.is_terminal

    def test_terminal_states_are_final(self):
        session = UploadSession("s", 10)
        session.mark_failed("HTTP 403")
        with pytest.raises(InvalidSessionStateError):
            session.mark_in_progress()
        with pytest.raises(InvalidSessionStateError):
            session.mark_interrupted("later")
        assert session.reason == "HTTP 403"

    def test_interrupted_can_return_to_in_progress(self):
        session = UploadSession("s", 10)
        session.mark_in_progress()
        session.mark_interrupted("network down")
        assert session.reason == "network down"
        session.mark_in_progress()
        assert session.status is SessionStatus.IN_PROGRESS
        assert session.reason is None


class TestPersistence:

    def test_dict_round_trip_preserves_state(self):
        session = UploadSession("https://upload/abc", 100, chunk_size=10, content_type="text/plain",
                                metadata={"name": "a.txt"})
        session.advance(30)
        session.mark_interrupted("HTTP 503")
        session.attempt_count = 2

        restored = UploadSession.from_dict(session.to_dict())

        assert restored.to_dict() == session.to_dict()
        assert restored.status is SessionStatus.INTERRUPTED

    def test_malformed_record_rejected(self):
        with pytest.raises(InvalidSessionStateError):
            UploadSession.from_dict({"total_size": 10})
        with pytest.raises(InvalidSessionStateError):
            UploadSession.from_dict({"session_id": "s", "total_size": 10, "status": "bogus"})


def test_exclusive_rejects_second_holder():
    session = UploadSession("s", 10)
    with session.exclusive():
        with pytest.raises(InvalidSessionStateError):
            with session.exclusive():
                pass
    with session.exclusive():
        pass


def test_cancel_request_wakes_waiters():
    session = UploadSession("s", 10)
    assert session.wait_cancelled(0) is False
    session.request_cancel()
    assert session.cancelled
    assert session.wait_cancelled(5) is True


def test_cancelled_session_ignores_late_driver_transitions():
    session = UploadSession("s", 10)
    session.mark_in_progress()
    session.request_cancel()
    session.mark_failed("cancelled")

    session.mark_interrupted("gave up")
    session.advance(10)
    session.record_completion({"id": "f"})
    session.mark_completed()
    session.mark_failed("HTTP 500")

    assert session.status is SessionStatus.FAILED
    assert session.reason == "cancelled"


def test_outcome_constructors():
    assert ChunkOutcome.accepted(5).advanced
    assert ChunkOutcome.partial(3).kind is OutcomeKind.PARTIAL
    assert not ChunkOutcome.retryable("x", retry_after=2).advanced
    assert ChunkOutcome.fatal("x").reason == "x"
