"""
Unit test fixtures: scripted transports and lazy sources.

ScriptedTransport plays the remote end of an upload session. Each send
consumes the next step of its script:

- None: accept the whole chunk (and complete the upload on the final chunk)
- a ChunkOutcome: returned as-is; accepted/partial outcomes also move the
  simulated server offset
- a callable(transport, offset, data, is_final): full control, may raise
"""

import pytest

from driveup.sdk.upload.models import ChunkOutcome, OffsetStatus
from driveup.sdk.upload.source import SourceReader
from driveup.sdk.upload.transport import SessionTransport


class ScriptedTransport(SessionTransport):
    chunk_alignment = 1

    def __init__(self, script=None, session_id="session-1"):
        self.script = list(script or [])
        self.session_id = session_id
        self.sent = []
        self.received = bytearray()
        self.server_offset = 0
        self.complete = False
        self.resource = None
        self.queries = 0
        self.opened = []
        self.abandoned = []

    def accept(self, offset, data, is_final):
        del self.received[offset:]
        self.received.extend(data)
        self.server_offset = offset + len(data)
        if is_final:
            self.complete = True
            self.resource = {"id": "file-1", "name": "upload.bin", "size": str(self.server_offset)}
            return ChunkOutcome.accepted(self.server_offset, complete=True, resource=self.resource)
        return ChunkOutcome.accepted(self.server_offset)

    def open_session(self, metadata, content_type, total_size):
        self.opened.append((metadata, content_type, total_size))
        return self.session_id

    def send_chunk(self, session_id, offset, data, is_final):
        self.sent.append((offset, len(data), is_final))
        step = self.script.pop(0) if self.script else None
        if step is None:
            return self.accept(offset, data, is_final)
        if callable(step):
            return step(self, offset, data, is_final)
        if step.advanced:
            accepted = step.offset - offset
            del self.received[offset:]
            self.received.extend(data[:accepted])
            self.server_offset = step.offset
        return step

    def query_offset(self, session_id):
        self.queries += 1
        if self.complete:
            return OffsetStatus(self.server_offset, complete=True, resource=self.resource)
        return OffsetStatus(self.server_offset)

    def abandon(self, session_id):
        self.abandoned.append(session_id)


class ZeroSourceReader(SourceReader):
    """Source of `size` zero bytes that never holds them all in memory."""

    def __init__(self, size):
        self._size = size
        self.reads = []

    @property
    def size(self):
        return self._size

    def read_range(self, offset, length):
        self._check_range(offset, length)
        self.reads.append((offset, length))
        return bytes(length)


@pytest.fixture
def make_transport():
    return ScriptedTransport


@pytest.fixture
def zero_reader():
    return ZeroSourceReader
