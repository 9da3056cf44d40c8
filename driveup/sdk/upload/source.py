"""Random-access byte sources for chunked uploads."""

import os
import hashlib
import logging
import threading
from abc import ABC, abstractmethod

from ..exceptions import IntegrityError, ValidationError

logger = logging.getLogger(__name__)

# Block size used when hashing a whole source
HASH_BLOCK_SIZE = 4 * 1024 * 1024


class SourceReader(ABC):
    """
    Random-access view of the bytes being uploaded.

    read_range must be idempotent: reading the same range twice returns the
    same bytes, which is what lets the engine resend a chunk after a failed
    attempt without rewinding a stream.
    """

    @property
    @abstractmethod
    def size(self) -> int:
        """Total number of bytes in the source."""

    @abstractmethod
    def read_range(self, offset: int, length: int) -> bytes:
        """Return exactly `length` bytes starting at `offset`."""

    def _check_range(self, offset: int, length: int):
        if offset < 0 or length < 0 or offset + length > self.size:
            raise ValidationError(
                f"range [{offset}, {offset + length}) outside source of {self.size} bytes"
            )


class FileSourceReader(SourceReader):
    """Reads ranges from a local file.

    One handle is shared by all callers; seek and read happen under a lock
    so several sessions may read from the same reader concurrently.
    """

    def __init__(self, path: str):
        self.path = path
        self._file = open(path, "rb")
        self._size = os.fstat(self._file.fileno()).st_size
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def size(self) -> int:
        return self._size

    def read_range(self, offset: int, length: int) -> bytes:
        self._check_range(offset, length)
        with self._lock:
            self._file.seek(offset)
            data = self._file.read(length)
        if len(data) != length:
            raise IntegrityError(
                f"{self.path}: expected {length} bytes at offset {offset}, read {len(data)}. "
                f"The file changed during upload."
            )
        return data

    def close(self):
        self._file.close()


class BytesSourceReader(SourceReader):
    """Serves ranges from an in-memory buffer."""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    @property
    def size(self) -> int:
        return len(self._data)

    def read_range(self, offset: int, length: int) -> bytes:
        self._check_range(offset, length)
        return self._data[offset:offset + length]


def compute_md5(reader: SourceReader, block_size: int = HASH_BLOCK_SIZE) -> str:
    """Hex MD5 digest of the whole source, as Drive reports in md5Checksum."""
    digest = hashlib.md5()
    offset = 0
    while offset < reader.size:
        length = min(block_size, reader.size - offset)
        digest.update(reader.read_range(offset, length))
        offset += length
    logger.debug(f"Computed MD5 over {reader.size} bytes")
    return digest.hexdigest()
