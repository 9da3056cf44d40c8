"""JSON checkpoints of unfinished upload sessions.

One file per local source, written after every confirmed chunk so an upload
interrupted by a crash or a lost network can be resumed by a later process.
"""

import os
import json
import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, List, Dict, Any

from ..config import get_sessions_dir
from ..exceptions import InvalidSessionStateError
from .models import UploadSession

logger = logging.getLogger(__name__)


def session_key(local_path: str) -> str:
    """Stable checkpoint key for a local file."""
    absolute = os.path.abspath(os.path.expanduser(local_path))
    return hashlib.sha256(absolute.encode("utf-8")).hexdigest()[:24]


class SessionStore:
    """Directory of session checkpoint records."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else get_sessions_dir()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def save(self, key: str, session: UploadSession, source_path: str):
        """Write (or overwrite) the checkpoint for `key`."""
        self.directory.mkdir(parents=True, exist_ok=True)
        record = {
            "source_path": os.path.abspath(source_path),
            "saved_at": datetime.now().isoformat(),
            "session": session.to_dict(),
        }
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(record, f, indent=2)
        os.replace(tmp_path, path)
        logger.debug(f"Checkpoint saved to {path} at offset {session.confirmed_offset}")

    def load(self, key: str) -> Optional[Tuple[UploadSession, str]]:
        """Return (session, source_path) for `key`, or None if absent or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r") as f:
                record = json.load(f)
            return UploadSession.from_dict(record["session"]), record["source_path"]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, InvalidSessionStateError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {path}: {e}")
            return None

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        logger.debug(f"Checkpoint {path} removed")
        return True

    def list(self) -> List[Dict[str, Any]]:
        """Summaries of every readable checkpoint, oldest first."""
        if not self.directory.exists():
            return []
        records = []
        for path in sorted(self.directory.glob("*.json")):
            key = path.stem
            loaded = self.load(key)
            if loaded is None:
                continue
            session, source_path = loaded
            records.append({
                "key": key,
                "source_path": source_path,
                "status": session.status.value,
                "confirmed_offset": session.confirmed_offset,
                "total_size": session.total_size,
                "name": session.metadata.get("name"),
                "reason": session.reason,
                "saved_at": datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            })
        records.sort(key=lambda r: r["saved_at"])
        return records
