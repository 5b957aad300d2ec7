"""Durable phone -> session id mapping.

The mapping lives as one JSON document in blob storage. Every read pulls the
latest snapshot (backing up the previous local copy first), every creation
rewrites the whole document. There is no locking: two instances creating a
session for the same unseen user at once both upload, and the last upload wins.
"""

import itertools
import json
import time
from pathlib import Path
from typing import Callable, Optional

import anyio

from wa_relay.config import Settings
from wa_relay.logging_config import get_logger
from wa_relay.services.blob_storage import BlobStorage
from wa_relay.services.errors import CorruptSnapshot, StorageUnavailable
from wa_relay.services.session_id import generate_session_id

logger = get_logger("session_store")

Clock = Callable[[], int]
IdGenerator = Callable[[str], str]


def current_time_ms() -> int:
    return time.time_ns() // 1_000_000


def parse_snapshot(data: bytes) -> dict[str, str]:
    """Decode a snapshot document. Raises CorruptSnapshot on anything but a str->str object."""
    try:
        mapping = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise CorruptSnapshot(f"Session snapshot is not valid JSON: {exc}") from exc

    if not isinstance(mapping, dict):
        raise CorruptSnapshot(f"Session snapshot must be a JSON object, got {type(mapping).__name__}")
    for key, value in mapping.items():
        if not isinstance(value, str):
            raise CorruptSnapshot(f"Session id for {key!r} is not a string")
    return mapping


def serialize_snapshot(mapping: dict[str, str]) -> bytes:
    return json.dumps(mapping, indent=2, ensure_ascii=False).encode("utf-8")


class SessionStore:
    def __init__(
        self,
        storage: BlobStorage,
        local_path: str | Path,
        remote_key: Optional[str] = None,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        self.storage = storage
        self.local_path = Path(local_path)
        self.remote_key = remote_key or self.local_path.name
        self.clock = clock or current_time_ms
        self.id_generator = id_generator or self._default_id_generator

    def _default_id_generator(self, user_id: str) -> str:
        return generate_session_id(user_id, now_ms=self.clock())

    def backup_path_for(self, timestamp_ms: int) -> Path:
        """First free backup name for this millisecond: `<name>.<ms>.bak`, then `<name>.<ms>-1.bak`, ..."""
        candidate = self.local_path.with_name(f"{self.local_path.name}.{timestamp_ms}.bak")
        for attempt in itertools.count(1):
            if not candidate.exists():
                return candidate
            candidate = self.local_path.with_name(f"{self.local_path.name}.{timestamp_ms}-{attempt}.bak")

    def _backup_local_copy(self) -> Optional[Path]:
        """Rename the current local copy to ``<name>.<ms>.bak``. Best-effort."""
        if not self.local_path.exists():
            return None
        backup_path = self.backup_path_for(self.clock())
        try:
            self.local_path.replace(backup_path)
        except OSError as exc:
            logger.warning(
                "Session snapshot backup failed",
                extra={"context": {"path": str(self.local_path), "error": str(exc)}},
            )
            return None
        logger.info(f"Existing file backed up as {backup_path}")
        return backup_path

    def _write_local_copy(self, data: bytes) -> None:
        try:
            self.local_path.parent.mkdir(parents=True, exist_ok=True)
            self.local_path.write_bytes(data)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to write local snapshot {self.local_path}: {exc}") from exc

    async def load(self) -> dict[str, str]:
        """Fetch the latest snapshot. A missing remote object is an empty mapping."""
        await anyio.to_thread.run_sync(self._backup_local_copy)

        data = await self.storage.get(self.remote_key)
        if data is None:
            logger.info(f"No remote snapshot at {self.remote_key}, starting empty")
            return {}

        await anyio.to_thread.run_sync(self._write_local_copy, data)
        return parse_snapshot(data)

    async def save(self, mapping: dict[str, str]) -> None:
        """Rewrite the whole snapshot, locally and remotely."""
        data = serialize_snapshot(mapping)
        await anyio.to_thread.run_sync(self._write_local_copy, data)
        await self.storage.put(self.remote_key, data)
        logger.info("Session snapshot saved", extra={"context": {"entries": len(mapping)}})

    async def resolve_or_create(self, user_id: str) -> str:
        """Return the user's session id, minting and persisting one if needed."""
        sessions = await self.load()
        session_id = sessions.get(user_id)
        if session_id:
            return session_id

        session_id = self.id_generator(user_id)
        sessions[user_id] = session_id
        await self.save(sessions)
        logger.info("Created new session", extra={"context": {"session_id": session_id}})
        return session_id

    async def reverse_resolve(self, session_id: Optional[str]) -> Optional[str]:
        """Find the user a session id belongs to, or None if unknown."""
        if not session_id:
            return None
        sessions = await self.load()
        return next((user_id for user_id, sid in sessions.items() if sid == session_id), None)


def build_session_store(settings: Settings, storage: BlobStorage) -> SessionStore:
    local_path = Path(settings.sessions_cache_dir) / settings.sessions_file_name
    return SessionStore(storage, local_path, remote_key=settings.sessions_file_name)
