"""Versioned local snapshots of artifact content.

Every local content mutation is saved here first, stamped with the next
per-artifact version and flagged pending. The sync engine later pushes the
newest pending snapshot and marks everything up to that version synced.

Two key families live in the backing key-value store per artifact:
``tuon_snapshot_<id>`` (JSON list, newest first) and ``tuon_version_<id>``
(last issued version).
"""

import json
import time
from pathlib import Path
from typing import Any, Protocol

from app.core.logging import get_logger
from app.core.schemas_documents import ContentSnapshot

logger = get_logger(__name__)

SNAPSHOT_PREFIX = "tuon_snapshot_"
VERSION_PREFIX = "tuon_version_"
DEFAULT_MAX_SNAPSHOTS = 50


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryKeyValueStore:
    """Process-local key-value store."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """Key-value store persisted as a single JSON object on disk.

    The file is rewritten on every set/delete. A missing or corrupt file
    starts empty.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable snapshot file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    def keys(self) -> list[str]:
        return list(self._data)


class LocalSnapshotStore:
    """Bounded, versioned snapshot history per artifact."""

    def __init__(self, kv: KeyValueStore, max_snapshots: int = DEFAULT_MAX_SNAPSHOTS):
        self.kv = kv
        self.max_snapshots = max_snapshots

    # -- keys -------------------------------------------------------------

    @staticmethod
    def _snapshot_key(artifact_id: str) -> str:
        return f"{SNAPSHOT_PREFIX}{artifact_id}"

    @staticmethod
    def _version_key(artifact_id: str) -> str:
        return f"{VERSION_PREFIX}{artifact_id}"

    # -- raw access -------------------------------------------------------

    def _read(self, artifact_id: str) -> list[ContentSnapshot]:
        raw = self.kv.get(self._snapshot_key(artifact_id))
        if not raw:
            return []
        try:
            return [ContentSnapshot.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            logger.warning(f"Discarding corrupt snapshots: {e}", extra={"artifact_id": artifact_id})
            return []

    def _write(self, artifact_id: str, snapshots: list[ContentSnapshot]) -> None:
        payload = json.dumps([s.model_dump(mode="json") for s in snapshots])
        self.kv.set(self._snapshot_key(artifact_id), payload)

    def current_version(self, artifact_id: str) -> int:
        raw = self.kv.get(self._version_key(artifact_id))
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def _next_version(self, artifact_id: str) -> int:
        # Never below what is still stored, even if the counter key was lost
        stored = self._read(artifact_id)
        floor = max((s.version for s in stored), default=0)
        version = max(self.current_version(artifact_id), floor) + 1
        self.kv.set(self._version_key(artifact_id), str(version))
        return version

    # -- public API -------------------------------------------------------

    def save(
        self,
        artifact_id: str,
        content: list[dict[str, Any]],
        title: str,
        owner_id: str,
    ) -> ContentSnapshot:
        """
        Record a new local version of an artifact.

        Returns:
            The stored snapshot (pending_sync=True, next version)
        """
        snapshots = self._read(artifact_id)
        snapshot = ContentSnapshot(
            artifact_id=artifact_id,
            title=title,
            content=content,
            version=self._next_version(artifact_id),
            timestamp=time.time(),
            pending_sync=True,
            owner_id=owner_id,
        )
        snapshots.insert(0, snapshot)
        self._write(artifact_id, snapshots[: self.max_snapshots])

        logger.debug(
            f"Saved snapshot ({len(content)} blocks)",
            extra={"artifact_id": artifact_id, "version": snapshot.version},
        )
        return snapshot

    def latest(self, artifact_id: str) -> ContentSnapshot | None:
        snapshots = self._read(artifact_id)
        return snapshots[0] if snapshots else None

    def pending(self, artifact_id: str) -> list[ContentSnapshot]:
        """Pending snapshots, newest first."""
        return [s for s in self._read(artifact_id) if s.pending_sync]

    def mark_synced(self, artifact_id: str, up_to_version: int) -> int:
        """
        Clear the pending flag on every snapshot at or below ``up_to_version``.

        Returns:
            Number of snapshots that changed
        """
        snapshots = self._read(artifact_id)
        changed = 0
        updated = []
        for snapshot in snapshots:
            if snapshot.pending_sync and snapshot.version <= up_to_version:
                snapshot = snapshot.model_copy(update={"pending_sync": False})
                changed += 1
            updated.append(snapshot)
        if changed:
            self._write(artifact_id, updated)
        return changed

    def clear(self, artifact_id: str) -> None:
        """Drop all snapshots and the version counter for an artifact."""
        self.kv.delete(self._snapshot_key(artifact_id))
        self.kv.delete(self._version_key(artifact_id))
        logger.info("Cleared local snapshots", extra={"artifact_id": artifact_id})

    def artifact_ids(self) -> list[str]:
        """Artifacts that have stored snapshots."""
        return sorted(
            key[len(SNAPSHOT_PREFIX):]
            for key in self.kv.keys()
            if key.startswith(SNAPSHOT_PREFIX)
        )

    def prune(self) -> int:
        """
        Trim every artifact's history to the cap, keeping the newest.

        Returns:
            Number of snapshots removed
        """
        removed = 0
        for artifact_id in self.artifact_ids():
            snapshots = self._read(artifact_id)
            if len(snapshots) <= self.max_snapshots:
                continue
            snapshots.sort(key=lambda s: (s.timestamp, s.version), reverse=True)
            removed += len(snapshots) - self.max_snapshots
            self._write(artifact_id, snapshots[: self.max_snapshots])
        if removed:
            logger.info(f"Pruned {removed} old snapshots")
        return removed
