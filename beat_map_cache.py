# beat_map_cache.py
from __future__ import annotations

import hashlib
import json
import logging
import shutil
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from gameplay_models import LANE_COUNT, Beat, BeatMap, Difficulty


logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


class CacheIOError(Exception):
    pass


class _BeatRecord(BaseModel):
    time: float = Field(ge=0.0)
    lane: int = Field(ge=0, le=LANE_COUNT - 1)
    intensity: float


class _BeatMapDocument(BaseModel):
    version: int = CACHE_FORMAT_VERSION
    track_id: str
    difficulties: Dict[Difficulty, List[_BeatRecord]]


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _document_from_beat_map(track_id: str, beat_map: BeatMap) -> _BeatMapDocument:
    difficulties: Dict[Difficulty, List[_BeatRecord]] = {}
    for difficulty in beat_map.difficulties():
        difficulties[difficulty] = [
            _BeatRecord(time=float(beat.time_seconds), lane=int(beat.lane), intensity=float(beat.intensity))
            for beat in beat_map.beats_for(difficulty)
        ]
    return _BeatMapDocument(track_id=str(track_id), difficulties=difficulties)


def _beat_map_from_document(document: _BeatMapDocument) -> BeatMap:
    sequences = {
        difficulty: [
            Beat(time_seconds=float(record.time), lane=int(record.lane), intensity=float(record.intensity))
            for record in records
        ]
        for difficulty, records in document.difficulties.items()
    }
    return BeatMap.from_sequences(sequences)


class BeatMapCache:
    """
    Beat map persistence keyed by track identity.

    - One JSON document per track, named by the SHA-256 of the track id
    - load() treats unreadable or invalid documents as a miss
    - save_async() returns a Future that gameplay never waits on
    """

    def __init__(
        self,
        *,
        cache_dir: Path,
        enabled: bool = True,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._enabled = bool(enabled)

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="tapbeat-cache")
        self._closed = False

        self._locks_guard = threading.Lock()
        self._locks_by_key: Dict[str, threading.Lock] = {}
        self._pending_guard = threading.Lock()
        self._pending_writes: List[Future] = []

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def enabled(self) -> bool:
        return self._enabled

    def path_for(self, track_id: str) -> Path:
        return self._cache_dir / f"{_sha256_hex(str(track_id))}.json"

    # -----------------
    # Reads
    # -----------------

    def load(self, track_id: str) -> Optional[BeatMap]:
        """Return the stored beat map, or None on a miss or any read failure."""
        if not self._enabled:
            return None
        try:
            return self.read(track_id)
        except CacheIOError as exc:
            logger.warning("Beat map cache read failed for %r, recomputing: %s", track_id, exc)
            return None

    def read(self, track_id: str) -> Optional[BeatMap]:
        """Strict variant of load(): a missing entry is None, a broken one raises CacheIOError."""
        cache_path = self.path_for(track_id)
        if not cache_path.is_file():
            return None

        try:
            raw_text = cache_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CacheIOError(f"Failed to read {cache_path}: {exc}") from exc

        try:
            document = _BeatMapDocument.model_validate_json(raw_text)
        except ValidationError as exc:
            raise CacheIOError(f"Invalid beat map document {cache_path}: {exc}") from exc

        if document.version != CACHE_FORMAT_VERSION:
            raise CacheIOError(f"Unsupported beat map document version {document.version} in {cache_path}")
        if document.track_id != str(track_id):
            raise CacheIOError(f"Beat map document {cache_path} belongs to track {document.track_id!r}")

        return _beat_map_from_document(document)

    # -----------------
    # Writes
    # -----------------

    def save(self, track_id: str, beat_map: BeatMap) -> None:
        """Write synchronously. Raises CacheIOError on failure."""
        if not self._enabled:
            return

        payload = _document_from_beat_map(track_id, beat_map).model_dump(mode="json")
        cache_path = self.path_for(track_id)

        with self._get_lock_for_key(cache_path.stem):
            temporary_path = cache_path.with_suffix(".json.tmp")
            try:
                self._cache_dir.mkdir(parents=True, exist_ok=True)
                temporary_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
                temporary_path.replace(cache_path)
            except OSError as exc:
                try:
                    temporary_path.unlink(missing_ok=True)
                except OSError:
                    pass
                raise CacheIOError(f"Failed to write {cache_path}: {exc}") from exc

    def save_async(self, track_id: str, beat_map: BeatMap) -> Future:
        """
        Best effort background write.

        The returned Future resolves to True when the entry was written and False when the write failed
        or was dropped. It never raises, so nobody has to observe it.
        """
        if self._closed or not self._enabled:
            dropped: Future = Future()
            dropped.set_result(False)
            return dropped

        future = self._executor.submit(self._save_quietly, str(track_id), beat_map)
        with self._pending_guard:
            self._pending_writes = [item for item in self._pending_writes if not item.done()]
            self._pending_writes.append(future)
        return future

    def _save_quietly(self, track_id: str, beat_map: BeatMap) -> bool:
        try:
            self.save(track_id, beat_map)
        except CacheIOError as exc:
            logger.warning("Beat map cache write dropped for %r: %s", track_id, exc)
            return False
        logger.debug("Beat map cached for %r", track_id)
        return True

    def pending_writes(self) -> List[Future]:
        with self._pending_guard:
            return [item for item in self._pending_writes if not item.done()]

    def clear(self) -> None:
        # Best effort cleanup.
        if self._cache_dir.exists():
            shutil.rmtree(self._cache_dir, ignore_errors=True)

    def close(self) -> None:
        """Drop queued writes without waiting for the one in flight."""
        self._closed = True
        with self._pending_guard:
            for future in self._pending_writes:
                future.cancel()
            self._pending_writes.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _get_lock_for_key(self, cache_key: str) -> threading.Lock:
        with self._locks_guard:
            existing_lock = self._locks_by_key.get(cache_key)
            if existing_lock is not None:
                return existing_lock
            created_lock = threading.Lock()
            self._locks_by_key[cache_key] = created_lock
            return created_lock
