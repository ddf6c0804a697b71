"""Persistence of the player state across restarts.

Only a subset of PlaybackState survives a restart: volume, repeat and
shuffle modes, the queue and the current selection. Position, duration and
the playing flag always come back in their safe defaults (not playing).

The record is stored as ``{"version": N, "state": {...}}`` under a
namespaced key in a small JSON key-value file.
"""

import json
import math
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .models import NO_INDEX, PlaybackState, RepeatMode, Track, clamp_volume

STATE_VERSION = 1
DEFAULT_STORAGE_KEY = "vern-player-store"

PERSISTED_FIELDS = (
    "volume",
    "repeat_mode",
    "is_shuffle",
    "queue",
    "queue_index",
    "current_song",
)


def serialize_state(state: PlaybackState) -> dict[str, Any]:
    """Extract the persisted subset of a state as plain JSON-compatible data."""
    return {
        "volume": state.volume,
        "repeat_mode": state.repeat_mode.value,
        "is_shuffle": state.is_shuffle,
        "queue": [track.to_dict() for track in state.queue],
        "queue_index": state.queue_index,
        "current_song": state.current_song.to_dict() if state.current_song else None,
    }


def deserialize_state(data: dict[str, Any], defaults: PlaybackState) -> PlaybackState:
    """Rebuild a state from a persisted record on top of ``defaults``.

    Transient fields are reset (not playing, position and duration 0) and
    the queue invariants are repaired if the record disagrees with itself.
    Unreadable entries fall back to the matching default.
    """
    volume = defaults.volume
    raw_volume = data.get("volume")
    if isinstance(raw_volume, (int, float)) and not math.isnan(raw_volume):
        volume = clamp_volume(raw_volume)

    try:
        repeat_mode = RepeatMode(data.get("repeat_mode", defaults.repeat_mode))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unknown saved repeat mode: {data.get('repeat_mode')!r}")
        repeat_mode = defaults.repeat_mode

    is_shuffle = data.get("is_shuffle", defaults.is_shuffle)
    if not isinstance(is_shuffle, bool):
        is_shuffle = defaults.is_shuffle

    queue: list[Track] = []
    seen_ids: set[str] = set()
    for entry in data.get("queue") or []:
        try:
            track = Track.from_dict(entry)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unreadable saved queue entry: {e}")
            continue
        if track.id in seen_ids:
            continue
        seen_ids.add(track.id)
        queue.append(track)

    current_song: Optional[Track] = None
    if data.get("current_song"):
        try:
            current_song = Track.from_dict(data["current_song"])
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable saved current song: {e}")

    queue_index = data.get("queue_index", NO_INDEX)
    if not isinstance(queue_index, int) or not 0 <= queue_index < len(queue):
        queue_index = NO_INDEX

    if queue_index != NO_INDEX and (
        current_song is None or current_song.id != queue[queue_index].id
    ):
        current_song = queue[queue_index]

    return defaults._replace(
        current_song=current_song,
        is_playing=False,
        current_time=0.0,
        duration=0.0,
        volume=volume,
        queue=tuple(queue),
        queue_index=queue_index,
        repeat_mode=repeat_mode,
        is_shuffle=is_shuffle,
        shuffle_history=(),
    )


class JsonFileStorage:
    """Durable key-value storage backed by a single JSON object on disk.

    Writes replace the whole file atomically so a crash never leaves a
    half-written state file behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Any:
        return self._read_all().get(key)

    def set_item(self, key: str, value: Any) -> None:
        try:
            data = self._read_all()
        except (OSError, json.JSONDecodeError):
            data = {}
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class StatePersistence:
    """Versioned read/write of the persisted player state."""

    def __init__(
        self,
        storage: JsonFileStorage,
        key: str = DEFAULT_STORAGE_KEY,
        version: int = STATE_VERSION,
    ):
        self.storage = storage
        self.key = key
        self.version = version

    def load(self) -> Optional[dict[str, Any]]:
        """Read the saved state record.

        Returns:
            The serialized state dict, or None if nothing usable was saved
        """
        try:
            record = self.storage.get_item(self.key)
        except (OSError, json.JSONDecodeError):
            logger.exception(f"Failed to read saved player state ({self.key})")
            return None

        if record is None:
            logger.info("No saved player state found")
            return None

        if not isinstance(record, dict) or not isinstance(record.get("state"), dict):
            logger.warning("Discarding malformed saved player state")
            return None

        if record.get("version") != self.version:
            logger.warning(
                f"Discarding saved player state with version {record.get('version')!r} "
                f"(expected {self.version})"
            )
            return None

        return record["state"]

    def save(self, state: PlaybackState) -> None:
        """Write the persisted subset of ``state``. Failures are logged, not raised."""
        record = {"version": self.version, "state": serialize_state(state)}
        try:
            self.storage.set_item(self.key, record)
        except OSError:
            # Persistence failing shouldn't interrupt playback
            logger.exception("Failed to save player state")

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to clear saved player state")
