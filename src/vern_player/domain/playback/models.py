"""
Playback domain models.

Contains the immutable track descriptor handed to the player and the
snapshot of playback state owned by the player store.
"""

import math
from enum import Enum
from typing import Any, NamedTuple, Optional

# Sentinel queue index meaning "no track selected in the queue"
NO_INDEX = -1

# Most recent queue indices remembered while shuffling
SHUFFLE_HISTORY_LIMIT = 10

# "Previous" restarts the current track once it has played longer than this (seconds)
RESTART_THRESHOLD_SECONDS = 3.0

UNKNOWN_ARTIST = "Unknown Artist"


class RepeatMode(str, Enum):
    """Queue repeat behaviour."""

    OFF = "off"
    ONE = "one"  # Loop the current track
    ALL = "all"  # Wrap to the start of the queue


class Track(NamedTuple):
    """A playable audio item ("song").

    Tracks come from catalog lookups (Deezer) or artist uploads. The player
    only references them; identity is the ``id`` field.
    """

    id: str
    title: str
    artist: str
    audio_url: str
    cover_url: Optional[str] = None
    duration_ms: Optional[int] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.duration_ms is None:
            return None
        return self.duration_ms / 1000.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """Build a Track from a catalog or upload record.

        The artist may be a plain ``artist`` string or the nested
        ``artists: {"name": ...}`` object attached to song rows.

        Raises:
            ValueError: If id, title or audio_url is missing
        """
        missing = [
            key for key in ("id", "title", "audio_url") if data.get(key) in (None, "")
        ]
        if missing:
            raise ValueError(f"Track record missing required fields: {', '.join(missing)}")

        artist = data.get("artist")
        if not artist:
            artists = data.get("artists")
            if isinstance(artists, dict):
                artist = artists.get("name")

        duration_ms = data.get("duration_ms")

        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            artist=str(artist) if artist else UNKNOWN_ARTIST,
            audio_url=str(data["audio_url"]),
            cover_url=data.get("cover_url") or None,
            duration_ms=int(duration_ms) if duration_ms is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return self._asdict()


class PlaybackState(NamedTuple):
    """Immutable snapshot of everything the player knows.

    ``is_playing`` is the user's intent, not the device's decoding state.
    ``current_song`` may reference a track that is not in ``queue``.
    """

    current_song: Optional[Track] = None
    is_playing: bool = False
    current_time: float = 0.0  # seconds
    duration: float = 0.0  # seconds, 0 until the device reports it
    volume: float = 1.0  # 0.0 - 1.0
    queue: tuple[Track, ...] = ()
    queue_index: int = NO_INDEX
    repeat_mode: RepeatMode = RepeatMode.OFF
    is_shuffle: bool = False
    shuffle_history: tuple[int, ...] = ()

    @property
    def current_song_id(self) -> Optional[str]:
        return self.current_song.id if self.current_song is not None else None


def clamp_volume(volume: float) -> float:
    """Clamp a volume into [0, 1]."""
    return max(0.0, min(1.0, float(volume)))


def format_time(seconds: float) -> str:
    """Format time in seconds to M:SS format."""
    if not seconds or math.isnan(seconds) or seconds < 0:
        return "0:00"
    if math.isinf(seconds):
        return "--:--"

    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def progress_percent(current_time: float, duration: float) -> float:
    """Playback progress as a percentage, 0 while the duration is unknown."""
    if not duration or not math.isfinite(duration) or duration <= 0:
        return 0.0
    return max(0.0, min(100.0, (current_time / duration) * 100))
