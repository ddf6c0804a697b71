"""Playback domain - queue engine, persisted state and device synchronization.

This domain handles:
- Track and playback state models
- Queue navigation math (next/previous, shuffle, repeat)
- The player store and its persisted subset
- mpv output device and the store <-> device synchronizer
- Now-playing metadata and remote-control actions
"""

# Models
from .models import (
    NO_INDEX,
    RESTART_THRESHOLD_SECONDS,
    SHUFFLE_HISTORY_LIMIT,
    PlaybackState,
    RepeatMode,
    Track,
    clamp_volume,
    format_time,
    progress_percent,
)

# Store and persistence
from .persistence import JsonFileStorage, StatePersistence, deserialize_state, serialize_state
from .store import PlayerStore

# Device and synchronization
from .device import AudioDevice, DeviceError, MpvAudioDevice, check_mpv_available
from .media_session import MediaSession, NowPlayingMetadata, desktop_publisher
from .synchronizer import PlaybackSynchronizer

__all__ = [
    # Models
    "NO_INDEX",
    "RESTART_THRESHOLD_SECONDS",
    "SHUFFLE_HISTORY_LIMIT",
    "PlaybackState",
    "RepeatMode",
    "Track",
    "clamp_volume",
    "format_time",
    "progress_percent",
    # Store
    "JsonFileStorage",
    "PlayerStore",
    "StatePersistence",
    "deserialize_state",
    "serialize_state",
    # Device
    "AudioDevice",
    "DeviceError",
    "MpvAudioDevice",
    "check_mpv_available",
    "MediaSession",
    "NowPlayingMetadata",
    "desktop_publisher",
    "PlaybackSynchronizer",
]
