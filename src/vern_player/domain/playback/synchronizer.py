"""
Playback synchronizer - keeps the audio device and the player store converged.

Store -> device: source changes, play/pause intent, volume and seeks.
Device -> store: position updates, discovered duration, end of track and
the device's own play/pause transitions.

The synchronizer is the only component that commands the device.
"""

import math
from typing import Callable, Optional

from loguru import logger

from .device import (
    ENDED,
    ERROR,
    LOADEDMETADATA,
    PAUSE,
    PLAY,
    TIMEUPDATE,
    AudioDevice,
    DeviceError,
)
from .media_session import (
    ACTION_NEXT,
    ACTION_PAUSE,
    ACTION_PLAY,
    ACTION_PREVIOUS,
    MediaSession,
    NowPlayingMetadata,
)
from .models import PlaybackState, RepeatMode
from .store import PlayerStore

# Seeks closer than this to the device position are treated as the device's
# own progress echoing back and are not forwarded
SEEK_TOLERANCE_SECONDS = 1.0


class PlaybackSynchronizer:
    """Bridges one PlayerStore to one AudioDevice for the whole session."""

    def __init__(
        self,
        store: PlayerStore,
        device: AudioDevice,
        media_session: Optional[MediaSession] = None,
        seek_tolerance: float = SEEK_TOLERANCE_SECONDS,
    ):
        self.store = store
        self.device = device
        self.media_session = media_session
        self.seek_tolerance = seek_tolerance

        self._loaded_song_id: Optional[str] = None
        self._pending_seek: Optional[float] = None
        self._reporting_time = False
        self._unsubscribe: Optional[Callable[[], None]] = None

        self._device_handlers = {
            TIMEUPDATE: self._on_time_update,
            LOADEDMETADATA: self._on_loaded_metadata,
            ENDED: self._on_ended,
            PLAY: self._on_play,
            PAUSE: self._on_pause,
            ERROR: self._on_error,
        }

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    @property
    def pending_seek(self) -> Optional[float]:
        return self._pending_seek

    def attach(self) -> None:
        """Start synchronizing and push the current store state to the device.

        A restored current song is loaded but only played if the store says so.
        """
        if self.attached:
            return

        for event, handler in self._device_handlers.items():
            self.device.add_event_listener(event, handler)

        if self.media_session is not None:
            self.media_session.set_action_handler(ACTION_PLAY, self.store.play)
            self.media_session.set_action_handler(ACTION_PAUSE, self.store.pause)
            self.media_session.set_action_handler(ACTION_NEXT, self.store.next_track)
            self.media_session.set_action_handler(ACTION_PREVIOUS, self.store.previous_track)

        self._unsubscribe = self.store.subscribe(self._on_state_change)

        state = self.store.state
        self._apply_volume(state.volume)
        if state.current_song is not None:
            self._change_song(state)

        logger.debug("Playback synchronizer attached")

    def detach(self) -> None:
        """Stop synchronizing. The device keeps whatever it was last told."""
        if not self.attached:
            return

        self._unsubscribe()
        self._unsubscribe = None

        for event, handler in self._device_handlers.items():
            self.device.remove_event_listener(event, handler)

        if self.media_session is not None:
            for action in (ACTION_PLAY, ACTION_PAUSE, ACTION_NEXT, ACTION_PREVIOUS):
                self.media_session.set_action_handler(action, None)

        logger.debug("Playback synchronizer detached")

    # Store -> device

    def _on_state_change(self, state: PlaybackState, previous: PlaybackState) -> None:
        song_changed = state.current_song_id != self._loaded_song_id

        if song_changed:
            self._change_song(state)
        elif state.is_playing != previous.is_playing:
            self._sync_transport(state.is_playing)

        if state.volume != previous.volume:
            self._apply_volume(state.volume)

        if (
            not song_changed
            and not self._reporting_time
            and state.current_time != previous.current_time
        ):
            self._seek(state.current_time)

    def _change_song(self, state: PlaybackState) -> None:
        song = state.current_song
        self._pending_seek = None

        if song is None:
            self._loaded_song_id = None
            if not self.device.paused:
                self.device.pause()
            self._publish(None)
            return

        logger.info(f"Loading track {song.id}: {song.artist} - {song.title}")
        self._loaded_song_id = song.id
        try:
            self.device.src = song.audio_url
            self.device.load()
        except DeviceError as e:
            logger.warning(f"Device failed to load {song.audio_url}: {e}")

        if state.is_playing:
            self._start_playback()

        self._publish(NowPlayingMetadata.from_track(song))

    def _sync_transport(self, is_playing: bool) -> None:
        if is_playing and self.device.paused:
            self._start_playback()
        elif not is_playing and not self.device.paused:
            self.device.pause()

    def _start_playback(self) -> None:
        # Failures (nothing loaded, blocked output) leave the intent in place;
        # the user retries with an explicit play
        try:
            self.device.play()
        except DeviceError as e:
            logger.debug(f"Playback start failed: {e}")

    def _apply_volume(self, volume: float) -> None:
        self.device.volume = volume

    def _seek(self, target: float) -> None:
        if not math.isfinite(target):
            return

        duration = self.device.duration
        if duration is None or not math.isfinite(duration) or duration <= 0:
            logger.debug(f"Deferring seek to {target:.2f}s until metadata loads")
            self._pending_seek = target
            return

        if abs(self.device.current_time - target) > self.seek_tolerance:
            self.device.current_time = target

    def _apply_pending_seek(self) -> None:
        if self._pending_seek is None:
            return
        target = self._pending_seek
        self._pending_seek = None
        if abs(self.device.current_time - target) > self.seek_tolerance:
            logger.debug(f"Applying deferred seek to {target:.2f}s")
            self.device.current_time = target

    def _restart(self) -> None:
        self.device.current_time = 0.0
        self._start_playback()

    def _publish(self, metadata: Optional[NowPlayingMetadata]) -> None:
        if self.media_session is not None:
            self.media_session.set_metadata(metadata)

    # Device -> store

    def _on_time_update(self) -> None:
        self._reporting_time = True
        try:
            self.store.set_current_time(self.device.current_time)
        finally:
            self._reporting_time = False

    def _on_loaded_metadata(self) -> None:
        self.store.set_duration(self.device.duration)
        self._apply_pending_seek()

    def _on_ended(self) -> None:
        if self.store.state.repeat_mode == RepeatMode.ONE:
            logger.debug("Track ended, repeating")
            self._restart()
            return

        ended_song_id = self._loaded_song_id
        self.store.next_track()

        # Wrapping onto the same track (single-track queue on repeat all)
        # does not change the source, so start it over explicitly
        state = self.store.state
        if state.is_playing and state.current_song_id == ended_song_id:
            self._restart()

    def _on_play(self) -> None:
        self.store.set_is_playing(True)

    def _on_pause(self) -> None:
        self.store.set_is_playing(False)

    def _on_error(self) -> None:
        logger.warning(f"Audio device reported an error (track {self._loaded_song_id})")
