"""
Player store - the single source of truth for playback state.

Every operation is a synchronous transition from one immutable
PlaybackState to the next. Observers subscribe for (state, previous)
notifications; the store never touches the audio device itself.
"""

import math
import random
from collections import deque
from typing import Any, Callable, Iterable, Optional, Union

from loguru import logger

from .models import (
    NO_INDEX,
    RESTART_THRESHOLD_SECONDS,
    PlaybackState,
    RepeatMode,
    Track,
    clamp_volume,
)
from .persistence import PERSISTED_FIELDS, StatePersistence, deserialize_state
from .queue import (
    find_track_index,
    next_index,
    previous_index,
    push_shuffle_history,
    reindex_after_remove,
    reindex_history_after_remove,
)

Listener = Callable[[PlaybackState, PlaybackState], None]

_REPEAT_CYCLE = {
    RepeatMode.OFF: RepeatMode.ALL,
    RepeatMode.ALL: RepeatMode.ONE,
    RepeatMode.ONE: RepeatMode.OFF,
}


class PlayerStore:
    """Owns playback state and exposes the player's command set.

    Listeners are called with ``(state, previous)`` after each transition
    that changes something. A transition requested from inside a listener
    is applied immediately but its notification is queued until the
    current round of listeners has finished, so every listener observes
    transitions in the order they happened.
    """

    def __init__(
        self,
        state: Optional[PlaybackState] = None,
        *,
        persistence: Optional[StatePersistence] = None,
        rng: Optional[random.Random] = None,
    ):
        self._state = state if state is not None else PlaybackState()
        self._persistence = persistence
        self._rng = rng or random.Random()
        self._listeners: list[Listener] = []
        self._pending: deque[tuple[PlaybackState, PlaybackState]] = deque()
        self._notifying = False

    @classmethod
    def restore(
        cls,
        persistence: StatePersistence,
        defaults: Optional[PlaybackState] = None,
        rng: Optional[random.Random] = None,
    ) -> "PlayerStore":
        """Create a store from the persisted record, before anything subscribes.

        Args:
            persistence: Where the persisted subset of state lives
            defaults: State used for fields with no saved value
            rng: Random source for shuffle (tests pass a seeded one)
        """
        defaults = defaults if defaults is not None else PlaybackState()
        record = persistence.load()
        state = deserialize_state(record, defaults) if record is not None else defaults
        logger.info(
            f"Player state restored: {len(state.queue)} queued, index={state.queue_index}, "
            f"repeat={state.repeat_mode.value}, shuffle={state.is_shuffle}"
        )
        return cls(state, persistence=persistence, rng=rng)

    @property
    def state(self) -> PlaybackState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Transition plumbing

    def _set(self, **changes: Any) -> None:
        previous = self._state
        state = previous._replace(**changes)
        if state == previous:
            return

        self._state = state

        if self._persistence is not None and any(
            getattr(state, name) != getattr(previous, name) for name in PERSISTED_FIELDS
        ):
            self._persistence.save(state)

        self._pending.append((state, previous))
        self._drain()

    def _drain(self) -> None:
        if self._notifying:
            return

        self._notifying = True
        try:
            while self._pending:
                state, previous = self._pending.popleft()
                for listener in list(self._listeners):
                    try:
                        listener(state, previous)
                    except Exception:
                        logger.exception(f"Player store listener failed: {listener!r}")
        finally:
            self._notifying = False

    def _select(self, track: Track, **changes: Any) -> dict[str, Any]:
        """Changes that make ``track`` the current song, starting from 0."""
        selection: dict[str, Any] = {"current_song": track, "current_time": 0.0}
        if track.id != self._state.current_song_id:
            selection["duration"] = 0.0
        selection.update(changes)
        return selection

    # Playback controls

    def play_song(self, track: Track, add_to_queue: bool = True) -> None:
        """Play a track, selecting it in the queue when it is already queued.

        Args:
            track: Track to play
            add_to_queue: Append the track when it is not queued yet. When
                False, the track plays outside the queue and nothing is
                selected in the queue.
        """
        state = self._state
        index = find_track_index(state.queue, track.id)

        if index != NO_INDEX:
            logger.debug(f"play_song: selecting queued track {track.id} at {index}")
            self._set(**self._select(track, queue_index=index, is_playing=True))
        elif add_to_queue:
            logger.debug(f"play_song: appending track {track.id}")
            self._set(
                **self._select(
                    track,
                    queue=(*state.queue, track),
                    queue_index=len(state.queue),
                    is_playing=True,
                )
            )
        else:
            logger.debug(f"play_song: playing track {track.id} outside the queue")
            self._set(**self._select(track, queue_index=NO_INDEX, is_playing=True))

    def toggle_play(self) -> None:
        self._set(is_playing=not self._state.is_playing)

    def play(self) -> None:
        self._set(is_playing=True)

    def pause(self) -> None:
        self._set(is_playing=False)

    def set_current_time(self, seconds: float) -> None:
        """Set the playback position. Not clamped against the duration."""
        self._set(current_time=float(seconds))

    def set_volume(self, volume: float) -> None:
        """Set the volume, clamped into [0, 1]."""
        if math.isnan(volume):
            logger.debug("set_volume: ignoring NaN volume")
            return
        self._set(volume=clamp_volume(volume))

    # Queue controls

    def add_to_queue(self, track: Track) -> None:
        """Append a track unless a track with the same id is already queued."""
        state = self._state
        if find_track_index(state.queue, track.id) != NO_INDEX:
            logger.debug(f"add_to_queue: track {track.id} already queued")
            return
        self._set(queue=(*state.queue, track))

    def remove_from_queue(self, index: int) -> None:
        """Remove the queue entry at ``index``.

        Removing the current entry deselects it but keeps ``current_song``
        playing from memory until the next queue navigation.
        """
        state = self._state
        if not 0 <= index < len(state.queue):
            logger.debug(f"remove_from_queue: index {index} out of range")
            return

        self._set(
            queue=state.queue[:index] + state.queue[index + 1 :],
            queue_index=reindex_after_remove(state.queue_index, index),
            shuffle_history=reindex_history_after_remove(state.shuffle_history, index),
        )

    def clear_queue(self) -> None:
        """Empty the queue. Playback of the current song is not affected."""
        self._set(queue=(), queue_index=NO_INDEX, shuffle_history=())

    def set_queue(self, tracks: Iterable[Track], start_index: int = 0) -> None:
        """Replace the queue wholesale and start playing ``tracks[start_index]``.

        Tracks sharing an id keep only their first occurrence; a start
        pointing at a dropped duplicate selects the kept entry. An
        out-of-range start (including any start on an empty list) leaves
        nothing selected and stops playback.
        """
        given = tuple(tracks)
        queue: tuple[Track, ...] = ()
        for track in given:
            if find_track_index(queue, track.id) == NO_INDEX:
                queue = (*queue, track)

        if 0 <= start_index < len(given):
            index = find_track_index(queue, given[start_index].id)
        else:
            index = NO_INDEX

        if index != NO_INDEX:
            logger.debug(f"set_queue: {len(queue)} tracks, starting at {index}")
            self._set(
                **self._select(
                    queue[index],
                    queue=queue,
                    queue_index=index,
                    is_playing=True,
                    shuffle_history=(),
                )
            )
        else:
            logger.debug(f"set_queue: {len(queue)} tracks, invalid start {start_index}")
            self._set(
                queue=queue,
                queue_index=NO_INDEX,
                current_song=None,
                is_playing=False,
                current_time=0.0,
                duration=0.0,
                shuffle_history=(),
            )

    def next_track(self) -> None:
        """Advance through the queue honoring shuffle and repeat modes.

        At the end of the queue (repeat off) playback stops and the
        selection is left where it was.
        """
        state = self._state
        if not state.queue:
            return

        index = next_index(
            state.queue_index,
            len(state.queue),
            state.repeat_mode,
            state.is_shuffle,
            state.shuffle_history,
            self._rng,
        )

        if index == NO_INDEX:
            logger.debug("next_track: end of queue reached, stopping")
            self._set(is_playing=False)
            return

        changes = self._select(state.queue[index], queue_index=index, is_playing=True)
        if state.is_shuffle:
            changes["shuffle_history"] = push_shuffle_history(
                state.shuffle_history, state.queue_index
            )

        logger.debug(f"next_track: {state.queue_index} -> {index}")
        self._set(**changes)

    def previous_track(self) -> None:
        """Go to the previous track, or restart the current one after 3 seconds."""
        state = self._state
        if not state.queue:
            return

        if state.current_time > RESTART_THRESHOLD_SECONDS:
            logger.debug("previous_track: restarting current track")
            self._set(current_time=0.0)
            return

        index = previous_index(state.queue_index, len(state.queue))
        logger.debug(f"previous_track: {state.queue_index} -> {index}")
        self._set(**self._select(state.queue[index], queue_index=index, is_playing=True))

    # Playback modes

    def set_repeat_mode(self, mode: Union[RepeatMode, str]) -> None:
        """Set the repeat mode.

        Raises:
            ValueError: If mode is not one of off, one, all
        """
        self._set(repeat_mode=RepeatMode(mode))

    def cycle_repeat_mode(self) -> None:
        """Step through off -> all -> one -> off."""
        self._set(repeat_mode=_REPEAT_CYCLE[self._state.repeat_mode])

    def toggle_shuffle(self) -> None:
        self._set(is_shuffle=not self._state.is_shuffle, shuffle_history=())

    # Device-reported facts (used by the synchronizer)

    def set_duration(self, seconds: float) -> None:
        """Record the duration reported by the device; unknown becomes 0."""
        try:
            duration = float(seconds)
        except (TypeError, ValueError):
            duration = 0.0
        if not math.isfinite(duration) or duration < 0:
            duration = 0.0
        self._set(duration=duration)

    def set_is_playing(self, playing: bool) -> None:
        self._set(is_playing=bool(playing))

    def set_current_song(self, track: Optional[Track]) -> None:
        """Replace the current song, re-pointing the queue index at it (or -1)."""
        if track is None:
            self._set(current_song=None, queue_index=NO_INDEX)
            return

        changes: dict[str, Any] = {
            "current_song": track,
            "queue_index": find_track_index(self._state.queue, track.id),
        }
        if track.id != self._state.current_song_id:
            changes["duration"] = 0.0
        self._set(**changes)
