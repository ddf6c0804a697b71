"""Application shell for explicit ownership of the player's collaborators.

PlayerApp owns the store, the single audio device handle and the
synchronizer between them for the lifetime of one session. Everything that
wants to change playback goes through ``app.store`` (or the media session);
only the synchronizer talks to the device.
"""

import random
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from vern_player.core.config import Config, get_state_file_path
from vern_player.domain.playback import (
    AudioDevice,
    JsonFileStorage,
    MediaSession,
    MpvAudioDevice,
    PlaybackState,
    PlaybackSynchronizer,
    PlayerStore,
    RepeatMode,
    StatePersistence,
    desktop_publisher,
)


@dataclass
class PlayerApp:
    """Everything one running player session needs.

    Attributes:
        config: Application configuration
        store: Source of truth for playback state
        device: The one audio device handle for the session
        media_session: Now-playing metadata and remote-control routing
        synchronizer: Keeps device and store converged
        persistence: Where the persisted subset of state is written, if enabled
    """

    config: Config
    store: PlayerStore
    device: AudioDevice
    media_session: MediaSession
    synchronizer: PlaybackSynchronizer
    persistence: Optional[StatePersistence] = None

    def start(self) -> bool:
        """Start the device (mpv only) and begin synchronizing.

        Returns:
            False if the mpv process could not be started
        """
        if isinstance(self.device, MpvAudioDevice) and not self.device.is_running():
            if not self.device.start():
                return False

        self.synchronizer.attach()
        return True

    def tick(self) -> None:
        """Let the device report what happened since the last tick."""
        poll = getattr(self.device, "poll", None)
        if poll is not None:
            poll()

    def shutdown(self) -> None:
        """Stop synchronizing and release the device."""
        self.synchronizer.detach()
        if isinstance(self.device, MpvAudioDevice):
            self.device.stop()
        logger.info("Player session shut down")


def create_app(
    config: Config,
    device: Optional[AudioDevice] = None,
    persistence: Optional[StatePersistence] = None,
    rng: Optional[random.Random] = None,
) -> PlayerApp:
    """Build a player session from configuration.

    The store is restored from persisted state before anything subscribes
    to it; configured player values only fill in what was never saved.

    Args:
        config: Application configuration
        device: Audio device to use (default: a new MpvAudioDevice)
        persistence: State persistence to use (default: from config)
        rng: Random source for shuffle
    """
    defaults = PlaybackState(
        volume=config.player.volume,
        repeat_mode=RepeatMode(config.player.repeat_mode),
        is_shuffle=config.player.shuffle_on_start,
    )

    if persistence is None and config.persistence.enabled:
        persistence = StatePersistence(
            JsonFileStorage(get_state_file_path(config)),
            key=config.persistence.storage_key,
        )

    if persistence is not None:
        store = PlayerStore.restore(persistence, defaults, rng=rng)
    else:
        store = PlayerStore(defaults, rng=rng)

    if device is None:
        device = MpvAudioDevice(config.player.mpv_socket_path, volume=store.state.volume)

    media_session = MediaSession(
        publisher=desktop_publisher if config.notifications.enabled else None
    )
    synchronizer = PlaybackSynchronizer(store, device, media_session)

    return PlayerApp(
        config=config,
        store=store,
        device=device,
        media_session=media_session,
        synchronizer=synchronizer,
        persistence=persistence,
    )
