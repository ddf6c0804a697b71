"""OS "now playing" integration.

A MediaSession holds the metadata currently advertised to the system and
the handlers remote controls (media keys, notification buttons, the
terminal UI) invoke. Publishing is optional: without a publisher the
session still routes actions.
"""

from typing import Callable, NamedTuple, Optional

from loguru import logger

from vern_player import notifications

from .models import Track

# Remote-control actions
ACTION_PLAY = "play"
ACTION_PAUSE = "pause"
ACTION_NEXT = "nexttrack"
ACTION_PREVIOUS = "previoustrack"

ACTIONS = (ACTION_PLAY, ACTION_PAUSE, ACTION_NEXT, ACTION_PREVIOUS)


class NowPlayingMetadata(NamedTuple):
    """What the system shows for the current track."""

    title: str
    artist: str
    artwork: Optional[str] = None

    @classmethod
    def from_track(cls, track: Track) -> "NowPlayingMetadata":
        return cls(title=track.title, artist=track.artist, artwork=track.cover_url)


Publisher = Callable[[Optional[NowPlayingMetadata]], None]
ActionHandler = Callable[[], None]


def desktop_publisher(metadata: Optional[NowPlayingMetadata]) -> None:
    """Publish now-playing metadata as a desktop notification."""
    if metadata is None:
        return
    notifications.notify(metadata.title, metadata.artist, icon=metadata.artwork)


class MediaSession:
    """Now-playing metadata plus remote-control action routing."""

    def __init__(self, publisher: Optional[Publisher] = None):
        self.publisher = publisher
        self.metadata: Optional[NowPlayingMetadata] = None
        self._handlers: dict[str, ActionHandler] = {}

    def set_metadata(self, metadata: Optional[NowPlayingMetadata]) -> None:
        """Advertise new metadata (None clears it)."""
        if metadata == self.metadata:
            return
        self.metadata = metadata

        if self.publisher is None:
            return
        try:
            self.publisher(metadata)
        except Exception:
            logger.exception("Failed to publish now-playing metadata")

    def set_action_handler(self, action: str, handler: Optional[ActionHandler]) -> None:
        """Register (or with None, remove) the handler for a remote-control action."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown media session action: {action!r}")
        if handler is None:
            self._handlers.pop(action, None)
        else:
            self._handlers[action] = handler

    def dispatch(self, action: str) -> bool:
        """Invoke the handler for ``action``.

        Returns:
            True if a handler ran, False if none is registered
        """
        handler = self._handlers.get(action)
        if handler is None:
            logger.debug(f"No handler for media session action: {action}")
            return False
        handler()
        return True
