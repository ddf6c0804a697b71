"""Shared fixtures for player tests.

FakeAudioDevice stands in for the audio element: it records every command
the synchronizer sends and lets tests emit device events explicitly, in the
order a real media element would.
"""

import math
import random
from typing import Callable, Optional

import pytest

from vern_player.app import PlayerApp, create_app
from vern_player.core.config import Config
from vern_player.domain.playback import PlayerStore, Track
from vern_player.domain.playback.device import (
    ENDED,
    LOADEDMETADATA,
    PAUSE,
    PLAY,
    TIMEUPDATE,
    DeviceError,
    EventEmitter,
)


class FakeAudioDevice(EventEmitter):
    """In-memory AudioDevice that records commands."""

    def __init__(self) -> None:
        super().__init__()
        self.cross_origin: Optional[str] = "anonymous"
        self.src: Optional[str] = None
        self.paused = True
        self.volume = 1.0
        self.duration = math.nan
        self.fail_play = False
        self.commands: list[tuple] = []
        self._current_time = 0.0

    @property
    def current_time(self) -> float:
        return self._current_time

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        self.commands.append(("seek", seconds))
        self._current_time = seconds

    def load(self) -> None:
        self.commands.append(("load", self.src))
        self._current_time = 0.0
        self.duration = math.nan
        self.paused = True

    def play(self) -> None:
        self.commands.append(("play",))
        if self.fail_play:
            raise DeviceError("play() blocked")
        self.paused = False

    def pause(self) -> None:
        self.commands.append(("pause",))
        self.paused = True

    # Test helpers that simulate the device reporting things

    def emit(self, event: str) -> None:
        self._emit(event)

    def finish_loading(self, duration: float) -> None:
        self.duration = duration
        self._emit(LOADEDMETADATA)

    def progress_to(self, seconds: float) -> None:
        self._current_time = seconds
        self._emit(TIMEUPDATE)

    def report_play(self) -> None:
        self.paused = False
        self._emit(PLAY)

    def report_pause(self) -> None:
        self.paused = True
        self._emit(PAUSE)

    def reach_end(self) -> None:
        self._current_time = self.duration if math.isfinite(self.duration) else 0.0
        self.paused = True
        self._emit(PAUSE)
        self._emit(ENDED)

    def names(self) -> list[str]:
        return [command[0] for command in self.commands]


def _make_track(n: int, **overrides) -> Track:
    fields = {
        "id": f"t{n}",
        "title": f"Song {n}",
        "artist": f"Artist {n}",
        "audio_url": f"https://cdn.example.com/audio/{n}.mp3",
        "cover_url": f"https://cdn.example.com/covers/{n}.jpg",
        "duration_ms": 180_000 + n,
    }
    fields.update(overrides)
    return Track(**fields)


@pytest.fixture
def make_track() -> Callable[..., Track]:
    """Factory for tracks t<n>."""
    return _make_track


@pytest.fixture
def tracks() -> list[Track]:
    """Three distinct tracks: T1, T2, T3."""
    return [_make_track(1), _make_track(2), _make_track(3)]


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def store(rng: random.Random) -> PlayerStore:
    return PlayerStore(rng=rng)


@pytest.fixture
def device() -> FakeAudioDevice:
    return FakeAudioDevice()


@pytest.fixture
def config() -> Config:
    """Config with persistence and notifications off."""
    config = Config()
    config.persistence.enabled = False
    config.notifications.enabled = False
    return config


@pytest.fixture
def app(config: Config, device: FakeAudioDevice, rng: random.Random) -> PlayerApp:
    """Started player session on a fake device."""
    player_app = create_app(config, device=device, rng=rng)
    player_app.start()
    yield player_app
    player_app.shutdown()
