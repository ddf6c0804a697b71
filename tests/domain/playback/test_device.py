"""Tests for the mpv-backed audio device.

IPC is patched out: tests script what mpv "reports" through get_mpv_property
and record what the device sends through send_mpv_command.
"""

import json
import math
from unittest.mock import MagicMock, patch

import pytest

from vern_player.domain.playback.device import (
    ENDED,
    ERROR,
    LOADEDMETADATA,
    PAUSE,
    PLAY,
    TIMEUPDATE,
    DeviceError,
    EventEmitter,
    MpvAudioDevice,
    get_mpv_property,
    send_mpv_command,
)
from vern_player.domain.playback.store import PlayerStore
from vern_player.domain.playback.synchronizer import PlaybackSynchronizer

DEVICE_MODULE = "vern_player.domain.playback.device"


class FakeMpv:
    """Scripted mpv properties plus a log of commands sent."""

    def __init__(self) -> None:
        self.properties = {
            "duration": None,
            "time-pos": None,
            "pause": True,
            "eof-reached": False,
            "idle-active": False,
        }
        self.sent: list[list] = []
        self.accept = True
        self.rejected: list[list] = []

    def send(self, socket_path, command) -> bool:
        self.sent.append(command["command"])
        return self.accept and command["command"] not in self.rejected

    def get(self, socket_path, name):
        return self.properties.get(name)


@pytest.fixture
def mpv():
    fake = FakeMpv()
    with patch(f"{DEVICE_MODULE}.send_mpv_command", side_effect=fake.send), patch(
        f"{DEVICE_MODULE}.get_mpv_property", side_effect=fake.get
    ):
        yield fake


@pytest.fixture
def mpv_device(mpv):
    device = MpvAudioDevice("/tmp/vern-test-socket", volume=0.5)
    with patch.object(MpvAudioDevice, "is_running", return_value=True):
        yield device


def _record_events(device: EventEmitter) -> list[str]:
    events: list[str] = []
    for name in (TIMEUPDATE, LOADEDMETADATA, ENDED, PLAY, PAUSE, ERROR):
        device.add_event_listener(name, lambda name=name: events.append(name))
    return events


class TestEventEmitter:
    def test_add_and_remove(self) -> None:
        emitter = EventEmitter()
        handler = MagicMock()
        emitter.add_event_listener(PLAY, handler)
        emitter._emit(PLAY)
        emitter.remove_event_listener(PLAY, handler)
        emitter.remove_event_listener(PLAY, handler)
        emitter._emit(PLAY)
        handler.assert_called_once_with()

    def test_failing_handler_does_not_stop_others(self) -> None:
        emitter = EventEmitter()
        other = MagicMock()
        emitter.add_event_listener(ENDED, MagicMock(side_effect=RuntimeError("boom")))
        emitter.add_event_listener(ENDED, other)
        emitter._emit(ENDED)
        other.assert_called_once()


class TestMpvAudioDeviceCommands:
    def test_initial_state(self, mpv_device) -> None:
        assert mpv_device.paused is True
        assert mpv_device.src is None
        assert math.isnan(mpv_device.duration)
        assert mpv_device.volume == 0.5

    def test_load_sends_paused_loadfile(self, mpv_device, mpv) -> None:
        mpv_device.src = "https://cdn.example.com/1.mp3"
        mpv_device.load()

        assert mpv.sent == [
            ["set_property", "pause", True],
            ["loadfile", "https://cdn.example.com/1.mp3", "replace"],
        ]
        assert mpv_device.paused is True
        assert mpv_device.current_time == 0.0

    def test_rejected_load_emits_error(self, mpv_device, mpv) -> None:
        events = _record_events(mpv_device)
        mpv.accept = False
        mpv_device.src = "bad://source"
        mpv_device.load()
        assert events == [ERROR]

    def test_play_without_source_raises(self, mpv_device) -> None:
        with pytest.raises(DeviceError):
            mpv_device.play()

    def test_play_when_not_running_raises(self, mpv) -> None:
        device = MpvAudioDevice("/tmp/vern-test-socket")
        device.src = "https://cdn.example.com/1.mp3"
        with pytest.raises(DeviceError, match="not running"):
            device.play()

    def test_play_rejected_raises(self, mpv_device, mpv) -> None:
        mpv_device.src = "https://cdn.example.com/1.mp3"
        mpv.accept = False
        with pytest.raises(DeviceError):
            mpv_device.play()
        assert mpv_device.paused is True

    def test_play_and_pause(self, mpv_device, mpv) -> None:
        mpv_device.src = "https://cdn.example.com/1.mp3"
        mpv_device.play()
        assert mpv_device.paused is False
        mpv_device.pause()
        assert mpv_device.paused is True
        assert mpv.sent[-2:] == [
            ["set_property", "pause", False],
            ["set_property", "pause", True],
        ]

    def test_seek(self, mpv_device, mpv) -> None:
        mpv_device.current_time = 42.0
        assert mpv.sent == [["seek", 42.0, "absolute"]]
        assert mpv_device.current_time == 42.0

    def test_volume_maps_to_percent(self, mpv_device, mpv) -> None:
        mpv_device.volume = 0.37
        assert mpv.sent == [["set_property", "volume", 37]]
        mpv_device.volume = 5
        assert mpv_device.volume == 1.0


class TestMpvAudioDevicePolling:
    @pytest.fixture
    def loaded(self, mpv_device):
        mpv_device.src = "https://cdn.example.com/1.mp3"
        mpv_device.load()
        return mpv_device

    def test_metadata_then_time(self, loaded, mpv) -> None:
        """Test events come out in media-element order."""
        events = _record_events(loaded)
        mpv.properties.update({"duration": 200.0, "time-pos": 1.5})

        loaded.poll()

        assert events == [LOADEDMETADATA, TIMEUPDATE]
        assert loaded.duration == 200.0
        assert loaded.current_time == 1.5

    def test_metadata_emitted_once(self, loaded, mpv) -> None:
        events = _record_events(loaded)
        mpv.properties["duration"] = 200.0
        loaded.poll()
        loaded.poll()
        assert events.count(LOADEDMETADATA) == 1

    def test_unchanged_position_is_quiet(self, loaded, mpv) -> None:
        mpv.properties.update({"duration": 200.0, "time-pos": 3.0})
        loaded.poll()
        events = _record_events(loaded)
        loaded.poll()
        assert events == []

    def test_pause_transitions(self, loaded, mpv) -> None:
        events = _record_events(loaded)
        mpv.properties["pause"] = False
        loaded.poll()
        mpv.properties["pause"] = True
        loaded.poll()
        assert events == [PLAY, PAUSE]

    def test_end_of_file(self, loaded, mpv) -> None:
        events = _record_events(loaded)
        mpv.properties.update({"duration": 200.0, "time-pos": 200.0, "eof-reached": True})
        loaded.poll()
        loaded.poll()
        assert events == [LOADEDMETADATA, TIMEUPDATE, ENDED]

    def test_play_after_end_starts_over(self, loaded, mpv) -> None:
        mpv.properties.update({"duration": 200.0, "time-pos": 200.0, "eof-reached": True})
        loaded.poll()
        mpv.sent.clear()

        loaded.play()

        assert mpv.sent == [["seek", 0.0, "absolute"], ["set_property", "pause", False]]

    def test_unopenable_source_reports_error(self, loaded, mpv) -> None:
        events = _record_events(loaded)
        mpv.properties["idle-active"] = True
        loaded.poll()
        loaded.poll()
        assert events == [ERROR]

    def test_no_source_no_events(self, mpv_device, mpv) -> None:
        events = _record_events(mpv_device)
        mpv.properties.update({"duration": 10.0, "time-pos": 1.0})
        mpv_device.poll()
        assert events == []

    def test_pause_forced_by_load_is_not_reported(self, loaded, mpv) -> None:
        mpv.properties["pause"] = False
        loaded.poll()
        events = _record_events(loaded)

        loaded.src = "https://cdn.example.com/2.mp3"
        loaded.load()
        mpv.properties["pause"] = True
        loaded.poll()

        assert PAUSE not in events
        assert loaded.paused is True


class TestMpvSynchronization:
    def test_rejected_play_after_track_change_keeps_intent(
        self, mpv_device, mpv, tracks
    ) -> None:
        """Test a track change whose play() mpv rejects leaves the store playing."""
        store = PlayerStore()
        PlaybackSynchronizer(store, mpv_device).attach()
        store.set_queue(tracks)
        mpv.properties["pause"] = False
        mpv_device.poll()
        assert store.state.is_playing is True

        mpv.rejected.append(["set_property", "pause", False])
        mpv.properties["pause"] = True
        store.next_track()
        mpv_device.poll()

        assert store.state.current_song == tracks[1]
        assert store.state.is_playing is True


class TestIpcHelpers:
    def test_missing_socket(self, tmp_path) -> None:
        missing = str(tmp_path / "nope")
        assert send_mpv_command(missing, {"command": ["stop"]}) is False
        assert get_mpv_property(missing, "pause") is None

    def test_reply_after_event_lines(self, tmp_path) -> None:
        """Test the reply is found even when mpv interleaves event lines."""
        socket_path = tmp_path / "mpv.sock"
        socket_path.touch()
        response = (
            json.dumps({"event": "playback-restart"})
            + "\n"
            + json.dumps({"data": 12.5, "error": "success"})
            + "\n"
        )

        sock = MagicMock()
        sock.__enter__.return_value = sock
        sock.recv.return_value = response.encode("utf-8")

        with patch(f"{DEVICE_MODULE}.socket.socket", return_value=sock):
            assert get_mpv_property(str(socket_path), "time-pos") == 12.5

        sent = json.loads(sock.sendall.call_args[0][0].decode("utf-8"))
        assert sent == {"command": ["get_property", "time-pos"]}

    def test_error_reply(self, tmp_path) -> None:
        socket_path = tmp_path / "mpv.sock"
        socket_path.touch()
        sock = MagicMock()
        sock.__enter__.return_value = sock
        sock.recv.return_value = b'{"error": "property unavailable"}\n'

        with patch(f"{DEVICE_MODULE}.socket.socket", return_value=sock):
            assert send_mpv_command(str(socket_path), {"command": ["stop"]}) is False
            assert get_mpv_property(str(socket_path), "duration") is None
