"""
Audio output device contract and the mpv implementation.

The synchronizer drives any object satisfying ``AudioDevice``: a media
element style handle with a source, load/play/pause, a seekable position,
volume, a duration that is NaN until metadata loads, and DOM-like events.
``MpvAudioDevice`` provides it on top of mpv's JSON IPC socket; its events
come from ``poll()``, which the application loop calls on every frame.
"""

import json
import math
import os
import shutil
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from .models import clamp_volume

# Device events, emitted in the order they are observed
TIMEUPDATE = "timeupdate"
LOADEDMETADATA = "loadedmetadata"
ENDED = "ended"
PLAY = "play"
PAUSE = "pause"
ERROR = "error"

DEVICE_EVENTS = (TIMEUPDATE, LOADEDMETADATA, ENDED, PLAY, PAUSE, ERROR)

EventHandler = Callable[[], None]

IPC_TIMEOUT = 2.0
SOCKET_WAIT_TIMEOUT = 5.0


class DeviceError(Exception):
    """Raised when the device rejects a command (e.g. play with nothing loaded)."""


class AudioDevice(Protocol):
    """Playable-audio handle driven by the synchronizer."""

    cross_origin: Optional[str]

    @property
    def src(self) -> Optional[str]: ...

    @src.setter
    def src(self, url: Optional[str]) -> None: ...

    @property
    def paused(self) -> bool: ...

    @property
    def current_time(self) -> float: ...

    @current_time.setter
    def current_time(self, seconds: float) -> None: ...

    @property
    def volume(self) -> float: ...

    @volume.setter
    def volume(self, volume: float) -> None: ...

    @property
    def duration(self) -> float: ...

    def load(self) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def add_event_listener(self, event: str, handler: EventHandler) -> None: ...

    def remove_event_listener(self, event: str, handler: EventHandler) -> None: ...


class EventEmitter:
    """Minimal listener registry shared by device implementations."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def add_event_listener(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def remove_event_listener(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def _emit(self, event: str) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler()
            except Exception:
                logger.exception(f"Device '{event}' handler failed")


# mpv JSON IPC


def check_mpv_available() -> bool:
    """Check if mpv is available on the system."""
    if not shutil.which("mpv"):
        return False
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, OSError):
        return False


def _mpv_request(socket_path: Optional[str], command: dict[str, Any]) -> Optional[dict]:
    """Send one request over the IPC socket and return mpv's reply.

    Returns:
        The reply object, {} when mpv sent nothing back, or None when the
        socket is unreachable or the reply is unreadable
    """
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(IPC_TIMEOUT)
            sock.connect(socket_path)
            sock.sendall((json.dumps(command) + "\n").encode("utf-8"))
            response = sock.recv(4096).decode("utf-8").strip()
    except OSError as e:
        logger.debug(f"mpv IPC request failed: {command} ({e})")
        return None

    if not response:
        return {}

    # Event lines may precede the reply; the reply is the one carrying "error"
    for line in response.splitlines():
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and "error" in data:
            return data

    return None


def send_mpv_command(socket_path: Optional[str], command: dict[str, Any]) -> bool:
    """Send a JSON IPC command to mpv; True when mpv accepted it."""
    reply = _mpv_request(socket_path, command)
    if reply is None:
        return False
    return reply.get("error", "success") == "success"


def get_mpv_property(socket_path: Optional[str], property_name: str) -> Any:
    """Get a property value from mpv, or None if unavailable."""
    reply = _mpv_request(socket_path, {"command": ["get_property", property_name]})
    if reply and reply.get("error") == "success":
        return reply.get("data")
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class MpvAudioDevice(EventEmitter):
    """AudioDevice backed by one long-lived mpv process.

    The process is started once per session and reused for every track;
    changing tracks is a ``loadfile`` on the same instance.
    """

    def __init__(self, socket_path: Optional[str] = None, volume: float = 1.0):
        super().__init__()
        if not socket_path:
            socket_path = str(Path(tempfile.gettempdir()) / f"vern-mpv-{os.getpid()}")
        self.socket_path = socket_path
        self.process: Optional[subprocess.Popen] = None
        self.cross_origin: Optional[str] = "anonymous"

        self._src: Optional[str] = None
        self._volume = clamp_volume(volume)
        self._paused = True
        self._observed_paused = True
        self._position = 0.0
        self._duration = math.nan
        self._metadata_loaded = False
        self._ended = False
        self._load_error_reported = False
        self._exit_reported = False

    # Process lifecycle

    def start(self) -> bool:
        """Start mpv with JSON IPC. Returns True once the socket answers."""
        logger.info(f"Starting mpv with socket: {self.socket_path}")

        try:
            if os.path.exists(self.socket_path):
                logger.debug(f"Removing existing socket: {self.socket_path}")
                os.unlink(self.socket_path)

            cmd = [
                "mpv",
                "--idle=yes",
                "--no-video",
                "--no-terminal",
                "--pause",
                "--keep-open=yes",
                "--load-scripts=no",
                f"--input-ipc-server={self.socket_path}",
                f"--volume={round(self._volume * 100)}",
            ]

            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )

            start_time = time.time()
            while not os.path.exists(self.socket_path):
                if time.time() - start_time > SOCKET_WAIT_TIMEOUT:
                    logger.error(f"mpv socket creation timeout after {SOCKET_WAIT_TIMEOUT}s")
                    self.process.kill()
                    self.process = None
                    return False
                time.sleep(0.1)

            if send_mpv_command(self.socket_path, {"command": ["get_property", "idle-active"]}):
                logger.info("mpv started successfully")
                return True

            logger.error("mpv socket connection test failed")
            self.process.kill()
            self.process = None
            return False

        except (subprocess.SubprocessError, OSError) as e:
            logger.error(f"Failed to start mpv: {e}")
            self.process = None
            return False

    def stop(self) -> None:
        """Stop the mpv process and remove its socket."""
        if self.process:
            try:
                self.process.kill()
                self.process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                pass  # Already gone
            self.process = None

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

    def is_running(self) -> bool:
        if not self.process or self.process.poll() is not None:
            return False
        return os.path.exists(self.socket_path)

    # AudioDevice

    @property
    def src(self) -> Optional[str]:
        return self._src

    @src.setter
    def src(self, url: Optional[str]) -> None:
        self._src = url

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def current_time(self) -> float:
        return self._position

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        if send_mpv_command(self.socket_path, {"command": ["seek", seconds, "absolute"]}):
            self._position = float(seconds)
            if self._ended and (math.isnan(self._duration) or seconds < self._duration):
                self._ended = False
        else:
            logger.debug(f"Seek to {seconds:.2f}s was not accepted")

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, volume: float) -> None:
        self._volume = clamp_volume(volume)
        send_mpv_command(
            self.socket_path,
            {"command": ["set_property", "volume", round(self._volume * 100)]},
        )

    @property
    def duration(self) -> float:
        return self._duration

    def load(self) -> None:
        """Load the current source, paused at the start."""
        self._position = 0.0
        self._duration = math.nan
        self._metadata_loaded = False
        self._ended = False
        self._load_error_reported = False
        # The pause forced below is not a transition to report
        self._paused = True
        self._observed_paused = True

        if not self._src:
            return

        # The pause property carries over into the next file
        send_mpv_command(self.socket_path, {"command": ["set_property", "pause", True]})
        if not send_mpv_command(self.socket_path, {"command": ["loadfile", self._src, "replace"]}):
            logger.warning(f"mpv did not accept source: {self._src}")
            self._load_error_reported = True
            self._emit(ERROR)
            return

        logger.debug(f"Loading source: {self._src}")

    def play(self) -> None:
        """Start or resume playback.

        Raises:
            DeviceError: If nothing is loaded or mpv rejects the command
        """
        if not self._src:
            raise DeviceError("No source loaded")
        if not self.is_running():
            raise DeviceError("mpv is not running")

        if self._ended:
            # Playing again after the end starts over, like a media element
            self.current_time = 0.0

        if not send_mpv_command(self.socket_path, {"command": ["set_property", "pause", False]}):
            raise DeviceError("mpv rejected play command")
        self._paused = False

    def pause(self) -> None:
        if not self.is_running():
            self._paused = True
            return
        if send_mpv_command(self.socket_path, {"command": ["set_property", "pause", True]}):
            self._paused = True

    # Event source

    def poll(self) -> None:
        """Read mpv's state once and emit events for whatever changed.

        Emission order: loadedmetadata, timeupdate, play/pause, ended.
        """
        if not self.is_running():
            if self.process is not None and not self._exit_reported:
                self._exit_reported = True
                logger.error("mpv process is no longer running")
                self._emit(ERROR)
            return

        if not self._src:
            return

        duration = get_mpv_property(self.socket_path, "duration")
        position = get_mpv_property(self.socket_path, "time-pos")
        paused = get_mpv_property(self.socket_path, "pause")
        eof = get_mpv_property(self.socket_path, "eof-reached")

        if not self._metadata_loaded and _is_number(duration) and duration > 0:
            self._duration = float(duration)
            self._metadata_loaded = True
            self._emit(LOADEDMETADATA)

        if _is_number(position) and position != self._position:
            self._position = float(position)
            self._emit(TIMEUPDATE)

        if isinstance(paused, bool) and paused != self._observed_paused:
            self._observed_paused = paused
            self._paused = paused
            self._emit(PAUSE if paused else PLAY)

        if eof is True and not self._ended:
            self._ended = True
            self._emit(ENDED)

        if (
            not self._metadata_loaded
            and not self._load_error_reported
            and get_mpv_property(self.socket_path, "idle-active") is True
        ):
            # mpv drops back to idle when a source cannot be opened
            self._load_error_reported = True
            logger.warning(f"mpv could not open source: {self._src}")
            self._emit(ERROR)
