"""
VERN Player CLI - entry point

Plays a JSON track list through mpv, resumes the saved queue, or inspects
and clears the saved player state.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from vern_player.app import create_app
from vern_player.core.config import (
    Config,
    get_log_file_path,
    ensure_directories,
    get_state_file_path,
    load_config,
)
from vern_player.core.console import get_console, print_key_values, safe_print
from vern_player.core.output import log, setup_loguru
from vern_player.domain.playback import (
    JsonFileStorage,
    PlaybackState,
    RepeatMode,
    StatePersistence,
    Track,
    check_mpv_available,
    deserialize_state,
    format_time,
)
from vern_player.ui import run_interactive


def load_tracks(path: Path) -> list[Track]:
    """Load tracks from a JSON file.

    The file holds either a list of track records or an object with a
    ``tracks`` (or ``songs``) list.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the content is not a list of valid track records
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("tracks", data.get("songs"))
    if not isinstance(data, list):
        raise ValueError("Track file must contain a list of tracks")

    tracks = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Track #{i + 1} is not an object")
        tracks.append(Track.from_dict(item))
    return tracks


def _state_persistence(config: Config) -> StatePersistence:
    return StatePersistence(
        JsonFileStorage(get_state_file_path(config)),
        key=config.persistence.storage_key,
    )


def _note_persistence_disabled(config: Config) -> None:
    if not config.persistence.enabled:
        safe_print(
            "Note: persistence is disabled in config; the player will not read or write this state",
            style="dim",
        )


def _ensure_mpv() -> bool:
    if check_mpv_available():
        return True
    log("mpv is required for playback but was not found on PATH", level="error")
    return False


def run_play(
    config: Config,
    tracks_file: Path,
    start: int = 0,
    shuffle: Optional[bool] = None,
    repeat: Optional[str] = None,
) -> int:
    """Replace the queue with the tracks in ``tracks_file`` and play.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        tracks = load_tracks(tracks_file)
    except (OSError, TypeError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        print(f"Error: could not load tracks from {tracks_file}: {e}", file=sys.stderr)
        return 1

    if not tracks:
        print(f"Error: no tracks in {tracks_file}", file=sys.stderr)
        return 1

    if not 0 <= start < len(tracks):
        print(
            f"Error: --start {start} is out of range (0-{len(tracks) - 1})",
            file=sys.stderr,
        )
        return 1

    if not _ensure_mpv():
        return 1

    app = create_app(config)
    if not app.start():
        log("Error: failed to start mpv", level="error")
        return 1

    try:
        if shuffle is not None and shuffle != app.store.state.is_shuffle:
            app.store.toggle_shuffle()
        if repeat is not None:
            app.store.set_repeat_mode(repeat)
        app.store.set_queue(tracks, start)
        run_interactive(app)
    finally:
        app.shutdown()

    return 0


def run_resume(config: Config) -> int:
    """Resume the saved queue, paused on the saved track."""
    if not _ensure_mpv():
        return 1

    app = create_app(config)
    state = app.store.state
    if not state.queue and state.current_song is None:
        log("Nothing to resume - start with: vern-player play TRACKS.json", level="warning")
        return 1

    if not app.start():
        log("Error: failed to start mpv", level="error")
        return 1

    try:
        run_interactive(app)
    finally:
        app.shutdown()

    return 0


def run_status(config: Config) -> int:
    """Print the saved player state."""
    _note_persistence_disabled(config)
    record = _state_persistence(config).load()
    if record is None:
        safe_print("No saved player state", style="yellow")
        return 0

    state = deserialize_state(record, PlaybackState())
    song = state.current_song
    rows = [
        ("Current", f"{song.artist} - {song.title}" if song else "-"),
        ("Length", format_time(song.duration_seconds or 0) if song else "-"),
        ("Queue", f"{len(state.queue)} tracks"),
        ("Position", str(state.queue_index + 1) if state.queue_index >= 0 else "-"),
        ("Volume", f"{round(state.volume * 100)}%"),
        ("Repeat", state.repeat_mode.value),
        ("Shuffle", "on" if state.is_shuffle else "off"),
    ]
    print_key_values("VERN Player", rows)

    for i, track in enumerate(state.queue):
        marker = "▶" if i == state.queue_index else " "
        get_console().print(f"{marker} {i + 1:>3}. {track.artist} - {track.title}")

    return 0


def run_clear(config: Config) -> int:
    """Forget the saved queue and preferences."""
    _note_persistence_disabled(config)
    _state_persistence(config).clear()
    safe_print("Saved player state cleared", style="green")
    return 0


def main() -> None:
    """Main entry point for the vern-player command."""
    parser = argparse.ArgumentParser(
        description="VERN Player - play and queue tracks from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", type=Path, help="Path to config.toml (default: auto-detected)"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Log at DEBUG level"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    play_parser = subparsers.add_parser("play", help="Play tracks from a JSON file")
    play_parser.add_argument("tracks", type=Path, help="JSON file with track records")
    play_parser.add_argument(
        "--start", type=int, default=0, help="0-based index of the first track"
    )
    play_parser.add_argument(
        "--shuffle",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable shuffle",
    )
    play_parser.add_argument(
        "--repeat",
        choices=[mode.value for mode in RepeatMode],
        help="Repeat mode",
    )

    subparsers.add_parser("resume", help="Resume the saved queue (default)")
    subparsers.add_parser("status", help="Show the saved player state")
    subparsers.add_parser("clear", help="Clear the saved player state")

    args = parser.parse_args()

    config = load_config(args.config)
    ensure_directories()
    level = "DEBUG" if args.debug else config.logging.level
    setup_loguru(
        get_log_file_path(config),
        level=level,
        rotation_mb=config.logging.max_file_size_mb,
        retention=config.logging.backup_count,
    )
    get_console(use_colors=config.ui.use_colors)
    logger.info(f"vern-player {args.subcommand or 'resume'}")

    if args.subcommand == "play":
        sys.exit(run_play(config, args.tracks, args.start, args.shuffle, args.repeat))
    elif args.subcommand == "status":
        sys.exit(run_status(config))
    elif args.subcommand == "clear":
        sys.exit(run_clear(config))
    else:
        sys.exit(run_resume(config))


if __name__ == "__main__":
    main()
