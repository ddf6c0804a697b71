"""
Configuration management for VERN Player
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

VALID_REPEAT_MODES = {"off", "one", "all"}


@dataclass
class PlayerConfig:
    """Configuration for playback defaults and the mpv output device."""

    mpv_socket_path: Optional[str] = None
    volume: float = 1.0  # Used only when no persisted volume exists
    shuffle_on_start: bool = False
    repeat_mode: str = "off"

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not 0.0 <= self.volume <= 1.0:
            raise ValueError(f"Invalid volume: {self.volume}. Must be between 0 and 1")
        if self.repeat_mode not in VALID_REPEAT_MODES:
            raise ValueError(
                f"Invalid repeat_mode: {self.repeat_mode!r}. "
                f"Valid modes are: {sorted(VALID_REPEAT_MODES)}"
            )


@dataclass
class PersistenceConfig:
    """Configuration for the persisted player state."""

    enabled: bool = True
    state_file: Optional[str] = None  # default: <data_dir>/player-state.json
    storage_key: str = "vern-player-store"


@dataclass
class UIConfig:
    """Configuration for the terminal player."""

    refresh_rate: int = 10  # Device poll / redraw rate in Hz
    seek_step_seconds: float = 5.0
    volume_step: float = 0.05
    use_colors: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # default: <data_dir>/vern-player.log
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class NotificationsConfig:
    """Configuration for now-playing desktop notifications."""

    enabled: bool = True


@dataclass
class Config:
    """Main configuration object."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "vern-player"
    return Path.home() / ".config" / "vern-player"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "vern-player"
    return Path.home() / ".local" / "share" / "vern-player"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Current working directory
    2. XDG_CONFIG_HOME/vern-player (or ~/.config/vern-player)
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_state_file_path(config: Config) -> Path:
    """Resolve where the persisted player state lives."""
    if config.persistence.state_file:
        return Path(config.persistence.state_file).expanduser()
    return get_data_dir() / "player-state.json"


def get_log_file_path(config: Config) -> Path:
    """Resolve where the log file lives."""
    if config.logging.log_file:
        return Path(config.logging.log_file).expanduser()
    return get_data_dir() / "vern-player.log"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# VERN Player Configuration

[player]
# Path for mpv socket (auto-generated if not specified)
# mpv_socket_path = "/tmp/vern-mpv-socket"

# Initial volume (0.0-1.0) when no saved volume exists
volume = 1.0

# Start with shuffle enabled when no saved state exists
shuffle_on_start = false

# Initial repeat mode when no saved state exists (off, one, all)
repeat_mode = "off"

[persistence]
# Remember volume, modes and the queue between runs
enabled = true

# Custom state file (default: ~/.local/share/vern-player/player-state.json)
# state_file = "/path/to/player-state.json"

# Key the state is stored under
storage_key = "vern-player-store"

[ui]
# Device poll and redraw rate in Hz
refresh_rate = 10

# Seconds to jump with the arrow keys
seek_step_seconds = 5.0

# Volume change per +/- key press
volume_step = 0.05

# Use colors in terminal output
use_colors = true

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/vern-player/vern-player.log)
# log_file = "/path/to/vern-player.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of rotated log files to keep
backup_count = 5

[notifications]
# Show a desktop notification when the track changes
enabled = true
""".strip()


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - VERN_MPV_SOCKET
    - VERN_STATE_FILE
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = get_config_path()

    config = Config()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(config)

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        return _apply_env_overrides(Config())

    if "player" in toml_data:
        player_data = toml_data["player"]
        try:
            config.player = PlayerConfig(
                mpv_socket_path=player_data.get("mpv_socket_path"),
                volume=float(player_data.get("volume", config.player.volume)),
                shuffle_on_start=player_data.get(
                    "shuffle_on_start", config.player.shuffle_on_start
                ),
                repeat_mode=player_data.get("repeat_mode", config.player.repeat_mode),
            )
            config.player.validate()
        except (TypeError, ValueError) as e:
            print(f"Warning: Invalid player configuration: {e}")
            print("Using default player configuration.")
            config.player = PlayerConfig()

    if "persistence" in toml_data:
        persistence_data = toml_data["persistence"]
        state_file = persistence_data.get("state_file")
        if state_file:
            state_file = str(Path(state_file).expanduser())
        config.persistence = PersistenceConfig(
            enabled=persistence_data.get("enabled", config.persistence.enabled),
            state_file=state_file,
            storage_key=persistence_data.get(
                "storage_key", config.persistence.storage_key
            ),
        )

    if "ui" in toml_data:
        ui_data = toml_data["ui"]
        config.ui = UIConfig(
            refresh_rate=max(1, int(ui_data.get("refresh_rate", config.ui.refresh_rate))),
            seek_step_seconds=float(
                ui_data.get("seek_step_seconds", config.ui.seek_step_seconds)
            ),
            volume_step=float(ui_data.get("volume_step", config.ui.volume_step)),
            use_colors=ui_data.get("use_colors", config.ui.use_colors),
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
        )

    if "notifications" in toml_data:
        notifications_data = toml_data["notifications"]
        config.notifications = NotificationsConfig(
            enabled=notifications_data.get("enabled", config.notifications.enabled),
        )

    return _apply_env_overrides(config)


def _apply_env_overrides(config: Config) -> Config:
    """Override file/default values with environment variables if present."""
    mpv_socket = os.environ.get("VERN_MPV_SOCKET")
    state_file = os.environ.get("VERN_STATE_FILE")

    if mpv_socket:
        config.player.mpv_socket_path = mpv_socket
    if state_file:
        config.persistence.state_file = state_file

    return config


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
