"""Tests for CLI commands that do not need mpv."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from vern_player import cli
from vern_player.core.config import get_state_file_path
from vern_player.domain.playback import (
    JsonFileStorage,
    PlaybackState,
    RepeatMode,
    StatePersistence,
)


@pytest.fixture
def state_config(config, tmp_path):
    config.persistence.enabled = True
    config.persistence.state_file = str(tmp_path / "state.json")
    return config


def _write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadTracks:
    def test_list_of_records(self, tmp_path) -> None:
        path = _write_json(
            tmp_path / "tracks.json",
            [
                {"id": 1, "title": "One", "artist": "A", "audio_url": "https://x/1.mp3"},
                {"id": 2, "title": "Two", "artists": {"name": "B"}, "audio_url": "https://x/2.mp3"},
            ],
        )

        tracks = cli.load_tracks(path)

        assert [t.id for t in tracks] == ["1", "2"]
        assert tracks[1].artist == "B"

    @pytest.mark.parametrize("key", ["tracks", "songs"])
    def test_wrapped_list(self, tmp_path, key) -> None:
        path = _write_json(
            tmp_path / "tracks.json",
            {key: [{"id": "a", "title": "A", "audio_url": "https://x/a.mp3"}]},
        )
        assert len(cli.load_tracks(path)) == 1

    @pytest.mark.parametrize(
        "data", [{"other": []}, "tracks", [1, 2], [{"id": "a"}]]
    )
    def test_invalid_content(self, tmp_path, data) -> None:
        path = _write_json(tmp_path / "tracks.json", data)
        with pytest.raises(ValueError):
            cli.load_tracks(path)


class TestRunPlay:
    def test_unreadable_file(self, config, tmp_path, capsys) -> None:
        assert cli.run_play(config, tmp_path / "missing.json") == 1
        assert "could not load tracks" in capsys.readouterr().err

    def test_empty_track_list(self, config, tmp_path, capsys) -> None:
        path = _write_json(tmp_path / "tracks.json", [])
        assert cli.run_play(config, path) == 1
        assert "no tracks" in capsys.readouterr().err

    @patch("vern_player.cli.check_mpv_available", return_value=False)
    def test_requires_mpv(self, mock_check, config, tmp_path) -> None:
        path = _write_json(
            tmp_path / "tracks.json",
            [{"id": "a", "title": "A", "audio_url": "https://x/a.mp3"}],
        )
        assert cli.run_play(config, path) == 1

    @pytest.mark.parametrize("start", [-1, 1, 5])
    @patch("vern_player.cli.create_app")
    @patch("vern_player.cli.check_mpv_available", return_value=True)
    def test_start_out_of_range(
        self, mock_check, mock_create_app, config, tmp_path, capsys, start
    ) -> None:
        path = _write_json(
            tmp_path / "tracks.json",
            [{"id": "a", "title": "A", "audio_url": "https://x/a.mp3"}],
        )

        assert cli.run_play(config, path, start=start) == 1
        assert "out of range" in capsys.readouterr().err
        mock_create_app.assert_not_called()


class TestRunResume:
    @patch("vern_player.cli.check_mpv_available", return_value=True)
    def test_nothing_saved(self, mock_check, state_config) -> None:
        assert cli.run_resume(state_config) == 1


class TestRunStatus:
    def test_no_saved_state(self, state_config, capsys) -> None:
        assert cli.run_status(state_config) == 0
        assert "No saved player state" in capsys.readouterr().out

    def test_shows_saved_state(self, state_config, capsys, tracks) -> None:
        persistence = StatePersistence(
            JsonFileStorage(get_state_file_path(state_config)),
            key=state_config.persistence.storage_key,
        )
        persistence.save(
            PlaybackState(
                current_song=tracks[1],
                queue=tuple(tracks),
                queue_index=1,
                volume=0.5,
                repeat_mode=RepeatMode.ALL,
            )
        )

        assert cli.run_status(state_config) == 0

        out = capsys.readouterr().out
        assert "Artist 2 - Song 2" in out
        assert "3 tracks" in out
        assert "50%" in out
        assert "all" in out


class TestRunClear:
    def test_clears_saved_state(self, state_config) -> None:
        state_file = get_state_file_path(state_config)
        persistence = StatePersistence(
            JsonFileStorage(state_file), key=state_config.persistence.storage_key
        )
        persistence.save(PlaybackState(volume=0.2))

        assert cli.run_clear(state_config) == 0
        assert persistence.load() is None


class TestPersistenceDisabled:
    def test_status_notes_disabled_persistence(self, config, tmp_path, capsys) -> None:
        config.persistence.state_file = str(tmp_path / "state.json")

        assert cli.run_status(config) == 0
        assert "persistence is disabled" in capsys.readouterr().out

    def test_clear_notes_disabled_persistence(self, config, tmp_path, capsys) -> None:
        config.persistence.state_file = str(tmp_path / "state.json")

        assert cli.run_clear(config) == 0
        assert "persistence is disabled" in capsys.readouterr().out

    def test_enabled_persistence_has_no_note(self, state_config, capsys) -> None:
        cli.run_status(state_config)
        assert "persistence is disabled" not in capsys.readouterr().out
