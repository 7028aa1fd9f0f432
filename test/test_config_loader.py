from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config_loader import PlaybackSettings, load_config


def test_defaults_match_playback_constants() -> None:
    settings = PlaybackSettings()
    assert settings.fps == 30
    assert settings.default_slide_frames == 180
    assert settings.min_narration_frames == 90
    assert settings.gap_frames == 30
    assert (settings.width, settings.height) == (1280, 720)


def test_load_config_resolves_paths_and_playback(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "playback:\n"
        "  fps: 24\n"
        "  inter_slide_gap_seconds: 0.5\n"
        "  words_per_second: oops\n"
        "output:\n"
        "  directory: previews\n"
        "logging:\n"
        "  level: debug\n",
        encoding="utf-8",
    )
    config = load_config(config_path)

    assert config.playback.fps == 24
    assert config.playback.gap_frames == 12
    assert config.playback.words_per_second == 2.5
    assert config.output_dir == (tmp_path / "previews").resolve()
    assert config.log_file == (tmp_path / "logs" / "run.log").resolve()
    assert config.logging_level == "DEBUG"
    assert config.section("captions") == {}


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("", encoding="utf-8")
    config = load_config(config_path)
    assert config.playback == PlaybackSettings()


def test_invalid_playback_values_raise() -> None:
    with pytest.raises(ValueError, match="fps"):
        PlaybackSettings.from_config({"fps": 0})
    with pytest.raises(ValueError, match="cannot be negative"):
        PlaybackSettings(inter_slide_gap_seconds=-1)


def test_missing_and_malformed_config(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_config(bad)


def test_repository_config_loads() -> None:
    config = load_config(Path(__file__).resolve().parents[1] / "config.yaml")
    assert config.playback == PlaybackSettings()
