"""Tests for configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tripline.config import (
    AppConfig,
    ConfigFileError,
    get_config,
    load_config,
    reset_config,
)
from tripline.core.models import TransportMode


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with an empty home so no real config is found."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return work


class TestDefaults:
    def test_defaults(self) -> None:
        config = load_config()

        assert config.transport.default_mode == TransportMode.DRIVE
        assert config.transport.request_delay_seconds == 0.1
        assert config.transport.max_passes == 5
        assert config.timeline.default_order_index == 999
        assert config.timeline.include_undated is False
        assert config.log_file is None

    @pytest.mark.parametrize(
        "debug, verbose, level",
        [(False, False, "WARNING"), (False, True, "INFO"), (True, True, "DEBUG")],
    )
    def test_log_level(self, debug, verbose, level) -> None:
        assert AppConfig(debug=debug, verbose=verbose).log_level == level

    def test_log_file_expands_home(self, isolated_home: Path) -> None:
        config = AppConfig(log_file="~/trip.log")

        assert config.log_file == Path.home() / "trip.log"


class TestEnvironment:
    def test_nested_env_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRIPLINE_TRANSPORT__DEFAULT_MODE", "WALK")
        monkeypatch.setenv("TRIPLINE_TIMELINE__INCLUDE_UNDATED", "true")

        config = load_config()

        assert config.transport.default_mode == TransportMode.WALK
        assert config.timeline.include_undated is True

    def test_top_level_env_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRIPLINE_DEBUG", "1")

        assert load_config().log_level == "DEBUG"


class TestConfigFile:
    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("transport:\n  default_mode: train\n  max_passes: 2\n", encoding="utf-8")

        config = load_config(path)

        assert config.transport.default_mode == TransportMode.TRAIN
        assert config.transport.max_passes == 2
        assert config.transport.request_delay_seconds == 0.1

    def test_file_in_working_directory(self, isolated_home: Path) -> None:
        (isolated_home / "tripline.yaml").write_text("verbose: true\n", encoding="utf-8")

        assert load_config().verbose is True

    def test_file_in_home_directory(self) -> None:
        config_dir = Path.home() / ".tripline"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("timeline:\n  default_order_index: 50\n", encoding="utf-8")

        assert load_config().timeline.default_order_index == 50

    def test_environment_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("transport:\n  default_mode: train\n  max_passes: 7\n", encoding="utf-8")
        monkeypatch.setenv("TRIPLINE_TRANSPORT__MAX_PASSES", "2")

        config = load_config(path)

        assert config.transport.max_passes == 2
        assert config.transport.default_mode == TransportMode.TRAIN

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigFileError):
            load_config(tmp_path / "nope.yaml")

    def test_malformed_yaml_uses_defaults(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("transport: [unclosed\n", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="tripline"):
            config = load_config(path)

        assert config.transport.max_passes == 5
        assert "Failed to parse config file" in caplog.text

    def test_non_mapping_yaml_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        assert load_config(path).transport.max_passes == 5

    def test_invalid_value_uses_defaults(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "invalid.yaml"
        path.write_text("transport:\n  max_passes: 0\n", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="tripline"):
            config = load_config(path)

        assert config.transport.max_passes == 5
        assert "Error parsing config values" in caplog.text

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path).debug is False


class TestCaching:
    def test_get_config_is_cached(self) -> None:
        assert get_config() is get_config()

    def test_reset_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_config()
        monkeypatch.setenv("TRIPLINE_VERBOSE", "true")

        reset_config()

        assert get_config() is not first
        assert get_config().verbose is True
