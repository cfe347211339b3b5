from __future__ import annotations

from pathlib import Path

import pytest

from fridamgr.exceptions import ConfigError
from fridamgr.config import (
    FridaMgrConfig,
    config_from_table,
    discover_config_file,
    load_config,
)


@pytest.fixture
def in_tmp_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from an empty temporary working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.mark.unit
class TestFridaMgrConfig:
    """Tests for FridaMgrConfig defaults and derived paths."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("FRIDA_MGR_HOME", str(tmp_path))
        config = FridaMgrConfig()

        assert config.include_prerelease is False
        assert config.lookahead_days == 21
        assert config.objection_scan_limit == 30
        assert config.max_listing_pages == 1000
        assert config.page_delay == pytest.approx(0.35)
        assert config.timeout == 30
        assert config.max_attempts == 3
        assert config.data_dir == tmp_path
        assert config.source_path is None

    def test_state_paths(self, tmp_path: Path) -> None:
        config = FridaMgrConfig(data_dir=tmp_path)

        assert config.version_map_path == tmp_path / "version-map.toml"
        assert config.overrides_path == tmp_path / "version-overrides.toml"

    def test_to_log_dict(self, tmp_path: Path) -> None:
        log_dict = FridaMgrConfig(data_dir=tmp_path).to_log_dict()

        assert log_dict["data_dir"] == str(tmp_path)
        assert "source_path" not in log_dict


@pytest.mark.unit
class TestDiscoverConfigFile:
    """Tests for discover_config_file."""

    def test_explicit_path(self, tmp_path: Path) -> None:
        config = tmp_path / "custom.toml"
        config.write_text("", encoding="utf-8")

        assert discover_config_file(config) == config.resolve()

    def test_explicit_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            discover_config_file(tmp_path / "missing.toml")

    def test_standalone_file(self, in_tmp_cwd: Path) -> None:
        (in_tmp_cwd / "frida-mgr.toml").write_text("[frida-mgr]\n", encoding="utf-8")
        (in_tmp_cwd / "pyproject.toml").write_text("[tool.frida-mgr]\n", encoding="utf-8")

        assert discover_config_file() == in_tmp_cwd / "frida-mgr.toml"

    def test_pyproject_with_section(self, in_tmp_cwd: Path) -> None:
        (in_tmp_cwd / "pyproject.toml").write_text(
            "[tool.frida-mgr]\ntimeout = 10\n", encoding="utf-8"
        )

        assert discover_config_file() == in_tmp_cwd / "pyproject.toml"

    def test_pyproject_without_section(self, in_tmp_cwd: Path) -> None:
        (in_tmp_cwd / "pyproject.toml").write_text(
            "[project]\nname = 'x'\n", encoding="utf-8"
        )

        assert discover_config_file() is None

    def test_invalid_pyproject_ignored(self, in_tmp_cwd: Path) -> None:
        (in_tmp_cwd / "pyproject.toml").write_text("[tool.frida-mgr\n", encoding="utf-8")

        assert discover_config_file() is None

    def test_nothing_found(self, in_tmp_cwd: Path) -> None:
        assert discover_config_file() is None


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config and option validation."""

    def test_defaults_without_file(self, in_tmp_cwd: Path) -> None:
        config = load_config()

        assert config.source_path is None
        assert config.lookahead_days == 21

    def test_standalone_values(self, in_tmp_cwd: Path) -> None:
        path = in_tmp_cwd / "frida-mgr.toml"
        path.write_text(
            "[frida-mgr]\n"
            "include_prerelease = true\n"
            "lookahead_days = 14\n"
            "page_delay = 1\n"
            'data_dir = "~/frida-state"\n',
            encoding="utf-8",
        )

        config = load_config()

        assert config.include_prerelease is True
        assert config.lookahead_days == 14
        assert config.page_delay == 1.0
        assert isinstance(config.page_delay, float)
        assert config.data_dir == Path("~/frida-state").expanduser()
        assert config.source_path == path

    def test_pyproject_section(self, in_tmp_cwd: Path) -> None:
        (in_tmp_cwd / "pyproject.toml").write_text(
            "[tool.frida-mgr]\nobjection_scan_limit = 5\n", encoding="utf-8"
        )

        assert load_config().objection_scan_limit == 5

    def test_file_without_section(self, tmp_path: Path) -> None:
        path = tmp_path / "frida-mgr.toml"
        path.write_text("[other]\nkey = 1\n", encoding="utf-8")

        config = load_config(path)

        assert config.source_path == path.resolve()
        assert config.timeout == 30

    def test_unknown_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "frida-mgr.toml"
        path.write_text("[frida-mgr]\nlookahead = 3\nfoo = 1\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="foo, lookahead"):
            load_config(path)

    @pytest.mark.parametrize(
        "line,option",
        [
            ('timeout = "30"', "timeout"),
            ("lookahead_days = true", "lookahead_days"),
            ('include_prerelease = "yes"', "include_prerelease"),
            ("data_dir = 5", "data_dir"),
            ("page_delay = false", "page_delay"),
        ],
    )
    def test_type_errors(self, tmp_path: Path, line: str, option: str) -> None:
        path = tmp_path / "frida-mgr.toml"
        path.write_text(f"[frida-mgr]\n{line}\n", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)

        assert exc_info.value.option == option

    @pytest.mark.parametrize(
        "line",
        ["max_attempts = 0", "objection_scan_limit = 0", "lookahead_days = -1", "page_delay = -0.5"],
    )
    def test_minimums(self, tmp_path: Path, line: str) -> None:
        path = tmp_path / "frida-mgr.toml"
        path.write_text(f"[frida-mgr]\n{line}\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="must be >="):
            load_config(path)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "frida-mgr.toml"
        path.write_text("[frida-mgr\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_section_must_be_table(self, tmp_path: Path) -> None:
        path = tmp_path / "frida-mgr.toml"
        path.write_text('frida-mgr = "fast"\n', encoding="utf-8")

        with pytest.raises(ConfigError, match="must be a table"):
            load_config(path)


@pytest.mark.unit
class TestConfigFromTable:
    """Tests for building a config from an in-memory table."""

    def test_empty_table_gives_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FRIDA_MGR_HOME", str(tmp_path))

        assert config_from_table({}) == FridaMgrConfig()

    def test_values_applied(self) -> None:
        config = config_from_table({"max_listing_pages": 3, "timeout": 5})

        assert config.max_listing_pages == 3
        assert config.timeout == 5
        assert config.source_path is None

    def test_error_names_origin(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            config_from_table({"timeout": 0})

        assert exc_info.value.config_path == "<memory>"
