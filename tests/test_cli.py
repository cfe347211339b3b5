from __future__ import annotations

import sys
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner, Result

from fridamgr.cli import cli, main
from fridamgr.core.store import load_version_map, save_overrides, save_version_map
from fridamgr.exceptions import EmptyResultError, FileOperationError, NetworkError
from fridamgr.models import (
    MapMetadata,
    SourceDegradation,
    VersionInfo,
    VersionMap,
    VersionOverrides,
)


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated data directory and working directory for one CLI run."""
    state = tmp_path / "state"
    monkeypatch.setenv("FRIDA_MGR_HOME", str(state))
    monkeypatch.delenv("FRIDA_MGR_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return state


def _invoke(args: List[str]) -> Result:
    return CliRunner().invoke(cli, ["--no-color", *args], env={"COLUMNS": "200"})


def _refreshed_map() -> VersionMap:
    return VersionMap(
        mappings={"17.0.0": VersionInfo("14.0.0", "2025-05-17", "1.11.0")},
        aliases={"latest": "17.0.0", "stable": "17.0.0"},
        metadata=MapMetadata("2025-06-01", "https://github.com/frida/frida/releases.atom"),
    )


@pytest.mark.unit
class TestCliGroup:
    """Tests for global options."""

    def test_help(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("list", "resolve", "sync"):
            assert command in result.output

    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert result.output.startswith("frida-mgr ")

    def test_invalid_config_exits(self, home: Path, tmp_path: Path) -> None:
        config = tmp_path / "frida-mgr.toml"
        config.write_text("[frida-mgr]\nbogus = 1\n", encoding="utf-8")

        result = _invoke(["list"])

        assert result.exit_code == 1
        assert "Unknown configuration keys" in result.output

    def test_config_changes_data_dir(self, home: Path, tmp_path: Path) -> None:
        other = tmp_path / "elsewhere"
        config = tmp_path / "custom.toml"
        config.write_text(f'[frida-mgr]\ndata_dir = "{other.as_posix()}"\n', encoding="utf-8")

        result = _invoke(["--config", str(config), "list"])

        assert result.exit_code == 0
        assert (other / "version-map.toml").is_file()
        assert not home.exists()


@pytest.mark.integration
class TestListCommand:
    def test_seeds_and_lists_builtin(self, home: Path) -> None:
        result = _invoke(["list"])

        assert result.exit_code == 0
        assert (home / "version-map.toml").is_file()
        assert "16.6.6" in result.output
        assert "13.3.0" in result.output
        assert "latest" in result.output
        assert "Updated 2025-01-15" in result.output

    def test_versions_in_descending_order(self, home: Path) -> None:
        result = _invoke(["list"])

        assert result.output.index("16.6.6") < result.output.index("16.0.19")
        assert result.output.index("16.0.19") < result.output.index("15.1.17")

    def test_corrupt_map(self, home: Path) -> None:
        home.mkdir(parents=True)
        (home / "version-map.toml").write_text("[[[", encoding="utf-8")

        result = _invoke(["list"])

        assert result.exit_code == 1
        assert "Invalid TOML" in result.output


@pytest.mark.integration
class TestResolveCommand:
    def test_alias(self, home: Path) -> None:
        result = _invoke(["resolve", "latest", "--python", "3.11"])

        assert result.exit_code == 0
        assert "16.6.6" in result.output
        assert "alias 'latest'" in result.output
        assert "13.3.0" in result.output
        assert "not mapped" in result.output

    def test_learned_override_takes_precedence(self, home: Path) -> None:
        overrides = VersionOverrides()
        overrides.set_tools("16.6.6", "13.3.1")
        overrides.set_objection("16.6.6", "3.11.7", "1.11.0")
        save_overrides(overrides, home / "version-overrides.toml")

        result = _invoke(["resolve", "16.6.6", "--python", "3.11"])

        assert result.exit_code == 0
        assert "13.3.1" in result.output
        assert "learned override (map predicts 13.3.0)" in result.output
        assert "1.11.0" in result.output

    def test_override_for_other_python_ignored(self, home: Path) -> None:
        overrides = VersionOverrides()
        overrides.set_objection("16.6.6", "3.12", "1.11.0")
        save_overrides(overrides, home / "version-overrides.toml")

        result = _invoke(["resolve", "16.6.6", "--python", "3.11"])

        assert "1.11.0" not in result.output

    def test_objection_from_map(self, home: Path) -> None:
        save_version_map(_refreshed_map(), home / "version-map.toml")

        result = _invoke(["resolve", "stable"])

        assert result.exit_code == 0
        assert "14.0.0" in result.output
        assert "1.11.0" in result.output
        assert "version map" in result.output

    def test_unknown_version(self, home: Path) -> None:
        result = _invoke(["resolve", "9.9.9"])

        assert result.exit_code == 1
        assert "Unknown frida version: 9.9.9" in result.output

    def test_invalid_version(self, home: Path) -> None:
        result = _invoke(["resolve", "banana"])

        assert result.exit_code == 1
        assert "Not a semantic version" in result.output


@pytest.mark.integration
class TestSyncCommand:
    def test_success(self, home: Path) -> None:
        with patch(
            "fridamgr.commands.sync.refresh_version_map",
            new=AsyncMock(return_value=_refreshed_map()),
        ) as refresh:
            result = _invoke(["sync"])

        assert result.exit_code == 0
        assert "1 frida release(s), latest 17.0.0" in result.output
        assert refresh.await_args.kwargs["include_prerelease"] is False
        assert refresh.await_args.args[1] == home / "version-map.toml"

    def test_prerelease_flag_overrides_config(self, home: Path, tmp_path: Path) -> None:
        (tmp_path / "frida-mgr.toml").write_text(
            "[frida-mgr]\ninclude_prerelease = true\n", encoding="utf-8"
        )
        with patch(
            "fridamgr.commands.sync.refresh_version_map",
            new=AsyncMock(return_value=_refreshed_map()),
        ) as refresh:
            _invoke(["sync"])
            assert refresh.await_args.kwargs["include_prerelease"] is True

            _invoke(["sync", "--no-prerelease"])
            assert refresh.await_args.kwargs["include_prerelease"] is False

    def test_degradations_reported(self, home: Path) -> None:
        degradation = SourceDegradation("listing", "frida", "frida", "HTTP 503")
        with patch(
            "fridamgr.commands.sync._sync_async",
            new=AsyncMock(return_value=(_refreshed_map(), [degradation])),
        ):
            result = _invoke(["sync"])

        assert result.exit_code == 0
        assert "frida/frida: release listing unavailable (HTTP 503)" in result.output

    def test_empty_result_keeps_previous_map(self, home: Path) -> None:
        save_version_map(VersionMap.builtin(), home / "version-map.toml")
        with patch(
            "fridamgr.commands.sync.refresh_version_map",
            new=AsyncMock(side_effect=EmptyResultError("0 entries", anchor_releases=0)),
        ):
            result = _invoke(["sync"])

        assert result.exit_code == 1
        assert "left untouched" in result.output
        assert len(load_version_map(home / "version-map.toml")) == 7

    def test_network_failure(self, home: Path) -> None:
        with patch(
            "fridamgr.commands.sync.refresh_version_map",
            new=AsyncMock(side_effect=NetworkError("HTTP 503 error", status_code=503)),
        ):
            result = _invoke(["sync"])

        assert result.exit_code == 1
        assert "HTTP 503 error" in result.output


@pytest.mark.unit
class TestMainExitCodes:
    """Tests for main() exit code mapping."""

    def _run(self, argv: List[str]) -> int:
        with patch.object(sys, "argv", ["frida-mgr", "--no-color", *argv]):
            return main()

    def test_success(self, home: Path) -> None:
        assert self._run(["list"]) == 0

    def test_usage_error(self, home: Path) -> None:
        assert self._run(["bogus"]) == 2

    def test_command_failure(self, home: Path) -> None:
        assert self._run(["resolve", "9.9.9"]) == 1

    def test_application_error(self, home: Path) -> None:
        with patch(
            "fridamgr.cli.load_config",
            side_effect=FileOperationError("disk gone", file_path="/x"),
        ):
            assert self._run(["list"]) == 1

    def test_interrupted(self, home: Path) -> None:
        with patch("fridamgr.cli.load_config", side_effect=KeyboardInterrupt):
            assert self._run(["list"]) == 130

    def test_unexpected_error(self, home: Path) -> None:
        with patch("fridamgr.cli.load_config", side_effect=RuntimeError("boom")):
            assert self._run(["list"]) == 1
