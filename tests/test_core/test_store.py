from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import tomli

from fridamgr.exceptions import EmptyResultError, FileOperationError, ParseError
from fridamgr.models import (
    MapMetadata,
    ObjectionKey,
    ToolsKey,
    VersionInfo,
    VersionMap,
    VersionOverrides,
)
from fridamgr.core.resolver import CompatibilityResolver
from fridamgr.core.store import (
    OverrideStore,
    load_or_init_version_map,
    load_overrides,
    load_version_map,
    refresh_version_map,
    save_overrides,
    save_version_map,
)


def _fresh_map() -> VersionMap:
    return VersionMap(
        mappings={"17.0.0": VersionInfo("14.0.0", "2025-05-17", "1.11.0")},
        aliases={"latest": "17.0.0", "stable": "17.0.0"},
        metadata=MapMetadata("2025-06-01", "test"),
    )


@pytest.mark.integration
class TestVersionMapPersistence:
    """Tests for loading and saving version-map.toml."""

    def test_save_writes_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"

        save_version_map(VersionMap.builtin(), path)

        data = tomli.loads(path.read_text(encoding="utf-8"))
        assert data["mappings"]["16.6.6"] == {"tools": "13.3.0", "released": "2024-12-10"}
        assert data["aliases"]["lts"] == "15.2.2"
        assert data["metadata"]["source"] == "https://github.com/frida/frida/releases"

    def test_save_then_load(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"
        original = _fresh_map()

        save_version_map(original, path)
        loaded = load_version_map(path)

        assert loaded.mappings == original.mappings
        assert loaded.aliases == original.aliases
        assert loaded.metadata == original.metadata

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError):
            load_version_map(tmp_path / "absent.toml")

    def test_load_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"
        path.write_text("[mappings\n", encoding="utf-8")

        with pytest.raises(ParseError, match="Invalid TOML"):
            load_version_map(path)

    def test_init_seeds_builtin(self, tmp_path: Path) -> None:
        """Test first use writes the built-in map to disk."""
        path = tmp_path / "state" / "version-map.toml"

        version_map = load_or_init_version_map(path)

        assert path.is_file()
        assert len(version_map) == 7
        assert load_version_map(path).aliases == version_map.aliases

    def test_init_keeps_existing(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"
        save_version_map(_fresh_map(), path)

        assert load_or_init_version_map(path).list_versions() == ["17.0.0"]


@pytest.mark.integration
class TestRefreshVersionMap:
    """Tests for refresh_version_map."""

    @pytest.mark.asyncio
    async def test_replaces_file_and_keeps_backup(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"
        save_version_map(VersionMap.builtin(), path)
        resolver = MagicMock(spec=CompatibilityResolver)
        resolver.build_version_map = AsyncMock(return_value=_fresh_map())

        result = await refresh_version_map(resolver, path, include_prerelease=True)

        resolver.build_version_map.assert_awaited_once_with(include_prerelease=True)
        assert result.list_versions() == ["17.0.0"]
        assert load_version_map(path).list_versions() == ["17.0.0"]
        backups = list(tmp_path.glob("version-map.toml.*.backup"))
        assert len(backups) == 1
        assert len(load_version_map(backups[0])) == 7

    @pytest.mark.asyncio
    async def test_old_backups_pruned(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"
        save_version_map(VersionMap.builtin(), path)
        for day in range(1, 8):
            (tmp_path / f"version-map.toml.2024010{day}T000000000000.backup").write_text(
                "", encoding="utf-8"
            )
        resolver = MagicMock(spec=CompatibilityResolver)
        resolver.build_version_map = AsyncMock(return_value=_fresh_map())

        await refresh_version_map(resolver, path)

        backups = sorted(p.name for p in tmp_path.glob("version-map.toml.*.backup"))
        assert len(backups) == 5
        assert "version-map.toml.20240101T000000000000.backup" not in backups

    @pytest.mark.asyncio
    async def test_empty_result_leaves_file_untouched(self, tmp_path: Path) -> None:
        path = tmp_path / "version-map.toml"
        save_version_map(VersionMap.builtin(), path)
        before = path.read_text(encoding="utf-8")
        resolver = MagicMock(spec=CompatibilityResolver)
        resolver.build_version_map = AsyncMock(
            side_effect=EmptyResultError("0 entries", anchor_releases=12)
        )

        with pytest.raises(EmptyResultError):
            await refresh_version_map(resolver, path)

        assert path.read_text(encoding="utf-8") == before
        assert not list(tmp_path.glob("*.backup"))


@pytest.mark.integration
class TestOverridePersistence:
    """Tests for the override file helpers and OverrideStore."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_overrides(tmp_path / "version-overrides.toml").is_empty()

    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "version-overrides.toml"
        overrides = VersionOverrides()
        overrides.set_tools("16.6.6", "13.3.1")
        overrides.set_objection("16.6.6", "3.11.4", "1.11.0")

        save_overrides(overrides, path)

        data = tomli.loads(path.read_text(encoding="utf-8"))
        assert data == {
            "frida_tools": {"16.6.6": "13.3.1"},
            "objection": {"16.6.6@3.11": "1.11.0"},
        }
        assert load_overrides(path).get_objection("16.6.6", "3.11.0") == "1.11.0"

    def test_store_autosave(self, tmp_path: Path) -> None:
        path = tmp_path / "version-overrides.toml"
        store = OverrideStore(path)

        assert store.set_tools("16.6.6", "13.3.1") is True
        assert store.dirty is False
        assert load_overrides(path).get_tools("16.6.6") == "13.3.1"

    def test_store_noop_does_not_write(self, tmp_path: Path) -> None:
        path = tmp_path / "version-overrides.toml"
        store = OverrideStore(path, VersionOverrides(frida_tools={"16.6.6": "13.3.1"}))

        assert store.set_tools("16.6.6", "13.3.1") is False
        assert not path.exists()

    def test_store_deferred_save(self, tmp_path: Path) -> None:
        path = tmp_path / "version-overrides.toml"
        store = OverrideStore(path, autosave=False)

        store.set_objection("16.6.6", "3.12.1", "1.11.0")
        assert store.dirty is True
        assert not path.exists()

        assert store.save() is True
        assert store.save() is False
        assert OverrideStore(path).get_objection("16.6.6", "3.12") == "1.11.0"

    def test_store_generic_keys(self, tmp_path: Path) -> None:
        store = OverrideStore(tmp_path / "version-overrides.toml", autosave=False)
        store.set(ToolsKey("15.2.2"), "12.0.4")
        store.set(ObjectionKey("15.2.2", "bogus"), "1.11.0")

        assert store.get(ToolsKey("15.2.2")) == "12.0.4"
        assert store.overrides.objection == {"15.2.2@unknown": "1.11.0"}

    def test_store_rejects_malformed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "version-overrides.toml"
        path.write_text('frida_tools = "oops"\n', encoding="utf-8")

        with pytest.raises(ParseError):
            OverrideStore(path)
