"""Tests for the snapshot store."""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from aiocliconf.exceptions import InvalidInputError
from aiocliconf.models.settings import AdditionalPath
from aiocliconf.models.snapshot import SnapshotCreateResult
from aiocliconf.snapshots.store import SnapshotStore
from aiocliconf.workspace import ProjectStore


@pytest.fixture
def store(project_store: ProjectStore) -> SnapshotStore:
    return SnapshotStore(project_store, retry_delay=0)


@pytest.fixture
def source(tmp_path: Path) -> Path:
    src = tmp_path / "source"
    src.mkdir()
    (src / "settings.json").write_text('{"a": 1}')
    (src / "debug.log").write_text("not filtered in snapshots")
    (src / "agents").mkdir()
    (src / "agents" / "x.md").write_text("x")
    return src


def _create(store: SnapshotStore, source: Path, **kwargs: object) -> SnapshotCreateResult:
    return store.create(
        "Demo",
        ["claude"],
        kwargs.pop("snapshot_type", "full"),
        kwargs.pop("source_name", "manual-backup"),
        lambda _key: source,
        **kwargs,
    )


class TestCreate:
    def test_layout(self, store: SnapshotStore, source: Path) -> None:
        result = _create(store, source, notes="first")
        assert result.success is True
        assert result.timestamp is not None

        snapshot_dir = store.snapshot_path("Demo", result.timestamp)
        assert (snapshot_dir / "claude" / "settings.json").read_text() == '{"a": 1}'
        assert (snapshot_dir / "claude" / "debug.log").exists()
        assert (snapshot_dir / "claude" / "agents" / "x.md").exists()

        meta = json.loads((snapshot_dir / "meta.json").read_text())
        assert meta["timestamp"] == result.timestamp
        assert meta["snapshotType"] == "full"
        assert meta["includedCLIs"] == ["claude"]
        assert meta["source"] == "manual-backup"
        assert meta["notes"] == "first"
        assert meta["createdTime"].endswith("+08:00")

    def test_no_staging_dir_left(self, store: SnapshotStore, source: Path) -> None:
        _create(store, source)
        backup_dir = store.backup_dir("Demo")
        assert not any(p.name.endswith(".tmp") for p in backup_dir.iterdir())

    def test_additional_files(self, store: SnapshotStore, source: Path, tmp_path: Path) -> None:
        external = tmp_path / "home" / ".claude.json"
        external.parent.mkdir()
        external.write_text('{"mcp": {}}')
        extras = [
            AdditionalPath(alias="mcp", path=str(external)),
            AdditionalPath(alias="gone", path=str(tmp_path / "missing.json")),
        ]

        result = _create(store, source, additional_files={"claude": extras})

        assert result.success is True
        stored = store.snapshot_path("Demo", result.timestamp) / "claude" / "_additionalFiles"
        assert (stored / ".claude.json").read_text() == '{"mcp": {}}'
        assert any("gone" in w for w in result.warnings)

    def test_symlink_warning(self, store: SnapshotStore, source: Path) -> None:
        (source / "link").symlink_to(source / "settings.json")
        result = _create(store, source)
        assert result.success is True
        assert "Skipped symlink: link" in result.warnings

    def test_missing_source_fails_cleanly(self, store: SnapshotStore, tmp_path: Path) -> None:
        result = _create(store, tmp_path / "missing")
        assert result.success is False
        assert result.errors[0].kind == "io"
        assert list(store.backup_dir("Demo").iterdir()) == []
        assert store.list_snapshots("Demo") == []

    def test_invalid_cli_key_rejected(self, store: SnapshotStore, source: Path) -> None:
        result = store.create("Demo", ["../evil"], "full", "manual-backup", lambda _k: source)
        assert result.success is False
        assert result.errors[0].kind == "validation"
        assert list(store.backup_dir("Demo").iterdir()) == []

    def test_timestamp_collision(self, store: SnapshotStore, source: Path) -> None:
        values = iter(["20250101120000000", "20250101120000000", "20250101120000001"])
        with patch(
            "aiocliconf.snapshots.store.generate_timestamp", side_effect=lambda: next(values)
        ):
            first = _create(store, source)
            second = _create(store, source)

        assert first.success and second.success
        assert first.timestamp == "20250101120000000"
        assert second.timestamp == "20250101120000001"

    def test_rename_failure_removes_staging(self, store: SnapshotStore, source: Path) -> None:
        with patch("aiocliconf.snapshots.store.os.rename", side_effect=OSError("busy")):
            result = _create(store, source)
        assert result.success is False
        assert "Cannot commit snapshot" in result.errors[0].message
        assert list(store.backup_dir("Demo").iterdir()) == []


class TestList:
    def test_newest_first(self, store: SnapshotStore, source: Path) -> None:
        timestamps = [_create(store, source).timestamp for _ in range(3)]
        listed = [meta.timestamp for meta in store.list_snapshots("Demo")]
        assert listed == sorted(timestamps, reverse=True)

    def test_missing_backup_dir(self, store: SnapshotStore) -> None:
        assert store.list_snapshots("Nobody") == []

    def test_skips_staging_and_invalid(self, store: SnapshotStore, source: Path) -> None:
        result = _create(store, source)
        backup_dir = store.backup_dir("Demo")

        staging = backup_dir / "bak20200101000000000.tmp"
        staging.mkdir()
        (staging / "meta.json").write_text(
            json.dumps(
                {
                    "timestamp": "20200101000000000",
                    "snapshotType": "full",
                    "includedCLIs": ["claude"],
                    "source": "manual-backup",
                    "createdTime": "2020-01-01T00:00:00.000+08:00",
                }
            )
        )
        (backup_dir / "bak20200101000000001").mkdir()
        broken = backup_dir / "bak20200101000000002"
        broken.mkdir()
        (broken / "meta.json").write_text("{not json")
        (backup_dir / "notes.txt").write_text("stray")

        assert [meta.timestamp for meta in store.list_snapshots("Demo")] == [result.timestamp]

    def test_get_meta(self, store: SnapshotStore, source: Path) -> None:
        result = _create(store, source, snapshot_type="partial", source_name="auto-apply-backup")
        meta = store.get_meta("Demo", result.timestamp)
        assert meta is not None
        assert meta.snapshot_type == "partial"
        assert meta.source == "auto-apply-backup"
        assert store.get_meta("Demo", "20000101000000000") is None
        assert store.get_meta("Demo", "../etc") is None


class TestDelete:
    def test_delete(self, store: SnapshotStore, source: Path) -> None:
        result = _create(store, source)
        deleted = store.delete("Demo", result.timestamp)
        assert deleted.success is True
        assert store.list_snapshots("Demo") == []

    def test_delete_missing_is_success(self, store: SnapshotStore) -> None:
        assert store.delete("Demo", "20000101000000000").success is True

    def test_invalid_timestamp_rejected(self, store: SnapshotStore) -> None:
        result = store.delete("Demo", "../../etc")
        assert result.success is False
        assert result.errors[0].kind == "validation"

    def test_snapshot_path_validates(self, store: SnapshotStore) -> None:
        with pytest.raises(InvalidInputError):
            store.snapshot_path("Demo", "2025")


class TestRetention:
    def test_keeps_newest_five(self, store: SnapshotStore, source: Path) -> None:
        timestamps = [_create(store, source).timestamp for _ in range(6)]
        listed = [meta.timestamp for meta in store.list_snapshots("Demo")]
        assert len(listed) == 5
        assert timestamps[0] not in listed
        assert listed == sorted(timestamps[1:], reverse=True)

    def test_custom_limit(self, project_store: ProjectStore, source: Path) -> None:
        store = SnapshotStore(project_store, max_snapshots=2, retry_delay=0)
        for _ in range(4):
            _create(store, source)
        assert len(store.list_snapshots("Demo")) == 2

    def test_failed_delete_continues(self, store: SnapshotStore, source: Path) -> None:
        store.max_snapshots = 10
        timestamps = [_create(store, source).timestamp for _ in range(4)]
        store.max_snapshots = 1

        real_rmtree = shutil.rmtree

        def flaky_rmtree(path: os.PathLike[str]) -> None:
            if Path(path).name == f"bak{timestamps[0]}":
                raise PermissionError("locked")
            real_rmtree(path)

        with patch("aiocliconf.snapshots.store.shutil.rmtree", side_effect=flaky_rmtree):
            removed = store.enforce_retention("Demo")

        assert removed == [timestamps[1], timestamps[2]]
        remaining = {meta.timestamp for meta in store.list_snapshots("Demo")}
        assert remaining == {timestamps[0], timestamps[3]}
