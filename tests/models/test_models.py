"""Tests for Pydantic models."""

from __future__ import annotations

import errno

import pytest
from pydantic import ValidationError

from aiocliconf.exceptions import (
    CopyError,
    PathSecurityError,
    ProjectNotFoundError,
    RollbackError,
    SnapshotError,
)
from aiocliconf.models import (
    AdditionalPath,
    ApplyResult,
    CliEntry,
    ErrorDetail,
    IgnoreRules,
    ImportResult,
    LargeFileInfo,
    ProjectMeta,
    Settings,
    SnapshotMeta,
)


class TestAdditionalPath:
    def test_valid(self) -> None:
        p = AdditionalPath(alias="mcp-config_1", path="/home/u/.claude.json")
        assert p.alias == "mcp-config_1"

    def test_invalid_characters(self) -> None:
        with pytest.raises(ValidationError):
            AdditionalPath(alias="has space", path="/x")

    def test_empty_alias(self) -> None:
        with pytest.raises(ValidationError):
            AdditionalPath(alias="", path="/x")

    def test_reserved_alias(self) -> None:
        with pytest.raises(ValidationError, match="reserved"):
            AdditionalPath(alias="_ADDITIONALFILES", path="/x")


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.cli_registry == {}
        assert "**" in s.ignore_rules.global_rules
        assert s.language == "zh-CN"

    def test_dump_uses_camel_case(self) -> None:
        s = Settings(cli_registry={"Claude": CliEntry(install_path="/c")})
        data = s.model_dump(by_alias=True)
        assert set(data) == {"cliRegistry", "ignoreRules", "language"}
        assert data["cliRegistry"]["Claude"] == {"installPath": "/c", "additionalPaths": []}
        assert set(data["ignoreRules"]) == {"global", "perCli"}

    def test_populate_by_alias(self) -> None:
        rules = IgnoreRules.model_validate({"global": ["*.log"], "perCli": {"x": ["a"]}})
        assert rules.global_rules == ["*.log"]
        assert rules.per_cli == {"x": ["a"]}

    def test_invalid_language(self) -> None:
        with pytest.raises(ValidationError):
            Settings(language="fr-FR")


class TestProjectMeta:
    def test_aliases(self) -> None:
        meta = ProjectMeta.model_validate(
            {
                "projectName": "Demo",
                "createdTime": "2025-01-01T00:00:00.000+08:00",
                "linkedCLIs": {"claude": {"snapshotInstallPath": "/c"}},
            }
        )
        assert meta.linked_clis["claude"].snapshot_additional_paths == []
        assert "linkedCLIs" in meta.model_dump(by_alias=True)


class TestSnapshotMeta:
    def _meta(self, **overrides: object) -> SnapshotMeta:
        data: dict[str, object] = {
            "timestamp": "20250101120000123",
            "snapshotType": "full",
            "includedCLIs": ["claude"],
            "source": "manual-backup",
            "createdTime": "2025-01-01T12:00:00.123+08:00",
        }
        data.update(overrides)
        return SnapshotMeta.model_validate(data)

    def test_valid(self) -> None:
        meta = self._meta()
        assert meta.notes == ""
        assert meta.included_clis == ["claude"]

    def test_timestamp_format(self) -> None:
        with pytest.raises(ValidationError):
            self._meta(timestamp="2025-01-01")

    def test_unknown_source(self) -> None:
        with pytest.raises(ValidationError):
            self._meta(source="cron")

    def test_frozen(self) -> None:
        meta = self._meta()
        with pytest.raises(ValidationError):
            meta.notes = "changed"  # type: ignore[misc]


class TestErrorDetail:
    def test_not_found(self) -> None:
        d = ErrorDetail.from_exception(ProjectNotFoundError("Project not found: x"))
        assert d.kind == "not_found"
        assert d.path is None

    def test_validation(self) -> None:
        assert ErrorDetail.from_exception(PathSecurityError("bad")).kind == "validation"

    def test_rollback(self) -> None:
        assert ErrorDetail.from_exception(RollbackError("boom")).kind == "rollback_failed"

    def test_copy_error_carries_path(self) -> None:
        d = ErrorDetail.from_exception(CopyError("Failed to copy a/b", path="a/b"))
        assert d.kind == "io"
        assert d.path == "a/b"

    def test_os_error_filename(self) -> None:
        d = ErrorDetail.from_exception(FileNotFoundError(errno.ENOENT, "missing", "/x/y"))
        assert d.kind == "io"
        assert d.path == "/x/y"

    def test_snapshot_error(self) -> None:
        assert ErrorDetail.from_exception(SnapshotError("rename")).kind == "io"


class TestResults:
    def test_defaults(self) -> None:
        r = ApplyResult(success=True)
        assert r.warnings == []
        assert r.errors == []
        assert r.rolled_back is False
        assert r.rollback_failed is False

    def test_error_messages(self) -> None:
        r = ImportResult(
            success=False,
            errors=[ErrorDetail(kind="io", message="disk full")],
            large_files=[LargeFileInfo(path="big.bin", size=1)],
        )
        assert r.error_messages == ["disk full"]
        assert r.large_files[0].path == "big.bin"
