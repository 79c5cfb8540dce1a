"""Pydantic models for aiocliconf."""

from .common import ErrorDetail, ErrorKind, OperationResult
from .project import LinkedCli, ProjectMeta
from .settings import AdditionalPath, CliEntry, IgnoreRules, Settings
from .snapshot import (
    SnapshotCreateResult,
    SnapshotDeleteResult,
    SnapshotMeta,
    SnapshotSource,
    SnapshotType,
)
from .sync import ApplyResult, FileEntry, ImportResult, LargeFileInfo, RestoreResult

__all__ = [
    "AdditionalPath",
    "ApplyResult",
    "CliEntry",
    "ErrorDetail",
    "ErrorKind",
    "FileEntry",
    "IgnoreRules",
    "ImportResult",
    "LargeFileInfo",
    "LinkedCli",
    "OperationResult",
    "ProjectMeta",
    "RestoreResult",
    "Settings",
    "SnapshotCreateResult",
    "SnapshotDeleteResult",
    "SnapshotMeta",
    "SnapshotSource",
    "SnapshotType",
]
