"""Models for import, apply, restore and directory listings."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .common import OperationResult


class FileEntry(BaseModel):
    """A directory listing entry; produced on demand, never persisted."""

    name: str
    relative_path: str
    is_directory: bool
    is_symlink: bool
    size_bytes: int | None = None


class LargeFileInfo(BaseModel):
    """A file exceeding the large-file threshold."""

    path: str
    size: int


class ImportResult(OperationResult):
    """Result of copying an install path into its working copy."""

    large_files: list[LargeFileInfo] = Field(default_factory=list)


class ApplyResult(OperationResult):
    """Result of applying a working copy to its install path."""

    snapshot_timestamp: str | None = None
    rolled_back: bool = False
    rollback_failed: bool = False


class RestoreResult(OperationResult):
    """Result of restoring install paths from a snapshot."""

    restored_clis: list[str] = Field(default_factory=list)
