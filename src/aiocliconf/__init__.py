"""aiocliconf: async Python library for per-project CLI configuration snapshots."""

from ._version import __version__
from .exceptions import (
    CliConfError,
    CliNotLinkedError,
    CopyError,
    FileError,
    InvalidInputError,
    NotFoundError,
    PathSecurityError,
    ProjectNotFoundError,
    RollbackError,
    SnapshotError,
    SnapshotNotFoundError,
)
from .sync import IgnoreMatcher, SyncManager, compile_ignore_rules
from .snapshots import SnapshotStore
from .workspace import CaseInsensitiveMap, ProjectStore, SettingsStore
from .models import (
    AdditionalPath,
    ApplyResult,
    CliEntry,
    ErrorDetail,
    FileEntry,
    IgnoreRules,
    ImportResult,
    LargeFileInfo,
    LinkedCli,
    ProjectMeta,
    RestoreResult,
    Settings,
    SnapshotCreateResult,
    SnapshotDeleteResult,
    SnapshotMeta,
)

__all__ = [
    "AdditionalPath",
    "ApplyResult",
    "CaseInsensitiveMap",
    "CliConfError",
    "CliEntry",
    "CliNotLinkedError",
    "CopyError",
    "ErrorDetail",
    "FileEntry",
    "FileError",
    "IgnoreMatcher",
    "IgnoreRules",
    "ImportResult",
    "InvalidInputError",
    "LargeFileInfo",
    "LinkedCli",
    "NotFoundError",
    "PathSecurityError",
    "ProjectMeta",
    "ProjectNotFoundError",
    "ProjectStore",
    "RestoreResult",
    "RollbackError",
    "Settings",
    "SettingsStore",
    "SnapshotCreateResult",
    "SnapshotDeleteResult",
    "SnapshotError",
    "SnapshotMeta",
    "SnapshotNotFoundError",
    "SnapshotStore",
    "SyncManager",
    "__version__",
    "compile_ignore_rules",
]
