"""Timestamped snapshots under a project's backup directory.

Layout::

    <project>/backup/bak<timestamp>/meta.json
    <project>/backup/bak<timestamp>/<cliKey>/...
    <project>/backup/bak<timestamp>/<cliKey>/_additionalFiles/<basename>

A snapshot is staged in ``bak<timestamp>.tmp`` and becomes visible only
through the final rename, so a listing never sees a partial snapshot.
All methods are synchronous; the async layer runs them in a worker thread.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from pydantic import ValidationError

from ..const import (
    ADDITIONAL_FILES_DIR,
    COPY_RETRIES,
    COPY_RETRY_DELAY,
    MAX_SNAPSHOTS_PER_PROJECT,
    SNAPSHOT_META_FILE,
    SNAPSHOT_PREFIX,
    STAGING_SUFFIX,
)
from ..exceptions import CliConfError, InvalidInputError, SnapshotError
from ..models.common import ErrorDetail
from ..models.settings import AdditionalPath
from ..models.snapshot import (
    SnapshotCreateResult,
    SnapshotDeleteResult,
    SnapshotMeta,
    SnapshotSource,
    SnapshotType,
)
from ..sync.mirror import copy_file, mirror_tree
from ..timestamps import generate_timestamp, is_valid_timestamp, to_utc8_iso
from ..workspace.projects import ProjectStore, validate_cli_key

logger = logging.getLogger(__name__)

SourceResolver = Callable[[str], Path]


class SnapshotStore:
    """Creates, lists, reads and deletes snapshots with count-based retention."""

    def __init__(
        self,
        projects: ProjectStore,
        *,
        max_snapshots: int = MAX_SNAPSHOTS_PER_PROJECT,
        copy_retries: int = COPY_RETRIES,
        retry_delay: float = COPY_RETRY_DELAY,
    ) -> None:
        self.projects = projects
        self.max_snapshots = max_snapshots
        self.copy_retries = copy_retries
        self.retry_delay = retry_delay

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def backup_dir(self, project_name: str) -> Path:
        return self.projects.backup_dir(project_name)

    def snapshot_path(self, project_name: str, timestamp: str) -> Path:
        if not is_valid_timestamp(timestamp):
            raise InvalidInputError(f"Invalid snapshot timestamp: {timestamp!r}")
        return self.backup_dir(project_name) / f"{SNAPSHOT_PREFIX}{timestamp}"

    def _reserve_timestamp(self, backup_dir: Path) -> str:
        timestamp = generate_timestamp()
        while (backup_dir / f"{SNAPSHOT_PREFIX}{timestamp}").exists() or (
            backup_dir / f"{SNAPSHOT_PREFIX}{timestamp}{STAGING_SUFFIX}"
        ).exists():
            time.sleep(0.001)
            timestamp = generate_timestamp()
        return timestamp

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _copy_additional_files(
        self,
        paths: Sequence[AdditionalPath],
        dest_dir: Path,
        warnings: list[str],
    ) -> None:
        for additional in paths:
            src = Path(additional.path)
            if not src.is_file():
                logger.warning("Additional file %s not found: %s", additional.alias, src)
                warnings.append(f"Additional file not found: {additional.alias} ({src})")
                continue
            copy_file(
                src,
                dest_dir / src.name,
                f"{ADDITIONAL_FILES_DIR}/{src.name}",
                retries=self.copy_retries,
                retry_delay=self.retry_delay,
            )

    def create(
        self,
        project_name: str,
        cli_names: Sequence[str],
        snapshot_type: SnapshotType,
        source: SnapshotSource,
        source_resolver: SourceResolver,
        *,
        notes: str = "",
        additional_files: Mapping[str, Sequence[AdditionalPath]] | None = None,
    ) -> SnapshotCreateResult:
        """Copy each CLI's source directory into a new snapshot.

        *source_resolver* maps a CLI key to the directory to copy;
        *additional_files* maps a CLI key to single files stored under
        ``<cliKey>/_additionalFiles``.  Sources are copied verbatim: ignore
        rules do not apply and symlinks are skipped with a warning.
        Retention runs after the snapshot is committed.
        """
        warnings: list[str] = []
        try:
            backup_dir = self.backup_dir(project_name)
            backup_dir.mkdir(parents=True, exist_ok=True)
        except (CliConfError, OSError) as exc:
            logger.error("Cannot prepare backup directory for %s: %s", project_name, exc)
            return SnapshotCreateResult(success=False, errors=[ErrorDetail.from_exception(exc)])

        timestamp = self._reserve_timestamp(backup_dir)
        staging = backup_dir / f"{SNAPSHOT_PREFIX}{timestamp}{STAGING_SUFFIX}"
        final = backup_dir / f"{SNAPSHOT_PREFIX}{timestamp}"

        try:
            staging.mkdir(parents=True)
            for cli_key in cli_names:
                cli_dir = staging / validate_cli_key(cli_key)
                mirror_tree(
                    source_resolver(cli_key),
                    cli_dir,
                    None,
                    warnings,
                    retries=self.copy_retries,
                    retry_delay=self.retry_delay,
                )
                extra = (additional_files or {}).get(cli_key)
                if extra:
                    self._copy_additional_files(extra, cli_dir / ADDITIONAL_FILES_DIR, warnings)

            meta = SnapshotMeta(
                timestamp=timestamp,
                snapshot_type=snapshot_type,
                included_clis=list(cli_names),
                source=source,
                created_time=to_utc8_iso(),
                notes=notes or "",
            )
            (staging / SNAPSHOT_META_FILE).write_text(
                meta.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
            )

            try:
                os.rename(staging, final)
            except OSError as exc:
                raise SnapshotError(f"Cannot commit snapshot {final.name}: {exc}") from exc
        except (CliConfError, OSError) as exc:
            logger.error("Snapshot %s for %s failed: %s", timestamp, project_name, exc)
            shutil.rmtree(staging, ignore_errors=True)
            return SnapshotCreateResult(
                success=False,
                message=f"Backup failed: {exc}",
                warnings=warnings,
                errors=[ErrorDetail.from_exception(exc)],
            )

        logger.info(
            "Created %s snapshot %s for %s (%s)", snapshot_type, timestamp, project_name, source
        )
        self.enforce_retention(project_name)
        return SnapshotCreateResult(success=True, timestamp=timestamp, warnings=warnings)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @staticmethod
    def _read_meta(snapshot_dir: Path) -> SnapshotMeta | None:
        try:
            content = (snapshot_dir / SNAPSHOT_META_FILE).read_text(encoding="utf-8")
            meta = SnapshotMeta.model_validate_json(content)
        except (OSError, ValidationError):
            return None
        if snapshot_dir.name != f"{SNAPSHOT_PREFIX}{meta.timestamp}":
            logger.debug("Snapshot %s does not match its meta timestamp", snapshot_dir.name)
            return None
        return meta

    def list_snapshots(self, project_name: str) -> list[SnapshotMeta]:
        """Return committed snapshots, newest first.

        Staging directories and snapshots with a missing or invalid
        ``meta.json`` are skipped.
        """
        try:
            backup_dir = self.backup_dir(project_name)
            with os.scandir(backup_dir) as it:
                entries = list(it)
        except (CliConfError, OSError):
            return []

        snapshots: list[SnapshotMeta] = []
        for entry in entries:
            if not entry.is_dir(follow_symlinks=False):
                continue
            if not entry.name.startswith(SNAPSHOT_PREFIX) or entry.name.endswith(STAGING_SUFFIX):
                continue
            meta = self._read_meta(Path(entry.path))
            if meta is not None:
                snapshots.append(meta)

        return sorted(snapshots, key=lambda meta: meta.timestamp, reverse=True)

    def get_meta(self, project_name: str, timestamp: str) -> SnapshotMeta | None:
        try:
            snapshot_dir = self.snapshot_path(project_name, timestamp)
        except CliConfError:
            return None
        return self._read_meta(snapshot_dir)

    # ------------------------------------------------------------------
    # Delete / retention
    # ------------------------------------------------------------------

    def delete(self, project_name: str, timestamp: str) -> SnapshotDeleteResult:
        """Remove a snapshot recursively; a missing snapshot is not an error."""
        try:
            snapshot_dir = self.snapshot_path(project_name, timestamp)
            shutil.rmtree(snapshot_dir)
        except FileNotFoundError:
            return SnapshotDeleteResult(success=True, timestamp=timestamp)
        except (CliConfError, OSError) as exc:
            logger.warning("Failed to delete snapshot %s of %s: %s", timestamp, project_name, exc)
            return SnapshotDeleteResult(
                success=False, timestamp=timestamp, errors=[ErrorDetail.from_exception(exc)]
            )

        logger.info("Deleted snapshot %s of %s", timestamp, project_name)
        return SnapshotDeleteResult(success=True, timestamp=timestamp)

    def enforce_retention(self, project_name: str) -> list[str]:
        """Delete the oldest snapshots beyond ``max_snapshots``.

        Returns the timestamps that were removed.  A failed delete is
        logged and the remaining deletions still run.
        """
        snapshots = self.list_snapshots(project_name)
        if len(snapshots) <= self.max_snapshots:
            return []

        excess = snapshots[self.max_snapshots :]
        logger.info(
            "Retention: %d snapshots for %s exceeds max %d, removing %d",
            len(snapshots),
            project_name,
            self.max_snapshots,
            len(excess),
        )

        removed: list[str] = []
        for meta in reversed(excess):
            if self.delete(project_name, meta.timestamp).success:
                removed.append(meta.timestamp)
        return removed
