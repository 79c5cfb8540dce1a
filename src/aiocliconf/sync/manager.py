"""Sync orchestration: import, apply with auto-backup and rollback, restore.

All public async methods take a per-project lock and delegate the
filesystem work to synchronous helpers via ``asyncio.to_thread`` so that
large copies never block the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path, PurePosixPath, PureWindowsPath

from ..const import (
    ADDITIONAL_FILES_DIR,
    COPY_RETRIES,
    COPY_RETRY_DELAY,
    LARGE_FILE_THRESHOLD,
    MAX_SNAPSHOTS_PER_PROJECT,
    PROJECTS_DIR_NAME,
    SETTINGS_FILE_NAME,
)
from ..exceptions import (
    CliConfError,
    CliNotLinkedError,
    FileError,
    InvalidInputError,
    PathSecurityError,
    RollbackError,
    SnapshotNotFoundError,
)
from ..models.common import ErrorDetail
from ..models.project import LinkedCli, ProjectMeta
from ..models.settings import AdditionalPath, IgnoreRules
from ..models.snapshot import SnapshotCreateResult, SnapshotDeleteResult, SnapshotMeta
from ..models.sync import ApplyResult, FileEntry, ImportResult, RestoreResult
from ..snapshots.store import SnapshotStore
from ..workspace.lookup import CaseInsensitiveMap
from ..workspace.projects import ProjectStore, resolve_linked_cli
from ..workspace.settings import SettingsStore
from .filters import IgnoreMatcher, compile_ignore_rules
from .mirror import (
    SKIPPED_SYMLINK,
    copy_directory,
    copy_file,
    mirror_tree,
    remove_tree,
    skipped_entries,
)
from .scanner import find_large_files, list_dir

logger = logging.getLogger(__name__)


def normalize_selected_path(rel_path: str) -> str:
    """Return *rel_path* as a clean ``/``-separated path below the working copy.

    Raises :class:`PathSecurityError` for empty, absolute or escaping paths.
    """
    if not rel_path.strip():
        raise PathSecurityError("Selected path cannot be empty")
    if PurePosixPath(rel_path).is_absolute() or PureWindowsPath(rel_path).is_absolute():
        raise PathSecurityError(f"Selected path must be relative: {rel_path}")
    if PureWindowsPath(rel_path).drive:
        raise PathSecurityError(f"Selected path must be relative: {rel_path}")

    parts = [p for p in rel_path.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        raise PathSecurityError(f"Selected path escapes the working copy: {rel_path}")
    return "/".join(parts)


def _additional_by_basename(paths: Sequence[AdditionalPath]) -> dict[str, Path]:
    return {Path(p.path).name: Path(p.path) for p in paths}


class SyncManager:
    """Moves CLI configuration between install paths, working copies and snapshots.

    The constructor accepts plain values; no environment variables are read.
    Settings live in ``<workspace_root>/settings.json`` and projects under
    ``<workspace_root>/Projects`` unless explicit stores are passed in.
    """

    def __init__(
        self,
        workspace_root: Path,
        *,
        settings: SettingsStore | None = None,
        projects: ProjectStore | None = None,
        max_snapshots: int = MAX_SNAPSHOTS_PER_PROJECT,
        large_file_threshold: int = LARGE_FILE_THRESHOLD,
        copy_retries: int = COPY_RETRIES,
        retry_delay: float = COPY_RETRY_DELAY,
    ) -> None:
        self.workspace_root = workspace_root
        self.settings = settings or SettingsStore(workspace_root / SETTINGS_FILE_NAME)
        self.projects = projects or ProjectStore(workspace_root / PROJECTS_DIR_NAME, self.settings)
        self.snapshots = SnapshotStore(
            self.projects,
            max_snapshots=max_snapshots,
            copy_retries=copy_retries,
            retry_delay=retry_delay,
        )
        self.large_file_threshold = large_file_threshold
        self.copy_retries = copy_retries
        self.retry_delay = retry_delay

        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, project_name: str) -> asyncio.Lock:
        return self._locks.setdefault(project_name.lower(), asyncio.Lock())

    # ------------------------------------------------------------------
    # Ignore rules
    # ------------------------------------------------------------------

    async def compile_ignore_rules(
        self, cli_key: str, rules: IgnoreRules | None = None
    ) -> IgnoreMatcher:
        """Compile the matcher for *cli_key*, defaulting to the current settings."""
        if rules is None:
            rules = (await self.settings.read()).ignore_rules
        return compile_ignore_rules(cli_key, rules)

    async def _resolve(self, project_name: str, cli_name: str) -> tuple[str, LinkedCli]:
        meta = await self.projects.require_meta(project_name)
        return resolve_linked_cli(meta, cli_name)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def _import_sync(
        self,
        project_name: str,
        cli_key: str,
        link: LinkedCli,
        matcher: IgnoreMatcher,
        skip_large_file_check: bool,
    ) -> ImportResult:
        install_path = Path(link.snapshot_install_path)
        if not install_path.is_dir():
            raise FileError(f"Install path does not exist: {install_path}", path=str(install_path))

        if not skip_large_file_check:
            large_files = find_large_files(
                install_path, matcher, threshold=self.large_file_threshold
            )
            if large_files:
                logger.info(
                    "Import of %s/%s blocked by %d large files",
                    project_name,
                    cli_key,
                    len(large_files),
                )
                return ImportResult(
                    success=False,
                    message="Large files detected",
                    warnings=["Large files detected"],
                    large_files=large_files,
                )

        working_copy = self.projects.working_copy_dir(project_name, cli_key)
        warnings: list[str] = []
        try:
            remove_tree(working_copy)
        except OSError as exc:
            raise FileError(f"Cannot clear working copy: {exc}", path=cli_key) from exc

        mirror_tree(
            install_path,
            working_copy,
            matcher,
            warnings,
            retries=self.copy_retries,
            retry_delay=self.retry_delay,
        )

        for additional in link.snapshot_additional_paths:
            src = Path(additional.path)
            if not src.is_file():
                logger.warning("Additional file %s not found: %s", additional.alias, src)
                warnings.append(f"Additional file not found: {additional.alias} ({src})")
                continue
            copy_file(
                src,
                working_copy / src.name,
                src.name,
                retries=self.copy_retries,
                retry_delay=self.retry_delay,
            )

        logger.info("Imported %s into project %s", cli_key, project_name)
        return ImportResult(success=True, warnings=warnings)

    async def import_from_install(
        self,
        project_name: str,
        cli_name: str,
        skip_large_file_check: bool = False,
    ) -> ImportResult:
        """Replace the working copy of *cli_name* with its filtered install path.

        Unless *skip_large_file_check* is set, files above the large-file
        threshold abort the import and are listed in ``large_files``.  The
        install path is never written.
        """
        async with self._lock(project_name):
            try:
                cli_key, link = await self._resolve(project_name, cli_name)
                matcher = await self.compile_ignore_rules(cli_key)
                return await asyncio.to_thread(
                    self._import_sync,
                    project_name,
                    cli_key,
                    link,
                    matcher,
                    skip_large_file_check,
                )
            except (CliConfError, OSError) as exc:
                logger.error("Import of %s into %s failed: %s", cli_name, project_name, exc)
                return ImportResult(
                    success=False, message=str(exc), errors=[ErrorDetail.from_exception(exc)]
                )

    # ------------------------------------------------------------------
    # Restore helpers (shared by rollback and restore)
    # ------------------------------------------------------------------

    def _restore_cli_sync(self, snapshot_dir: Path, cli_key: str, link: LinkedCli) -> list[str]:
        """Replace the install path with the snapshot's copy of *cli_key*."""
        backup_cli_dir = snapshot_dir / cli_key
        if not backup_cli_dir.is_dir():
            raise SnapshotNotFoundError(
                f"Snapshot {snapshot_dir.name} has no data for CLI {cli_key!r}"
            )

        install_path = Path(link.snapshot_install_path)
        warnings: list[str] = []
        try:
            remove_tree(install_path)
        except OSError as exc:
            raise FileError(
                f"Cannot clear install path: {exc}", path=str(install_path)
            ) from exc

        copy_directory(
            backup_cli_dir,
            install_path,
            warnings,
            exclude=(ADDITIONAL_FILES_DIR,),
            retries=self.copy_retries,
            retry_delay=self.retry_delay,
        )

        stored = backup_cli_dir / ADDITIONAL_FILES_DIR
        for name, target in _additional_by_basename(link.snapshot_additional_paths).items():
            src = stored / name
            if not src.is_file():
                continue
            copy_file(
                src,
                target,
                f"{ADDITIONAL_FILES_DIR}/{name}",
                retries=self.copy_retries,
                retry_delay=self.retry_delay,
            )
        return warnings

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def _apply_partial_sync(
        self,
        working_copy: Path,
        install_path: Path,
        selected: list[str],
        matcher: IgnoreMatcher,
        additional: dict[str, Path],
        warnings: list[str],
    ) -> None:
        for rel_path in selected:
            src = working_copy / rel_path

            if "/" not in rel_path and rel_path in additional:
                if not src.is_file():
                    warnings.append(f"Selected path no longer exists: {rel_path}")
                    continue
                copy_file(
                    src,
                    additional[rel_path],
                    rel_path,
                    retries=self.copy_retries,
                    retry_delay=self.retry_delay,
                )
                continue

            if src.is_symlink():
                warnings.append(SKIPPED_SYMLINK + rel_path)
                continue
            if not src.exists():
                logger.warning("Selected path %s no longer exists in working copy", rel_path)
                warnings.append(f"Selected path no longer exists: {rel_path}")
                continue

            is_dir = src.is_dir()
            if matcher.matches(rel_path, is_dir=is_dir):
                logger.debug("Selected path %s is ignored, skipping", rel_path)
                continue

            if is_dir:
                mirror_tree(
                    src,
                    install_path / rel_path,
                    matcher,
                    warnings,
                    base_path=rel_path,
                    retries=self.copy_retries,
                    retry_delay=self.retry_delay,
                )
            else:
                copy_file(
                    src,
                    install_path / rel_path,
                    rel_path,
                    retries=self.copy_retries,
                    retry_delay=self.retry_delay,
                )

    def _apply_full_sync(
        self,
        working_copy: Path,
        install_path: Path,
        matcher: IgnoreMatcher,
        additional: dict[str, Path],
        warnings: list[str],
    ) -> None:
        mirror_tree(
            working_copy,
            install_path,
            matcher,
            warnings,
            skip_names=additional.keys(),
            retries=self.copy_retries,
            retry_delay=self.retry_delay,
        )
        for name, target in additional.items():
            src = working_copy / name
            if not src.is_file():
                continue
            copy_file(
                src, target, name, retries=self.copy_retries, retry_delay=self.retry_delay
            )

    def _apply_sync(
        self,
        project_name: str,
        cli_key: str,
        link: LinkedCli,
        matcher: IgnoreMatcher,
        selected: list[str] | None,
    ) -> ApplyResult:
        install_path = Path(link.snapshot_install_path)
        working_copy = self.projects.working_copy_dir(project_name, cli_key)
        if not working_copy.is_dir():
            raise FileError(f"Working copy does not exist for {cli_key}", path=cli_key)

        backup = self.snapshots.create(
            project_name,
            [cli_key],
            "partial" if selected is not None else "full",
            "auto-apply-backup",
            lambda _key: install_path,
            additional_files={cli_key: link.snapshot_additional_paths},
        )
        if not backup.success or backup.timestamp is None:
            logger.error("Apply of %s/%s aborted: backup failed", project_name, cli_key)
            return ApplyResult(
                success=False,
                message=backup.message or "Backup failed",
                warnings=backup.warnings,
                errors=backup.errors,
            )

        warnings = list(backup.warnings)
        additional = _additional_by_basename(link.snapshot_additional_paths)
        try:
            if selected is not None:
                self._apply_partial_sync(
                    working_copy, install_path, selected, matcher, additional, warnings
                )
            else:
                self._apply_full_sync(working_copy, install_path, matcher, additional, warnings)
        except (CliConfError, OSError) as exc:
            logger.error("Apply of %s/%s failed, rolling back: %s", project_name, cli_key, exc)
            errors = [ErrorDetail.from_exception(exc)]
            snapshot_dir = self.snapshots.snapshot_path(project_name, backup.timestamp)
            try:
                self._restore_cli_sync(snapshot_dir, cli_key, link)
            except (CliConfError, OSError) as rollback_exc:
                failure = RollbackError(
                    f"Rollback from snapshot {backup.timestamp} failed: {rollback_exc}"
                )
                logger.critical(
                    "Rollback of %s/%s failed, install path %s is in an undefined state: %s",
                    project_name,
                    cli_key,
                    install_path,
                    rollback_exc,
                )
                errors.append(ErrorDetail.from_exception(failure))
                return ApplyResult(
                    success=False,
                    message=f"Apply failed and rollback failed: {exc}",
                    warnings=warnings,
                    errors=errors,
                    snapshot_timestamp=backup.timestamp,
                    rollback_failed=True,
                )

            logger.info("Rolled back %s/%s to snapshot %s", project_name, cli_key, backup.timestamp)
            lost = skipped_entries(backup.warnings)
            if lost:
                logger.warning(
                    "Rollback of %s/%s could not restore %s", project_name, cli_key, lost
                )
                warnings.append(
                    "Not restored by rollback (skipped by backup): " + ", ".join(lost)
                )
            return ApplyResult(
                success=False,
                message=f"Apply failed and rolled back: {exc}",
                warnings=warnings,
                errors=errors,
                snapshot_timestamp=backup.timestamp,
                rolled_back=True,
            )

        logger.info(
            "Applied %s/%s to %s (backup %s)", project_name, cli_key, install_path, backup.timestamp
        )
        return ApplyResult(success=True, warnings=warnings, snapshot_timestamp=backup.timestamp)

    async def apply_to_install(
        self,
        project_name: str,
        cli_name: str,
        selected_paths: Sequence[str] | None = None,
    ) -> ApplyResult:
        """Copy the working copy (or *selected_paths* of it) onto the install path.

        An ``auto-apply-backup`` snapshot of the install path is taken first;
        if it fails nothing is written.  Any error while copying restores
        the install path from that snapshot.
        """
        async with self._lock(project_name):
            try:
                selected = (
                    [normalize_selected_path(p) for p in selected_paths]
                    if selected_paths
                    else None
                )
                cli_key, link = await self._resolve(project_name, cli_name)
                matcher = await self.compile_ignore_rules(cli_key)
                return await asyncio.to_thread(
                    self._apply_sync, project_name, cli_key, link, matcher, selected
                )
            except (CliConfError, OSError) as exc:
                logger.error("Apply of %s in %s failed: %s", cli_name, project_name, exc)
                return ApplyResult(
                    success=False, message=str(exc), errors=[ErrorDetail.from_exception(exc)]
                )

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def _restore_sync(
        self,
        project_name: str,
        snapshot: SnapshotMeta,
        meta: ProjectMeta,
        cli_names: list[str],
    ) -> RestoreResult:
        snapshot_dir = self.snapshots.snapshot_path(project_name, snapshot.timestamp)
        warnings: list[str] = []
        errors: list[ErrorDetail] = []
        restored: list[str] = []

        for cli_name in cli_names:
            try:
                cli_key, link = resolve_linked_cli(meta, cli_name)
                warnings.extend(self._restore_cli_sync(snapshot_dir, cli_key, link))
            except (CliConfError, OSError) as exc:
                logger.error(
                    "Failed to restore %s from snapshot %s: %s", cli_name, snapshot.timestamp, exc
                )
                detail = ErrorDetail.from_exception(exc)
                errors.append(
                    detail.model_copy(
                        update={"message": f"Failed to restore {cli_name}: {detail.message}"}
                    )
                )
                continue
            restored.append(cli_key)

        if restored:
            logger.info(
                "Restored %s of %s from snapshot %s", restored, project_name, snapshot.timestamp
            )
        return RestoreResult(
            success=not errors, warnings=warnings, errors=errors, restored_clis=restored
        )

    async def restore_from_snapshot(
        self,
        project_name: str,
        timestamp: str,
        cli_name: str | None = None,
    ) -> RestoreResult:
        """Replace install paths with a snapshot's contents, ignoring ignore rules.

        Without *cli_name* every CLI in the snapshot is restored; a partial
        snapshot must name one.  A failure for one CLI does not stop the others.
        """
        async with self._lock(project_name):
            try:
                self.snapshots.snapshot_path(project_name, timestamp)
                snapshot = await asyncio.to_thread(
                    self.snapshots.get_meta, project_name, timestamp
                )
                if snapshot is None:
                    raise SnapshotNotFoundError(f"Snapshot not found: {timestamp}")
                if snapshot.snapshot_type == "partial" and not cli_name:
                    raise InvalidInputError(
                        "Partial snapshot cannot restore the entire project; name a CLI"
                    )
                meta = await self.projects.require_meta(project_name)
                cli_names = [cli_name] if cli_name else list(snapshot.included_clis)
                return await asyncio.to_thread(
                    self._restore_sync, project_name, snapshot, meta, cli_names
                )
            except (CliConfError, OSError) as exc:
                logger.error("Restore of %s from %s failed: %s", project_name, timestamp, exc)
                return RestoreResult(
                    success=False, message=str(exc), errors=[ErrorDetail.from_exception(exc)]
                )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def create_snapshot(
        self,
        project_name: str,
        cli_names: Sequence[str],
        notes: str | None = None,
    ) -> SnapshotCreateResult:
        """Take a manual full snapshot of the named CLIs' install paths."""
        async with self._lock(project_name):
            try:
                meta = await self.projects.require_meta(project_name)
                links = CaseInsensitiveMap(meta.linked_clis)
                resolved: dict[str, LinkedCli] = {}
                for cli_name in cli_names:
                    cli_key = links.resolve_key(cli_name)
                    if cli_key is None:
                        raise CliNotLinkedError(
                            f"CLI {cli_name!r} not linked to project {project_name!r}"
                        )
                    resolved[cli_key] = links[cli_key]
                if not resolved:
                    raise InvalidInputError("No CLIs selected for snapshot")
            except (CliConfError, OSError) as exc:
                return SnapshotCreateResult(
                    success=False, message=str(exc), errors=[ErrorDetail.from_exception(exc)]
                )

            return await asyncio.to_thread(
                self.snapshots.create,
                project_name,
                list(resolved),
                "full",
                "manual-backup",
                lambda key: Path(resolved[key].snapshot_install_path),
                notes=notes or "",
                additional_files={
                    key: link.snapshot_additional_paths for key, link in resolved.items()
                },
            )

    async def list_snapshots(self, project_name: str) -> list[SnapshotMeta]:
        """Return the project's committed snapshots, newest first."""
        return await asyncio.to_thread(self.snapshots.list_snapshots, project_name)

    async def delete_snapshot(self, project_name: str, timestamp: str) -> SnapshotDeleteResult:
        async with self._lock(project_name):
            return await asyncio.to_thread(self.snapshots.delete, project_name, timestamp)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_dir(self, path: Path | str) -> list[FileEntry]:
        """List one directory level for browsing; unreadable paths yield ``[]``."""
        return await asyncio.to_thread(list_dir, Path(path))
