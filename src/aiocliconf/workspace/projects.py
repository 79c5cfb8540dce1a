"""Project store: per-project directories and ``project.json`` metadata.

Each project lives in ``<projects_dir>/<name>/`` with one working-copy
directory per linked CLI and a ``backup/`` directory owned by the
snapshot store.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path

import aiofiles
from pydantic import ValidationError

from ..const import BACKUP_DIR_NAME, PROJECT_META_FILE
from ..exceptions import (
    CliNotLinkedError,
    FileError,
    InvalidInputError,
    PathSecurityError,
    ProjectNotFoundError,
)
from ..models.project import LinkedCli, ProjectMeta
from ..timestamps import to_utc8_iso
from .lookup import CaseInsensitiveMap
from .settings import SettingsStore

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')


def validate_cli_key(cli_key: str) -> str:
    """Reject CLI keys that cannot be used as a single directory name."""
    if _UNSAFE_CHARS.search(cli_key) or cli_key.strip() in ("", ".", ".."):
        raise PathSecurityError(f"Invalid CLI key: {cli_key!r}")
    return cli_key


def resolve_linked_cli(meta: ProjectMeta, cli_name: str) -> tuple[str, LinkedCli]:
    """Return ``(cli_key, link)`` for *cli_name*, matched case-insensitively.

    Raises :class:`CliNotLinkedError` if the CLI is not linked to the project.
    """
    links = CaseInsensitiveMap(meta.linked_clis)
    cli_key = links.resolve_key(cli_name)
    if cli_key is None:
        raise CliNotLinkedError(f"CLI {cli_name!r} not linked to project {meta.project_name!r}")
    return cli_key, links[cli_key]


class ProjectStore:
    """Read-modify-write access to project directories under *projects_dir*."""

    def __init__(self, projects_dir: Path, settings: SettingsStore) -> None:
        self.projects_dir = projects_dir
        self.settings = settings

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def project_path(self, name: str) -> Path:
        """Return the directory for project *name*, with unsafe characters replaced.

        An existing directory whose name differs only in case is returned
        as-is, so lookups behave the same on case-sensitive filesystems.
        """
        sanitized = _UNSAFE_CHARS.sub("_", name)
        if sanitized.strip() in ("", ".", ".."):
            raise PathSecurityError(f"Invalid project name: {name!r}")

        candidate = self.projects_dir / sanitized
        if not candidate.exists() and self.projects_dir.is_dir():
            lowered = sanitized.lower()
            for child in self.projects_dir.iterdir():
                if child.name.lower() == lowered and child.is_dir():
                    return child
        return candidate

    def backup_dir(self, name: str) -> Path:
        return self.project_path(name) / BACKUP_DIR_NAME

    def working_copy_dir(self, name: str, cli_key: str) -> Path:
        return self.project_path(name) / validate_cli_key(cli_key)

    @staticmethod
    def validate_name(name: str) -> None:
        """Reject empty names and names that could escape the projects directory."""
        if not name.strip():
            raise InvalidInputError("Project name cannot be empty")
        if ".." in name or "/" in name or "\\" in name:
            raise PathSecurityError(f"Invalid project name: {name!r}")

    def _meta_file(self, name: str) -> Path:
        return self.project_path(name) / PROJECT_META_FILE

    async def _write_meta(self, meta: ProjectMeta) -> None:
        meta_file = self._meta_file(meta.project_name)
        try:
            async with aiofiles.open(meta_file, "w", encoding="utf-8") as fh:
                await fh.write(meta.model_dump_json(by_alias=True, indent=2))
        except OSError as exc:
            logger.error("Error writing project metadata %s: %s", meta_file, exc)
            raise FileError(str(exc), path=str(meta_file)) from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_projects(self) -> list[str]:
        """Return the names of all project directories."""
        if not self.projects_dir.is_dir():
            return []
        return sorted(p.name for p in self.projects_dir.iterdir() if p.is_dir())

    async def exists(self, name: str) -> bool:
        """Case-insensitive existence check."""
        lowered = name.lower()
        return any(p.lower() == lowered for p in await self.list_projects())

    async def get_meta(self, name: str) -> ProjectMeta | None:
        """Return the project's metadata, or ``None`` if missing or invalid."""
        meta_file = self._meta_file(name)
        try:
            async with aiofiles.open(meta_file, encoding="utf-8") as fh:
                content = await fh.read()
            return ProjectMeta.model_validate_json(content)
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as exc:
            logger.warning("Unreadable project metadata %s: %s", meta_file, exc)
            return None

    async def require_meta(self, name: str) -> ProjectMeta:
        meta = await self.get_meta(name)
        if meta is None:
            raise ProjectNotFoundError(f"Project not found: {name}")
        return meta

    async def working_copy_path(self, project_name: str, cli_name: str) -> Path | None:
        meta = await self.get_meta(project_name)
        if meta is None:
            return None
        cli_key = CaseInsensitiveMap(meta.linked_clis).resolve_key(cli_name)
        if cli_key is None:
            return None
        return self.working_copy_dir(project_name, cli_key)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _link_from_registry(self, cli_name: str) -> tuple[str, LinkedCli]:
        registry = await self.settings.registry()
        cli_key = registry.resolve_key(cli_name)
        if cli_key is None:
            raise CliNotLinkedError(f"CLI {cli_name!r} is not registered")
        entry = registry[cli_key]
        return cli_key, LinkedCli(
            snapshot_install_path=entry.install_path,
            snapshot_additional_paths=[p.model_copy() for p in entry.additional_paths],
        )

    async def create(self, name: str, cli_names: list[str]) -> ProjectMeta:
        """Create a project linked to the registered CLIs in *cli_names*."""
        self.validate_name(name)
        if await self.exists(name):
            raise InvalidInputError(f"Project already exists: {name}")

        linked: dict[str, LinkedCli] = {}
        for cli_name in cli_names:
            cli_key, link = await self._link_from_registry(cli_name)
            linked[cli_key] = link

        meta = ProjectMeta(project_name=name, created_time=to_utc8_iso(), linked_clis=linked)
        project_dir = self.project_path(name)
        try:
            (project_dir / BACKUP_DIR_NAME).mkdir(parents=True, exist_ok=True)
            for cli_key in linked:
                self.working_copy_dir(name, cli_key).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileError(str(exc), path=str(project_dir)) from exc

        await self._write_meta(meta)
        logger.info("Created project %s with CLIs %s", name, list(linked))
        return meta

    async def delete(self, name: str) -> bool:
        """Delete the project directory, backups included."""
        self.validate_name(name)
        project_dir = self.project_path(name)
        try:
            await asyncio.to_thread(shutil.rmtree, project_dir, ignore_errors=False)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.error("Failed to delete project %s: %s", name, exc)
            return False
        logger.info("Deleted project %s", name)
        return True

    async def link_cli(self, project_name: str, cli_name: str) -> ProjectMeta:
        meta = await self.require_meta(project_name)
        if cli_name in CaseInsensitiveMap(meta.linked_clis):
            raise InvalidInputError(f"CLI {cli_name!r} already linked")

        cli_key, link = await self._link_from_registry(cli_name)
        meta.linked_clis[cli_key] = link
        try:
            self.working_copy_dir(project_name, cli_key).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileError(str(exc), path=cli_key) from exc
        await self._write_meta(meta)
        logger.info("Linked CLI %s to project %s", cli_key, project_name)
        return meta

    async def unlink_cli(self, project_name: str, cli_name: str) -> ProjectMeta:
        """Unlink a CLI and delete its working copy; snapshots are kept."""
        meta = await self.require_meta(project_name)
        cli_key = CaseInsensitiveMap(meta.linked_clis).resolve_key(cli_name)
        if cli_key is None:
            return meta

        del meta.linked_clis[cli_key]
        working_copy = self.working_copy_dir(project_name, cli_key)
        await asyncio.to_thread(shutil.rmtree, working_copy, ignore_errors=True)
        await self._write_meta(meta)
        logger.info("Unlinked CLI %s from project %s", cli_key, project_name)
        return meta
