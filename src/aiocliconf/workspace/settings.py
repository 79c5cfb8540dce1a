"""Settings store: CLI registry and ignore rules in ``settings.json``.

An explicit object owns the cached settings; callers that edit the file
out of band call :meth:`SettingsStore.invalidate` or
:meth:`SettingsStore.reload`.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiofiles
from pydantic import ValidationError

from ..exceptions import FileError, InvalidInputError
from ..models.settings import AdditionalPath, CliEntry, Settings
from .lookup import CaseInsensitiveMap

logger = logging.getLogger(__name__)


class SettingsStore:
    """Cached read-modify-write access to ``settings.json``."""

    def __init__(self, settings_file: Path) -> None:
        self.settings_file = settings_file
        self._cache: Settings | None = None

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def read(self) -> Settings:
        """Return the settings, loading them on first use.

        A missing or invalid file yields the defaults.
        """
        if self._cache is None:
            self._cache = await self._load()
        return self._cache

    async def reload(self) -> Settings:
        """Drop the cache and read the file again."""
        self.invalidate()
        return await self.read()

    def invalidate(self) -> None:
        self._cache = None

    async def _load(self) -> Settings:
        try:
            async with aiofiles.open(self.settings_file, encoding="utf-8") as fh:
                content = await fh.read()
            return Settings.model_validate_json(content)
        except FileNotFoundError:
            logger.debug("No settings file at %s, using defaults", self.settings_file)
        except (OSError, ValidationError) as exc:
            logger.warning("Invalid settings file %s, using defaults: %s", self.settings_file, exc)
        return Settings()

    async def write(self, settings: Settings) -> None:
        """Persist *settings* and make them the cached value."""
        try:
            self.settings_file.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.settings_file, "w", encoding="utf-8") as fh:
                await fh.write(settings.model_dump_json(by_alias=True, indent=2))
        except OSError as exc:
            logger.error("Error writing settings %s: %s", self.settings_file, exc)
            raise FileError(str(exc), path=str(self.settings_file)) from exc
        self._cache = settings

    async def ensure_exists(self) -> None:
        """Write the default settings if the file does not exist yet."""
        if not self.settings_file.exists():
            await self.write(Settings())
            logger.info("Created default settings at %s", self.settings_file)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def registry(self) -> CaseInsensitiveMap[CliEntry]:
        return CaseInsensitiveMap((await self.read()).cli_registry)

    async def add_cli(
        self,
        name: str,
        install_path: str,
        additional_paths: list[AdditionalPath] | None = None,
    ) -> Settings:
        """Register a CLI; names are unique case-insensitively."""
        if not name.strip():
            raise InvalidInputError("CLI name cannot be empty")

        settings = (await self.read()).model_copy(deep=True)
        if CaseInsensitiveMap(settings.cli_registry).resolve_key(name) is not None:
            raise InvalidInputError(f"CLI {name!r} already exists (case-insensitive)")

        try:
            entry = CliEntry(install_path=install_path, additional_paths=additional_paths or [])
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid CLI entry for {name!r}: {exc}") from exc

        settings.cli_registry[name] = entry
        await self.write(settings)
        logger.info("Registered CLI %s at %s", name, install_path)
        return settings

    async def remove_cli(self, name: str) -> Settings:
        """Unregister a CLI and drop its per-CLI ignore rules; unknown names are a no-op."""
        settings = (await self.read()).model_copy(deep=True)
        key = CaseInsensitiveMap(settings.cli_registry).resolve_key(name)
        if key is None:
            return settings

        del settings.cli_registry[key]
        settings.ignore_rules.per_cli.pop(key, None)
        await self.write(settings)
        logger.info("Removed CLI %s", key)
        return settings

    async def update_ignore_rules(
        self,
        *,
        global_rules: list[str] | None = None,
        per_cli: dict[str, list[str]] | None = None,
    ) -> Settings:
        """Replace the global rules and/or merge per-CLI rule lists."""
        settings = (await self.read()).model_copy(deep=True)
        if global_rules is not None:
            settings.ignore_rules.global_rules = list(global_rules)
        if per_cli:
            settings.ignore_rules.per_cli.update(per_cli)
        await self.write(settings)
        return settings
