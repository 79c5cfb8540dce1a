"""Persisted settings: CLI registry and ignore rules."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..const import ADDITIONAL_FILES_DIR, DEFAULT_IGNORE_RULES


class AdditionalPath(BaseModel):
    """A single file tracked outside a CLI's install directory."""

    alias: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    path: str = Field(min_length=1)

    @field_validator("alias")
    @classmethod
    def _alias_not_reserved(cls, value: str) -> str:
        if value.lower() == ADDITIONAL_FILES_DIR.lower():
            raise ValueError(f"Alias {value!r} is reserved")
        return value


class CliEntry(BaseModel):
    """Registry entry for one CLI."""

    model_config = ConfigDict(populate_by_name=True)

    install_path: str = Field(min_length=1, alias="installPath")
    additional_paths: list[AdditionalPath] = Field(
        default_factory=list, alias="additionalPaths"
    )


class IgnoreRules(BaseModel):
    """Global gitignore-style rules plus per-CLI rules appended after them."""

    model_config = ConfigDict(populate_by_name=True)

    global_rules: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_RULES), alias="global"
    )
    per_cli: dict[str, list[str]] = Field(default_factory=dict, alias="perCli")


class Settings(BaseModel):
    """Contents of ``settings.json``."""

    model_config = ConfigDict(populate_by_name=True)

    cli_registry: dict[str, CliEntry] = Field(default_factory=dict, alias="cliRegistry")
    ignore_rules: IgnoreRules = Field(default_factory=IgnoreRules, alias="ignoreRules")
    language: Literal["zh-CN", "en-US"] = "zh-CN"
