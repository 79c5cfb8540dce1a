"""Workspace metadata: settings, projects and case-insensitive lookups."""

from .lookup import CaseInsensitiveMap
from .projects import ProjectStore, resolve_linked_cli, validate_cli_key
from .settings import SettingsStore

__all__ = [
    "CaseInsensitiveMap",
    "ProjectStore",
    "SettingsStore",
    "resolve_linked_cli",
    "validate_cli_key",
]
