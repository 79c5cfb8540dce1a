"""Exception hierarchy for aiocliconf."""

from __future__ import annotations


class CliConfError(Exception):
    """Base exception for all aiocliconf errors."""


class NotFoundError(CliConfError):
    """A project, linked CLI or snapshot does not exist."""


class ProjectNotFoundError(NotFoundError):
    """The named project has no readable ``project.json``."""


class CliNotLinkedError(NotFoundError):
    """The CLI is not linked to the project (or not registered)."""


class SnapshotNotFoundError(NotFoundError):
    """No committed snapshot exists for the given timestamp."""


class InvalidInputError(CliConfError):
    """A name, alias or path was rejected before touching the disk."""


class PathSecurityError(InvalidInputError):
    """A requested path resolved outside the allowed directory."""


class FileError(CliConfError):
    """Error during a file operation."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class CopyError(FileError):
    """A file could not be copied, after retries where applicable."""


class SnapshotError(CliConfError):
    """A snapshot could not be created."""


class RollbackError(CliConfError):
    """Restoring the pre-apply snapshot failed; the install path is undefined."""
