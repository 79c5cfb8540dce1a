"""Common result models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ..exceptions import (
    CliConfError,
    FileError,
    InvalidInputError,
    NotFoundError,
    RollbackError,
)

ErrorKind = Literal["not_found", "validation", "io", "rollback_failed"]


class ErrorDetail(BaseModel):
    """A single operation-level failure."""

    kind: ErrorKind
    message: str
    path: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorDetail:
        """Classify *exc* into the error taxonomy."""
        kind: ErrorKind
        if isinstance(exc, NotFoundError):
            kind = "not_found"
        elif isinstance(exc, InvalidInputError):
            kind = "validation"
        elif isinstance(exc, RollbackError):
            kind = "rollback_failed"
        else:
            kind = "io"

        path: str | None = None
        if isinstance(exc, FileError):
            path = exc.path
        elif isinstance(exc, OSError) and not isinstance(exc, CliConfError):
            path = exc.filename if isinstance(exc.filename, str) else None
        return cls(kind=kind, message=str(exc), path=path)


class OperationResult(BaseModel):
    """Base result envelope: a success flag, warnings and fatal errors."""

    success: bool
    message: str | None = None
    warnings: list[str] = Field(default_factory=list)
    errors: list[ErrorDetail] = Field(default_factory=list)

    @property
    def error_messages(self) -> list[str]:
        return [error.message for error in self.errors]
