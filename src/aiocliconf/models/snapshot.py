"""Snapshot models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .common import OperationResult

SnapshotType = Literal["full", "partial"]
SnapshotSource = Literal["auto-apply-backup", "manual-backup", "pre-import-backup"]


class SnapshotMeta(BaseModel):
    """Contents of a snapshot's ``meta.json``; immutable once committed."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: str = Field(pattern=r"^\d{17}$")
    snapshot_type: SnapshotType = Field(alias="snapshotType")
    included_clis: list[str] = Field(default_factory=list, alias="includedCLIs")
    source: SnapshotSource
    created_time: str = Field(alias="createdTime")
    notes: str = ""


class SnapshotCreateResult(OperationResult):
    """Result of creating a snapshot."""

    timestamp: str | None = None


class SnapshotDeleteResult(OperationResult):
    """Result of deleting a snapshot."""

    timestamp: str
