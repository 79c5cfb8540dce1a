"""Project metadata models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .settings import AdditionalPath


class LinkedCli(BaseModel):
    """Association between a project and an external install directory."""

    model_config = ConfigDict(populate_by_name=True)

    snapshot_install_path: str = Field(alias="snapshotInstallPath")
    snapshot_additional_paths: list[AdditionalPath] = Field(
        default_factory=list, alias="snapshotAdditionalPaths"
    )


class ProjectMeta(BaseModel):
    """Contents of ``project.json``."""

    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(min_length=1, alias="projectName")
    created_time: str = Field(alias="createdTime")
    linked_clis: dict[str, LinkedCli] = Field(default_factory=dict, alias="linkedCLIs")
