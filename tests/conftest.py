"""Shared fixtures for aiocliconf tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from aiocliconf.sync.manager import SyncManager
from aiocliconf.workspace import ProjectStore, SettingsStore


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    """Create a fake CLI install directory with tracked and untracked files."""
    install = tmp_path / "install" / ".claude"
    install.mkdir(parents=True)
    (install / "settings.json").write_text('{"theme": "dark"}\n')
    (install / "CLAUDE.md").write_text("# Instructions\n")
    (install / "secret.key").write_text("do-not-copy\n")
    (install / "debug.log").write_text("log line\n")

    agents = install / "agents"
    agents.mkdir()
    (agents / "reviewer.md").write_text("reviewer\n")
    (agents / "notes.log").write_text("noise\n")

    cache = install / "cache"
    cache.mkdir()
    (cache / "blob.bin").write_bytes(b"\x00" * 16)
    return install


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def settings_store(workspace_root: Path) -> SettingsStore:
    return SettingsStore(workspace_root / "settings.json")


@pytest.fixture
def project_store(workspace_root: Path, settings_store: SettingsStore) -> ProjectStore:
    return ProjectStore(workspace_root / "Projects", settings_store)


@pytest.fixture
async def manager(workspace_root: Path, install_dir: Path) -> SyncManager:
    """SyncManager with one project ``Demo`` linked to the ``claude`` CLI."""
    mgr = SyncManager(workspace_root, retry_delay=0)
    await mgr.settings.add_cli("claude", str(install_dir))
    await mgr.projects.create("Demo", ["claude"])
    return mgr
