"""Constants shared across aiocliconf."""

from __future__ import annotations

from datetime import timedelta, timezone

LARGE_FILE_THRESHOLD = 100 * 1024 * 1024  # 100 MiB
MAX_SNAPSHOTS_PER_PROJECT = 5

COPY_RETRIES = 3
COPY_RETRY_DELAY = 0.5  # seconds

# Snapshot ids are generated in a fixed offset so they sort the same for everyone
SNAPSHOT_TZ = timezone(timedelta(hours=8))

BACKUP_DIR_NAME = "backup"
SNAPSHOT_PREFIX = "bak"
STAGING_SUFFIX = ".tmp"
SNAPSHOT_META_FILE = "meta.json"
ADDITIONAL_FILES_DIR = "_additionalFiles"

PROJECT_META_FILE = "project.json"
PROJECTS_DIR_NAME = "Projects"
SETTINGS_FILE_NAME = "settings.json"

# Deny everything, then re-include the directories and files worth tracking
DEFAULT_IGNORE_RULES: tuple[str, ...] = (
    "# 1. ignore everything by default",
    "**",
    "# 2. re-include the directories to keep",
    "!agents/",
    "!agents/**",
    "!commands/",
    "!commands/**",
    "!plugins/",
    "!plugins/**",
    "!skills/",
    "!skills/**",
    "!prompts/",
    "!prompts/**",
    "# 3. re-include the files to keep",
    "!auth.json",
    "!settings.json",
    "!config.toml",
    "!CLAUDE.md",
    "# 4. junk and working directories, even inside kept ones",
    "**/*.log",
    "**/.DS_Store",
    "**/Thumbs.db",
    "**/tmp/",
    "**/bin/",
    "**/todos/",
    "**/backup/",
    "**/cache/",
    "**/debug/",
    "**/downloads/",
    "**/file-history/",
    "**/ide/",
    "**/plans/",
    "**/projects/",
    "**/session-env/",
    "**/shell-snapshots/",
    "**/statsig/",
    "**/telemetry/",
)
