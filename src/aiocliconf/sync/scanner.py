"""Directory scanning: large-file pre-flight and single-level listings."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..const import LARGE_FILE_THRESHOLD
from ..models.sync import FileEntry, LargeFileInfo
from .filters import IgnoreMatcher

logger = logging.getLogger(__name__)


def find_large_files(
    directory: Path,
    matcher: IgnoreMatcher | None,
    *,
    threshold: int = LARGE_FILE_THRESHOLD,
    base_path: str = "",
) -> list[LargeFileInfo]:
    """Return every tracked file under *directory* larger than *threshold* bytes.

    Traversal follows the same rules as :func:`~.mirror.mirror_tree`:
    excluded entries and symlinks are skipped.  Nothing is copied.
    Unreadable directories are logged and skipped; the import that
    follows reports the I/O error itself.
    """
    large_files: list[LargeFileInfo] = []

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        logger.warning("Cannot scan %s for large files: %s", directory, exc)
        return large_files

    for entry in entries:
        rel_path = f"{base_path}/{entry.name}" if base_path else entry.name
        is_dir = entry.is_dir(follow_symlinks=False)

        if matcher is not None and matcher.matches(rel_path, is_dir=is_dir):
            continue
        if entry.is_symlink():
            continue

        if is_dir:
            large_files.extend(
                find_large_files(
                    Path(entry.path), matcher, threshold=threshold, base_path=rel_path
                )
            )
        elif entry.is_file(follow_symlinks=False):
            try:
                size = entry.stat(follow_symlinks=False).st_size
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", rel_path, exc)
                continue
            if size > threshold:
                large_files.append(LargeFileInfo(path=rel_path, size=size))

    return large_files


def list_dir(directory: Path) -> list[FileEntry]:
    """List one directory level: directories first, then by name.

    An unreadable or missing directory yields an empty list.
    """
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return []

    nodes: list[FileEntry] = []
    for entry in entries:
        size: int | None = None
        if entry.is_file(follow_symlinks=False):
            try:
                size = entry.stat(follow_symlinks=False).st_size
            except OSError:
                size = None
        nodes.append(
            FileEntry(
                name=entry.name,
                relative_path=entry.name,
                is_directory=entry.is_dir(follow_symlinks=False),
                is_symlink=entry.is_symlink(),
                size_bytes=size,
            )
        )

    return sorted(nodes, key=lambda node: (not node.is_directory, node.name.lower()))
