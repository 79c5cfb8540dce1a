"""Directory mirroring between install paths, working copies and snapshots.

Filesystem-only: no metadata is read or written here.  Symlinks are never
followed or copied, and single-file copies retry on transient lock errors
(a CLI holding a short-lived lock on its config file is the common case).
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat
import time
from collections.abc import Collection
from pathlib import Path

from ..const import COPY_RETRIES, COPY_RETRY_DELAY
from ..exceptions import CopyError, FileError
from .filters import IgnoreMatcher

logger = logging.getLogger(__name__)

_TRANSIENT_ERRNOS: frozenset[int] = frozenset(
    {errno.EBUSY, errno.ETXTBSY, errno.EACCES, errno.EPERM}
)

SKIPPED_SYMLINK = "Skipped symlink: "
SKIPPED_SPECIAL = "Skipped special file: "


def is_transient_error(exc: OSError) -> bool:
    """Return ``True`` for the busy / access-denied class of errors."""
    return isinstance(exc, PermissionError) or exc.errno in _TRANSIENT_ERRNOS


def skipped_entries(warnings: list[str]) -> list[str]:
    """Return the relative paths named by the skipped-entry warnings in *warnings*."""
    return [
        w.split(": ", 1)[1] for w in warnings if w.startswith((SKIPPED_SYMLINK, SKIPPED_SPECIAL))
    ]


def _clear_readonly(path: Path) -> None:
    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        return
    if not mode & stat.S_IWUSR:
        os.chmod(path, mode | stat.S_IWUSR)


def copy_file(
    src: Path,
    dest: Path,
    rel_path: str,
    *,
    retries: int = COPY_RETRIES,
    retry_delay: float = COPY_RETRY_DELAY,
) -> None:
    """Copy *src* to *dest*, creating parent directories as needed.

    Transient errors are retried up to *retries* attempts with a fixed
    *retry_delay*; any other error, or running out of attempts, raises
    :class:`CopyError` carrying *rel_path*.  A directory already at *dest*
    is an error; the file is never copied into it.
    """
    if dest.is_dir():
        raise CopyError(
            f"Failed to copy {rel_path}: destination is a directory", path=rel_path
        )

    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            _clear_readonly(dest)
            shutil.copy2(src, dest)
            logger.debug("Copied %s", rel_path)
            return
        except OSError as exc:
            if attempt < attempts and is_transient_error(exc):
                logger.debug(
                    "Copy of %s failed (attempt %d/%d): %s; retrying in %.1fs",
                    rel_path,
                    attempt,
                    attempts,
                    exc,
                    retry_delay,
                )
                time.sleep(retry_delay)
                continue
            raise CopyError(f"Failed to copy {rel_path}: {exc}", path=rel_path) from exc


def _scan_sorted(directory: Path, rel_path: str) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        raise FileError(
            f"Cannot read directory {rel_path or directory}: {exc}", path=rel_path or None
        ) from exc


def mirror_tree(
    source: Path,
    dest: Path,
    matcher: IgnoreMatcher | None,
    warnings: list[str],
    *,
    base_path: str = "",
    skip_names: Collection[str] = (),
    retries: int = COPY_RETRIES,
    retry_delay: float = COPY_RETRY_DELAY,
) -> None:
    """Recursively copy *source* into *dest*.

    Parameters
    ----------
    matcher:
        Entries it excludes are skipped; excluded directories are neither
        descended into nor created.  ``None`` copies everything.
    warnings:
        Receives one message per skipped symlink or special file.
    base_path:
        Relative path of *source* below the walk root, used for matching.
    skip_names:
        Entry names skipped in *source* itself (not in subdirectories).
    """
    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileError(
            f"Cannot create directory {base_path or dest}: {exc}", path=base_path or None
        ) from exc

    for entry in _scan_sorted(source, base_path):
        if entry.name in skip_names:
            continue

        rel_path = f"{base_path}/{entry.name}" if base_path else entry.name
        is_dir = entry.is_dir(follow_symlinks=False)

        if matcher is not None and matcher.matches(rel_path, is_dir=is_dir):
            continue

        if entry.is_symlink():
            logger.warning("Skipped symlink: %s", rel_path)
            warnings.append(SKIPPED_SYMLINK + rel_path)
            continue

        target = dest / entry.name
        if is_dir:
            mirror_tree(
                Path(entry.path),
                target,
                matcher,
                warnings,
                base_path=rel_path,
                retries=retries,
                retry_delay=retry_delay,
            )
        elif entry.is_file(follow_symlinks=False):
            copy_file(
                Path(entry.path), target, rel_path, retries=retries, retry_delay=retry_delay
            )
        else:
            logger.warning("Skipped special file: %s", rel_path)
            warnings.append(SKIPPED_SPECIAL + rel_path)


def copy_directory(
    source: Path,
    dest: Path,
    warnings: list[str],
    *,
    exclude: Collection[str] = (),
    retries: int = COPY_RETRIES,
    retry_delay: float = COPY_RETRY_DELAY,
) -> None:
    """Copy *source* into *dest* verbatim, without consulting ignore rules."""
    mirror_tree(
        source,
        dest,
        None,
        warnings,
        skip_names=exclude,
        retries=retries,
        retry_delay=retry_delay,
    )


def remove_tree(path: Path) -> None:
    """Delete *path* recursively; a missing path is not an error."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)
