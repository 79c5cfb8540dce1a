"""Sync engine: ignore rules, tree mirroring and the sync manager."""

from .filters import IgnoreMatcher, compile_ignore_rules, normalize_rel_path
from .mirror import copy_directory, copy_file, is_transient_error, mirror_tree, remove_tree
from .scanner import find_large_files, list_dir
from .manager import SyncManager, normalize_selected_path

__all__ = [
    "IgnoreMatcher",
    "SyncManager",
    "compile_ignore_rules",
    "copy_directory",
    "copy_file",
    "find_large_files",
    "is_transient_error",
    "list_dir",
    "mirror_tree",
    "normalize_rel_path",
    "normalize_selected_path",
    "remove_tree",
]
