"""Path filtering: decide which entries of an install path are tracked.

Rules use gitignore syntax and are evaluated with gitignore semantics: every
rule is tried in order and the last one that matches decides.  A negated rule
(``!pattern``) re-includes what an earlier rule excluded.  Pure logic with no
filesystem side-effects.
"""

from __future__ import annotations

from collections.abc import Iterable

from pathspec import PathSpec
from pathspec.patterns.gitignore.spec import GitIgnoreSpecPattern

from ..models.settings import IgnoreRules
from ..workspace.lookup import CaseInsensitiveMap


def normalize_rel_path(rel_path: str, is_dir: bool = False) -> str:
    """Return *rel_path* with ``/`` separators and a trailing ``/`` for directories."""
    normalized = rel_path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.lstrip("/").rstrip("/")
    if is_dir and normalized:
        normalized += "/"
    return normalized


class IgnoreMatcher:
    """Compiled, ordered rule list answering "is this path excluded?"."""

    def __init__(self, rules: Iterable[str] = ()) -> None:
        self.rules: list[str] = list(rules)
        self._spec = PathSpec.from_lines(GitIgnoreSpecPattern, self.rules)

    def matches(self, rel_path: str, is_dir: bool = False) -> bool:
        """Return ``True`` if *rel_path* is excluded by the rules.

        Directory candidates get a synthetic trailing separator so that a
        rule such as ``**/bin/`` matches a ``bin`` directory but not a file
        of the same name.  A directory rule also matches every descendant,
        so ``["**", "!foo/"]`` keeps ``foo/bar.txt``.
        """
        normalized = normalize_rel_path(rel_path, is_dir)
        if not normalized:
            return False
        return self._spec.match_file(normalized)

    def includes(self, rel_path: str, is_dir: bool = False) -> bool:
        return not self.matches(rel_path, is_dir)

    def filter_paths(self, paths: Iterable[str]) -> list[str]:
        """Return the file paths in *paths* that are not excluded."""
        return [p for p in paths if not self.matches(p)]

    def __repr__(self) -> str:
        return f"IgnoreMatcher({len(self.rules)} rules)"


def compile_ignore_rules(cli_key: str, rules: IgnoreRules) -> IgnoreMatcher:
    """Compile the global rules followed by the per-CLI rules for *cli_key*."""
    combined = list(rules.global_rules)
    per_cli = CaseInsensitiveMap(rules.per_cli).get(cli_key)
    if per_cli:
        combined.extend(per_cli)
    return IgnoreMatcher(combined)
