"""Exclusion rules shared by the local scan and the remote fetch."""

from pathlib import Path
from typing import Iterable, List, Optional

from pathspec import PathSpec
from pathspec.patterns import GitWildMatchPattern

from .constants import IGNORE_FILE, VAULT_SYNC_DIR


# Always excluded, on both sides
DEFAULTS = [
    # Dot-files and dot-dirs (.git/, .obsidian/, .trash/, .vault-sync/)
    ".*",

    # Editor swap and backup files
    "*.swp",
    "*.swo",
    "*~",

    # OS clutter
    "Thumbs.db",
    "desktop.ini",
]


def read_ignore_file(root: Path) -> List[str]:
    """Patterns from the vault's ignore file, without blanks and comments."""
    ignore_file = root / IGNORE_FILE
    if not ignore_file.exists():
        return []
    lines = (line.strip() for line in ignore_file.read_text().splitlines())
    return [line for line in lines if line and not line.startswith("#")]


class IgnoreSpec:
    """Gitignore-style matcher over vault-relative POSIX paths.

    Args:
        root: Vault root; its ignore file is read when present
        extra: Patterns appended after the defaults and the ignore file
    """

    def __init__(self, root: Optional[Path] = None, extra: Iterable[str] = ()):
        self.root = root
        self.patterns = list(DEFAULTS)
        if root is not None:
            self.patterns.extend(read_ignore_file(root))
        self.patterns.extend(extra)
        self._matcher = PathSpec.from_lines(GitWildMatchPattern, self.patterns)

    def is_ignored(self, relpath: str) -> bool:
        """True if the path is excluded from sync.

        The metadata directory is excluded even if a pattern re-includes it.
        """
        return _is_reserved(relpath) or self._matcher.match_file(relpath)

    def should_traverse(self, dirpath: str) -> bool:
        """True if a directory's contents should be listed at all."""
        if _is_reserved(dirpath):
            return False
        return not self._matcher.match_file(dirpath.rstrip("/") + "/")


def _is_reserved(relpath: str) -> bool:
    first = relpath.strip("/").split("/", 1)[0]
    return first == VAULT_SYNC_DIR
