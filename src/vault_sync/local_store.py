"""Local tree access for the scanner and the pull-direction applier."""

import logging
import os
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .core import EntryKind
from .hashing import decode_text, encode_text
from .utils import atomic_write_bytes, safe_target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalItem:
    """One entry returned by a local listing."""
    path: str
    kind: EntryKind
    modified_at: float


class LocalStore(Protocol):
    """
    Protocol for local tree access.

    Paths are vault-relative POSIX strings. Writes create missing parent
    directories and overwrite existing files.
    """

    def list_all(self, skip_dir: Optional[Callable[[str], bool]] = None) -> List[LocalItem]:
        """List every file and directory; directories for which skip_dir
        returns True are neither listed nor descended into."""
        ...

    def read_text(self, path: str) -> str:
        ...

    def read_bytes(self, path: str) -> bytes:
        ...

    def write_text(self, path: str, text: str) -> None:
        ...

    def write_bytes(self, path: str, data: bytes) -> None:
        ...

    def delete(self, path: str) -> None:
        """Delete a file or an empty directory."""
        ...

    def create_directory(self, path: str) -> None:
        """Create a directory (and parents); no-op if it exists."""
        ...

    def exists(self, path: str) -> bool:
        ...


class FilesystemLocalStore:
    """LocalStore backed by a directory on disk."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _abs(self, path: str) -> Path:
        return safe_target(self.root, path)

    def list_all(self, skip_dir: Optional[Callable[[str], bool]] = None) -> List[LocalItem]:
        """Breadth-first listing; parents always precede their children."""
        items: List[LocalItem] = []
        queue = deque([""])

        while queue:
            rel_dir = queue.popleft()
            abs_dir = self.root / rel_dir if rel_dir else self.root
            with os.scandir(abs_dir) as it:
                children = sorted(it, key=lambda e: e.name)

            for child in children:
                rel = f"{rel_dir}/{child.name}" if rel_dir else child.name
                if child.is_symlink():
                    logger.debug("Skipping symlink %s", rel)
                    continue
                if child.is_dir(follow_symlinks=False):
                    if skip_dir is not None and skip_dir(rel):
                        continue
                    items.append(LocalItem(rel, EntryKind.DIRECTORY, child.stat().st_mtime))
                    queue.append(rel)
                elif child.is_file(follow_symlinks=False):
                    items.append(LocalItem(rel, EntryKind.FILE, child.stat().st_mtime))
                else:
                    logger.debug("Skipping special file %s", rel)

        return items

    def read_text(self, path: str) -> str:
        # Read raw bytes so line endings survive unchanged
        return decode_text(self._abs(path).read_bytes())

    def read_bytes(self, path: str) -> bytes:
        return self._abs(path).read_bytes()

    def write_text(self, path: str, text: str) -> None:
        atomic_write_bytes(self._abs(path), encode_text(text))

    def write_bytes(self, path: str, data: bytes) -> None:
        atomic_write_bytes(self._abs(path), data)

    def delete(self, path: str) -> None:
        target = self._abs(path)
        if target.is_dir() and not target.is_symlink():
            target.rmdir()
        else:
            target.unlink()

    def create_directory(self, path: str) -> None:
        self._abs(path).mkdir(parents=True, exist_ok=True)

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()
