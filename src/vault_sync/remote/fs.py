"""Filesystem remote store for offline mirrors and tests."""

import json
import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..core import EntryKind
from ..errors import NotFoundError, RemoteError, StaleObjectError
from ..hashing import git_blob_hash
from ..utils import atomic_write_text, safe_target
from .base import RemoteItem, RemoteObject

logger = logging.getLogger(__name__)

HISTORY_FILE = "history.json"
TREE_DIR = "tree"


class FilesystemRemoteStore:
    """
    Remote store kept in a local directory (avoids a hosted service in tests).

    Layout: base_dir/<repository>/tree/<files> plus a history.json that maps
    each path to its last change time. Like the hosted store it names files
    by git blob id, rejects stale object ids and cannot hold empty files.
    Directories exist only while they contain files.
    """

    supports_concurrent_writes = True

    def __init__(self, base_dir: Path, repository: str, now: Callable[[], float] = time.time):
        """
        Initialize filesystem store.

        Args:
            base_dir: Directory holding one subdirectory per repository
            repository: Repository name used for object operations
            now: Clock used to stamp history entries
        """
        self.base_dir = Path(base_dir)
        self.repository = repository
        self.now = now
        self._lock = threading.Lock()

    @property
    def repo_dir(self) -> Path:
        return self.base_dir / self.repository

    @property
    def tree_dir(self) -> Path:
        return self.repo_dir / TREE_DIR

    def _require_repo(self) -> None:
        if not self.repo_dir.is_dir():
            raise NotFoundError(f"Repository not found: {self.repository}")

    def _target(self, path: str) -> Path:
        try:
            return safe_target(self.tree_dir, path)
        except ValueError as e:
            raise RemoteError(str(e)) from e

    # ---- history ------------------------------------------------------------

    def _load_history(self) -> Dict[str, float]:
        history_path = self.repo_dir / HISTORY_FILE
        if not history_path.exists():
            return {}
        return json.loads(history_path.read_text())

    def _record_change(self, path: str) -> None:
        history = self._load_history()
        history[path] = self.now()
        atomic_write_text(self.repo_dir / HISTORY_FILE, json.dumps(history, indent=2, sort_keys=True))

    # ---- objects ------------------------------------------------------------

    def list_children(self, path: str) -> List[RemoteItem]:
        self._require_repo()
        directory = self._target(path) if path else self.tree_dir
        if not directory.is_dir():
            if not path:
                return []
            raise NotFoundError(f"Directory not found: {path}")

        items = []
        for child in sorted(directory.iterdir(), key=lambda p: p.name):
            rel = f"{path}/{child.name}" if path else child.name
            if child.is_dir():
                items.append(RemoteItem(rel, EntryKind.DIRECTORY))
            else:
                items.append(RemoteItem(rel, EntryKind.FILE, git_blob_hash(child.read_bytes())))
        return items

    def get_object(self, path: str) -> Optional[RemoteObject]:
        self._require_repo()
        target = self._target(path)
        if not target.is_file():
            return None
        content = target.read_bytes()
        return RemoteObject(content=content, object_id=git_blob_hash(content))

    def put_object(self, path: str, content: bytes, base_object_id: Optional[str] = None) -> str:
        self._require_repo()
        if not content:
            raise RemoteError(f"Cannot store empty object: {path}")

        with self._lock:
            target = self._target(path)
            current = git_blob_hash(target.read_bytes()) if target.is_file() else None
            if current != base_object_id:
                raise StaleObjectError(path, base_object_id, current)

            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            self._record_change(path)

        object_id = git_blob_hash(content)
        logger.debug("Stored %s as %s", path, object_id[:12])
        return object_id

    def delete_object(self, path: str, object_id: str) -> None:
        self._require_repo()
        with self._lock:
            target = self._target(path)
            if not target.is_file():
                raise NotFoundError(f"Object not found: {path}")
            current = git_blob_hash(target.read_bytes())
            if current != object_id:
                raise StaleObjectError(path, object_id, current)

            target.unlink()
            self._record_change(path)

            # Prune directories left empty
            parent = target.parent
            tree = self.tree_dir.resolve()
            while parent != tree and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent

    def last_change_time(self, path: str) -> Optional[float]:
        self._require_repo()
        history = self._load_history()
        prefix = path.rstrip("/") + "/"
        times = [ts for p, ts in history.items() if p == path or p.startswith(prefix)]
        return max(times) if times else None

    # ---- repository lifecycle -----------------------------------------------

    def create_repository(self, name: str) -> None:
        repo = self.base_dir / name
        if repo.exists():
            raise RemoteError(f"Repository already exists: {name}")
        (repo / TREE_DIR).mkdir(parents=True)

    def delete_repository(self, name: str) -> None:
        repo = self.base_dir / name
        if not repo.is_dir():
            raise NotFoundError(f"Repository not found: {name}")
        shutil.rmtree(repo)

    def repository_exists(self, name: str) -> bool:
        return (self.base_dir / name).is_dir()
