"""Local tree snapshot with fingerprint computation."""

import logging
from typing import Optional

from .core import EntryKind, FileEntry, Snapshot
from .hashing import hash_bytes, hash_text, is_binary_path
from .ignore import IgnoreSpec
from .local_store import LocalStore

logger = logging.getLogger(__name__)


class LocalTreeScanner:
    """
    Builds a Snapshot of the local tree.

    This is the expensive operation: every file is read and hashed on each
    scan, nothing is cached between runs.
    """

    def __init__(self, store: LocalStore, ignore: Optional[IgnoreSpec] = None):
        self.store = store
        self.ignore = ignore or IgnoreSpec()

    def scan(self) -> Snapshot:
        """Scan the tree and return its current state.

        An empty tree gives an empty snapshot; callers decide what that means.
        """
        entries = []
        for item in self.store.list_all(skip_dir=lambda p: not self.ignore.should_traverse(p)):
            if self.ignore.is_ignored(item.path):
                continue

            if item.kind == EntryKind.DIRECTORY:
                entries.append(FileEntry(
                    path=item.path,
                    kind=EntryKind.DIRECTORY,
                    modified_at=item.modified_at,
                ))
                continue

            if is_binary_path(item.path):
                fingerprint = hash_bytes(self.store.read_bytes(item.path))
            else:
                fingerprint = hash_text(self.store.read_text(item.path))

            entries.append(FileEntry(
                path=item.path,
                kind=EntryKind.FILE,
                fingerprint=fingerprint,
                modified_at=item.modified_at,
            ))

        snapshot = Snapshot(entries=tuple(entries))
        logger.debug("Scanned %d local entries (%d files)", len(snapshot), len(snapshot.files))
        return snapshot
