"""Remote tree snapshot with per-path change times."""

import logging
from collections import deque
from typing import Optional, Tuple

from .core import EntryKind, FileEntry, RemoteStatus, Snapshot
from .errors import NotFoundError, RemoteError
from .ignore import IgnoreSpec
from .remote.base import RemoteStore

logger = logging.getLogger(__name__)


class RemoteTreeFetcher:
    """
    Lists the whole remote tree and asks the history for each entry's
    last change time.

    Traversal uses an explicit FIFO worklist, so a directory is always
    listed before any of its children.
    """

    def __init__(self, store: RemoteStore, ignore: Optional[IgnoreSpec] = None):
        self.store = store
        self.ignore = ignore or IgnoreSpec()

    def fetch(self) -> Tuple[Optional[Snapshot], RemoteStatus]:
        """Fetch the remote snapshot, handling all error cases cleanly.

        Returns:
            (snapshot, AVAILABLE), or (None, EMPTY) for a repository with no
            files, or (None, ERROR) if the remote could not be read
        """
        try:
            entries = self._walk()
        except NotFoundError as e:
            # GitHub answers 404 for the root of an empty repository
            logger.debug("Remote root not found, treating as empty: %s", e)
            return None, RemoteStatus.EMPTY
        except RemoteError as e:
            logger.error("Failed to fetch remote tree: %s", e)
            return None, RemoteStatus.ERROR

        if not any(e.is_file for e in entries):
            return None, RemoteStatus.EMPTY

        snapshot = Snapshot(entries=tuple(entries))
        logger.debug("Fetched %d remote entries (%d files)", len(snapshot), len(snapshot.files))
        return snapshot, RemoteStatus.AVAILABLE

    def _walk(self) -> list:
        entries = []
        queue = deque([""])
        root_listed = False

        while queue:
            directory = queue.popleft()
            try:
                children = self.store.list_children(directory)
            except NotFoundError:
                if not root_listed:
                    raise
                # Directory vanished between listing its parent and now
                logger.warning("Remote directory disappeared during fetch: %s", directory)
                continue
            root_listed = True

            for item in children:
                if item.kind == EntryKind.DIRECTORY:
                    if not self.ignore.should_traverse(item.path):
                        continue
                elif self.ignore.is_ignored(item.path):
                    continue

                modified_at = self.store.last_change_time(item.path)
                entries.append(FileEntry(
                    path=item.path,
                    kind=item.kind,
                    fingerprint=item.object_id if item.kind == EntryKind.FILE else "",
                    modified_at=modified_at or 0.0,
                ))
                if item.kind == EntryKind.DIRECTORY:
                    queue.append(item.path)

        return entries
