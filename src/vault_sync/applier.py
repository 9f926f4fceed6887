"""Apply a diff to the remote store (push) or the local tree (pull).

Every delete and upsert is isolated: a failing item is logged and recorded,
and the remaining items still run. The one exception is an integrity
violation, which aborts the whole run.

Ordering guarantees:
- Push: all remote deletes happen before any upload
- Pull: deletes run deepest path first, directories are created
  shallowest first, and both happen before any file download
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from .constants import EMPTY_FILE_PLACEHOLDER
from .core import ApplyResult, FileEntry, ItemFailure
from .errors import FingerprintMismatchError, IntegrityError, NotFoundError, RemoteError
from .hashing import decode_text, encode_text, git_blob_hash, is_binary_path
from .local_store import LocalStore
from .remote.base import RemoteObject, RemoteStore

logger = logging.getLogger(__name__)

# Returns True if it changed something, False if the item was already in place
ItemAction = Callable[[FileEntry], bool]


# ============= Per-item isolation =============

def _apply_one(entry: FileEntry, action: ItemAction) -> Optional[ItemFailure]:
    """Run one action; convert recoverable errors into an ItemFailure."""
    try:
        action(entry)
    except IntegrityError:
        raise
    except (RemoteError, OSError, ValueError) as e:
        logger.warning("Failed to sync %s: %s", entry.path, e)
        return ItemFailure(path=entry.path, error=str(e))
    return None


def _record(result: ApplyResult, entry: FileEntry, changed: bool, failure: Optional[ItemFailure]) -> None:
    if failure is not None:
        result.failed.append(failure)
    elif changed:
        result.applied.append(entry.path)


def _run_isolated(
    items: Sequence[FileEntry],
    action: ItemAction,
    result: ApplyResult,
    max_workers: int = 1,
) -> None:
    """Run action for every item, sequentially or with bounded concurrency."""
    changed = {}

    def tracked(entry: FileEntry) -> bool:
        changed[entry.path] = bool(action(entry))
        return changed[entry.path]

    if max_workers <= 1 or len(items) <= 1:
        for entry in items:
            failure = _apply_one(entry, tracked)
            _record(result, entry, changed.get(entry.path, False), failure)
        return

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(_apply_one, entry, tracked): entry for entry in items}
        outcomes = {}
        try:
            for future in as_completed(futures):
                outcomes[futures[future].path] = future.result()
        except IntegrityError:
            for future in futures:
                future.cancel()
            raise

    # Report in submission order so results do not depend on scheduling
    for entry in items:
        _record(result, entry, changed.get(entry.path, False), outcomes[entry.path])


def verify_remote_object(path: str, obj: RemoteObject) -> None:
    """Check that a remote object id really is the hash of its content."""
    actual = git_blob_hash(obj.content)
    if actual != obj.object_id:
        raise FingerprintMismatchError(
            path, actual, obj.object_id, obj.content, obj.content,
            reason="remote object id does not match its content",
        )


def verify_consistency(path: str, local_content: bytes, local_fingerprint: str, remote: RemoteObject) -> None:
    """Fingerprint equality must agree with byte equality.

    Raises:
        FingerprintMismatchError: If one says "same" and the other "different"
    """
    verify_remote_object(path, remote)

    same_fingerprint = local_fingerprint == remote.object_id
    same_bytes = local_content == remote.content
    if same_fingerprint == same_bytes:
        return

    reason = (
        "fingerprints match but content differs" if same_fingerprint
        else "fingerprints differ but content is identical"
    )
    raise FingerprintMismatchError(
        path, local_fingerprint, remote.object_id, local_content, remote.content, reason=reason,
    )


# ============= Push direction =============

class RemoteChangeApplier:
    """Applies a push diff to the remote store."""

    def __init__(self, local: LocalStore, remote: RemoteStore, max_workers: int = 1):
        self.local = local
        self.remote = remote
        self.max_workers = max_workers

    def apply(self, to_delete: List[FileEntry], to_upsert: List[FileEntry]) -> ApplyResult:
        """Delete stale remote files, then upload new and changed ones."""
        result = ApplyResult()
        _run_isolated([e for e in to_delete if e.is_file], self._delete, result, self.max_workers)
        _run_isolated([e for e in to_upsert if e.is_file], self._upsert, result, self.max_workers)
        logger.info("Push applied: %s", result.summary())
        return result

    def _delete(self, entry: FileEntry) -> bool:
        self.remote.delete_object(entry.path, entry.fingerprint)
        logger.info("Deleted remote %s", entry.path)
        return True

    def _read_local(self, path: str) -> bytes:
        """Re-read local content and encode it exactly as it goes on the wire."""
        if is_binary_path(path):
            return self.local.read_bytes(path)

        text = self.local.read_text(path)
        if not text:
            # The remote cannot hold empty files
            logger.info("Writing placeholder into empty file %s", path)
            text = EMPTY_FILE_PLACEHOLDER
            self.local.write_text(path, text)
        return encode_text(text)

    def _upsert(self, entry: FileEntry) -> bool:
        current = self.remote.get_object(entry.path)
        content = self._read_local(entry.path)
        fingerprint = git_blob_hash(content)

        base_object_id = None
        if current is not None:
            verify_consistency(entry.path, content, fingerprint, current)
            if fingerprint == current.object_id:
                logger.debug("Remote %s already up to date", entry.path)
                return False
            base_object_id = current.object_id

        self.remote.put_object(entry.path, content, base_object_id)
        logger.info("%s remote %s", "Updated" if base_object_id else "Created", entry.path)
        return True


# ============= Pull direction =============

class LocalChangeApplier:
    """Applies a pull diff to the local tree."""

    def __init__(self, local: LocalStore, remote: RemoteStore, max_workers: int = 1):
        self.local = local
        self.remote = remote
        self.max_workers = max_workers

    def apply(self, to_delete: List[FileEntry], to_upsert: List[FileEntry]) -> ApplyResult:
        """Remove local-only entries, then create directories and download files."""
        result = ApplyResult()

        # Children before parents
        deletes = sorted(to_delete, key=lambda e: (e.depth, e.path), reverse=True)
        _run_isolated(deletes, self._delete, result)

        directories = sorted((e for e in to_upsert if e.is_directory), key=lambda e: (e.depth, e.path))
        _run_isolated(directories, self._create_directory, result)

        files = sorted((e for e in to_upsert if e.is_file), key=lambda e: (e.depth, e.path))
        _run_isolated(files, self._download, result, self.max_workers)

        logger.info("Pull applied: %s", result.summary())
        return result

    def _delete(self, entry: FileEntry) -> bool:
        if not self.local.exists(entry.path):
            logger.debug("Local %s already gone", entry.path)
            return False
        self.local.delete(entry.path)
        logger.info("Deleted local %s", entry.path)
        return True

    def _create_directory(self, entry: FileEntry) -> bool:
        if self.local.exists(entry.path):
            return False
        self.local.create_directory(entry.path)
        return True

    def _download(self, entry: FileEntry) -> bool:
        obj = self.remote.get_object(entry.path)
        if obj is None:
            raise NotFoundError(f"Remote file disappeared during pull: {entry.path}")
        verify_remote_object(entry.path, obj)

        if is_binary_path(entry.path):
            self.local.write_bytes(entry.path, obj.content)
        else:
            self.local.write_text(entry.path, decode_text(obj.content))
        logger.info("Downloaded %s", entry.path)
        return True
