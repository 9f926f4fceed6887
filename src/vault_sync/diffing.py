"""Diff computation logic - stable module for computing differences.

Both directions compare fingerprints only. Matching fingerprints mean
"nothing to do" even when timestamps differ.
"""

from .core import DiffResult, Snapshot


def compute_push_diff(local: Snapshot, remote: Snapshot) -> DiffResult:
    """
    Compute what the remote needs so that it matches the local tree.

    Args:
        local: Current local snapshot (authoritative).
        remote: Current remote snapshot.

    Returns:
        DiffResult where to_delete holds remote files missing locally and
        to_upsert holds local files that are new or changed.

    Note:
        Remote directories are never deleted explicitly; the store drops
        them once their last file is gone.
    """
    local_by_path = local.by_path()
    remote_by_path = remote.by_path()

    to_delete = [
        entry for entry in remote.entries
        if entry.is_file and entry.path not in local_by_path
    ]

    to_upsert = []
    for entry in local.files:
        remote_entry = remote_by_path.get(entry.path)
        if remote_entry is None or remote_entry.fingerprint != entry.fingerprint:
            to_upsert.append(entry)

    return DiffResult(to_delete=to_delete, to_upsert=to_upsert)


def compute_pull_diff(local: Snapshot, remote: Snapshot) -> DiffResult:
    """
    Compute what the local tree needs so that it matches the remote.

    Args:
        local: Current local snapshot.
        remote: Current remote snapshot (authoritative).

    Returns:
        DiffResult where to_delete holds local entries missing remotely and
        to_upsert holds remote entries to create or update locally.
    """
    pending = remote.by_path()
    to_delete = []
    to_upsert = []

    for entry in local.entries:
        remote_entry = pending.pop(entry.path, None)
        if remote_entry is None:
            to_delete.append(entry)
        elif remote_entry.is_file and remote_entry.fingerprint != entry.fingerprint:
            to_upsert.append(remote_entry)

    # Whatever is left exists only remotely
    to_upsert.extend(pending.values())

    return DiffResult(to_delete=to_delete, to_upsert=to_upsert)
