"""Conflict gate for pulls that might discard newer local work."""

import logging

from .core import Snapshot

logger = logging.getLogger(__name__)


def should_block(local: Snapshot, remote: Snapshot, pending_changes: bool) -> bool:
    """Decide whether a pull needs explicit confirmation.

    Compares the single newest modification time of each whole tree. If the
    pull would change anything and the local tree holds something newer than
    anything in the remote history, applying it could overwrite unpushed
    edits.

    This is a whole-tree heuristic: it does not look at which files the
    pull actually touches.

    Args:
        local: Current local snapshot
        remote: Current remote snapshot
        pending_changes: Whether the pull diff has any delete or upsert

    Returns:
        True if the caller must ask before applying
    """
    if not pending_changes:
        return False

    newest_local = local.newest_modified_at()
    newest_remote = remote.newest_modified_at()
    if newest_local is None:
        return False
    if newest_remote is None:
        return True

    blocked = newest_local > newest_remote
    if blocked:
        logger.debug(
            "Local tree is newer than remote history (%.0f > %.0f)",
            newest_local, newest_remote,
        )
    return blocked
