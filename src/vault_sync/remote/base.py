"""Base protocol for remote store implementations."""

from dataclasses import dataclass
from typing import List, Optional, Protocol

from ..core import EntryKind


@dataclass(frozen=True)
class RemoteItem:
    """One entry returned by a remote directory listing."""
    path: str
    kind: EntryKind
    object_id: str = ""  # git blob id, empty for directories


@dataclass(frozen=True)
class RemoteObject:
    """Content of a remote file together with its current object id."""
    content: bytes
    object_id: str


class RemoteStore(Protocol):
    """
    Protocol for remote store implementations.

    Object ids are git blob ids, so they compare directly with locally
    computed fingerprints. Writes and deletes carry the object id the caller
    last saw; the store rejects them with StaleObjectError if it moved.
    """

    # False when puts and deletes must run one at a time
    supports_concurrent_writes: bool

    def list_children(self, path: str) -> List[RemoteItem]:
        """
        List the direct children of a directory ("" is the root).

        Raises:
            NotFoundError: If the directory does not exist
        """
        ...

    def get_object(self, path: str) -> Optional[RemoteObject]:
        """
        Fetch a file's content and object id.

        Returns:
            RemoteObject, or None if nothing is stored at path
        """
        ...

    def put_object(self, path: str, content: bytes, base_object_id: Optional[str] = None) -> str:
        """
        Create or update a file.

        Args:
            path: Vault-relative path
            content: Raw bytes to store
            base_object_id: Current object id when updating, None when creating

        Returns:
            New object id
        """
        ...

    def delete_object(self, path: str, object_id: str) -> None:
        """Delete a file, keyed by its last-known object id."""
        ...

    def last_change_time(self, path: str) -> Optional[float]:
        """
        Epoch seconds of the most recent change touching exactly this path.

        Returns:
            Timestamp, or None if the path has no history
        """
        ...

    def create_repository(self, name: str) -> None:
        ...

    def delete_repository(self, name: str) -> None:
        ...

    def repository_exists(self, name: str) -> bool:
        ...
