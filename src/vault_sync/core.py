"""Core data models for vault-sync.

Snapshots are built fresh for every sync and never mutated afterwards.
Push and pull each compare one local snapshot against one remote snapshot:

1. Scan: build both snapshots (fingerprints recomputed from scratch)
2. Diff: partition the differences into deletes and upserts
3. Apply: execute them item by item against the target side

There is no persisted baseline between runs, so every decision is made by
comparing the two live snapshots.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .utils import path_depth


# ============= Tree Snapshots =============

class EntryKind(str, Enum):
    """Kind of node in a tree snapshot."""

    FILE = "file"
    DIRECTORY = "directory"


class FileEntry(BaseModel):
    """One node of a tree snapshot.

    Paths are POSIX strings (forward slashes) relative to the tree root.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    kind: EntryKind = EntryKind.FILE
    fingerprint: str = ""  # git blob id, empty for directories
    modified_at: float = 0.0  # epoch seconds

    @property
    def is_file(self) -> bool:
        return self.kind == EntryKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    @property
    def depth(self) -> int:
        """Number of path separators, used to order parents and children."""
        return path_depth(self.path)


class Snapshot(BaseModel):
    """Immutable listing of one tree at a point in time."""

    model_config = ConfigDict(frozen=True)

    entries: Tuple[FileEntry, ...] = ()

    @model_validator(mode="after")
    def _check_entries(self) -> "Snapshot":
        seen = set()
        for entry in self.entries:
            if entry.path in seen:
                raise ValueError(f"Duplicate path in snapshot: {entry.path}")
            seen.add(entry.path)
            if entry.is_directory and entry.fingerprint:
                raise ValueError(f"Directory carries a fingerprint: {entry.path}")
        return self

    @property
    def files(self) -> List[FileEntry]:
        return [e for e in self.entries if e.is_file]

    @property
    def has_files(self) -> bool:
        return any(e.is_file for e in self.entries)

    def by_path(self) -> Dict[str, FileEntry]:
        """Map of path to entry (a fresh dict, safe to mutate)."""
        return {e.path: e for e in self.entries}

    def newest_modified_at(self) -> Optional[float]:
        """Newest modification time across all entries, None when empty."""
        if not self.entries:
            return None
        return max(e.modified_at for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class RemoteStatus(str, Enum):
    """Outcome of fetching the remote tree."""

    AVAILABLE = "available"
    EMPTY = "empty"  # Repository exists but holds no files
    ERROR = "error"  # Could not find out (network, auth, API failure)


# ============= Change Detection =============

class DiffResult(BaseModel):
    """Deletes and upserts needed to bring one side in line with the other."""

    to_delete: List[FileEntry] = Field(default_factory=list)
    to_upsert: List[FileEntry] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_upsert

    def summary(self) -> str:
        """Get human-readable summary."""
        if self.is_empty:
            return "No changes"
        parts = []
        if self.to_upsert:
            parts.append(f"{len(self.to_upsert)} to create or update")
        if self.to_delete:
            parts.append(f"{len(self.to_delete)} to delete")
        return ", ".join(parts)


# ============= Apply Results =============

class ItemFailure(BaseModel):
    """A single delete or upsert that failed."""

    path: str
    error: str


class ApplyResult(BaseModel):
    """Per-item outcome of applying a diff."""

    applied: List[str] = Field(default_factory=list)
    failed: List[ItemFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        parts = [f"{len(self.applied)} applied"]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        return ", ".join(parts)


# ============= Sync Reports =============

class SyncDirection(str, Enum):
    PUSH = "push"
    PULL = "pull"


class SyncPhase(str, Enum):
    """Orchestrator state machine."""

    IDLE = "idle"
    SCANNING = "scanning"
    DIFFING = "diffing"
    CONFLICT_CHECK = "conflict_check"
    APPLYING = "applying"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncPhase.DONE, SyncPhase.ABORTED, SyncPhase.FAILED)


class SyncOutcome(str, Enum):
    PUSHED = "pushed"
    PULLED = "pulled"
    NOTHING_TO_PUSH = "nothing_to_push"
    NOTHING_TO_PULL = "nothing_to_pull"
    REMOTE_EMPTY = "remote_empty"
    PARTIAL = "partial"  # Applied with some per-item failures
    ABORTED = "aborted"
    FAILED = "failed"


class SyncReport(BaseModel):
    """Single outcome of a push or pull."""

    direction: SyncDirection
    phase: SyncPhase
    outcome: SyncOutcome
    applied: List[str] = Field(default_factory=list)
    failed: List[ItemFailure] = Field(default_factory=list)
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome in (
            SyncOutcome.PUSHED,
            SyncOutcome.PULLED,
            SyncOutcome.NOTHING_TO_PUSH,
            SyncOutcome.NOTHING_TO_PULL,
            SyncOutcome.REMOTE_EMPTY,
        )

    def summary(self) -> str:
        """Get human-readable summary."""
        if self.message:
            return self.message
        verb = "Pushed" if self.direction == SyncDirection.PUSH else "Pulled"
        parts = [f"{verb} {len(self.applied)} changes"]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        return ", ".join(parts)


class SyncStatus(BaseModel):
    """Both diffs for display, without applying anything."""

    remote_status: RemoteStatus
    push: DiffResult = Field(default_factory=DiffResult)
    pull: DiffResult = Field(default_factory=DiffResult)
    local_files: int = 0
    remote_files: int = 0

    @property
    def in_sync(self) -> bool:
        return self.remote_status == RemoteStatus.AVAILABLE and self.push.is_empty
