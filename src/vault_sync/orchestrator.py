"""High-level push/pull sequencing.

Each call walks the same state machine::

    idle -> scanning -> diffing -> (conflict_check) -> applying -> done
                                                          \\-> aborted | failed

and always ends in a terminal phase with a single SyncReport. Nothing is
persisted between runs; every call starts from two fresh snapshots.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .applier import LocalChangeApplier, RemoteChangeApplier
from .config import SyncConfig
from .conflict import should_block
from .context import VaultContext
from .core import (
    ApplyResult,
    DiffResult,
    RemoteStatus,
    Snapshot,
    SyncDirection,
    SyncOutcome,
    SyncPhase,
    SyncReport,
    SyncStatus,
)
from .diffing import compute_pull_diff, compute_push_diff
from .errors import IntegrityError
from .fetcher import RemoteTreeFetcher
from .ignore import IgnoreSpec
from .local_store import FilesystemLocalStore, LocalStore
from .lock import SingleFlight
from .remote import RemoteStore, make_remote_store
from .scanner import LocalTreeScanner

logger = logging.getLogger(__name__)


class ConfirmationPrompt(str, Enum):
    """Questions the orchestrator may ask before a destructive step."""

    EMPTY_PUSH = "empty_push"
    PULL_CONFLICT = "pull_conflict"

    @property
    def message(self) -> str:
        if self == ConfirmationPrompt.EMPTY_PUSH:
            return (
                "The local vault is empty. Pushing it will delete every file in the "
                "remote repository (recoverable only from its history)."
            )
        return (
            "Local files have changed since the last upload. Pulling will replace "
            "them with the remote version and local changes may be lost."
        )


ConfirmCallback = Callable[[ConfirmationPrompt], bool]


def _decline(prompt: ConfirmationPrompt) -> bool:
    return False


@dataclass
class SyncDeps:
    """Dependency injection container for testability."""
    local: LocalStore
    remote: RemoteStore
    ignore: IgnoreSpec = field(default_factory=IgnoreSpec)
    guard: SingleFlight = field(default_factory=SingleFlight)
    max_workers: int = 1


class SyncOrchestrator:
    """Sequences scan, fetch, diff, gate and apply for push and pull.

    Confirmation is a synchronous yes/no callback. Without one, every
    prompt is declined, so unattended runs never take a destructive step
    that needs a human.
    """

    def __init__(self, deps: SyncDeps, confirm: Optional[ConfirmCallback] = None):
        self.deps = deps
        self.confirm = confirm or _decline
        self.phase = SyncPhase.IDLE
        self.history: List[SyncPhase] = []

    @classmethod
    def from_context(
        cls,
        ctx: VaultContext,
        config: SyncConfig,
        confirm: Optional[ConfirmCallback] = None,
        remote: Optional[RemoteStore] = None,
    ) -> "SyncOrchestrator":
        """Build an orchestrator for a vault on disk.

        Raises:
            MissingCredentialsError: If the config is incomplete (before any I/O)
        """
        deps = SyncDeps(
            local=FilesystemLocalStore(ctx.root),
            remote=remote or make_remote_store(config),
            ignore=ctx.get_ignore_spec(),
            guard=SingleFlight(ctx.lock_path),
            max_workers=config.max_workers,
        )
        return cls(deps, confirm=confirm)

    # ---- state machine ----------------------------------------------------

    def _enter(self, phase: SyncPhase) -> None:
        logger.debug("Sync phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        self.history.append(phase)

    def _start(self) -> None:
        self.phase = SyncPhase.IDLE
        self.history = [SyncPhase.IDLE]

    def _finish(
        self,
        direction: SyncDirection,
        phase: SyncPhase,
        outcome: SyncOutcome,
        message: str = "",
        result: Optional[ApplyResult] = None,
    ) -> SyncReport:
        self._enter(phase)
        report = SyncReport(
            direction=direction,
            phase=phase,
            outcome=outcome,
            applied=list(result.applied) if result else [],
            failed=list(result.failed) if result else [],
            message=message,
        )
        log = logger.warning if outcome in (SyncOutcome.FAILED, SyncOutcome.PARTIAL) else logger.info
        log("%s finished: %s (%s)", direction.value, outcome.value, report.summary())
        return report

    def _scan_local(self) -> Snapshot:
        return LocalTreeScanner(self.deps.local, self.deps.ignore).scan()

    def _scan_failed(self, direction: SyncDirection, error: Exception) -> SyncReport:
        logger.error("Failed to scan local vault: %s", error)
        return self._finish(direction, SyncPhase.FAILED, SyncOutcome.FAILED,
                            f"Could not read the local vault: {error}")

    def _fetch_remote(self):
        return RemoteTreeFetcher(self.deps.remote, self.deps.ignore).fetch()

    # ---- operations -------------------------------------------------------

    def push_vault(self) -> SyncReport:
        """Make the remote match the local tree.

        Raises:
            SyncInProgressError: If another sync holds the vault
            IntegrityError: On a fingerprint/content disagreement
        """
        with self.deps.guard.hold():
            try:
                return self._push()
            except IntegrityError:
                self._enter(SyncPhase.FAILED)
                raise

    def _push(self) -> SyncReport:
        direction = SyncDirection.PUSH
        self._start()

        self._enter(SyncPhase.SCANNING)
        try:
            local = self._scan_local()
        except (OSError, ValueError) as e:
            return self._scan_failed(direction, e)
        if not local.has_files:
            if not self.confirm(ConfirmationPrompt.EMPTY_PUSH):
                return self._finish(direction, SyncPhase.ABORTED, SyncOutcome.ABORTED,
                                    "Push cancelled: local vault is empty")

        remote, status = self._fetch_remote()
        if status == RemoteStatus.ERROR:
            return self._finish(direction, SyncPhase.FAILED, SyncOutcome.FAILED,
                                "Could not read the remote repository")
        if remote is None:
            # Pushing into an empty repository is the normal first push
            remote = Snapshot()

        self._enter(SyncPhase.DIFFING)
        diff = compute_push_diff(local, remote)
        if diff.is_empty:
            return self._finish(direction, SyncPhase.DONE, SyncOutcome.NOTHING_TO_PUSH, "Nothing to push")
        logger.info("Push plan: %s", diff.summary())

        self._enter(SyncPhase.APPLYING)
        workers = self.deps.max_workers
        if workers > 1 and not getattr(self.deps.remote, "supports_concurrent_writes", True):
            logger.debug("Remote store commits serially; pushing with one worker")
            workers = 1
        applier = RemoteChangeApplier(self.deps.local, self.deps.remote, workers)
        result = applier.apply(diff.to_delete, diff.to_upsert)
        outcome = SyncOutcome.PUSHED if result.ok else SyncOutcome.PARTIAL
        return self._finish(direction, SyncPhase.DONE, outcome, result=result)

    def pull_vault(self) -> SyncReport:
        """Make the local tree match the remote.

        Raises:
            SyncInProgressError: If another sync holds the vault
            IntegrityError: On a fingerprint/content disagreement
        """
        with self.deps.guard.hold():
            try:
                return self._pull()
            except IntegrityError:
                self._enter(SyncPhase.FAILED)
                raise

    def _pull(self) -> SyncReport:
        direction = SyncDirection.PULL
        self._start()

        self._enter(SyncPhase.SCANNING)
        try:
            local = self._scan_local()
        except (OSError, ValueError) as e:
            return self._scan_failed(direction, e)
        remote, status = self._fetch_remote()
        if status == RemoteStatus.EMPTY:
            return self._finish(direction, SyncPhase.DONE, SyncOutcome.REMOTE_EMPTY, "Repository is empty")
        if status == RemoteStatus.ERROR:
            return self._finish(direction, SyncPhase.FAILED, SyncOutcome.FAILED,
                                "Could not read the remote repository")

        self._enter(SyncPhase.DIFFING)
        diff = compute_pull_diff(local, remote)
        if diff.is_empty:
            return self._finish(direction, SyncPhase.DONE, SyncOutcome.NOTHING_TO_PULL, "Already up to date")
        logger.info("Pull plan: %s", diff.summary())

        self._enter(SyncPhase.CONFLICT_CHECK)
        if should_block(local, remote, pending_changes=True):
            if not self.confirm(ConfirmationPrompt.PULL_CONFLICT):
                return self._finish(direction, SyncPhase.ABORTED, SyncOutcome.ABORTED,
                                    "Pull cancelled: local changes not pushed yet")

        self._enter(SyncPhase.APPLYING)
        applier = LocalChangeApplier(self.deps.local, self.deps.remote, self.deps.max_workers)
        result = applier.apply(diff.to_delete, diff.to_upsert)
        outcome = SyncOutcome.PULLED if result.ok else SyncOutcome.PARTIAL
        return self._finish(direction, SyncPhase.DONE, outcome, result=result)

    def status(self) -> SyncStatus:
        """Compute both diffs without applying anything."""
        local = self._scan_local()
        remote, status = self._fetch_remote()
        if status == RemoteStatus.ERROR:
            return SyncStatus(remote_status=status, local_files=len(local.files))

        remote = remote or Snapshot()
        return SyncStatus(
            remote_status=status,
            push=compute_push_diff(local, remote),
            pull=compute_pull_diff(local, remote) if status == RemoteStatus.AVAILABLE else DiffResult(),
            local_files=len(local.files),
            remote_files=len(remote.files),
        )
