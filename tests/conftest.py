"""Shared test fixtures and utilities."""

import itertools
import os
from pathlib import Path

import pytest

from vault_sync.config import SyncConfig, save_config
from vault_sync.context import VaultContext
from vault_sync.core import EntryKind, FileEntry, Snapshot
from vault_sync.hashing import hash_text
from vault_sync.local_store import FilesystemLocalStore
from vault_sync.orchestrator import SyncDeps, SyncOrchestrator
from vault_sync.remote.fs import FilesystemRemoteStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real credentials and debug flags out of tests."""
    for name in ("VAULT_SYNC_TOKEN", "GITHUB_TOKEN", "VAULT_SYNC_DEBUG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def vault_dir(tmp_path):
    """Empty local vault directory."""
    vault = tmp_path / "vault"
    vault.mkdir()
    return vault


@pytest.fixture
def clock():
    """Monotonic fake clock far in the future, so remote history is newer than local mtimes."""
    ticks = itertools.count(4_000_000_000)
    return lambda: float(next(ticks))


@pytest.fixture
def remote_store(tmp_path, clock):
    """Filesystem remote with an existing, empty repository."""
    store = FilesystemRemoteStore(tmp_path / "remote", "notes", now=clock)
    store.create_repository("notes")
    return store


@pytest.fixture
def local_store(vault_dir):
    return FilesystemLocalStore(vault_dir)


@pytest.fixture
def write_file(vault_dir):
    """Factory fixture to write files relative to the vault."""
    def _write(path: str, content="test content"):
        file_path = vault_dir / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_bytes(content.encode("utf-8"))
        return file_path
    return _write


@pytest.fixture
def make_orchestrator(local_store, remote_store):
    """Factory fixture for an orchestrator wired to the fs stores."""
    def _make(confirm=None, max_workers: int = 1, **overrides):
        deps = SyncDeps(
            local=overrides.get("local", local_store),
            remote=overrides.get("remote", remote_store),
            max_workers=max_workers,
        )
        return SyncOrchestrator(deps, confirm=confirm)
    return _make


@pytest.fixture
def initialized_vault(vault_dir, tmp_path, monkeypatch):
    """Initialized vault using the fs provider, cwd set to the vault."""
    monkeypatch.chdir(vault_dir)
    ctx = VaultContext.init(vault_dir)
    config = SyncConfig(provider="fs", repository="notes", remote_dir=str(tmp_path / "remote"))
    save_config(config, ctx)
    return ctx, config


def file_entry(path: str, content: str = "x", modified_at: float = 0.0) -> FileEntry:
    return FileEntry(path=path, fingerprint=hash_text(content), modified_at=modified_at)


def dir_entry(path: str, modified_at: float = 0.0) -> FileEntry:
    return FileEntry(path=path, kind=EntryKind.DIRECTORY, modified_at=modified_at)


def snapshot(*entries: FileEntry) -> Snapshot:
    return Snapshot(entries=tuple(entries))


def remote_files(store: FilesystemRemoteStore) -> dict:
    """Map of path to bytes for every file in a fs remote."""
    tree = store.tree_dir
    return {
        p.relative_to(tree).as_posix(): p.read_bytes()
        for p in sorted(Path(tree).rglob("*")) if p.is_file()
    }


def symlink_or_skip(link: Path, target: Path) -> Path:
    """Create a symlink, skipping the test where the platform refuses."""
    try:
        os.symlink(target, link, target_is_directory=target.is_dir())
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported on this platform")
    return link
