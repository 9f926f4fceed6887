"""Locating a vault on disk and the paths of its metadata."""

from pathlib import Path
from typing import Optional

from .constants import CONFIG_FILE, LOCK_FILE, VAULT_SYNC_DIR
from .ignore import IgnoreSpec


def find_vault_root(start: Path) -> Optional[Path]:
    """Nearest directory at or above start holding a metadata directory."""
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / VAULT_SYNC_DIR).is_dir():
            return candidate
    return None


class VaultContext:
    """A vault root plus the locations derived from it.

    Raises:
        ValueError: If start_path is not inside a vault
    """

    def __init__(self, start_path: Optional[Path] = None):
        root = find_vault_root(start_path or Path.cwd())
        if root is None:
            raise ValueError(f"Not inside a vault-sync vault (no {VAULT_SYNC_DIR} found)")
        self.root = root
        self._ignore_spec: Optional[IgnoreSpec] = None

    @classmethod
    def is_initialized(cls, path: Optional[Path] = None) -> bool:
        """Whether this exact directory is a vault root (parents not searched)."""
        return ((path or Path.cwd()) / VAULT_SYNC_DIR).is_dir()

    @classmethod
    def init(cls, path: Optional[Path] = None) -> "VaultContext":
        """Create the metadata directory and return the new vault's context."""
        root = path or Path.cwd()
        (root / VAULT_SYNC_DIR).mkdir(parents=True, exist_ok=True)
        return cls(root)

    @property
    def storage_dir(self) -> Path:
        return self.root / VAULT_SYNC_DIR

    @property
    def config_path(self) -> Path:
        return self.storage_dir / CONFIG_FILE

    @property
    def lock_path(self) -> Path:
        return self.storage_dir / LOCK_FILE

    def get_ignore_spec(self) -> IgnoreSpec:
        """Ignore rules for this vault, read once per context."""
        if self._ignore_spec is None:
            self._ignore_spec = IgnoreSpec(self.root)
        return self._ignore_spec
