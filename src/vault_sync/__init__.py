"""Two-way sync between a local vault and a remote repository."""

from .constants import VAULT_SYNC_VERSION as __version__

__all__ = ["__version__"]
