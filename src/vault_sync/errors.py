"""Custom exceptions for vault-sync.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application.
"""

import base64
from typing import Iterable, Optional


class VaultSyncError(RuntimeError):
    """Base class for all vault-sync errors."""
    pass


# Remote Errors
class RemoteError(VaultSyncError):
    """Base class for remote store communication errors."""
    pass


class NetworkError(RemoteError):
    """Network connectivity issue or server-side failure."""
    pass


class AuthError(RemoteError):
    """Authentication or authorization failed (401/403)."""
    pass


class NotFoundError(RemoteError):
    """Resource not found in the remote store (404)."""
    pass


class StaleObjectError(RemoteError):
    """Write rejected because the base object id is no longer current."""

    def __init__(self, path: str, expected: Optional[str], actual: Optional[str] = None):
        self.path = path
        self.expected = expected
        self.actual = actual
        expected_display = expected[:12] if expected else "(none)"
        actual_display = actual[:12] if actual else "(unknown)"
        super().__init__(
            f"Remote object for '{path}' changed during sync. "
            f"Expected base {expected_display}, remote has {actual_display}"
        )


# Integrity Errors
class IntegrityError(VaultSyncError):
    """Base class for data integrity errors."""
    pass


def _describe(content: Optional[bytes]) -> str:
    if content is None:
        return "(absent)"
    return f"{content!r} (base64: {base64.b64encode(content).decode('ascii')})"


class FingerprintMismatchError(IntegrityError):
    """Fingerprints and content disagree between the two sides.

    Raised when fingerprints differ but the encoded bytes are identical,
    or fingerprints match while the bytes differ. Either case means the
    hashing or encoding is broken, so it is never retried.
    """

    def __init__(
        self,
        path: str,
        local_fingerprint: str,
        remote_fingerprint: str,
        local_content: Optional[bytes],
        remote_content: Optional[bytes],
        reason: str = "fingerprint and content disagree",
    ):
        self.path = path
        self.local_fingerprint = local_fingerprint
        self.remote_fingerprint = remote_fingerprint
        self.local_content = local_content
        self.remote_content = remote_content
        super().__init__(
            f"Integrity violation for {path}: {reason}\n"
            f"  Local fingerprint:  {local_fingerprint}\n"
            f"  Remote fingerprint: {remote_fingerprint}\n"
            f"  Local content:      {_describe(local_content)}\n"
            f"  Remote content:     {_describe(remote_content)}"
        )


# Configuration Errors
class ConfigError(VaultSyncError):
    """Base class for configuration errors."""
    pass


class MissingCredentialsError(ConfigError):
    """Required settings or credentials are not configured."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing configuration: {', '.join(self.missing)}. "
            f"Run 'vault-sync init' or set VAULT_SYNC_TOKEN."
        )


# Concurrency Errors
class SyncInProgressError(VaultSyncError):
    """Another push or pull is already running for this vault."""

    def __init__(self, what: str = "vault"):
        super().__init__(f"A sync is already in progress for this {what}")
