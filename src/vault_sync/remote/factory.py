"""Factory for creating remote store instances."""

from pathlib import Path

from ..config import SyncConfig, require_settings
from .base import RemoteStore
from .fs import FilesystemRemoteStore
from .github import GitHubContentsStore


def make_remote_store(config: SyncConfig) -> RemoteStore:
    """
    Create remote store instance based on configuration.

    Validation happens here, before any network or disk access.

    Args:
        config: Vault configuration

    Returns:
        RemoteStore for the configured provider

    Raises:
        MissingCredentialsError: If settings or credentials are missing
        NotImplementedError: If provider is not supported
    """
    token = require_settings(config)

    if config.provider == "github":
        return GitHubContentsStore(
            owner=config.owner,
            repository=config.repository,
            token=token,
            branch=config.branch,
            api_url=config.api_url,
        )

    elif config.provider == "fs":
        return FilesystemRemoteStore(Path(config.remote_dir).expanduser(), config.repository)

    else:
        raise NotImplementedError(f"Provider {config.provider} not supported")
