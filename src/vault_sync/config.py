"""Vault configuration (stored in .vault-sync/config.yaml)."""

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_API_URL, DEFAULT_AUTO_SYNC_INTERVAL, DEFAULT_BRANCH, TOKEN_ENV_VARS
from .context import VaultContext
from .errors import ConfigError, MissingCredentialsError
from .utils import atomic_write_text


class SyncConfig(BaseModel):
    """Remote location and sync behaviour for one vault."""

    provider: Literal["github", "fs"] = "github"
    owner: str = ""
    repository: str = ""
    branch: str = DEFAULT_BRANCH
    api_url: str = DEFAULT_API_URL
    remote_dir: Optional[str] = None  # base directory for the fs provider

    auto_sync: bool = False
    auto_sync_interval: int = Field(default=DEFAULT_AUTO_SYNC_INTERVAL, gt=0)  # seconds
    max_workers: int = Field(default=1, ge=1)

    def missing_settings(self) -> List[str]:
        """Names of settings the configured provider still needs."""
        missing = []
        if not self.repository:
            missing.append("repository")
        if self.provider == "github" and not self.owner:
            missing.append("owner")
        if self.provider == "fs" and not self.remote_dir:
            missing.append("remote_dir")
        return missing


def get_token() -> Optional[str]:
    """Read the API token from the environment."""
    for name in TOKEN_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def require_settings(config: SyncConfig) -> Optional[str]:
    """Validate the config before any I/O and return the token if needed.

    Raises:
        MissingCredentialsError: If settings or the token are missing
    """
    missing = config.missing_settings()
    token = None
    if config.provider == "github":
        token = get_token()
        if not token:
            missing.append(TOKEN_ENV_VARS[0])
    if missing:
        raise MissingCredentialsError(missing)
    return token


def load_config(ctx: Optional[VaultContext] = None) -> SyncConfig:
    """Load vault configuration."""
    if ctx is None:
        ctx = VaultContext()

    if not ctx.config_path.exists():
        raise FileNotFoundError(f"Configuration not found at {ctx.config_path}")

    try:
        with ctx.config_path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid configuration in {ctx.config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration in {ctx.config_path}: expected a mapping")
    return SyncConfig(**data)


def save_config(config: SyncConfig, ctx: Optional[VaultContext] = None) -> None:
    """Save vault configuration atomically."""
    if ctx is None:
        ctx = VaultContext.init()

    config_text = yaml.safe_dump(config.model_dump(), default_flow_style=False, sort_keys=False)
    atomic_write_text(ctx.config_path, config_text)
