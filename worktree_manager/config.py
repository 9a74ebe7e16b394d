"""Configuration handling for worktree-manager"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from worktree_manager.constants import SUPPORTED_IDES
from worktree_manager.exceptions import ConfigError, NotInitializedError
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "WTM_CONFIG"
DEFAULT_CONFIG_PATH = "~/.wtm/config.yaml"
DEFAULT_STATUS_FILE = "~/.wtm/status.yaml"
DEFAULT_REPOSITORIES_DIR = "~/Code/src"
DEFAULT_WORKSPACES_DIR = "~/Code/workspaces"

# Keys persisted in the config file; the rest are per-invocation flags
PERSISTED_FIELDS = (
    "repositories_dir",
    "workspaces_dir",
    "status_file",
    "lock_timeout",
    "require_clean",
    "default_ide",
    "github_token",
)


def expand_path(path: str) -> str:
    """Expand ``~`` and make a path absolute."""
    return os.path.abspath(os.path.expanduser(path))


@dataclass
class Config:
    """Configuration for worktree-manager with validation."""

    # Where clones and worktrees live: <repositories_dir>/<repo-url>/<remote>/<branch>
    repositories_dir: str = DEFAULT_REPOSITORIES_DIR
    # Where per-branch .code-workspace files are written
    workspaces_dir: str = DEFAULT_WORKSPACES_DIR
    status_file: str = DEFAULT_STATUS_FILE

    # Seconds to wait for the status file lock before failing with Busy
    lock_timeout: float = 1.0
    require_clean: bool = True
    default_ide: Optional[str] = None

    # GitHub integration
    github_token: Optional[str] = None

    # Execution modes
    force: bool = False
    verbose: bool = False
    quiet: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_paths()
        self._validate_lock_timeout()
        self._validate_default_ide()

    def _validate_paths(self):
        """Validate paths are not empty and expand them."""
        if not self.repositories_dir or not str(self.repositories_dir).strip():
            raise ValueError("repositories_dir cannot be empty")
        if not self.workspaces_dir or not str(self.workspaces_dir).strip():
            raise ValueError("workspaces_dir cannot be empty")
        if not self.status_file or not str(self.status_file).strip():
            raise ValueError("status_file cannot be empty")
        self.repositories_dir = expand_path(str(self.repositories_dir).strip())
        self.workspaces_dir = expand_path(str(self.workspaces_dir).strip())
        self.status_file = expand_path(str(self.status_file).strip())

    def _validate_lock_timeout(self):
        """Validate lock_timeout is not negative."""
        if self.lock_timeout < 0:
            raise ValueError(f"lock_timeout cannot be negative, got {self.lock_timeout}")

    def _validate_default_ide(self):
        """Validate default_ide is a supported IDE."""
        if self.default_ide is not None and self.default_ide not in SUPPORTED_IDES:
            raise ValueError(f"default_ide must be one of {SUPPORTED_IDES}, got '{self.default_ide}'")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "repositories_dir": self.repositories_dir,
            "workspaces_dir": self.workspaces_dir,
            "status_file": self.status_file,
            "lock_timeout": self.lock_timeout,
            "require_clean": self.require_clean,
            "default_ide": self.default_ide,
            "github_token": self.github_token,
            "force": self.force,
            "verbose": self.verbose,
            "quiet": self.quiet,
            "debug": self.debug,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = set(cls().to_dict().keys())
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)


def default_config_path() -> str:
    """Return the config file path, honouring the WTM_CONFIG environment variable."""
    return expand_path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_config(path: Optional[str] = None) -> Config:
    """Load the config file.

    Args:
        path: Config file path (defaults to ``default_config_path()``)

    Returns:
        Config built from the file contents

    Raises:
        NotInitializedError: If the config file does not exist
        ConfigError: If the file is not valid YAML or has invalid values
    """
    path = expand_path(path) if path else default_config_path()
    if not os.path.exists(path):
        raise NotInitializedError(path)

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(path, str(e)) from e

    if not isinstance(data, dict):
        raise ConfigError(path, "expected a mapping at the top level")

    try:
        config = Config.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ConfigError(path, str(e)) from e

    logger.debug(f"Loaded config from {path}")
    return config


def save_config(config: Config, path: Optional[str] = None) -> str:
    """Write the persisted config fields to a YAML file.

    Returns:
        The path written to
    """
    path = expand_path(path) if path else default_config_path()
    Path(path).parent.mkdir(parents=True, exist_ok=True)

    data = {k: v for k, v in config.to_dict().items() if k in PERSISTED_FIELDS and v is not None}
    with open(path, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved config to {path}")
    return path
