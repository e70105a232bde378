"""Workspace discovery and user configuration for the ecosystem manager."""

from __future__ import annotations

import logging
import os
import subprocess
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models import DEFAULT_ROOT_DISPLAY_NAME, ROOT_SENTINEL, RepositoryRef

logger = logging.getLogger(__name__)

# Monitored repositories when the user config does not list any
DEFAULT_REPOSITORIES = [
    ROOT_SENTINEL,
    "texlive-ja-textlint",
    "latex-environment",
    "aldc",
    "sotsuron-template",
    "latex-template",
    "sotsuron-report-template",
    "wr-template",
    "ise-report-template",
    "latex-release-action",
    "thesis-management-tools",
    "thesis-student-registry",
    "ai-academic-paper-reviewer",
    "ai-reviewer",
]

# Files that mark the root of the ecosystem workspace
ECOSYSTEM_MARKERS = ("ecosystem-manager.sh", "ECOSYSTEM.md")

WORKSPACE_ENV = "ECOSYSTEM_WORKSPACE"
CONFIG_ENV = "ECOSYSTEM_MANAGER_CONFIG"

GIT_TIMEOUT_SECONDS = 5

EXAMPLE_CONFIG = """\
# Ecosystem manager configuration.
# Copy to config.toml in the same directory and adjust.

# Directory holding the monitored repositories
# workspace_path = "~/thesis-environment"

# Repositories to monitor; "." is the workspace repository itself
# repositories = [".", "latex-environment", "sotsuron-template"]

# Label shown for the "." repository
# root_display_name = "latex-ecosystem"

# max_concurrency = 8
# per_unit_timeout = 30.0
# include_remote = true

# Seconds to reuse GitHub summaries within one run (unset = no cache)
# cache_ttl = 300
"""


def run_git(repo_path: Path, args: list[str]) -> str | None:
    """Run a git command in a repo directory, returning stdout or None on error."""
    try:
        result = subprocess.run(
            ["git", "-C", str(repo_path), *args],
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (subprocess.TimeoutExpired, OSError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


class ConfigError(Exception):
    """Invalid or unreadable configuration."""


class UserConfig(BaseModel):
    """Settings read from the user's config.toml. All keys are optional."""

    model_config = ConfigDict(extra="forbid")

    workspace_path: str | None = None
    repositories: list[str] | None = None
    root_display_name: str = DEFAULT_ROOT_DISPLAY_NAME
    max_concurrency: int = Field(default=8, gt=0)
    per_unit_timeout: float = Field(default=30.0, gt=0)
    include_remote: bool = True
    cache_ttl: float | None = Field(default=None, gt=0)


def get_config_path() -> Path:
    """Location of the user config file.

    Priority: ECOSYSTEM_MANAGER_CONFIG env var > $XDG_CONFIG_HOME > ~/.config
    """
    explicit = os.getenv(CONFIG_ENV)
    if explicit:
        return Path(explicit).expanduser()
    xdg = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "ecosystem-manager" / "config.toml"


def load_user_config(path: Path | None = None) -> UserConfig:
    """Read and validate the user config; a missing file means defaults."""
    path = path or get_config_path()
    if not path.is_file():
        return UserConfig()
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    try:
        return UserConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def find_ecosystem_root(start: Path) -> Path | None:
    """Walk up from start until a directory holding an ecosystem marker is found."""
    for directory in [start, *start.parents]:
        if any((directory / marker).exists() for marker in ECOSYSTEM_MARKERS):
            return directory
    return None


def get_base_path(override: str | None = None, user_config: UserConfig | None = None) -> Path:
    """Get the workspace directory the repositories live under.

    Priority: override > ECOSYSTEM_WORKSPACE env var > config workspace_path
    > nearest ecosystem root above the cwd > cwd
    """
    if override:
        return _checked_dir(Path(override).expanduser())

    env_root = os.getenv(WORKSPACE_ENV)
    if env_root:
        return _checked_dir(Path(env_root).expanduser())

    user_config = user_config or UserConfig()
    if user_config.workspace_path:
        configured = Path(user_config.workspace_path).expanduser()
        if configured.is_dir():
            return configured.resolve()
        logger.warning(
            "Configured workspace_path does not exist: %s; falling back to directory detection",
            configured,
        )

    cwd = Path.cwd()
    return find_ecosystem_root(cwd) or cwd


def _checked_dir(path: Path) -> Path:
    if not path.is_dir():
        raise ConfigError(f"Workspace path is not a directory: {path}")
    return path.resolve()


def get_repositories(user_config: UserConfig | None = None) -> list[str]:
    """Configured repository names, or the defaults."""
    user_config = user_config or UserConfig()
    if user_config.repositories:
        return list(user_config.repositories)
    return list(DEFAULT_REPOSITORIES)


def build_refs(base_path: Path, user_config: UserConfig | None = None) -> list[RepositoryRef]:
    """Resolve every monitored repository name against base_path."""
    user_config = user_config or UserConfig()
    names = get_repositories(user_config)
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate repository names: {', '.join(duplicates)}")
    return [
        RepositoryRef.from_name(name, base_path, user_config.root_display_name) for name in names
    ]


def write_example_config(config_path: Path | None = None) -> Path:
    """Write config.example.toml next to the config file. Never overwrites."""
    config_path = config_path or get_config_path()
    example_path = config_path.with_name("config.example.toml")
    if example_path.exists():
        raise ConfigError(f"{example_path} already exists")
    try:
        example_path.parent.mkdir(parents=True, exist_ok=True)
        example_path.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Could not write {example_path}: {e}") from e
    return example_path
