"""
Configuration and path management.

Provides site root detection and standard paths for a projection site.
Uses .projection/ directory for local data (settings, backups).

Resolution order for site root:
  1. PROJECTION_ROOT environment variable (highest priority)
  2. Walk up from cwd looking for a projects file or .projection/ directory
  3. Global config file (~/.config/projection/config.yaml) site_root key
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

# Searched in order when no explicit projects file is given
PROJECTS_FILE_NAMES = ("projects.yaml", "projects.yml", "projects.json")

DATA_DIR_NAME = ".projection"
SCREENSHOTS_DIR_NAME = "screenshots"


@dataclass(frozen=True)
class SitePaths:
    """Standard paths for a projection site."""

    root: Path
    data_dir: Path
    projects_file: Path
    screenshots: Path
    backups: Path
    config_file: Path


def get_global_config_path() -> Path:
    """Return the path to the global projection config file.

    Respects XDG_CONFIG_HOME if set, otherwise defaults to
    ~/.config/projection/config.yaml.
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        base = Path(xdg_config_home)
    else:
        base = Path.home() / ".config"
    return base / "projection" / "config.yaml"


def _read_mapping(path: Path) -> dict[str, Any]:
    """Parse a YAML file that should hold a mapping; anything else reads as {}."""
    if not path.is_file():
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    return loaded if isinstance(loaded, dict) else {}


def load_global_config() -> dict[str, Any]:
    """Load ~/.config/projection/config.yaml, ignoring a broken file."""
    try:
        return _read_mapping(get_global_config_path())
    except (OSError, yaml.YAMLError):
        return {}


def _is_site_dir(path: Path) -> bool:
    if (path / DATA_DIR_NAME).is_dir():
        return True
    return any((path / name).is_file() for name in PROJECTS_FILE_NAMES)


def _walk_up_for_site(start_path: Path) -> Path | None:
    """Walk up directory tree looking for a projection site.

    Args:
        start_path: Starting path for search.

    Returns:
        Directory holding a projects file or .projection/, or None if not found.
    """
    current = start_path.resolve()
    while True:
        if _is_site_dir(current):
            return current
        if current == current.parent:
            return None
        current = current.parent


def find_site_root(start_path: Path | None = None) -> Path:
    """Find the site root using 3-tier resolution.

    Args:
        start_path: Starting path for the directory walk (defaults to cwd)

    Returns:
        Path to site root

    Raises:
        FileNotFoundError: If no site is found by any method
    """
    env_root = os.environ.get("PROJECTION_ROOT")
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if env_path.is_dir():
            return env_path
        raise FileNotFoundError(f"PROJECTION_ROOT={env_root} is not a directory.")

    if start_path is None:
        start_path = Path.cwd()
    result = _walk_up_for_site(Path(start_path))
    if result is not None:
        return result

    global_config = load_global_config()
    site_root_str = global_config.get("site_root")
    if site_root_str:
        global_path = Path(site_root_str).expanduser().resolve()
        if global_path.is_dir():
            return global_path
        raise FileNotFoundError(
            f"Global config site_root={site_root_str} is not a directory."
        )

    raise FileNotFoundError(
        f"No projects file found starting from {start_path}. "
        f"Expected one of: {', '.join(PROJECTS_FILE_NAMES)}. "
        f"Run 'projection init' to create one, set PROJECTION_ROOT, or configure "
        f"site_root in {get_global_config_path()}."
    )


@lru_cache(maxsize=1)
def get_site_root() -> Path:
    """Get the cached site root path."""
    return find_site_root()


def find_projects_file(root: Path, provided: Path | str | None = None) -> Path | None:
    """Locate the projects file for a site.

    An explicit path is resolved relative to *root*; otherwise the default
    names are tried in order.

    Returns:
        Path to an existing projects file, or None.
    """
    root = Path(root)
    if provided:
        candidate = Path(provided).expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        return candidate if candidate.is_file() else None

    for name in PROJECTS_FILE_NAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def get_paths(site_root: Path | None = None, projects_file: Path | str | None = None) -> SitePaths:
    """Get all standard paths for the site.

    When no projects file exists yet, the first default name is used so that
    ``init`` knows where to create it.

    Args:
        site_root: Site root path (uses cached default if not provided)
        projects_file: Explicit projects file (absolute or relative to root)
    """
    if site_root is None:
        site_root = get_site_root()

    site_root = Path(site_root)
    data_dir = site_root / DATA_DIR_NAME

    found = find_projects_file(site_root, projects_file)
    if found is None:
        if projects_file:
            found = Path(projects_file) if Path(projects_file).is_absolute() else site_root / projects_file
        else:
            found = site_root / PROJECTS_FILE_NAMES[0]

    return SitePaths(
        root=site_root,
        data_dir=data_dir,
        projects_file=found,
        screenshots=site_root / SCREENSHOTS_DIR_NAME,
        backups=data_dir / "backups",
        config_file=data_dir / "config.yaml",
    )


def load_settings(paths: SitePaths) -> dict[str, Any]:
    """Load .projection/config.yaml ({} when missing or empty).

    Raises:
        yaml.YAMLError: If the settings file is malformed
    """
    return _read_mapping(paths.config_file)


def get_setting(settings: dict[str, Any], key: str, default: Any = None) -> Any:
    """Look up a dotted key (e.g. ``backup.keep_days``) in a settings dict."""
    current: Any = settings
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current
