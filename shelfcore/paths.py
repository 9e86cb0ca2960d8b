from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

__all__ = [
    "CONFIG_ENV",
    "HOME_ENV",
    "get_config_dir",
    "get_default_config_path",
    "get_logs_dir",
    "get_project_backup_dir",
    "resolve_store_root",
    "safe_project_dir_name",
]

CONFIG_ENV = "REPOSHELF_CONFIG"
HOME_ENV = "REPOSHELF_HOME"
_APP_DIR = "reposhelf"


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def get_config_dir() -> Path:
    """Return ``~/.config/reposhelf`` (honouring ``XDG_CONFIG_HOME``)."""

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return _expand_path(xdg) / _APP_DIR
    return Path.home() / ".config" / _APP_DIR


def get_default_config_path() -> Path:
    """Resolve the configuration file: env override first, then the user config dir."""

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return _expand_path(env_path)
    return get_config_dir() / "config.yml"


def resolve_store_root(override: Optional[os.PathLike[str] | str] = None) -> Path:
    """Return the directory holding every project's bundles."""

    if override:
        return _expand_path(str(override))
    env_home = os.environ.get(HOME_ENV)
    if env_home:
        return _expand_path(env_home)
    return get_config_dir() / "backups"


def safe_project_dir_name(name: str) -> str:
    """Reject project names that would escape the store root."""

    text = name.strip()
    if not text or text in {".", ".."} or "/" in text or "\\" in text or "\x00" in text:
        raise ValueError(f"invalid project name for a backup directory: {name!r}")
    return text


def get_project_backup_dir(store_root: Path, name: str) -> Path:
    return Path(store_root) / safe_project_dir_name(name)


def get_logs_dir(store_root: Path) -> Path:
    return Path(store_root) / ".logs"
