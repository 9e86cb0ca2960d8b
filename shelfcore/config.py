"""Load the reposhelf project configuration (``config.yml``)."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

__all__ = [
    "Config",
    "ConfigError",
    "ConfigNotFoundError",
    "Project",
    "load_config",
    "parse_config",
]


class ConfigError(RuntimeError):
    """Raised when the configuration file is unreadable or invalid."""


class ConfigNotFoundError(ConfigError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"configuration file not found: {path}")
        self.path = path


@dataclass(slots=True)
class Project:
    name: str
    repo: str
    branch: str
    backup_paths: List[str] = field(default_factory=list)
    backup_retention: int = 0


@dataclass(slots=True)
class Config:
    version: str
    projects: List[Project] = field(default_factory=list)

    def find_project(self, name: str) -> Optional[Project]:
        for project in self.projects:
            if project.name == name:
                return project
        return None


def _require_str(raw: Dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(f"{where}: '{key}' is required")
    if not isinstance(value, (str, int, float)):
        raise ConfigError(f"{where}: '{key}' must be a string")
    return str(value)


def _parse_project(raw: Any, index: int) -> Project:
    where = f"projects[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: expected a mapping")
    name = _require_str(raw, "name", where)
    where = f"project {name!r}"
    paths = raw.get("backup_paths") or []
    if not isinstance(paths, list) or not all(isinstance(item, str) for item in paths):
        raise ConfigError(f"{where}: 'backup_paths' must be a list of strings")
    retention = raw.get("backup_retention", 0)
    if retention is None:
        retention = 0
    if isinstance(retention, bool) or not isinstance(retention, int):
        raise ConfigError(f"{where}: 'backup_retention' must be an integer")
    if retention < 0:
        raise ConfigError(f"{where}: 'backup_retention' must not be negative")
    return Project(
        name=name,
        repo=_require_str(raw, "repo", where),
        branch=_require_str(raw, "branch", where),
        backup_paths=list(paths),
        backup_retention=retention,
    )


def parse_config(data: Any) -> Config:
    """Build a :class:`Config` from an already decoded YAML document."""

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")
    version = _require_str(data, "version", "config")
    raw_projects = data.get("projects") or []
    if not isinstance(raw_projects, list):
        raise ConfigError("config: 'projects' must be a list")
    projects = [_parse_project(item, index) for index, item in enumerate(raw_projects)]
    seen = set()
    for project in projects:
        if project.name in seen:
            raise ConfigError(f"duplicate project name {project.name!r}")
        seen.add(project.name)
    return Config(version=version, projects=projects)


def load_config(path: Path) -> Config:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigNotFoundError(path) from exc
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    return parse_config(data)
