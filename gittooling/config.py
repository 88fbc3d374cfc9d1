"""
Configuration management for git-tooling.

Loads an optional git-tooling.yml from the repository root:
- prs: default branches, comparison strategy, scan limits
- projects: default project number and group-by field
- cache: enable/disable and file location
- theme: color palette for terminal output
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "git-tooling.yml"


@dataclass
class PrsConfig:
    """Defaults for the `prs` command."""
    default_base: str = "dev"
    default_target: str = "rtm"
    strategy: str = "ancestry"  # ancestry, trailer, local
    limit: int = 0  # 0 = scan everything
    page_size: int = 20
    use_local: bool = False


@dataclass
class ProjectsConfig:
    """Defaults for the `projects` commands."""
    group_by: str = ""
    project_id: int = 0  # 0 = latest project


@dataclass
class CacheConfig:
    """Branch PR cache settings."""
    enabled: bool = True
    path: str | None = None  # Defaults to the user cache directory

    def get_path(self) -> Path | None:
        if self.path:
            return Path(self.path).expanduser()
        return None


@dataclass
class GitToolingConfig:
    """Complete git-tooling configuration."""
    prs: PrsConfig = field(default_factory=PrsConfig)
    projects: ProjectsConfig = field(default_factory=ProjectsConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    theme: str = "nord"

    @classmethod
    def load(cls, repo_root: Path) -> "GitToolingConfig":
        """Load configuration from repo root directory."""
        config_path = repo_root / CONFIG_FILENAME
        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return cls._parse(data)

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "GitToolingConfig":
        prs_data = data.get("prs") or {}
        projects_data = data.get("projects") or {}
        cache_data = data.get("cache") or {}

        return cls(
            prs=PrsConfig(
                default_base=prs_data.get("default_base", "dev"),
                default_target=prs_data.get("default_target", "rtm"),
                strategy=prs_data.get("strategy", "ancestry"),
                limit=int(prs_data.get("limit", 0)),
                page_size=int(prs_data.get("page_size", 20)),
                use_local=bool(prs_data.get("use_local", False)),
            ),
            projects=ProjectsConfig(
                group_by=projects_data.get("group_by") or "",
                project_id=int(projects_data.get("project_id") or 0),
            ),
            cache=CacheConfig(
                enabled=bool(cache_data.get("enabled", True)),
                path=cache_data.get("path"),
            ),
            theme=data.get("theme", "nord"),
        )


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()
