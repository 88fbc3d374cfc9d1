from __future__ import annotations

from pathlib import Path

from gittooling.config import GitToolingConfig


def test_config_defaults_without_file(tmp_path):
    config = GitToolingConfig.load(tmp_path)

    assert config.prs.default_base == "dev"
    assert config.prs.default_target == "rtm"
    assert config.prs.strategy == "ancestry"
    assert config.prs.limit == 0
    assert config.projects.project_id == 0
    assert config.cache.enabled is True
    assert config.cache.get_path() is None
    assert config.theme == "nord"


def test_config_load_sections(tmp_path):
    (tmp_path / "git-tooling.yml").write_text(
        """
prs:
  default_base: main
  default_target: release
  strategy: trailer
  limit: 500
  use_local: true
projects:
  group_by: Status
  project_id: 7
cache:
  enabled: false
  path: ~/tmp/prs.json
theme: gruvbox
        """.strip()
    )

    config = GitToolingConfig.load(tmp_path)

    assert config.prs.default_base == "main"
    assert config.prs.default_target == "release"
    assert config.prs.strategy == "trailer"
    assert config.prs.limit == 500
    assert config.prs.use_local is True
    assert config.prs.page_size == 20
    assert config.projects.group_by == "Status"
    assert config.projects.project_id == 7
    assert config.cache.enabled is False
    assert config.cache.get_path() == Path("~/tmp/prs.json").expanduser()
    assert config.theme == "gruvbox"


def test_config_empty_file(tmp_path):
    (tmp_path / "git-tooling.yml").write_text("")

    config = GitToolingConfig.load(tmp_path)

    assert config.prs.default_base == "dev"
    assert config.projects.group_by == ""


def test_config_null_sections(tmp_path):
    (tmp_path / "git-tooling.yml").write_text("prs:\nprojects:\n")

    config = GitToolingConfig.load(tmp_path)

    assert config.prs.default_target == "rtm"
    assert config.projects.project_id == 0
