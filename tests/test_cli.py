from __future__ import annotations

import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

import gittooling
from gittooling.cli import main
from gittooling.diff import BranchNotFoundError
from gittooling.github import GitHubAuthError
from gittooling.models import PageInfo, ProjectItem, PullRequestRef


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """Run inside an empty directory that looks like a GitHub checkout."""
    monkeypatch.chdir(tmp_path)
    with patch("gittooling.git.is_inside_git_repository", return_value=True), \
         patch("gittooling.git.get_repo_owner_and_name", return_value=("org", "repo")), \
         patch("gittooling.cli.GitHubClient") as mock_client_cls:
        yield mock_client_cls


@pytest.fixture
def differ():
    with patch("gittooling.cli.BranchDiffer") as mock_differ_cls:
        yield mock_differ_cls


def test_cli_help_lists_commands():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "prs" in result.output
    assert "projects" in result.output
    assert "auth" in result.output


def test_prs_outside_git_repository(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()
    with patch("gittooling.git.is_inside_git_repository", return_value=False):
        result = runner.invoke(main, ["prs", "dev", "rtm"])
    assert result.exit_code == 1
    assert "inside a Git repository" in result.output


def test_prs_json_output(repo, differ):
    differ.return_value.compare.return_value = [
        PullRequestRef(number=102, title="Add search", url="https://github.com/org/repo/pull/102", merge_commit="m102"),
    ]
    runner = CliRunner()

    result = runner.invoke(main, ["prs", "dev", "rtm", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data == [{
        "number": 102,
        "title": "Add search",
        "url": "https://github.com/org/repo/pull/102",
        "merge_commit": "m102",
    }]
    differ.return_value.compare.assert_called_once_with("dev", "rtm", strategy="ancestry", limit=0, use_local=False)


def test_prs_text_output(repo, differ):
    differ.return_value.compare.return_value = [PullRequestRef(number=7, title="Fix login")]
    runner = CliRunner()

    result = runner.invoke(main, ["prs", "dev", "rtm", "--local"])

    assert result.exit_code == 0
    assert "PRs merged into 'dev' but not in 'rtm'" in result.output
    assert "#7" in result.output
    assert "Fix login" in result.output


def test_prs_no_differences(repo, differ):
    differ.return_value.compare.return_value = []
    runner = CliRunner()

    result = runner.invoke(main, ["prs", "dev", "rtm", "--local"])

    assert result.exit_code == 0
    assert "No differences found." in result.output


def test_prs_defaults_come_from_config(repo, differ, tmp_path):
    (tmp_path / "git-tooling.yml").write_text(
        "prs:\n  default_base: main\n  default_target: release\n  strategy: trailer\n  limit: 50\n"
    )
    differ.return_value.compare.return_value = []
    runner = CliRunner()

    result = runner.invoke(main, ["prs", "--json"])

    assert result.exit_code == 0
    differ.return_value.compare.assert_called_once_with("main", "release", strategy="trailer", limit=50, use_local=False)


def test_prs_no_cache_disables_cache(repo, differ):
    differ.return_value.compare.return_value = []
    runner = CliRunner()

    runner.invoke(main, ["prs", "dev", "rtm", "--json", "--no-cache"])

    assert differ.call_args.kwargs["cache_factory"] is None


def test_prs_missing_branch(repo, differ):
    differ.return_value.ensure_branch_exists.side_effect = BranchNotFoundError("feature-z")
    runner = CliRunner()

    result = runner.invoke(main, ["prs", "feature-z", "rtm"])

    assert result.exit_code == 1
    assert "branch 'feature-z' does not exist" in result.output
    differ.return_value.compare.assert_not_called()


def test_prs_rejects_unknown_strategy(repo, differ):
    runner = CliRunner()
    result = runner.invoke(main, ["prs", "dev", "rtm", "--strategy", "bogus"])
    assert result.exit_code == 2


def test_prs_interactive_pages_until_quit(repo, differ):
    differ.return_value.client = Mock()
    differ.return_value.owner = "org"
    differ.return_value.repo = "repo"
    differ.return_value.page_size = 2
    differ.return_value.target_ref.return_value = "rtm"
    pages = [
        ([PullRequestRef(number=2, title="Two", url="u2", merge_commit="m2")], PageInfo(True, "c1")),
        ([PullRequestRef(number=1, title="One", url="u1", merge_commit="m1")], PageInfo(False, None)),
    ]
    runner = CliRunner()

    with patch("gittooling.cli.iter_merged_pr_pages", return_value=iter(pages)), \
         patch("gittooling.git.is_ancestor", return_value=False):
        result = runner.invoke(main, ["prs", "dev", "rtm", "--local", "--interactive"], input="q\n")

    assert result.exit_code == 0
    assert "#2: Two (u2)" in result.output
    assert "#1: One" not in result.output


def board_items():
    return [
        ProjectItem.from_node({"id": "1", "content": {"__typename": "DraftIssue", "title": "An idea"}}),
        ProjectItem.from_node({
            "id": "2",
            "content": {"__typename": "PullRequest", "number": 12, "title": "Add cache", "mergedAt": None,
                        "reviewRequests": {"nodes": [{"requestedReviewer": {"login": "octocat"}}]}},
        }),
    ]


def test_projects_list_all_uses_latest_project(repo):
    runner = CliRunner()
    with patch("gittooling.cli.get_last_project_number", return_value=42) as mock_last, \
         patch("gittooling.cli.fetch_project_data", return_value=(board_items(), "Roadmap")) as mock_fetch:
        result = runner.invoke(main, ["projects", "list", "all"])

    assert result.exit_code == 0
    mock_last.assert_called_once()
    assert mock_fetch.call_args.args[1:] == ("org", "repo", 42, "")
    lines = result.output.splitlines()
    assert lines[0] == "Project #42 - Roadmap"
    assert lines[3:] == ["PR #12: Add cache", "Draft: An idea"]


def test_projects_list_json_with_explicit_id(repo):
    runner = CliRunner()
    with patch("gittooling.cli.get_last_project_number") as mock_last, \
         patch("gittooling.cli.fetch_project_data", return_value=(board_items(), "Roadmap")):
        result = runner.invoke(main, ["projects", "--id", "3", "--json", "list", "no-pr"])

    assert result.exit_code == 0
    mock_last.assert_not_called()
    data = json.loads(result.output)
    assert [item["title"] for item in data] == ["An idea"]


def test_projects_reviewer_defaults_to_viewer(repo):
    repo.return_value.viewer_login.return_value = "octocat"
    runner = CliRunner()
    with patch("gittooling.cli.fetch_project_data", return_value=(board_items(), "Roadmap")):
        result = runner.invoke(main, ["projects", "--id", "3", "list", "reviewer"])

    assert result.exit_code == 0
    assert "PR #12: Add cache" in result.output
    assert "An idea" not in result.output


def test_projects_reviewer_named_user(repo):
    runner = CliRunner()
    with patch("gittooling.cli.fetch_project_data", return_value=(board_items(), "Roadmap")):
        result = runner.invoke(main, ["projects", "--id", "3", "list", "reviewer", "-n", "someone-else"])

    assert result.exit_code == 0
    assert "PR #12" not in result.output
    repo.return_value.viewer_login.assert_not_called()


def test_auth_check_success():
    runner = CliRunner()
    with patch("gittooling.cli.GitHubClient") as mock_client_cls:
        mock_client_cls.return_value.viewer_login.return_value = "octocat"
        result = runner.invoke(main, ["auth", "check"])
    assert result.exit_code == 0
    assert "Authenticated as GitHub user: octocat" in result.output


def test_auth_check_failure():
    runner = CliRunner()
    with patch("gittooling.cli.GitHubClient") as mock_client_cls:
        mock_client_cls.return_value.viewer_login.side_effect = GitHubAuthError()
        result = runner.invoke(main, ["auth", "check"])
    assert result.exit_code == 1


def test_malformed_config_is_reported(repo, differ, tmp_path):
    (tmp_path / "git-tooling.yml").write_text("prs: [unclosed\n")
    runner = CliRunner()

    result = runner.invoke(main, ["prs", "dev", "rtm"])

    assert result.exit_code == 1
    assert "Error: invalid configuration file" in result.output
    differ.assert_not_called()


def test_version_reports_package_metadata():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])

    assert result.exit_code == 0
    assert gittooling.__version__ in result.output
    assert not hasattr(gittooling, "__author__")
