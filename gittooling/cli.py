"""
git-tooling CLI - PR differences between branches and GitHub Project listings.

Commands:
    prs       - PRs merged into branch A that are missing from branch B
    projects  - List items of a GitHub Project (v2)
    auth      - Authentication helpers
"""

from __future__ import annotations

import json
import logging
import sys
from typing import NoReturn

import click
import yaml
from dotenv import load_dotenv

# Load .env file from current directory or repo root
load_dotenv()
from .config import get_repo_root
load_dotenv(get_repo_root() / ".env")

from . import __version__, git
from .cache import CacheError, PRCache
from .config import GitToolingConfig
from .diff import STRATEGIES, BranchDiffer, BranchNotFoundError, diff_by_ancestry
from .github import GitHubAPIError, GitHubClient
from .history import BranchFetchError, iter_merged_pr_pages
from .models import PullRequestRef
from .projects import (
    FILTERS,
    ItemFilter,
    ProjectNotFoundError,
    fetch_project_data,
    get_last_project_number,
    project_items,
    render_project_items,
    reviewer_filter,
)
from .render import THEMES, Theme, get_theme


EXPECTED_ERRORS = (
    GitHubAPIError,
    BranchFetchError,
    BranchNotFoundError,
    ProjectNotFoundError,
    git.GitError,
    CacheError,
)


def fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def complete_branches(ctx: click.Context, param: click.Parameter, incomplete: str) -> list[str]:
    """Shell completion for branch arguments."""
    return [b for b in git.get_branch_names() if b.startswith(incomplete)]


def require_repository() -> tuple[str, str]:
    if not git.is_inside_git_repository():
        fail("this command must be run from inside a Git repository")
    try:
        return git.get_repo_owner_and_name()
    except git.GitError as e:
        fail(f"failed to get repository details: {e}")


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option("--theme", type=click.Choice(sorted(THEMES)), default=None, help="Color theme")
@click.pass_context
def main(ctx: click.Context, verbose: bool, theme: str | None):
    """git-tooling - Compare branch PRs and browse GitHub Projects."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    try:
        config = GitToolingConfig.load(get_repo_root())
    except yaml.YAMLError as e:
        fail(f"invalid configuration file: {e}")
    try:
        selected = get_theme(theme or config.theme)
    except KeyError:
        click.echo(f"Unknown theme '{config.theme}' in config, using default", err=True)
        selected = get_theme(None)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["theme"] = selected


def print_prs(prs: list[PullRequestRef], theme: Theme) -> None:
    for pr in prs:
        number = theme.style_accent(f"#{pr.number}")
        title = pr.title or theme.style_muted("(title not cached)")
        click.echo(f"  {number:<8} {title}")


def run_interactive(differ: BranchDiffer, branch_a: str, branch_b: str, use_local: bool, theme: Theme) -> None:
    """Page through PRs merged into A, checking each page against B."""
    found_any = False
    target = differ.target_ref(branch_b, use_local)

    for page_number, (prs, page_info) in enumerate(
        iter_merged_pr_pages(differ.client, differ.owner, differ.repo, branch_a, differ.page_size)
    ):
        if not prs and page_number == 0:
            click.echo(f"No recently merged PRs found for branch '{branch_a}'.")
            return

        missing = diff_by_ancestry(prs, target)
        if missing:
            found_any = True
            for pr in missing:
                click.echo(f"#{pr.number}: {pr.title} ({pr.url})")
        else:
            click.echo(theme.style_muted("(No differences found on this page)"))

        if not page_info.has_next_page:
            break

        answer = click.prompt(
            "\n--- Press Enter for next page, or q to quit",
            default="",
            show_default=False,
        )
        if answer.strip() == "q":
            break

    if not found_any:
        click.echo("\nFinished. No differences found between the branches for recent PRs.")


@main.command()
@click.argument("branch_a", required=False, shell_complete=complete_branches)
@click.argument("branch_b", required=False, shell_complete=complete_branches)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--local", "use_local", is_flag=True, help="Compare local branches instead of origin/<branch>")
@click.option("--limit", type=int, default=None, help="Max PRs (or commits for --strategy trailer) to scan; 0 = all")
@click.option("--page-size", type=click.IntRange(1, 100), default=None, help="Merged PRs per API page")
@click.option("--strategy", type=click.Choice(STRATEGIES), default=None, help="How to decide a PR is in branch B")
@click.option("--interactive", "-i", is_flag=True, help="Page through results one API page at a time")
@click.option("--no-cache", is_flag=True, help="Bypass the branch PR cache")
@click.pass_context
def prs(
    ctx: click.Context,
    branch_a: str | None,
    branch_b: str | None,
    as_json: bool,
    use_local: bool,
    limit: int | None,
    page_size: int | None,
    strategy: str | None,
    interactive: bool,
    no_cache: bool,
):
    """List PRs merged into BRANCH_A that are not in BRANCH_B.

    Strategies:

        ancestry  PRs merged into A whose merge commit is not reachable from B (default)
        trailer   "(#123)" trailers in A's history that are absent from B's history
        local     "(#123)" trailers in `git log B..A`, no API calls

    Examples:

        git-tooling prs dev rtm
        git-tooling prs dev rtm --strategy trailer --limit 500
        git-tooling prs dev rtm --local --json
    """
    config: GitToolingConfig = ctx.obj["config"]
    theme: Theme = ctx.obj["theme"]

    # CLI flags override config defaults
    branch_a = branch_a or config.prs.default_base
    branch_b = branch_b or config.prs.default_target
    use_local = use_local or config.prs.use_local
    limit = config.prs.limit if limit is None else limit
    page_size = page_size or config.prs.page_size
    strategy = strategy or config.prs.strategy

    owner, repo = require_repository()

    cache_factory = None
    if config.cache.enabled and not no_cache:
        cache_path = config.cache.get_path()
        cache_factory = lambda: PRCache(cache_path)

    differ = BranchDiffer(GitHubClient(), owner, repo, cache_factory=cache_factory, page_size=page_size)

    try:
        for branch in (branch_a, branch_b):
            differ.ensure_branch_exists(branch, local_only=use_local)

        if interactive:
            if not use_local:
                git.fetch_branches(branch_a, branch_b)
            click.echo(f"Comparing recent PRs merged into '{branch_a}' that are not yet in '{branch_b}'...\n")
            run_interactive(differ, branch_a, branch_b, use_local, theme)
            return

        if not use_local and not as_json:
            click.echo(f"Using remote branches: origin/{branch_a} and origin/{branch_b}\n", err=True)

        missing = differ.compare(branch_a, branch_b, strategy=strategy, limit=limit, use_local=use_local)
    except EXPECTED_ERRORS as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps([pr.to_dict() for pr in missing], indent=2))
        return

    click.echo(theme.style_header(f"PRs merged into '{branch_a}' but not in '{branch_b}'"))
    click.echo()
    if not missing:
        click.echo("No differences found.")
        return
    print_prs(missing, theme)
    click.echo(theme.style_muted(f"\n{len(missing)} PR(s)"))


@main.group()
@click.option("--id", "project_id", type=int, default=None, help="Project number (defaults to the latest project)")
@click.option("--group-by", default=None, help="Group by a custom field (e.g. 'Priority')")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def projects(ctx: click.Context, project_id: int | None, group_by: str | None, as_json: bool):
    """List and filter items from GitHub Projects."""
    config: GitToolingConfig = ctx.obj["config"]
    ctx.obj["project_id"] = project_id if project_id is not None else config.projects.project_id
    ctx.obj["group_by"] = config.projects.group_by if group_by is None else group_by
    ctx.obj["as_json"] = as_json


@projects.group("list")
def list_items():
    """List items from a project."""
    pass


def run_list_command(ctx: click.Context, item_filter: ItemFilter | None, client: GitHubClient | None = None) -> None:
    theme: Theme = ctx.obj["theme"]
    group_by: str = ctx.obj["group_by"]
    project_id: int = ctx.obj["project_id"]

    owner, repo = require_repository()
    client = client or GitHubClient()

    try:
        if not project_id:
            project_id = get_last_project_number(client, owner, repo)
        items, title = fetch_project_data(client, owner, repo, project_id, group_by)
    except EXPECTED_ERRORS as e:
        fail(str(e))

    processed = project_items(items, item_filter, group_by)

    if ctx.obj["as_json"]:
        click.echo(json.dumps([item.to_dict() for item in processed], indent=2))
        return

    render_project_items(processed, project_id, title, group_by, theme=theme)
    if not processed:
        click.echo(theme.style_muted("(no matching items)"))


@list_items.command("all")
@click.pass_context
def list_all(ctx: click.Context):
    """List all issues/cards in the project."""
    run_list_command(ctx, FILTERS["all"])


@list_items.command("no-pr")
@click.pass_context
def list_no_pr(ctx: click.Context):
    """List items with no associated PR."""
    run_list_command(ctx, FILTERS["no-pr"])


@list_items.command("with-pr")
@click.pass_context
def list_with_pr(ctx: click.Context):
    """List items that have an associated PR."""
    run_list_command(ctx, FILTERS["with-pr"])


@list_items.command("pr-not-merged")
@click.pass_context
def list_pr_not_merged(ctx: click.Context):
    """List items with an unmerged PR."""
    run_list_command(ctx, FILTERS["pr-not-merged"])


@list_items.command("reviewer")
@click.option("--name", "-n", default=None, help="GitHub username (defaults to the authenticated user)")
@click.pass_context
def list_reviewer(ctx: click.Context, name: str | None):
    """List items where you or a specified user is a requested reviewer."""
    client = GitHubClient()
    if not name:
        try:
            name = client.viewer_login()
        except GitHubAPIError as e:
            fail(f"could not determine current user: {e}")
    run_list_command(ctx, reviewer_filter(name), client=client)


@main.group()
def auth():
    """Authentication helpers for GitHub."""
    pass


@auth.command("check")
def auth_check():
    """Verify GitHub authentication."""
    try:
        login = GitHubClient().viewer_login()
    except GitHubAPIError as e:
        click.echo("❌ Failed to fetch user info.", err=True)
        fail(str(e))
    click.echo(f"✅ Authenticated as GitHub user: {login}")


if __name__ == "__main__":
    main()
