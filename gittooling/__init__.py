"""
git-tooling - Find pull requests missing between branches and browse GitHub Projects.

A CLI tool that:
1. Lists PRs merged into one branch that have not reached another
2. Caches branch PR lists by branch head commit
3. Lists GitHub Project (v2) items filtered by PR linkage or reviewer
4. Groups project items by a custom field

Usage:
    git-tooling prs dev rtm                      # PRs in dev missing from rtm
    git-tooling prs dev rtm --strategy trailer   # Compare commit trailers instead
    git-tooling projects list all                # All items of the latest project
    git-tooling projects list no-pr --group-by Status
    git-tooling auth check                       # Verify GitHub authentication
"""

__version__ = "0.1.0"
