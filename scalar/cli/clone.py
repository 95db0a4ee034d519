"""cli command for creating a new enlistment"""

import click

from scalar.clone import CloneOptions, clone_enlistment
from scalar.cli.utils.context import git_context
from scalar.cli.utils.errors import exit_on_error
from scalar.cli.utils.logging import logger


@click.command(name="clone")
@click.argument("url")
@click.argument("enlistment", required=False)
@click.option(
    "-b", "--branch", metavar="<branch>", help="Branch to check out after the clone."
)
@click.option(
    "--full-clone", is_flag=True, help="Check out the full worktree, not a sparse cone."
)
@click.option(
    "--single-branch", is_flag=True, help="Only fetch the branch that is checked out."
)
@click.option(
    "--src/--no-src",
    default=True,
    help="Put the worktree in a src/ directory below the enlistment.",
)
@click.option("--cache-server-url", metavar="<url>", help="GVFS cache server to use.")
@click.option(
    "--local-cache-path", metavar="<path>", help="Root of the shared object cache."
)
@click.option("--no-fetch-commits-and-trees", is_flag=True, hidden=True)
@click.pass_context
@exit_on_error
def clone(
    ctx,
    url,
    enlistment,
    branch,
    full_clone,
    single_branch,
    src,
    cache_server_url,
    local_cache_path,
    no_fetch_commits_and_trees,
):
    """Clone a repository as a new enlistment.

    The enlistment name defaults to the last component of the URL.
    """
    if no_fetch_commits_and_trees:
        logger.debug("--no-fetch-commits-and-trees has no effect")

    options = CloneOptions(
        url=url,
        enlistment=enlistment,
        branch=branch,
        full_clone=full_clone,
        single_branch=single_branch,
        src=src,
        cache_server_url=cache_server_url,
        local_cache_path=local_cache_path,
    )
    result = clone_enlistment(git_context(ctx), options)
    logger.debug(f"created enlistment at {result.root}")
