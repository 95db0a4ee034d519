"""cli commands related to the GVFS cache server"""

from typing import Optional

import click
from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from scalar.cli.utils.context import enlistment_context
from scalar.cli.utils.errors import exit_on_error
from scalar.exceptions import ScalarError, UsageError
from scalar.git.config import GitConfig
from scalar.git.context import GitContext
from scalar.gvfs.negotiator import CacheServerNegotiator

CACHE_SERVER_KEY = "gvfs.cache-server"
DEFAULT_REMOTE = "(default)"


def default_remote_name(context: GitContext) -> str:
    """The remote the current branch tracks, or "origin"."""
    try:
        repo = Repo(context.cwd)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return "origin"
    try:
        tracking = repo.active_branch.tracking_branch()
    except TypeError:
        # detached HEAD
        tracking = None
    finally:
        repo.close()
    return tracking.remote_name if tracking is not None else "origin"


def remote_url(context: GitContext, name: Optional[str] = None) -> str:
    """
    Get the URL of a remote of the enlistment.

    Raises:
        ScalarError: if the remote does not exist or has no URL
    """
    if name is None:
        name = default_remote_name(context)

    urls = GitConfig(context).get_all(f"remote.{name}.url")
    if not urls:
        raise ScalarError(f"no URL for remote '{name}'")
    return urls[0]


class CacheServerCommand(click.Command):
    """
    A bare ``--list`` never takes the next word as its remote; a remote is
    only given as ``--list=<remote>``.
    """

    def parse_args(self, ctx, args):
        rewritten = []
        for i, arg in enumerate(args):
            if arg == "--":
                rewritten.extend(args[i:])
                break
            rewritten.append(f"--list={DEFAULT_REMOTE}" if arg == "--list" else arg)
        return super().parse_args(ctx, rewritten)


@click.command(name="cache-server", cls=CacheServerCommand)
@click.option("--get", "get_", is_flag=True, help="Get the configured cache server URL.")
@click.option("--set", "set_", metavar="<url>", help="Configure the cache server URL.")
@click.option(
    "--list",
    "list_",
    metavar="[=<remote>]",
    default=None,
    help="List the cache servers a remote (or a URL) advertises.",
)
@click.argument("enlistment", required=False)
@click.pass_context
@exit_on_error
def cache_server(ctx, get_, set_, list_, enlistment):
    """Get, set or list the GVFS cache server of an enlistment."""
    requested = (("--get", get_), ("--set", set_), ("--list", list_))
    chosen = [flag for flag, value in requested if value not in (None, False)]
    if len(chosen) > 1:
        raise UsageError(f"{' and '.join(chosen)} are mutually exclusive")

    _, context = enlistment_context(ctx, enlistment)
    config = GitConfig(context)

    if list_ is not None:
        if "/" in list_:
            url = list_
        else:
            name = default_remote_name(context) if list_ == DEFAULT_REMOTE else list_
            url = remote_url(context, name)
            click.echo(f"Remote '{name}' ({url})")

        result = CacheServerNegotiator(context).probe(url, list_servers=True)
        for server in result.servers:
            click.echo(f"#{server.index}: {server.url}")
        return

    if set_ is not None:
        if not set_:
            raise UsageError("--set requires a URL")
        config.set(CACHE_SERVER_KEY, set_)
        return

    current = config.get(CACHE_SERVER_KEY)
    click.echo(f"Using cache server: {current or '(undefined)'}")
