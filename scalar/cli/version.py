"""cli commands for version and help output"""

import click

from scalar import __version__
from scalar.cli.utils.context import git_context
from scalar.cli.utils.errors import exit_on_error
from scalar.exceptions import ScalarError


@click.command(name="version")
@click.option("-v", "--verbose", is_flag=True, help="Include the git version.")
@click.option(
    "--build-options", is_flag=True, help="Include the build options of git."
)
@click.pass_context
@exit_on_error
def version(ctx, verbose, build_options):
    """Print the scalar version."""
    click.echo(f"scalar version {__version__}", err=True)

    if not (verbose or build_options):
        return

    args = ["version", "--build-options"] if build_options else ["version"]
    result = git_context(ctx).capture(*args)
    if not result.ok:
        raise ScalarError("could not determine the git version")
    click.echo(result.stdout, err=True)


@click.command(name="help")
@click.pass_context
@exit_on_error
def help_(ctx):
    """Show the scalar manual page."""
    git_context(ctx).run_checked("help", "scalar")
