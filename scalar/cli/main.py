"""scalar CLI"""

import os

import click

from scalar import __version__
from scalar.cli.cache_server import cache_server
from scalar.cli.clone import clone
from scalar.cli.enlistment import (
    delete,
    diagnose,
    list_enlistments,
    reconfigure,
    register,
    run,
    unregister,
)
from scalar.cli.utils.errors import exit_on_error
from scalar.cli.version import help_, version
from scalar.config import get_retry_policy, is_unattended
from scalar.exceptions import ScalarError, UsageError
from scalar.git.context import GitContext

from .debug import add_debug_option


class ScalarGroup(click.Group):
    """Command group that also accepts the historical command names."""

    aliases = {"config": "reconfigure"}

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self.aliases.get(cmd_name, cmd_name))


def setup_unattended(context: GitContext) -> None:
    """Never prompt for credentials when running unattended."""
    os.environ.setdefault("GIT_ASKPASS", "")
    os.environ.setdefault("GIT_TERMINAL_PROMPT", "false")
    context.push_config_parameter("credential.interactive=false")


@click.group(cls=ScalarGroup)
@click.version_option(__version__, prog_name="scalar")
@click.option(
    "-C",
    "directories",
    metavar="<directory>",
    multiple=True,
    help="Run as if scalar was started in <directory>.",
)
@click.option(
    "-c",
    "parameters",
    metavar="<key>=<value>",
    multiple=True,
    help="Pass a configuration parameter to every git command.",
)
@click.pass_context
@exit_on_error
def cli(ctx, directories, parameters):
    """
    Manage large git repositories (enlistments).
    """
    ctx.ensure_object(dict)

    for directory in directories:
        try:
            os.chdir(directory)
        except OSError as e:
            raise ScalarError(f"could not change to '{directory}': {e.strerror or e}")

    context = GitContext(retry_policy=get_retry_policy())
    if is_unattended():
        setup_unattended(context)

    for parameter in parameters:
        if "=" not in parameter:
            raise UsageError(f"-c expects <key>=<value>, got '{parameter}'")
        context.push_config_parameter(parameter)

    ctx.obj["git"] = context


# Add subcommands to the CLI
cli.add_command(add_debug_option(clone))
cli.add_command(add_debug_option(list_enlistments))
cli.add_command(add_debug_option(register))
cli.add_command(add_debug_option(unregister))
cli.add_command(add_debug_option(reconfigure))
cli.add_command(add_debug_option(run))
cli.add_command(add_debug_option(delete))
cli.add_command(add_debug_option(diagnose))
cli.add_command(add_debug_option(cache_server))
cli.add_command(version)
cli.add_command(help_)

add_debug_option(cli)

if __name__ == "__main__":
    cli(obj={})
