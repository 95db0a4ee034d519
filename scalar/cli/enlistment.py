"""cli commands for registering, reconfiguring and removing enlistments"""

import sys
from pathlib import Path

import click

from scalar.cli.utils.context import enlistment_context, git_context
from scalar.cli.utils.errors import exit_on_error
from scalar.cli.utils.logging import logger
from scalar.exceptions import UsageError
from scalar.lifecycle import (
    delete_enlistment,
    has_worktree,
    register_dir,
    unregister_dir,
    unregister_missing,
)
from scalar.maintenance import TASKS, run_task
from scalar.recommended import apply_recommended_config
from scalar.registry import EnlistmentRegistry

DIAGNOSTICS_DIR = ".scalarDiagnostics"


@click.command(name="list")
@click.pass_context
@exit_on_error
def list_enlistments(ctx):
    """List the registered enlistments."""
    for path in EnlistmentRegistry(git_context(ctx)).list_all():
        click.echo(path)


@click.command(name="register")
@click.argument("enlistment", required=False)
@click.pass_context
@exit_on_error
def register(ctx, enlistment):
    """Register an existing repository as an enlistment."""
    _, context = enlistment_context(ctx, enlistment)
    register_dir(context)


@click.command(name="unregister")
@click.argument("enlistment", required=False)
@click.pass_context
@exit_on_error
def unregister(ctx, enlistment):
    """Stop managing an enlistment.

    Works even when the enlistment's worktree has been deleted already.
    """
    if enlistment is not None:
        path = git_context(ctx).cwd / enlistment
        if not has_worktree(path):
            unregister_missing(git_context(ctx), path)
            return

    _, context = enlistment_context(ctx, enlistment)
    unregister_dir(context)


@click.command(name="reconfigure")
@click.option(
    "-a", "--all", "all_", is_flag=True, help="Reconfigure all registered enlistments."
)
@click.argument("enlistment", required=False)
@click.pass_context
@exit_on_error
def reconfigure(ctx, all_, enlistment):
    """Apply the recommended settings again.

    With --all, every registered enlistment is reconfigured and registrations
    of enlistments that no longer exist are removed.
    """
    if not all_:
        _, context = enlistment_context(ctx, enlistment)
        apply_recommended_config(context, reconfigure=True)
        return

    if enlistment is not None:
        raise UsageError("--all or <enlistment>, but not both")

    result = EnlistmentRegistry(git_context(ctx)).prune_stale()
    logger.debug(
        f"reconfigured {len(result.reconfigured)}, pruned {len(result.pruned)}, "
        f"failed {len(result.failed)}"
    )
    if not result.ok:
        sys.exit(1)


@click.command(name="run")
@click.argument("task", type=click.Choice(list(TASKS) + ["all"]))
@click.argument("enlistment", required=False)
@click.pass_context
@exit_on_error
def run(ctx, task, enlistment):
    """Run a maintenance task (or all of them) in an enlistment.

    \b
    Tasks:
        config
        commit-graph
        fetch
        loose-objects
        pack-files
    """
    _, context = enlistment_context(ctx, enlistment)

    if task == "config":
        register_dir(context)
        return

    if task != "all":
        run_task(context, task)
        return

    register_dir(context)
    for name, maintenance_task in TASKS.items():
        if maintenance_task is not None:
            run_task(context, name)


@click.command(name="delete")
@click.argument("enlistment")
@click.pass_context
@exit_on_error
def delete(ctx, enlistment):
    """Unregister an enlistment and delete it from disk."""
    found, context = enlistment_context(ctx, enlistment)
    delete_enlistment(context, found)


@click.command(name="diagnose")
@click.argument("enlistment", required=False)
@click.pass_context
@exit_on_error
def diagnose(ctx, enlistment):
    """Collect diagnostics of an enlistment into an archive."""
    found, context = enlistment_context(ctx, enlistment)
    output_dir = Path(found.root) / DIAGNOSTICS_DIR

    # diagnostics must not be repeated on failure
    context = context.with_retries(1)
    context.run_checked(
        "diagnose", "--mode=all", "-s", "%Y%m%d_%H%M%S", "-o", str(output_dir)
    )
