import click

from .utils.logging import configure_logging


def add_debug_option(cmd: click.Command) -> click.Command:
    """Give a command (or the top-level group) a --debug/--no-debug flag."""
    if any(param.name == "debug" for param in cmd.params):
        return cmd

    cmd.params.insert(
        0,
        click.Option(
            ["--debug/--no-debug"],
            is_eager=True,
            expose_value=False,
            callback=_set_debug,
            help="Show git invocations, retries and per-setting trace lines.",
        ),
    )
    return cmd


def _set_debug(ctx: click.Context, param: click.Parameter, value: bool) -> bool:
    """
    Switch log verbosity for the whole invocation.

    `scalar --debug register` and `scalar register --debug` both turn debug
    on; the subcommand's default does not undo the group's --debug.
    """
    root_ctx = ctx.find_root()
    root_ctx.ensure_object(dict)

    if value or ctx is root_ctx:
        root_ctx.obj["DEBUG"] = value
    debug = root_ctx.obj.get("DEBUG", False)

    configure_logging(debug)
    return debug
