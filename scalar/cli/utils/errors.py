"""Turning scalar errors into CLI output and exit codes."""

import sys
from functools import wraps

import click

from scalar.exceptions import ScalarError, UsageError
from scalar.cli.utils.logging import logger


def exit_on_error(func):
    """
    Decorator for command callbacks: report a ScalarError and exit nonzero.

    Usage errors are handed to click so that the usage text is shown.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UsageError as e:
            raise click.UsageError(str(e))
        except ScalarError as e:
            logger.error(str(e))
            sys.exit(e.exit_code)

    return wrapper
