"""Registering, unregistering and deleting enlistments."""

import logging
import os
import shutil
from pathlib import Path

from scalar.enlistment import Enlistment, SRC_DIR
from scalar.exceptions import ScalarError
from scalar.fsmonitor import FSMonitorDaemon
from scalar.git.context import GitContext
from scalar.maintenance import toggle_maintenance
from scalar.recommended import apply_recommended_config
from scalar.registry import EnlistmentRegistry, remove_deleted_enlistment

logger = logging.getLogger(__name__)


def register_dir(context: GitContext) -> None:
    """
    Register the working tree at `context.cwd` and turn on background services.

    Raises:
        ScalarError: naming the first step that failed
    """
    try:
        EnlistmentRegistry(context).add(context.cwd)
    except ScalarError as e:
        raise ScalarError(f"could not add enlistment: {e}")

    try:
        apply_recommended_config(context, reconfigure=False)
    except ScalarError as e:
        raise ScalarError(f"could not set recommended config: {e}")

    try:
        toggle_maintenance(context, True)
    except ScalarError as e:
        raise ScalarError(f"could not turn on maintenance: {e}")

    fsmonitor = FSMonitorDaemon(context)
    if fsmonitor.supported():
        try:
            fsmonitor.start()
        except ScalarError as e:
            raise ScalarError(f"could not start the FSMonitor daemon: {e}")


def unregister_dir(context: GitContext) -> None:
    """
    Turn off maintenance and drop the working tree at `context.cwd` from the registry.

    Failing to turn off maintenance is only a warning.
    """
    try:
        toggle_maintenance(context, False)
    except ScalarError as e:
        logger.warning(f"could not turn off maintenance: {e}")

    try:
        EnlistmentRegistry(context).remove(context.cwd)
    except ScalarError as e:
        raise ScalarError(f"could not remove enlistment: {e}")


def has_worktree(path: Path) -> bool:
    return (path / SRC_DIR / ".git").is_dir() or (path / ".git").is_dir()


def unregister_missing(context: GitContext, path: Path) -> None:
    """
    Remove registrations for an enlistment whose worktree is gone.

    Both the wrapped (``<path>/src``) and the flat (``<path>``) layout are
    unregistered, as we cannot tell any more which one it was.
    """
    for candidate in (path / SRC_DIR, path):
        remove_deleted_enlistment(context, os.path.abspath(candidate))


def is_inside(path: Path, directory: Path, ignore_case: bool = False) -> bool:
    """Check whether `path` is `directory` or lies below it."""
    path_str = os.path.abspath(path)
    directory_str = os.path.abspath(directory)
    if ignore_case:
        path_str, directory_str = path_str.lower(), directory_str.lower()
    return path_str == directory_str or path_str.startswith(
        directory_str.rstrip(os.sep) + os.sep
    )


def delete_enlistment(context: GitContext, enlistment: Enlistment) -> None:
    """
    Unregister an enlistment, stop its daemon and remove it from disk.

    Raises:
        ScalarError: if the current directory is inside the enlistment, or a
            step fails
    """
    if is_inside(Path.cwd(), enlistment.root):
        raise ScalarError("refusing to delete current working directory")

    worktree_context = context.with_cwd(enlistment.worktree)
    try:
        unregister_dir(worktree_context)
    except ScalarError as e:
        raise ScalarError(f"failed to unregister repository: {e}")

    fsmonitor = FSMonitorDaemon(worktree_context)
    if fsmonitor.supported():
        try:
            fsmonitor.stop()
        except ScalarError as e:
            raise ScalarError(f"failed to stop the FSMonitor daemon: {e}")

    logger.debug(f"removing {enlistment.root}")
    try:
        shutil.rmtree(enlistment.root)
    except OSError as e:
        raise ScalarError(f"failed to delete enlistment directory: {e}")
