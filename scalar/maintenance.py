"""Background maintenance scheduling for enlistments."""

import logging

from scalar.git.config import GitConfig
from scalar.git.context import GitContext

logger = logging.getLogger(__name__)

WRITE_LOCK_TIMEOUT_KEY = "core.configWriteLockTimeoutMS"
DEFAULT_WRITE_LOCK_TIMEOUT_MS = "150"

# `scalar run <task>` names mapped to `git maintenance run --task` names;
# "config" re-registers the enlistment instead of running a task.
TASKS = {
    "config": None,
    "commit-graph": "commit-graph",
    "fetch": "prefetch",
    "loose-objects": "loose-objects",
    "pack-files": "incremental-repack",
}


def ensure_write_lock_timeout(context: GitContext) -> None:
    """Wait a little for the config lock instead of failing right away."""
    if GitConfig(context).get(WRITE_LOCK_TIMEOUT_KEY) is None:
        context.push_config_parameter(
            f"{WRITE_LOCK_TIMEOUT_KEY}={DEFAULT_WRITE_LOCK_TIMEOUT_MS}"
        )


def toggle_maintenance(context: GitContext, enable: bool) -> None:
    """
    Register (or unregister) the repository with git's maintenance scheduler.

    Raises:
        SubprocessExhausted: if `git maintenance` keeps failing
    """
    ensure_write_lock_timeout(context)
    if enable:
        context.run_checked("maintenance", "start")
    else:
        context.run_checked("maintenance", "unregister", "--force")


def run_task(context: GitContext, task: str) -> None:
    context.run_checked("maintenance", "run", "--task", TASKS[task])
