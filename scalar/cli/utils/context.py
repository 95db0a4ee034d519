from typing import Optional, Tuple

import click

from scalar.config import get_retry_policy
from scalar.enlistment import Enlistment, locate_enlistment
from scalar.git.context import GitContext


def git_context(ctx: click.Context) -> GitContext:
    """The GitContext set up by the top-level command."""
    root = ctx.find_root()
    root.ensure_object(dict)
    if "git" not in root.obj:
        root.obj["git"] = GitContext(retry_policy=get_retry_policy())
    return root.obj["git"]


def enlistment_context(
    ctx: click.Context, path: Optional[str] = None
) -> Tuple[Enlistment, GitContext]:
    """Locate the enlistment and get a GitContext running in its worktree."""
    context = git_context(ctx)
    enlistment = locate_enlistment(path, cwd=context.cwd)
    return enlistment, context.with_cwd(enlistment.worktree)
