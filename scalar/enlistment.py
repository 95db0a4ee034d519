"""
Locating enlistments.

An enlistment is either "wrapped", with the git working tree living in a
``src/`` directory below the enlistment root, or "flat", where the root is
the working tree itself.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from scalar.exceptions import NotAnEnlistmentError

logger = logging.getLogger(__name__)

SRC_DIR = "src"


@dataclass(frozen=True)
class Enlistment:
    root: Path
    worktree: Path
    wrapped: bool = False


def trim_trailing_separators(path: str) -> str:
    stripped = path.rstrip("/" + os.sep)
    # keep the filesystem root (or a Windows drive root) intact
    if not stripped or stripped.endswith(":"):
        return path[: len(stripped) + 1]
    return stripped


def is_nonbare_repository_dir(path: Path) -> bool:
    """Check whether `path` is the top of a non-bare git working tree."""
    if not (path / ".git").exists():
        return False
    try:
        repo = Repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False
    try:
        return not repo.bare
    finally:
        repo.close()


def locate_enlistment(
    path: Optional[Union[str, Path]] = None, cwd: Optional[Union[str, Path]] = None
) -> Enlistment:
    """
    Find the enlistment containing `path` (or the current directory).

    If ``<path>/src`` is a working tree, the enlistment is wrapped and
    `path` is its root. Otherwise the working tree is discovered by walking
    up from `path`, and that working tree is the enlistment root.

    Raises:
        NotAnEnlistmentError: if `path` does not exist or no working tree is
            found from it upwards
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    if path is not None:
        candidate = Path(os.path.abspath(base / path))
        if not candidate.is_dir():
            raise NotAnEnlistmentError(f"'{candidate}' does not exist")
    else:
        candidate = Path(os.path.abspath(base))

    candidate = Path(trim_trailing_separators(str(candidate)))

    src = candidate / SRC_DIR
    if is_nonbare_repository_dir(src):
        logger.debug(f"found wrapped enlistment at {candidate}")
        return Enlistment(root=candidate, worktree=src, wrapped=True)

    try:
        repo = Repo(candidate, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        raise NotAnEnlistmentError(f"not a git repository: '{candidate}'")

    try:
        worktree = repo.working_tree_dir
    finally:
        repo.close()

    if worktree is None:
        raise NotAnEnlistmentError("Scalar enlistments require a worktree")

    worktree_path = Path(trim_trailing_separators(os.path.abspath(worktree)))
    return Enlistment(root=worktree_path, worktree=worktree_path, wrapped=False)

