"""
The list of registered enlistments.

Registered worktree paths are stored as values of the multi-valued global
git config key ``scalar.repo``; git's own maintenance scheduler keeps a
parallel list under ``maintenance.repo``. Nothing is cached between
invocations: every operation reads the global config afresh.
"""

import errno
import logging
import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from scalar.exceptions import ScalarError, StaleRegistration
from scalar.git.config import GitConfig
from scalar.git.context import GitContext
from scalar.maintenance import ensure_write_lock_timeout, toggle_maintenance
from scalar.recommended import apply_recommended_config

logger = logging.getLogger(__name__)

SCALAR_REPO_KEY = "scalar.repo"
MAINTENANCE_REPO_KEY = "maintenance.repo"

PathLike = Union[str, Path]


class DiscoveryStatus(Enum):
    DISCOVERED = "discovered"
    INVALID_OWNERSHIP = "invalid-ownership"
    INVALID_FORMAT = "invalid-format"
    NOT_FOUND = "not-found"


@dataclass
class SweepResult:
    reconfigured: List[str] = field(default_factory=list)
    pruned: List[StaleRegistration] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class EnlistmentRegistry:
    """
    Add, remove and enumerate registered paths under one global key.

    `add` and `remove` are idempotent: an exact-match lookup runs first and
    the store is only touched when it would change.
    """

    def __init__(self, context: GitContext, key: str = SCALAR_REPO_KEY):
        self.context = context
        self.key = key
        self.config = GitConfig(context, scope="global")

    def contains(self, path: PathLike) -> bool:
        return self.config.has_value(self.key, str(path))

    def list_all(self) -> List[str]:
        return self.config.get_all(self.key)

    def add(self, path: PathLike) -> None:
        ensure_write_lock_timeout(self.context)
        if self.contains(path):
            logger.debug(f"'{path}' is already registered in {self.key}")
            return
        self.context.run_checked(
            "config", "--global", "--add", "--no-fixed-value", self.key, str(path)
        )

    def remove(self, path: PathLike) -> None:
        ensure_write_lock_timeout(self.context)
        if not self.contains(path):
            logger.debug(f"'{path}' is not registered in {self.key}")
            return
        self.context.run_checked(
            "config", "--global", "--unset", "--fixed-value", self.key, str(path)
        )

    def prune_stale(self) -> SweepResult:
        """
        Reconfigure every registered enlistment, dropping the ones that are gone.

        A path that no longer exists is removed from this registry and from
        the maintenance registry. A path that cannot be entered for another
        reason, or whose repository fails validation, is left alone. Every
        valid enlistment gets the recommended config and maintenance; a
        failure there marks the sweep as failed but does not stop it.
        """
        result = SweepResult()

        for path in self.list_all():
            try:
                check_directory(path)
            except FileNotFoundError:
                try:
                    remove_deleted_enlistment(self.context, path)
                except ScalarError as e:
                    logger.error(f"could not remove stale scalar.repo '{path}': {e}")
                    self._record_failure(result, path)
                else:
                    stale = StaleRegistration(path)
                    logger.warning(str(stale))
                    result.pruned.append(stale)
                continue
            except OSError as e:
                logger.warning(f"could not switch to '{path}': {e.strerror or e}")
                self._record_failure(result, path)
                continue

            status, worktree = discover_repository(path, self.context)
            if status is not DiscoveryStatus.DISCOVERED:
                logger.warning(_DISCOVERY_WARNINGS[status].format(path=path))
                self._record_failure(result, path)
                continue

            enlistment_context = self.context.with_cwd(worktree)
            succeeded = True
            try:
                apply_recommended_config(enlistment_context, reconfigure=True)
            except ScalarError as e:
                logger.error(f"could not reconfigure '{path}': {e}")
                succeeded = False
            try:
                toggle_maintenance(enlistment_context, True)
            except ScalarError as e:
                logger.error(f"could not turn on maintenance in '{path}': {e}")
                succeeded = False

            if succeeded:
                result.reconfigured.append(path)
            else:
                self._record_failure(result, path)

        return result

    def _record_failure(self, result: SweepResult, path: str) -> None:
        result.failed.append(path)
        logger.warning(
            "to unregister this repository from Scalar, run\n"
            f'\tgit config --global --unset --fixed-value {self.key} "{path}"'
        )


_DISCOVERY_WARNINGS = {
    DiscoveryStatus.INVALID_OWNERSHIP: "repository at '{path}' has different owner",
    DiscoveryStatus.INVALID_FORMAT: "repository at '{path}' has a format issue",
    DiscoveryStatus.NOT_FOUND: "repository not found in '{path}'",
}

# repositoryformatversion values git understands
_KNOWN_FORMAT_VERSIONS = (0, 1)


def check_directory(path: PathLike) -> None:
    """
    Make sure `path` is a directory we can switch into.

    Like chdir, this needs search permission only; the directory does not
    have to be readable.

    Raises:
        FileNotFoundError: if `path` does not exist
        OSError: for any other access problem
    """
    if not stat.S_ISDIR(os.stat(path).st_mode):
        raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(path))
    if not os.access(path, os.X_OK):
        raise PermissionError(errno.EACCES, os.strerror(errno.EACCES), str(path))


def _is_safe_directory(context: GitContext, git_dir: str) -> bool:
    safe = GitConfig(context, scope="global").get_all("safe.directory")
    if "*" in safe:
        return True
    candidates = {git_dir, str(Path(git_dir).parent)}
    return any(os.path.realpath(entry) in candidates for entry in safe)


def discover_repository(
    path: PathLike, context: GitContext
) -> Tuple[DiscoveryStatus, Optional[Path]]:
    """
    Re-validate the repository of a registered enlistment.

    Returns:
        The discovery status and, when discovered, the working tree to use
    """
    try:
        repo = Repo(path, search_parent_directories=True)
    except NoSuchPathError:
        return DiscoveryStatus.NOT_FOUND, None
    except InvalidGitRepositoryError:
        if (Path(path) / ".git").exists():
            return DiscoveryStatus.INVALID_FORMAT, None
        return DiscoveryStatus.NOT_FOUND, None

    try:
        reader = repo.config_reader("repository")
        version = reader.get_value("core", "repositoryformatversion", 0)
        if version not in _KNOWN_FORMAT_VERSIONS:
            return DiscoveryStatus.INVALID_FORMAT, None

        git_dir = os.path.realpath(repo.git_dir)
        if hasattr(os, "geteuid") and os.stat(git_dir).st_uid != os.geteuid():
            if not _is_safe_directory(context, git_dir):
                return DiscoveryStatus.INVALID_OWNERSHIP, None

        worktree = repo.working_tree_dir or path
        return DiscoveryStatus.DISCOVERED, Path(worktree)
    finally:
        repo.close()


def remove_deleted_enlistment(context: GitContext, path: PathLike) -> None:
    """Drop `path` from both the scalar and the maintenance registries."""
    candidates = [str(path)]
    resolved = os.path.realpath(path)
    if resolved not in candidates:
        candidates.append(resolved)

    for key in (SCALAR_REPO_KEY, MAINTENANCE_REPO_KEY):
        registry = EnlistmentRegistry(context, key)
        for candidate in candidates:
            registry.remove(candidate)
