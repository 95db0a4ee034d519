"""
Creating a new enlistment.

The clone is driven step by step through the git executable::

    init -> guard the cache root -> default branch -> remote config
         -> GVFS protocol or partial clone -> sparse checkout
         -> recommended config -> fetch -> checkout -> register

The first failing step aborts the clone. Two exceptions: a cache root that
ends up inside the new working tree makes us delete the half-created
enlistment before failing, and a failed partial-clone fetch is retried once
as a full fetch.
"""

import logging
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from filelock import FileLock

from scalar.config import default_cache_root
from scalar.enlistment import Enlistment, SRC_DIR
from scalar.exceptions import (
    ConfigWriteError,
    GuardViolation,
    ScalarError,
    SubprocessExhausted,
    UsageError,
)
from scalar.git.config import GitConfig
from scalar.git.context import GitContext
from scalar.gvfs.negotiator import CacheServerNegotiator
from scalar.lifecycle import is_inside, register_dir
from scalar.recommended import apply_recommended_config

logger = logging.getLogger(__name__)

FALLBACK_DEFAULT_BRANCH = "master"


@dataclass
class CloneOptions:
    url: str
    enlistment: Optional[str] = None
    branch: Optional[str] = None
    full_clone: bool = False
    single_branch: bool = False
    src: bool = True
    cache_server_url: Optional[str] = None
    local_cache_path: Optional[str] = None


def enlistment_name_from_url(url: str) -> str:
    """
    Derive the enlistment directory name from a repository URL.

    Examples:
        https://dev.azure.com/org/project/_git/repo.git -> repo
        https://github.com/user/repo/ -> repo
    """
    name = url.rstrip("/\\")
    if name.endswith(".git"):
        name = name[: -len(".git")]
    separator = max(name.rfind("/"), name.rfind("\\"))
    if separator < 0 or not name[separator + 1 :]:
        raise UsageError(f"cannot deduce worktree name from '{url}'")
    return name[separator + 1 :]


def local_default_branch(context: GitContext) -> str:
    """The branch name `git init` would use."""
    return GitConfig(context).get("init.defaultBranch") or FALLBACK_DEFAULT_BRANCH


def remote_default_branch(context: GitContext, url: str) -> str:
    """
    Ask the remote which branch its HEAD points to.

    Falls back to the current branch of the (freshly initialized) local
    repository when the remote does not answer.

    Raises:
        ScalarError: if the remote HEAD is not a branch, or neither the
            remote nor the local repository yields a branch name
    """
    result = context.capture("ls-remote", "--symref", url, "HEAD")
    if result.ok:
        for line in result.stdout.splitlines():
            if not line.startswith("ref: ") or not line.endswith("\tHEAD"):
                continue
            ref = line[len("ref: ") : -len("\tHEAD")]
            if ref.startswith("refs/heads/"):
                return ref[len("refs/heads/") :]
            raise ScalarError(f"remote HEAD is not a branch: '{ref}'")

    logger.warning("failed to get default branch name from remote; using local default")

    result = context.capture("symbolic-ref", "--short", "HEAD")
    if result.ok and result.stdout.strip():
        return result.stdout.strip()

    raise ScalarError("failed to get default branch name")


def init_shared_object_cache(
    context: GitContext,
    url: str,
    cache_root: Path,
    negotiator: CacheServerNegotiator,
) -> Path:
    """
    Point the repository at the shared object cache for `url`.

    Enlistments cloning the same remote share ``<cache_root>/<cache key>``.
    Creating that directory is serialized with a lock file next to it.

    Returns:
        The shared cache directory
    """
    cache_key = negotiator.cache_key(url)
    if not cache_key:
        raise ScalarError(f"could not determine cache key for '{url}'")

    shared_cache = cache_root / cache_key
    try:
        GitConfig(context).set("gvfs.sharedCache", str(shared_cache))
    except ConfigWriteError:
        raise ScalarError("could not configure shared cache")

    try:
        cache_root.mkdir(parents=True, exist_ok=True)
        with FileLock(str(cache_root / f"{cache_key}.lock")):
            (shared_cache / "pack").mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ScalarError(f"could not initialize '{shared_cache / 'pack'}': {e}")

    result = context.capture("rev-parse", "--git-path", "objects/info/alternates")
    if not result.ok:
        raise ScalarError("could not locate the object directory")
    alternates = context.cwd / result.stdout.strip()
    alternates.parent.mkdir(parents=True, exist_ok=True)
    alternates.write_text(f"{shared_cache}\n")

    return shared_cache


def _fetch(context: GitContext) -> int:
    progress = "--progress" if sys.stderr.isatty() else "--no-progress"
    return context.run("fetch", "--quiet", progress, "origin")


def _remove_enlistment(enlistment: Path) -> None:
    try:
        shutil.rmtree(enlistment)
    except OSError:
        raise GuardViolation(
            "'--local-cache-path' cannot be inside the src folder;\n"
            f"Could not remove '{enlistment}'"
        )


def clone_enlistment(
    context: GitContext,
    options: CloneOptions,
    negotiator_factory: Callable[[GitContext], CacheServerNegotiator] = CacheServerNegotiator,
) -> Enlistment:
    """
    Create a new enlistment from `options.url`.

    Args:
        context: Git context of the invocation (its cwd is where relative
            enlistment paths are resolved)
        options: What to clone and how
        negotiator_factory: Builds the GVFS negotiator for the new repository

    Returns:
        The new enlistment

    Raises:
        ScalarError: for the first step that failed
    """
    url = options.url
    name = options.enlistment or enlistment_name_from_url(url)

    root = Path(name)
    if not root.is_absolute():
        root = context.cwd / root
    if root.is_dir():
        raise ScalarError(f"directory '{name}' exists already")
    root = root.resolve()

    worktree = root / SRC_DIR if options.src else root

    if options.local_cache_path:
        cache_root = Path(options.local_cache_path)
        if not cache_root.is_absolute():
            cache_root = context.cwd / cache_root
        cache_root = cache_root.resolve()
    else:
        cache_root = default_cache_root(root)
    if cache_root is None:
        raise ScalarError("could not determine local cache root")

    init_branch = options.branch or local_default_branch(context)
    context.run_checked("-c", f"init.defaultBranch={init_branch}", "init", "--", str(worktree))

    repo = context.with_cwd(worktree)
    config = GitConfig(repo)

    ignore_case = (config.get("core.ignoreCase") or "").lower() == "true"
    if is_inside(cache_root, worktree, ignore_case=ignore_case):
        _remove_enlistment(root)
        raise GuardViolation("'--local-cache-path' cannot be inside the src folder")

    branch = options.branch
    if not branch:
        try:
            branch = remote_default_branch(repo, url)
        except ScalarError as e:
            raise ScalarError(f"failed to get default branch for '{url}': {e}")

    refspec = branch if options.single_branch else "*"
    try:
        config.set("remote.origin.url", url)
        config.set("remote.origin.fetch", f"+refs/heads/{refspec}:refs/remotes/origin/{refspec}")
    except ConfigWriteError:
        raise ScalarError(f"could not configure remote in '{worktree}'")

    try:
        config.set("credential.https://dev.azure.com.useHttpPath", "true")
    except ConfigWriteError:
        raise ScalarError("could not configure credential.useHttpPath")

    cache_server_url = options.cache_server_url
    negotiator = negotiator_factory(repo)
    if cache_server_url:
        gvfs_protocol = True
    else:
        probe = negotiator.probe(url)
        gvfs_protocol = probe.supported
        cache_server_url = probe.default_url

    if gvfs_protocol:
        init_shared_object_cache(repo, url, cache_root, negotiator)
        try:
            config.set("core.useGVFSHelper", "true")
            config.set("core.gvfs", "150")
            config.set("http.version", "HTTP/1.1")
        except ConfigWriteError:
            raise ScalarError("could not turn on GVFS helper")
        if cache_server_url:
            try:
                config.set("gvfs.cache-server", cache_server_url)
            except ConfigWriteError:
                raise ScalarError("could not configure cache server")
            print(f"Cache server URL: {cache_server_url}", file=sys.stderr)
    else:
        try:
            config.set("core.useGVFSHelper", "false")
            config.set("remote.origin.promisor", "true")
            config.set("remote.origin.partialCloneFilter", "blob:none")
        except ConfigWriteError:
            raise ScalarError(f"could not configure partial clone in '{worktree}'")

    if not options.full_clone:
        repo.run_checked("sparse-checkout", "init", "--cone")

    try:
        apply_recommended_config(repo, reconfigure=False)
    except ScalarError as e:
        raise ScalarError(f"could not configure '{worktree}': {e}")

    status = _fetch(repo)
    if status != 0:
        if gvfs_protocol:
            raise SubprocessExhausted(
                ("fetch", "origin"),
                status,
                repo.retry_policy.max_attempts,
                message="failed to prefetch commits and trees",
            )

        logger.warning("partial clone failed; attempting full clone")
        try:
            config.unset("remote.origin.promisor")
            config.unset("remote.origin.partialCloneFilter")
        except ConfigWriteError:
            raise ScalarError("could not configure for full clone")

        status = _fetch(repo)
        if status != 0:
            raise SubprocessExhausted(
                ("fetch", "origin"), status, repo.retry_policy.max_attempts
            )

    config.set(f"branch.{branch}.remote", "origin")
    config.set(f"branch.{branch}.merge", f"refs/heads/{branch}")

    repo.run_checked("checkout", "-f", "-t", f"origin/{branch}")

    register_dir(repo)

    return Enlistment(root=root, worktree=worktree, wrapped=options.src)
