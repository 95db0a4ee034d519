"""
Tests for the registry of enlistments kept in the global git config.
"""

import os
from unittest.mock import patch

import pytest
from git import Repo

from scalar.exceptions import ScalarError
from scalar.registry import (
    MAINTENANCE_REPO_KEY,
    SCALAR_REPO_KEY,
    DiscoveryStatus,
    EnlistmentRegistry,
    check_directory,
    discover_repository,
    remove_deleted_enlistment,
)


def config_writes(fake_git):
    return [run for run in fake_git.state.runs if run[:2] == ("config", "--global")]


@pytest.mark.short
def test_add_is_idempotent(fake_git):
    registry = EnlistmentRegistry(fake_git)

    registry.add("/enlistments/one/src")
    registry.add("/enlistments/one/src")

    assert registry.list_all() == ["/enlistments/one/src"]
    assert len(config_writes(fake_git)) == 1


@pytest.mark.short
def test_add_sets_write_lock_timeout(fake_git):
    EnlistmentRegistry(fake_git).add("/enlistments/one/src")

    assert "core.configWriteLockTimeoutMS=150" in fake_git.config_parameters


@pytest.mark.short
def test_remove_absent_path_is_a_noop(fake_git):
    registry = EnlistmentRegistry(fake_git)
    registry.add("/enlistments/one/src")

    registry.remove("/enlistments/two/src")

    assert registry.list_all() == ["/enlistments/one/src"]
    assert len(config_writes(fake_git)) == 1


@pytest.mark.short
def test_remove_only_exact_match(fake_git):
    registry = EnlistmentRegistry(fake_git)
    registry.add("/enlistments/one/src")
    registry.add("/enlistments/one/src2")

    registry.remove("/enlistments/one/src")

    assert registry.list_all() == ["/enlistments/one/src2"]


@pytest.mark.short
def test_failed_write_raises(fake_git):
    fake_git.state.failing_commands["config"] = 255

    with pytest.raises(ScalarError):
        EnlistmentRegistry(fake_git).add("/enlistments/one/src")


@pytest.mark.short
def test_remove_deleted_enlistment_clears_both_keys(fake_git):
    path = "/enlistments/gone/src"
    EnlistmentRegistry(fake_git).add(path)
    EnlistmentRegistry(fake_git, MAINTENANCE_REPO_KEY).add(path)

    remove_deleted_enlistment(fake_git, path)

    assert EnlistmentRegistry(fake_git).list_all() == []
    assert EnlistmentRegistry(fake_git, MAINTENANCE_REPO_KEY).list_all() == []


@pytest.mark.integration
def test_prune_stale(fake_git, tmp_path, capture_logs):
    alive = tmp_path / "alive"
    Repo.init(alive).close()
    gone = str(tmp_path / "gone")

    registry = EnlistmentRegistry(fake_git)
    registry.add(str(alive))
    registry.add(gone)
    EnlistmentRegistry(fake_git, MAINTENANCE_REPO_KEY).add(gone)

    with patch("scalar.registry.apply_recommended_config") as reconfigure, patch(
        "scalar.registry.toggle_maintenance"
    ) as maintenance:
        result = registry.prune_stale()

    assert result.ok
    assert result.reconfigured == [str(alive)]
    assert [stale.path for stale in result.pruned] == [gone]
    assert registry.list_all() == [str(alive)]
    assert EnlistmentRegistry(fake_git, MAINTENANCE_REPO_KEY).list_all() == []
    assert reconfigure.call_args.kwargs == {"reconfigure": True}
    assert maintenance.call_args.args[1] is True
    assert f"removed stale scalar.repo '{gone}'" in capture_logs.getvalue()


@pytest.mark.integration
def test_prune_stale_continues_after_failure(fake_git, tmp_path, capture_logs):
    first = tmp_path / "first"
    second = tmp_path / "second"
    Repo.init(first).close()
    Repo.init(second).close()

    registry = EnlistmentRegistry(fake_git)
    registry.add(str(first))
    registry.add(str(second))

    def reconfigure(context, reconfigure=False):
        if context.cwd.name == "first":
            raise ScalarError("could not configure gc.auto=0")

    with patch(
        "scalar.registry.apply_recommended_config", side_effect=reconfigure
    ), patch("scalar.registry.toggle_maintenance"):
        result = registry.prune_stale()

    assert not result.ok
    assert result.failed == [str(first)]
    assert result.reconfigured == [str(second)]
    assert registry.list_all() == [str(first), str(second)]
    log = capture_logs.getvalue()
    assert f'--unset --fixed-value {SCALAR_REPO_KEY} "{first}"' in log


@pytest.mark.integration
def test_prune_stale_keeps_non_repositories(fake_git, tmp_path, capture_logs):
    plain = tmp_path / "plain"
    plain.mkdir()
    registry = EnlistmentRegistry(fake_git)
    registry.add(str(plain))

    with patch("scalar.registry.apply_recommended_config"), patch(
        "scalar.registry.toggle_maintenance"
    ):
        result = registry.prune_stale()

    assert result.failed == [str(plain)]
    assert registry.list_all() == [str(plain)]
    assert "repository not found" in capture_logs.getvalue()


@pytest.mark.integration
def test_discover_repository(tmp_path, fake_git):
    Repo.init(tmp_path / "repo").close()

    status, worktree = discover_repository(tmp_path / "repo", fake_git)

    assert status is DiscoveryStatus.DISCOVERED
    assert worktree.resolve() == (tmp_path / "repo").resolve()


@pytest.mark.integration
def test_discover_unknown_format(tmp_path, fake_git):
    repo = Repo.init(tmp_path / "repo")
    with repo.config_writer() as writer:
        writer.set_value("core", "repositoryformatversion", 2)
    repo.close()

    status, worktree = discover_repository(tmp_path / "repo", fake_git)

    assert status is DiscoveryStatus.INVALID_FORMAT
    assert worktree is None


@pytest.mark.short
def test_check_directory_needs_search_permission_only(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o100)
    try:
        check_directory(locked)
    finally:
        locked.chmod(0o700)


@pytest.mark.short
@pytest.mark.skipif(
    hasattr(os, "geteuid") and os.geteuid() == 0, reason="root may enter any directory"
)
def test_check_directory_without_search_permission(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o600)
    try:
        with pytest.raises(PermissionError):
            check_directory(locked)
    finally:
        locked.chmod(0o700)


@pytest.mark.short
def test_check_directory_missing_or_file(tmp_path):
    (tmp_path / "file").write_text("x")

    with pytest.raises(FileNotFoundError):
        check_directory(tmp_path / "missing")
    with pytest.raises(NotADirectoryError):
        check_directory(tmp_path / "file")
