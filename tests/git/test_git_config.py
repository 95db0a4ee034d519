"""
Tests for reading and writing git configuration.
"""

import pytest

from scalar.exceptions import ConfigWriteError
from scalar.git.config import GitConfig


@pytest.mark.short
def test_unknown_scope(fake_git):
    with pytest.raises(ValueError):
        GitConfig(fake_git, scope="system")


@pytest.mark.integration
def test_set_and_get(repo_context):
    config = GitConfig(repo_context)

    assert config.get("status.aheadBehind") is None
    config.set("status.aheadBehind", "false")

    assert config.get("status.aheadBehind") == "false"


@pytest.mark.integration
def test_set_invalid_key(repo_context):
    with pytest.raises(ConfigWriteError) as excinfo:
        GitConfig(repo_context).set("nosection", "value")

    assert excinfo.value.key == "nosection"
    assert "could not configure nosection=value" in str(excinfo.value)


@pytest.mark.integration
def test_unset_missing_key_is_not_an_error(repo_context):
    GitConfig(repo_context).unset("remote.origin.promisor")


@pytest.mark.integration
def test_multi_valued_key(repo_context):
    config = GitConfig(repo_context)
    config.add("log.excludeDecoration", "refs/prefetch/*")
    config.add("log.excludeDecoration", "refs/other/*")

    assert config.get_all("log.excludeDecoration") == ["refs/prefetch/*", "refs/other/*"]
    assert config.has_value("log.excludeDecoration", "refs/other/*")
    assert not config.has_value("log.excludeDecoration", "refs/*")


@pytest.mark.integration
def test_global_scope(repo_context, git_home):
    GitConfig(repo_context, scope="global").set("scalar.test", "yes")

    assert "test = yes" in (git_home / ".gitconfig").read_text()
    assert GitConfig(repo_context, scope="global").get("scalar.test") == "yes"
