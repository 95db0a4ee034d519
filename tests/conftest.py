import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from git import Repo

from scalar.git.context import CommandResult, GitContext, RetryPolicy


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("scalar")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream  # Yield the stream to the test function

    # Cleanup after the test
    logger.removeHandler(handler)
    log_stream.close()


# git fixtures


@pytest.fixture
def git_home(tmp_path, monkeypatch) -> Path:
    """A throwaway HOME so that global git config writes stay in the test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_PARAMETERS", raising=False)
    monkeypatch.delenv("Scalar_UNATTENDED", raising=False)
    return home


@pytest.fixture
def work_repo(tmp_path, git_home) -> Path:
    """An empty non-bare repository."""
    path = tmp_path / "repo"
    Repo.init(path).close()
    return path


@pytest.fixture
def repo_context(work_repo) -> GitContext:
    return GitContext(cwd=work_repo, retry_policy=RetryPolicy(max_attempts=1))


# fake git


@dataclass
class FakeGitState:
    """Everything the fake git executable knows and remembers."""

    local_config: Dict[str, List[str]] = field(default_factory=dict)
    global_config: Dict[str, List[str]] = field(default_factory=dict)
    runs: List[Tuple[str, ...]] = field(default_factory=list)
    queries: List[Tuple[str, ...]] = field(default_factory=list)
    fetch_statuses: List[int] = field(default_factory=list)
    fetch_config: List[Dict[str, List[str]]] = field(default_factory=list)
    failing_commands: Dict[str, int] = field(default_factory=dict)
    remote_head: Optional[str] = "main"
    gvfs_config: Optional[str] = None
    vsts_info: Optional[str] = None
    build_options: str = "git version 2.45.0"


@dataclass
class FakeGitContext(GitContext):
    """
    A GitContext that answers from memory instead of running git.

    `run` keeps the retry loop of the real context; every attempt of
    `git fetch` consumes one status of `state.fetch_statuses` (0 once empty).
    """

    state: FakeGitState = field(default_factory=FakeGitState)

    def run(self, *args: str) -> int:
        status = 1
        for _ in range(self.retry_policy.max_attempts):
            status = self._run_once(args)
            if status == 0:
                break
        return status

    def _run_once(self, args: Tuple[str, ...]) -> int:
        self.state.runs.append(args)

        if args and args[0] == "-c":
            args = args[2:]
        command = args[0]

        if command in self.state.failing_commands:
            return self.state.failing_commands[command]

        if command == "init":
            worktree = Path(args[-1])
            (worktree / ".git").mkdir(parents=True)
            return 0

        if command == "fetch":
            self.state.fetch_config.append(
                {k: list(v) for k, v in self.state.local_config.items()}
            )
            return self.state.fetch_statuses.pop(0) if self.state.fetch_statuses else 0

        if command == "config":
            return self._config(args[1:]).status

        return 0

    def capture(self, *args: str, env=None) -> CommandResult:
        self.state.queries.append(args)
        command = args[0]

        if command == "config":
            return self._config(args[1:])

        if command == "ls-remote":
            if self.state.remote_head is None:
                return CommandResult(128, "", "fatal: could not read from remote")
            head = self.state.remote_head
            ref = head if head.startswith("refs/") else f"refs/heads/{head}"
            return CommandResult(0, f"ref: {ref}\tHEAD\n0123abcd\tHEAD")

        if command == "symbolic-ref":
            return CommandResult(0, "master")

        if command == "version":
            return CommandResult(0, self.state.build_options)

        if command == "fsmonitor--daemon":
            return CommandResult(128, "", "fatal: not supported")

        if command == "rev-parse":
            return CommandResult(0, ".git/objects/info/alternates")

        if command == "gvfs-helper":
            endpoint = args[3:]
            document = (
                self.state.gvfs_config
                if endpoint == ("config",)
                else self.state.vsts_info
            )
            if document is None:
                return CommandResult(1, "", "error: endpoint unavailable")
            return CommandResult(0, document)

        return CommandResult(0)

    def _config(self, args: Tuple[str, ...]) -> CommandResult:
        store = self.state.local_config
        if args and args[0] == "--global":
            store = self.state.global_config
            args = args[1:]
        args = tuple(a for a in args if a != "--no-fixed-value")

        option = args[0]
        if option == "--add":
            store.setdefault(args[1].lower(), []).append(args[2])
            return CommandResult(0)
        if option == "--get" and len(args) == 4:
            # --get --fixed-value <key> <value>
            return CommandResult(0 if args[3] in store.get(args[2].lower(), []) else 1)
        if option == "--get":
            values = store.get(args[1].lower())
            return CommandResult(0, values[-1]) if values else CommandResult(1)
        if option == "--get-all":
            values = store.get(args[1].lower())
            return CommandResult(0, "\n".join(values)) if values else CommandResult(1)
        if option == "--unset" and len(args) == 4:
            values = store.get(args[2].lower(), [])
            if args[3] not in values:
                return CommandResult(5)
            values.remove(args[3])
            return CommandResult(0)
        if option == "--unset":
            return CommandResult(0 if store.pop(args[1].lower(), None) else 5)
        if len(args) != 2:
            return CommandResult(129, "", "usage")

        store[args[0].lower()] = [args[1]]
        return CommandResult(0)


@pytest.fixture
def fake_git(tmp_path, monkeypatch) -> FakeGitContext:
    monkeypatch.delenv("Scalar_UNATTENDED", raising=False)
    monkeypatch.delenv("GIT_TEST_ALLOW_GVFS_VIA_HTTP", raising=False)
    monkeypatch.delenv("SCALAR_TEST_SKIP_VSTS_INFO", raising=False)
    return FakeGitContext(cwd=tmp_path, retry_policy=RetryPolicy(max_attempts=1))
