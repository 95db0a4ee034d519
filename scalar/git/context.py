"""
Running git on behalf of an enlistment.

Two ways of invoking git are provided:

    run / run_checked
        User-visible operations (init, fetch, checkout, maintenance, ...).
        The child inherits our standard streams, and a failing invocation is
        retried in a fresh process up to ``RetryPolicy.max_attempts`` times.
        There is no backoff between attempts and no distinction between
        transient and permanent failures.

    capture
        Queries whose output we need (config reads, ls-remote, gvfs-helper).
        Executed once through GitPython with stdout/stderr captured.

A ``GitContext`` is the explicit "current repository": the working directory
and the ``-c key=value`` parameters every child process sees.
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Union

from git import Git
from git.exc import GitCommandNotFound

from scalar.exceptions import ScalarError, SubprocessExhausted

logger = logging.getLogger(__name__)

CONFIG_PARAMETERS_ENV = "GIT_CONFIG_PARAMETERS"


@dataclass(frozen=True)
class RetryPolicy:
    """How often a failing git command is attempted in total."""

    max_attempts: int = 3

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )


@dataclass
class CommandResult:
    status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 0


def _sq_quote(value: str) -> str:
    """Quote a value the way git expects in GIT_CONFIG_PARAMETERS."""
    return "'" + value.replace("'", "'\\''").replace("!", "'\\!'") + "'"


@dataclass
class GitContext:
    cwd: Path = field(default_factory=Path.cwd)
    config_parameters: List[str] = field(default_factory=list)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self):
        self.cwd = Path(self.cwd)

    def with_cwd(self, cwd: Union[str, Path]) -> "GitContext":
        return replace(
            self, cwd=Path(cwd), config_parameters=list(self.config_parameters)
        )

    def with_retries(self, max_attempts: int) -> "GitContext":
        return replace(
            self,
            retry_policy=RetryPolicy(max_attempts=max_attempts),
            config_parameters=list(self.config_parameters),
        )

    def push_config_parameter(self, parameter: str) -> None:
        """Add a ``key=value`` setting seen by every subsequent git child."""
        self.config_parameters.append(parameter)

    def environment(self) -> Dict[str, str]:
        """Extra environment variables for git children."""
        if not self.config_parameters:
            return {}
        quoted = " ".join(_sq_quote(p) for p in self.config_parameters)
        inherited = os.environ.get(CONFIG_PARAMETERS_ENV)
        if inherited:
            quoted = f"{inherited} {quoted}"
        return {CONFIG_PARAMETERS_ENV: quoted}

    def run(self, *args: str) -> int:
        """
        Run ``git <args>`` with inherited standard streams, retrying on failure.

        Returns:
            0 on the first successful attempt, otherwise the exit status of
            the last attempt
        """
        command = ["git", *args]
        env = dict(os.environ)
        env.update(self.environment())

        status = 1
        attempts = self.retry_policy.max_attempts
        for attempt in range(1, attempts + 1):
            logger.debug(f"running '{' '.join(command)}' in {self.cwd}")
            try:
                status = subprocess.run(command, cwd=self.cwd, env=env).returncode
            except OSError as e:
                raise ScalarError(f"could not run git: {e}")
            if status == 0:
                break
            logger.debug(
                f"'{' '.join(command)}' exited with {status} (attempt {attempt}/{attempts})"
            )
        return status

    def run_checked(self, *args: str) -> None:
        """Like `run`, but raise `SubprocessExhausted` if every attempt failed."""
        status = self.run(*args)
        if status != 0:
            raise SubprocessExhausted(args, status, self.retry_policy.max_attempts)

    def capture(self, *args: str, env: Optional[Dict[str, str]] = None) -> CommandResult:
        """Run ``git <args>`` once and capture its output."""
        extra_env = self.environment()
        if env:
            extra_env.update(env)
        logger.debug(f"querying 'git {' '.join(args)}' in {self.cwd}")
        try:
            status, stdout, stderr = Git(str(self.cwd)).execute(
                ["git", *args],
                with_extended_output=True,
                with_exceptions=False,
                env=extra_env,
            )
        except (GitCommandNotFound, OSError) as e:
            raise ScalarError(f"could not run git: {e}")
        return CommandResult(status=status, stdout=stdout, stderr=stderr)
