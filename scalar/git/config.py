"""Key/value access to git's configuration store."""

import logging
from typing import List, Optional

from scalar.exceptions import ConfigWriteError
from scalar.git.context import GitContext

logger = logging.getLogger(__name__)

# `git config --unset` exits with 5 when there is nothing to unset
_NOTHING_TO_UNSET = 5


class GitConfig:
    """
    Read and write git configuration through ``git config``.

    Args:
        context: Where to run git; its working directory selects the repository
        scope: "local" for the repository's own config, "global" for the
            per-user config file
    """

    def __init__(self, context: GitContext, scope: str = "local"):
        if scope not in ("local", "global"):
            raise ValueError(f"unknown config scope '{scope}'")
        self.context = context
        self.scope = scope

    def _config(self, *args: str):
        if self.scope == "global":
            return self.context.capture("config", "--global", *args)
        return self.context.capture("config", *args)

    def get(self, key: str) -> Optional[str]:
        """Get the last value of `key`, or None if it is unset."""
        result = self._config("--get", key)
        return result.stdout if result.ok else None

    def get_all(self, key: str) -> List[str]:
        result = self._config("--get-all", key)
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line]

    def has_value(self, key: str, value: str) -> bool:
        """Check whether `key` holds exactly `value` (among possibly many values)."""
        return self._config("--get", "--fixed-value", key, value).ok

    def set(self, key: str, value: str) -> None:
        result = self._config(key, value)
        if not result.ok:
            logger.debug(result.stderr)
            raise ConfigWriteError(key, value)

    def unset(self, key: str) -> None:
        result = self._config("--unset", key)
        if result.status not in (0, _NOTHING_TO_UNSET):
            logger.debug(result.stderr)
            raise ConfigWriteError(key, message=f"could not unset {key}")

    def add(self, key: str, value: str) -> None:
        """Append `value` to the multi-valued `key`, keeping existing values."""
        result = self._config("--add", key, value)
        if not result.ok:
            logger.debug(result.stderr)
            raise ConfigWriteError(key, value)

