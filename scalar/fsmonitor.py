"""Control of git's built-in filesystem monitor daemon for an enlistment."""

import logging

from scalar.git.context import GitContext

logger = logging.getLogger(__name__)

BUILD_FEATURE = "feature: fsmonitor--daemon"

# `git fsmonitor--daemon status` dies with 128 when the platform or the
# repository cannot use the daemon; 0 means listening, 1 means not running.
_INCOMPATIBLE = 128


class FSMonitorDaemon:
    def __init__(self, context: GitContext):
        self.context = context

    def built_with_support(self) -> bool:
        """Check whether git advertises the daemon among its build options."""
        result = self.context.capture("version", "--build-options")
        return result.ok and BUILD_FEATURE in result.stdout

    def _status(self) -> int:
        return self.context.capture("fsmonitor--daemon", "status").status

    def supported(self) -> bool:
        """The build has the daemon and the repository's settings allow it."""
        if not self.built_with_support():
            return False
        status = self._status()
        if status == _INCOMPATIBLE:
            logger.debug(f"fsmonitor--daemon cannot be used in {self.context.cwd}")
            return False
        return True

    def is_listening(self) -> bool:
        return self._status() == 0

    def start(self) -> None:
        if self.is_listening():
            logger.debug("fsmonitor--daemon is already listening")
            return
        self.context.run_checked("fsmonitor--daemon", "start")

    def stop(self) -> None:
        if not self.is_listening():
            return
        self.context.run_checked("fsmonitor--daemon", "stop")
