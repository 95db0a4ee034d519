"""
Exception classes for scalar.

Library code raises these; the CLI layer turns them into a message on stderr
and a nonzero exit status.
"""

from typing import Optional, Sequence


class ScalarError(Exception):
    """Base exception for all scalar errors."""

    exit_code = 1


class UsageError(ScalarError):
    """Raised for bad or missing command arguments."""

    exit_code = 2


class NotAnEnlistmentError(ScalarError):
    """Raised when no working tree can be discovered from a path."""

    pass


class ConfigWriteError(ScalarError):
    """Raised when a single configuration key could not be written."""

    def __init__(self, key: str, value: Optional[str] = None, message: str = ""):
        self.key = key
        self.value = value
        if message:
            super().__init__(message)
        elif value is None:
            super().__init__(f"could not configure {key}")
        else:
            super().__init__(f"could not configure {key}={value}")


class ProtocolError(ScalarError):
    """Raised when a probed endpoint cannot be used or returns malformed JSON."""

    pass


class JsonParseError(ProtocolError):
    """Raised by the JSON token iterator on malformed input."""

    def __init__(self, message: str, offset: int):
        self.offset = offset
        super().__init__(f"JSON parse error: {message} at offset {offset}")


class SubprocessExhausted(ScalarError):
    """Raised when a git command still fails after all attempts."""

    def __init__(
        self,
        args: Sequence[str],
        status: int,
        attempts: int,
        message: Optional[str] = None,
    ):
        self.command = list(args)
        self.status = status
        self.attempts = attempts
        if message:
            super().__init__(message)
            return
        super().__init__(
            f"'git {' '.join(self.command)}' failed with exit code {status}"
            f" after {attempts} attempt{'s' if attempts != 1 else ''}"
        )

    @property
    def exit_code(self) -> int:
        return self.status if 0 < self.status < 256 else 1


class GuardViolation(ScalarError):
    """Raised when the local cache root would live inside the new enlistment."""

    pass


class StaleRegistration(ScalarError):
    """A registered enlistment path that no longer exists on disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"removed stale scalar.repo '{path}'")
