"""
Git plumbing for scalar.

Every interaction with the git executable goes through a `GitContext`,
either as a retried, user-visible command or as a captured query.
"""

from .context import (
    CommandResult,
    GitContext,
    RetryPolicy,
)
from .config import GitConfig

__all__ = [
    "CommandResult",
    "GitConfig",
    "GitContext",
    "RetryPolicy",
]
