"""Tool configuration, environment switches and the default local cache root"""

import configparser
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional

from scalar.git.context import RetryPolicy

logger = logging.getLogger(__name__)

APP_NAME = "scalar"

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")

default_cfg = {"retries": {"max_attempts": "3"}}

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/scalar").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


def get_config_file():
    return config_dir / f"{APP_NAME}.cfg"


class ConfigAccessor:
    """
    A dict-like accessor for the scalar configuration file.

    Missing sections or keys fall back to the given default.

    Usage:
        config = ConfigAccessor()
        value = config.get('retries', 'max_attempts', default='3')
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Path to the configuration file. If None, uses the default path.
        """
        if config_path is None:
            self.config_path = get_config_file()
        else:
            self.config_path = config_path

        self.config = configparser.ConfigParser()
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a configuration value from the specified section and key.

        Returns:
            The configuration value if it exists, otherwise the default value
        """
        try:
            return self.config[section][key]
        except (KeyError, configparser.NoSectionError, configparser.NoOptionError):
            return default


# Global config accessor instance
config = ConfigAccessor()


def get_retry_policy() -> RetryPolicy:
    """
    Get the retry policy for git commands.

    Every failing command is retried immediately, without backoff, up to
    ``[retries] max_attempts`` times in total (defaults to 3).
    """
    default = int(default_cfg["retries"]["max_attempts"])
    raw = config.get("retries", "max_attempts", default_cfg["retries"]["max_attempts"])
    try:
        return RetryPolicy(max_attempts=int(raw))
    except ValueError as e:
        logger.warning(
            f"ignoring invalid retries.max_attempts '{raw}' in {config.config_path}: {e}"
        )
        return RetryPolicy(max_attempts=default)


_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def env_bool(name: str, default: bool = False) -> bool:
    """Read a git-style boolean from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    try:
        return int(value) != 0
    except ValueError:
        logger.warning(f"bad boolean environment value '{value}' for '{name}'")
        return default


def is_unattended() -> bool:
    return env_bool("Scalar_UNATTENDED")


def allow_gvfs_via_http() -> bool:
    return env_bool("GIT_TEST_ALLOW_GVFS_VIA_HTTP")


def skip_vsts_info() -> bool:
    return env_bool("SCALAR_TEST_SKIP_VSTS_INFO")


def default_cache_root(enlistment: Path) -> Optional[Path]:
    """
    Get the default local cache root for an enlistment.

    In unattended mode the cache lives next to the enlistment. Otherwise it
    is per-user: ``<drive>\\.scalarCache`` on Windows, ``~/.scalarCache`` on
    macOS and ``$XDG_CACHE_HOME/scalar`` (or ``~/.cache/scalar``) elsewhere.

    Returns:
        The cache root, or None if the environment does not provide one
    """
    if is_unattended():
        return Path(enlistment).parent / ".scalarCache"

    system = platform.system()
    if system == "Windows":
        return Path(Path(enlistment).anchor + ".scalarCache")

    home = os.environ.get("HOME")
    if system == "Darwin":
        return Path(home) / ".scalarCache" if home else None

    xdg_cache_home = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache_home:
        return Path(xdg_cache_home) / APP_NAME
    if home:
        return Path(home) / ".cache" / APP_NAME
    return None
