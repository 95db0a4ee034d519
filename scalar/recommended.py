"""
Recommended git settings for large enlistments.

Settings marked `overwrite_on_reconfigure` are required: `scalar reconfigure`
puts them back even when the user changed them. The others are optional and
only filled in when unset.
"""

import logging
import sys
from dataclasses import dataclass
from typing import List

from scalar.fsmonitor import FSMonitorDaemon
from scalar.git.config import GitConfig
from scalar.git.context import GitContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecommendedSetting:
    key: str
    value: str
    overwrite_on_reconfigure: bool = False


RECOMMENDED_SETTINGS: List[RecommendedSetting] = [
    # Required
    RecommendedSetting("am.keepCR", "true", True),
    RecommendedSetting("core.FSCache", "true", True),
    RecommendedSetting("core.multiPackIndex", "true", True),
    RecommendedSetting("core.preloadIndex", "true", True),
    RecommendedSetting("core.untrackedCache", "true", True),
    RecommendedSetting("core.logAllRefUpdates", "true", True),
    RecommendedSetting("credential.https://dev.azure.com.useHttpPath", "true", True),
    RecommendedSetting("credential.validate", "false", True),  # GCM4W-only
    RecommendedSetting("gc.auto", "0", True),
    RecommendedSetting("gui.GCWarning", "false", True),
    RecommendedSetting("index.skipHash", "false", True),
    RecommendedSetting("index.threads", "true", True),
    RecommendedSetting("index.version", "4", True),
    RecommendedSetting("merge.stat", "false", True),
    RecommendedSetting("merge.renames", "true", True),
    RecommendedSetting("pack.useBitmaps", "false", True),
    RecommendedSetting("pack.useSparse", "true", True),
    RecommendedSetting("receive.autoGC", "false", True),
    RecommendedSetting("feature.manyFiles", "false", True),
    RecommendedSetting("feature.experimental", "false", True),
    RecommendedSetting("fetch.unpackLimit", "1", True),
    RecommendedSetting("fetch.writeCommitGraph", "false", True),
]

if sys.platform == "win32":
    RECOMMENDED_SETTINGS.append(RecommendedSetting("http.sslBackend", "schannel", True))

RECOMMENDED_SETTINGS += [
    # Optional
    RecommendedSetting("status.aheadBehind", "false"),
    RecommendedSetting("commitGraph.generationVersion", "1"),
    RecommendedSetting("core.autoCRLF", "false"),
    RecommendedSetting("core.safeCRLF", "false"),
    RecommendedSetting("fetch.showForcedUpdates", "false"),
    RecommendedSetting("core.configWriteLockTimeoutMS", "150"),
]

FSMONITOR_SETTING = RecommendedSetting("core.fsmonitor", "true")

LEGACY_FSMONITOR_KEY = "core.usebuiltinfsmonitor"
LOG_EXCLUDE_DECORATION_KEY = "log.excludeDecoration"
LOG_EXCLUDE_DECORATION_VALUE = "refs/prefetch/*"


def apply_setting(config: GitConfig, setting: RecommendedSetting, reconfigure: bool) -> None:
    if (reconfigure and setting.overwrite_on_reconfigure) or config.get(setting.key) is None:
        logger.debug(f"{setting.key}: created")
        config.set(setting.key, setting.value)
    else:
        logger.debug(f"{setting.key}: exists")


def migrate_builtin_fsmonitor(config: GitConfig) -> None:
    """Move a legacy `core.useBuiltinFSMonitor` value over to `core.fsmonitor`."""
    value = config.get(LEGACY_FSMONITOR_KEY)
    if value is None:
        return
    if config.get(FSMONITOR_SETTING.key) is None:
        config.set(FSMONITOR_SETTING.key, value)
    config.unset(LEGACY_FSMONITOR_KEY)


def add_log_exclude_decoration(config: GitConfig) -> None:
    # multi-valued: only ever appended to, so user-added values survive
    if config.get(LOG_EXCLUDE_DECORATION_KEY) is None:
        logger.debug(f"{LOG_EXCLUDE_DECORATION_KEY}: created")
        config.add(LOG_EXCLUDE_DECORATION_KEY, LOG_EXCLUDE_DECORATION_VALUE)
    else:
        logger.debug(f"{LOG_EXCLUDE_DECORATION_KEY}: exists")


def apply_recommended_config(context: GitContext, reconfigure: bool = False) -> None:
    """
    Apply the recommended settings to the repository at `context.cwd`.

    Args:
        context: Git context of the repository to configure
        reconfigure: Also overwrite required settings that already have a value

    Raises:
        ConfigWriteError: on the first setting that cannot be written; earlier
            writes are kept
    """
    config = GitConfig(context)

    migrate_builtin_fsmonitor(config)

    for setting in RECOMMENDED_SETTINGS:
        apply_setting(config, setting, reconfigure)

    if FSMonitorDaemon(context).supported():
        apply_setting(config, FSMONITOR_SETTING, reconfigure)

    add_log_exclude_decoration(config)
