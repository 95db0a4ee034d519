import logging
import sys


logger = logging.getLogger("scalar")


class MessageFormatter(logging.Formatter):
    """Plain messages, with git-style prefixes for warnings and errors."""

    prefixes = {logging.WARNING: "warning: ", logging.ERROR: "error: "}

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return self.prefixes.get(record.levelno, "") + message


def configure_logging(debug: bool):
    """
    Configures the logging system based on the debug flag.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(MessageFormatter("%(message)s"))

    log_level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(log_level)

    if not logger.hasHandlers():
        logger.addHandler(handler)
