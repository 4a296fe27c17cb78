# --- src/amsim_core/log_config.py ---
import logging
import os
import sys
from typing import Union

PACKAGE_LOGGER = "amsim_core"
LEVEL_ENV_VAR = "AMSIM_LOG_LEVEL"


def setup_logging(level: Union[int, str, None] = None):
    """
    Configures logging of the `amsim_core` logger hierarchy to stdout.

    `level` may be a logging constant or its name ("DEBUG"); when omitted the
    `AMSIM_LOG_LEVEL` environment variable is consulted, then INFO. Calling it
    again replaces the handler instead of stacking a second one.
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR, logging.INFO)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"
    )
    package_logger = logging.getLogger(PACKAGE_LOGGER)

    # Clear handlers from a previous call
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)
    package_logger.setLevel(level)
    package_logger.addHandler(console_handler)

    # jax is chatty at INFO about backend discovery.
    logging.getLogger("jax").setLevel(max(level, logging.WARNING))
    package_logger.debug(f"Logging configured at level {logging.getLevelName(level)}.")
