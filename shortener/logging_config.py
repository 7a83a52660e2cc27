"""Logging setup for the shortener service.

Modules log through ``logging.getLogger(__name__)``; this configures the
``shortener`` parent logger once.
"""

import logging
import sys
from typing import Union


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Attach a stdout handler to the ``shortener`` logger.

    Args:
        level: Minimum level, as a number or a name such as ``"DEBUG"``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger("shortener")
    root_logger.setLevel(level)

    # Repeated calls only adjust the level
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(handler)
