"""
longscribe.logging - Logging setup for the package and its speech engines.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("longscribe")

# faster-whisper reports every detected language and VAD pass at INFO.
ENGINE_LOGGERS = ("faster_whisper",)


def configure_logging(verbose: bool = False) -> None:
    """Set package and engine log levels.

    Verbose mode logs window plans, salvages and probe scores at DEBUG;
    otherwise only warnings such as timeout salvages are shown.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    logger.setLevel(level)
    for name in ENGINE_LOGGERS:
        logging.getLogger(name).setLevel(level)
