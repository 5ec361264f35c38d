"""
Logging configuration with uvicorn-compatible colored output
"""

import logging
from typing import Any

TRANSLATION_LOGGER = "maxrouter.translation"

# verbosity -> (root level, translation logger level)
VERBOSITY = {
    "quiet": (logging.WARNING, logging.WARNING),
    "minimal": (logging.INFO, logging.WARNING),
    "medium": (logging.INFO, logging.INFO),
    "maximum": (logging.DEBUG, logging.DEBUG),
}

translation_logger = logging.getLogger(TRANSLATION_LOGGER)


class ColoredFormatter(logging.Formatter):
    """Uvicorn-style colored log formatter"""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        return super().format(record)


def setup_logging(verbosity: str = "medium") -> logging.Logger:
    """Setup logging with colored formatter matching uvicorn style"""
    root_level, translation_level = VERBOSITY[verbosity]

    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter("%(levelname)s:     %(message)s"))
    logging.basicConfig(level=root_level, handlers=[handler])
    logging.getLogger().setLevel(root_level)
    translation_logger.setLevel(translation_level)
    return logging.getLogger("maxrouter")


def log_translation(event: str, detail: Any = None) -> None:
    """Record a translation step; shown from the medium tier up"""
    if detail is None:
        translation_logger.info(event)
    else:
        translation_logger.info(f"{event}: {detail}")
